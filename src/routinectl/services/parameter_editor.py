from __future__ import annotations

from typing import TYPE_CHECKING

from werkzeug.datastructures import MultiDict

from routinectl.core.fields import is_filled
from routinectl.core.models import RoutineParameter, opposite_kind

if TYPE_CHECKING:
    from routinectl.services.form_state import RoutineFormState

OPERATION_ADD = "add"
OPERATION_REMOVE = "remove"
OPERATION_CHANGE = "change"

# Checked in order; the first filled field decides the operation.
_OPERATION_FIELDS = (
    ("routine_addparameter", OPERATION_ADD),
    ("routine_removeparameter", OPERATION_REMOVE),
    ("routine_changetype", OPERATION_CHANGE),
)


def parameter_operation(fields: MultiDict) -> str:
    for field_name, operation in _OPERATION_FIELDS:
        if is_filled(fields.get(field_name)):
            return operation
    return ""


def add_parameter(state: RoutineFormState) -> RoutineFormState:
    state.routine.parameters.append(RoutineParameter())
    return state


def remove_parameter(state: RoutineFormState) -> RoutineFormState:
    if not state.routine.parameters:
        raise IndexError("Cannot remove a parameter from an empty parameter list.")
    state.routine.parameters.pop()
    return state


def toggle_kind(state: RoutineFormState) -> RoutineFormState:
    previous = state.routine.kind
    state.routine.kind = opposite_kind(previous)
    state.toggle_suggestion = previous
    return state


def apply_parameter_operation(state: RoutineFormState, operation: str) -> RoutineFormState:
    if operation == OPERATION_ADD:
        return add_parameter(state)
    if operation == OPERATION_REMOVE:
        return remove_parameter(state)
    if operation == OPERATION_CHANGE:
        return toggle_kind(state)
    return state
