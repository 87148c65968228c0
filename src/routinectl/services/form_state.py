from __future__ import annotations

from dataclasses import dataclass
from itertools import zip_longest
import logging
from typing import Any

from markupsafe import escape
from werkzeug.datastructures import MultiDict

from routinectl.core.fields import field_value, field_values, is_filled
from routinectl.core.models import (
    PARAMETER_DIRECTION_CHOICES,
    ROUTINE_KIND_FUNCTION,
    ROUTINE_KIND_PROCEDURE,
    SECURITY_TYPE_DEFINER,
    SECURITY_TYPE_INVOKER,
    SQL_DATA_ACCESS_CHOICES,
    RoutineDescriptor,
    RoutineParameter,
    opposite_kind,
)
from routinectl.services.parameter_editor import (
    OPERATION_ADD,
    OPERATION_CHANGE,
    OPERATION_REMOVE,
    add_parameter,
    apply_parameter_operation,
    parameter_operation,
)
from routinectl.services.routine_repository import RoutineRepository

logger = logging.getLogger(__name__)

FORM_MODE_ADD = "add"
FORM_MODE_EDIT = "edit"

_PARAMETER_FIELDS = (
    "item_param_dir",
    "item_param_name",
    "item_param_type",
    "item_param_length",
    "item_param_opts_num",
    "item_param_opts_text",
)


@dataclass
class RoutineFormState:
    routine: RoutineDescriptor
    mode: str = FORM_MODE_ADD
    original_name: str = ""
    original_kind: str = ""
    toggle_suggestion: str = ROUTINE_KIND_FUNCTION

    @property
    def parameters(self) -> list[RoutineParameter]:
        return self.routine.parameters

    @property
    def num_params(self) -> int:
        return len(self.routine.parameters)

    @property
    def is_edit(self) -> bool:
        return self.mode == FORM_MODE_EDIT


def hydrate_from_routine(routine: RoutineDescriptor) -> RoutineFormState:
    """Edit form for a routine fetched from the database."""
    return RoutineFormState(
        routine=routine,
        mode=FORM_MODE_EDIT,
        original_name=routine.name,
        original_kind=routine.kind,
        toggle_suggestion=opposite_kind(routine.kind),
    )


def _hydrate_parameters(fields: MultiDict) -> list[RoutineParameter]:
    columns = [field_values(fields, name) for name in _PARAMETER_FIELDS]
    parameters = []
    for direction, name, data_type, length, opts_num, opts_text in zip_longest(
        *columns, fillvalue=""
    ):
        parameters.append(
            RoutineParameter(
                direction=direction if direction in PARAMETER_DIRECTION_CHOICES else "",
                name=name,
                type=data_type,
                length=length,
                opts_num=opts_num,
                opts_text=opts_text,
            )
        )
    return parameters


def hydrate_from_fields(fields: MultiDict, mode: str) -> RoutineFormState:
    """Rebuild the editor state from resubmitted form fields.

    Nothing is re-fetched, so unsaved edits survive add/remove/change round
    trips.
    """
    kind = ROUTINE_KIND_PROCEDURE
    if field_value(fields, "item_type") == ROUTINE_KIND_FUNCTION:
        kind = ROUTINE_KIND_FUNCTION

    sql_data_access = field_value(fields, "item_sqldataaccess")
    if sql_data_access not in SQL_DATA_ACCESS_CHOICES:
        sql_data_access = ""
    security_type = SECURITY_TYPE_DEFINER
    if field_value(fields, "item_securitytype") == SECURITY_TYPE_INVOKER:
        security_type = SECURITY_TYPE_INVOKER

    routine = RoutineDescriptor(
        name=field_value(fields, "item_name"),
        kind=kind,
        parameters=_hydrate_parameters(fields),
        return_type=field_value(fields, "item_returntype"),
        return_length=field_value(fields, "item_returnlength"),
        return_opts_num=field_value(fields, "item_returnopts_num"),
        return_opts_text=field_value(fields, "item_returnopts_text"),
        definition=field_value(fields, "item_definition"),
        is_deterministic="item_isdeterministic" in fields,
        security_type=security_type,
        sql_data_access=sql_data_access,
        comment=field_value(fields, "item_comment"),
        definer=field_value(fields, "item_definer"),
    )
    return RoutineFormState(
        routine=routine,
        mode=mode,
        original_name=field_value(fields, "item_original_name"),
        original_kind=field_value(fields, "item_original_type"),
        toggle_suggestion=opposite_kind(kind),
    )


def build_form_state(
    fields: MultiDict,
    repository: RoutineRepository,
    database: str,
    *,
    error_count: int = 0,
    submitted: bool = False,
) -> RoutineFormState | None:
    """Editor state for the show-editor branch, or None when the edit target is missing."""
    operation = parameter_operation(fields)

    if is_filled(fields.get("add_item")):
        state = hydrate_from_fields(fields, FORM_MODE_ADD)
    elif is_filled(fields.get("edit_item")):
        item_name = field_value(fields, "item_name")
        if operation == "" and item_name and error_count == 0 and not submitted:
            routine = repository.get_routine(
                database, item_name, field_value(fields, "item_type")
            )
            if routine is None:
                return None
            state = hydrate_from_routine(routine)
        else:
            state = hydrate_from_fields(fields, FORM_MODE_EDIT)
    else:
        return None

    if operation == OPERATION_CHANGE:
        apply_parameter_operation(state, OPERATION_CHANGE)
    elif operation == OPERATION_ADD or (
        state.num_params == 0 and state.mode == FORM_MODE_ADD and error_count == 0
    ):
        add_parameter(state)
    elif operation == OPERATION_REMOVE:
        if state.num_params:
            apply_parameter_operation(state, OPERATION_REMOVE)
        else:
            logger.warning("Routine editor: remove requested with no parameters")
    return state


def display_parameters(state: RoutineFormState) -> list[dict[str, Any]]:
    """Parameter rows for the editor template, with free-text fields escaped."""
    rows = []
    for index, param in enumerate(state.parameters):
        rows.append(
            {
                "index": index,
                "direction": param.direction,
                "name": escape(param.name),
                "type": param.type.upper(),
                "length": escape(param.length),
                "opts_num": param.opts_num,
                "opts_text": param.opts_text,
            }
        )
    return rows
