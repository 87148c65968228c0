from __future__ import annotations

from typing import Callable

from routinectl.core.models import ROUTINE_KIND_CHOICES
from routinectl.web.request_context import RoutineRequest

MODE_PROCESS_SUBMIT = "process-submit"
MODE_SHOW_EDITOR = "show-editor"
MODE_EXECUTE_ROUTINE = "execute-routine"
MODE_SHOW_EXECUTE_DIALOG = "show-execute-dialog"
MODE_EXPORT = "export"
MODE_LIST = "list"

EDITOR_REQUEST_FIELDS = (
    "add_item",
    "edit_item",
    "routine_addparameter",
    "routine_removeparameter",
    "routine_changetype",
)

_Predicate = Callable[[RoutineRequest, int], bool]


def _wants_submit(ctx: RoutineRequest, error_count: int) -> bool:
    return ctx.is_submission


def _wants_editor(ctx: RoutineRequest, error_count: int) -> bool:
    if error_count > 0:
        return True
    if ctx.is_submission:
        return False
    return any(ctx.flag(name) for name in EDITOR_REQUEST_FIELDS)


def _wants_execute(ctx: RoutineRequest, error_count: int) -> bool:
    return ctx.flag("execute_routine") and bool(ctx.item_name)


def _wants_execute_dialog(ctx: RoutineRequest, error_count: int) -> bool:
    return ctx.flag("execute_dialog") and bool(ctx.item_name)


def _wants_export(ctx: RoutineRequest, error_count: int) -> bool:
    # Exact match: lower-case or unknown kinds fall through to the listing.
    kind = ctx.value("item_type")
    return ctx.flag("export_item") and bool(ctx.item_name) and kind in ROUTINE_KIND_CHOICES


# Priority order: the first matching row wins.
DISPATCH_TABLE: tuple[tuple[str, _Predicate], ...] = (
    (MODE_PROCESS_SUBMIT, _wants_submit),
    (MODE_SHOW_EDITOR, _wants_editor),
    (MODE_EXECUTE_ROUTINE, _wants_execute),
    (MODE_SHOW_EXECUTE_DIALOG, _wants_execute_dialog),
    (MODE_EXPORT, _wants_export),
)


def resolve_mode(
    ctx: RoutineRequest,
    *,
    error_count: int = 0,
    after_submission: bool = False,
) -> str:
    for mode, predicate in DISPATCH_TABLE:
        if after_submission and mode == MODE_PROCESS_SUBMIT:
            continue
        if predicate(ctx, error_count):
            return mode
    return MODE_LIST
