from __future__ import annotations

from dataclasses import replace
import logging
from typing import Callable

from flask import Response, render_template
from markupsafe import Markup, escape

from routinectl.core.errors import SelectionMissingError
from routinectl.core.models import (
    NUMERIC_OPTION_CHOICES,
    PARAMETER_DIRECTION_CHOICES,
    ROUTINE_KIND_FUNCTION,
    SQL_DATA_ACCESS_CHOICES,
    ResultMessage,
    RoutineSummary,
)
from routinectl.services.executor import (
    ALLOWED_FUNCTIONS,
    RoutineExecutor,
    build_execute_form,
)
from routinectl.services.export import export_routine
from routinectl.services.form_state import (
    FORM_MODE_ADD,
    FORM_MODE_EDIT,
    build_form_state,
    display_parameters,
    hydrate_from_fields,
)
from routinectl.services.pagination import PaginatedLister
from routinectl.services.routine_repository import RoutineRepository
from routinectl.services.routine_sql import SUPPORTED_DATA_TYPES, backquote, not_found_text
from routinectl.services.submit import submit_routine
from routinectl.web.mode_resolver import (
    MODE_EXECUTE_ROUTINE,
    MODE_EXPORT,
    MODE_PROCESS_SUBMIT,
    MODE_SHOW_EDITOR,
    MODE_SHOW_EXECUTE_DIALOG,
    resolve_mode,
)
from routinectl.web.output import OutputChannel
from routinectl.web.request_context import RoutineRequest

logger = logging.getLogger(__name__)

_NOT_FOUND_PREFIX = Markup("Error in processing request: ")


class RoutineWorkflow:
    def __init__(
        self,
        ctx: RoutineRequest,
        repository: RoutineRepository,
        channel: OutputChannel,
        *,
        page_size: int,
        show_function_fields: bool = True,
    ) -> None:
        self.ctx = ctx
        self.repository = repository
        self.channel = channel
        self.page_size = page_size
        self.show_function_fields = show_function_fields
        self.executor = RoutineExecutor(repository)
        self._privileges: dict[str, bool] = {}

    def run(self) -> Response:
        try:
            self._check_selection()
        except SelectionMissingError as exc:
            logger.info("Routine workflow: selection missing db=%s", self.ctx.database)
            return self.channel.show_selection_missing(ResultMessage.error(exc.message))

        error_count = 0
        mode = resolve_mode(self.ctx)
        if mode == MODE_PROCESS_SUBMIT:
            response, error_count = self._process_submit()
            if response is not None:
                return response
            mode = resolve_mode(self.ctx, error_count=error_count, after_submission=True)

        logger.debug("Routine workflow: mode=%s db=%s", mode, self.ctx.database)
        branches: dict[str, Callable[[int], Response | None]] = {
            MODE_SHOW_EDITOR: self._show_editor,
            MODE_EXECUTE_ROUTINE: self._execute_routine,
            MODE_SHOW_EXECUTE_DIALOG: self._show_execute_dialog,
            MODE_EXPORT: self._export,
        }
        branch = branches.get(mode)
        if branch is not None:
            response = branch(error_count)
            if response is not None:
                return response
        return self._list()

    def _check_selection(self) -> None:
        # Only full-page requests check the selection.
        if self.ctx.is_ajax:
            return
        database = self.ctx.database
        if not database or not self.repository.database_exists(database):
            raise SelectionMissingError("No databases selected.")
        if self.ctx.table and not self.repository.table_exists(database, self.ctx.table):
            logger.info(
                "Routine workflow: ignoring unknown table db=%s table=%s",
                database,
                self.ctx.table,
            )
            self.ctx = replace(self.ctx, table="")

    def _has_privilege(self, privilege: str) -> bool:
        if privilege not in self._privileges:
            self._privileges[privilege] = self.repository.has_privilege(
                privilege, self.ctx.database
            )
        return self._privileges[privilege]

    def _not_found(self, suffix: str = "") -> ResultMessage:
        text = _NOT_FOUND_PREFIX + not_found_text(self.ctx.item_name, self.ctx.database)
        if suffix:
            text += " " + suffix
        return ResultMessage.error(text)

    def _render_row(self, routine: RoutineSummary, row_class: str = "") -> str:
        can_edit = self._has_privilege("ALTER ROUTINE")
        return render_template(
            "routines/row.html",
            db=self.ctx.database,
            routine=routine,
            row_class=row_class,
            sql_drop=f"DROP {routine.kind} IF EXISTS {backquote(routine.name)}",
            has_edit_privilege=can_edit,
            has_execute_privilege=self._has_privilege("EXECUTE"),
            has_export_privilege=can_edit or self._has_privilege("CREATE ROUTINE"),
            execute_action="execute_dialog" if routine.has_input_params else "execute_routine",
        )

    def _process_submit(self) -> tuple[Response | None, int]:
        is_edit = self.ctx.flag("editor_process_edit")
        state = hydrate_from_fields(self.ctx.fields, FORM_MODE_EDIT if is_edit else FORM_MODE_ADD)
        outcome = submit_routine(self.repository, self.ctx.database, state, is_edit=is_edit)
        if outcome.error_count:
            return self.channel.fail(outcome.message), outcome.error_count

        output = ""
        if outcome.query:
            output = Markup('<pre class="sql">{}</pre>').format(outcome.query)
        row = ""
        routine = self.repository.get_routine(
            self.ctx.database, state.routine.name, state.routine.kind
        )
        if routine is not None:
            row = self._render_row(RoutineSummary.from_descriptor(routine))
        response = self.channel.show_submitted(
            outcome.message,
            output,
            name=escape(state.routine.name.upper()),
            row=row,
        )
        return response, 0

    def _show_editor(self, error_count: int) -> Response | None:
        state = build_form_state(
            self.ctx.fields,
            self.repository,
            self.ctx.database,
            error_count=error_count,
            submitted=self.ctx.is_submission,
        )
        if state is None:
            return self.channel.fail(
                self._not_found(
                    "You might be lacking the necessary privileges to edit this routine."
                )
            )

        title = "Edit routine" if state.is_edit else "Add routine"
        editor = render_template(
            "routines/editor_form.html",
            db=self.ctx.database,
            state=state,
            routine=state.routine,
            is_edit_mode=state.is_edit,
            is_add_mode=state.mode == FORM_MODE_ADD,
            is_ajax=self.ctx.is_ajax,
            parameter_rows=display_parameters(state),
            is_function=state.routine.kind == ROUTINE_KIND_FUNCTION,
            charsets=self.repository.list_charsets(),
            data_types=SUPPORTED_DATA_TYPES,
            directions=PARAMETER_DIRECTION_CHOICES,
            numeric_options=NUMERIC_OPTION_CHOICES,
            sql_data_access=SQL_DATA_ACCESS_CHOICES,
        )
        param_template = render_template(
            "routines/parameter_row.html",
            row={"index": "%s", "direction": "", "name": "", "type": "", "length": "",
                 "opts_num": "", "opts_text": ""},
            is_function=False,
            charsets=self.repository.list_charsets(),
            data_types=SUPPORTED_DATA_TYPES,
            directions=PARAMETER_DIRECTION_CHOICES,
            numeric_options=NUMERIC_OPTION_CHOICES,
        )
        return self.channel.show_editor(
            title=title,
            editor=editor,
            param_template=param_template,
            kind=state.routine.kind,
        )

    def _execute_routine(self, error_count: int) -> Response | None:
        functions = {
            name: values[0] for name, values in self.ctx.bracket_group("funcs").items() if values
        }
        report, message = self.executor.execute(
            self.ctx.database,
            self.ctx.item_name,
            self.ctx.value("item_type"),
            self.ctx.bracket_group("params"),
            functions,
        )
        if report is None:
            return self.channel.fail(message, terminal=True)
        output = ""
        if report.succeeded:
            output = render_template("routines/execute_result.html", report=report)
        return self.channel.show_execution(message, output)

    def _show_execute_dialog(self, error_count: int) -> Response | None:
        routine = self.executor.locate(
            self.ctx.database, self.ctx.item_name, self.ctx.value("item_type")
        )
        if routine is None:
            return self.channel.fail(self._not_found())
        form = render_template(
            "routines/execute_form.html",
            db=self.ctx.database,
            routine=routine,
            fields=build_execute_form(
                routine, show_function_fields=self.show_function_fields
            ),
            functions=ALLOWED_FUNCTIONS,
            is_ajax=self.ctx.is_ajax,
        )
        title = Markup("Execute routine {}").format(backquote(routine.name))
        return self.channel.show_execute_dialog(title=title, form=form)

    def _export(self, error_count: int) -> Response | None:
        outcome = export_routine(
            self.repository,
            self.ctx.database,
            self.ctx.item_name,
            self.ctx.value("item_type"),
        )
        return self.channel.show_export(outcome)

    def _list(self) -> Response:
        lister = PaginatedLister(self.repository, self.page_size)
        kind = self.ctx.list_kind
        plan = lister.plan(self.ctx.database, kind, self.ctx.offset)
        if plan.needs_redirect:
            return self.channel.redirect(
                "routines.routines_index",
                db=self.ctx.database,
                pos=plan.redirect_offset,
                reload=1,
            )

        items = lister.fetch(self.ctx.database, kind, plan.window)
        row_class = "ajaxInsert hide" if self.ctx.is_ajax and not self.ctx.is_page_request else ""
        listing = render_template(
            "routines/index.html",
            db=self.ctx.database,
            table=self.ctx.table,
            rows=[Markup(self._render_row(item, row_class)) for item in items],
            has_any_routines=bool(items),
            has_privilege=self._has_privilege("CREATE ROUTINE"),
            window=plan.window,
            navigator=lister.navigator(plan.window),
            list_kind=kind or "",
        )
        return self.channel.show_listing(listing)

