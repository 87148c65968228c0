from __future__ import annotations

from dataclasses import dataclass
import logging

from markupsafe import Markup

from routinectl.core.errors import RoutineExecutionError
from routinectl.core.models import ROUTINE_KIND_CHOICES, ResultMessage
from routinectl.services.form_state import RoutineFormState
from routinectl.services.routine_repository import RoutineRepository
from routinectl.services.routine_sql import (
    backquote,
    build_create_statement,
    build_drop_statement,
    format_query_failure,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SubmitOutcome:
    message: ResultMessage
    query: str = ""
    error_count: int = 0


def _errors_message(errors: list[str]) -> ResultMessage:
    items = Markup("").join(Markup("<li>{}</li>").format(Markup(error)) for error in errors)
    return ResultMessage.error(
        Markup("One or more errors have occurred while processing your request:")
        + Markup("<ul>{}</ul>").format(items)
    )


def _replace_routine(
    repository: RoutineRepository,
    database: str,
    state: RoutineFormState,
    create_query: str,
    errors: list[str],
) -> str:
    original_kind = state.original_kind
    if original_kind not in ROUTINE_KIND_CHOICES:
        errors.append(Markup('Invalid routine type: "{}"').format(original_kind))
        return ""

    backup_query = repository.get_definition(database, state.original_name, original_kind)
    drop_query = build_drop_statement(original_kind, state.original_name)
    with repository.open_runner(database) as runner:
        try:
            runner.execute(drop_query)
        except RoutineExecutionError as exc:
            errors.append(format_query_failure(drop_query, exc.reason))
            return ""
        try:
            runner.execute(create_query)
        except RoutineExecutionError as exc:
            errors.append(format_query_failure(create_query, exc.reason))
            # The old routine is gone; put its definition back.
            if backup_query is None:
                errors.append("Sorry, we failed to restore the dropped routine.")
                return ""
            try:
                runner.execute(backup_query)
            except RoutineExecutionError as restore_exc:
                errors.append(
                    Markup("Sorry, we failed to restore the dropped routine.<br>")
                    + format_query_failure(backup_query, restore_exc.reason)
                )
            return ""
    return drop_query + create_query


def submit_routine(
    repository: RoutineRepository,
    database: str,
    state: RoutineFormState,
    *,
    is_edit: bool,
) -> SubmitOutcome:
    create_query, errors = build_create_statement(state.routine)
    executed_query = ""
    if not errors:
        if is_edit:
            try:
                executed_query = _replace_routine(
                    repository, database, state, create_query, errors
                )
            except RoutineExecutionError as exc:
                errors.append(format_query_failure(exc.statement, exc.reason))
        else:
            try:
                with repository.open_runner(database) as runner:
                    runner.execute(create_query)
                executed_query = create_query
            except RoutineExecutionError as exc:
                errors.append(format_query_failure(create_query, exc.reason))

    if errors:
        logger.info(
            "Routine submit: rejected name=%s db=%s errors=%s",
            state.routine.name,
            database,
            len(errors),
        )
        return SubmitOutcome(message=_errors_message(errors), error_count=len(errors))

    verb = "modified" if is_edit else "created"
    logger.info("Routine submit: %s name=%s db=%s", verb, state.routine.name, database)
    return SubmitOutcome(
        message=ResultMessage.ok(
            Markup("Routine {} has been {}.").format(backquote(state.routine.name), verb)
        ),
        query=executed_query,
    )
