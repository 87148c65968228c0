from __future__ import annotations

from dataclasses import dataclass
import logging

from markupsafe import Markup, escape

from routinectl.core.models import ROUTINE_KIND_CHOICES, ResultMessage
from routinectl.services.routine_repository import RoutineRepository
from routinectl.services.routine_sql import backquote

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ExportOutcome:
    message: ResultMessage
    title: str = ""
    payload: str = ""

    @property
    def found(self) -> bool:
        return self.message.success


def delimited_definition(ddl: str) -> str:
    # Routine bodies contain ';', so the DDL is re-delimited for reuse in a client.
    return "DELIMITER $$\n" + ddl + "$$\nDELIMITER ;\n"


def export_routine(
    repository: RoutineRepository, database: str, name: str, kind: str
) -> ExportOutcome:
    if kind not in ROUTINE_KIND_CHOICES:
        raise ValueError(f"Export is not applicable to routine type {kind!r}.")

    definition = repository.get_definition(database, name, kind)
    item_name = escape(backquote(name))
    if definition is None:
        logger.info("Routine export: not found name=%s db=%s", name, database)
        return ExportOutcome(
            message=ResultMessage.error(
                Markup(
                    "Error in processing request: No routine with name {} found in "
                    "database {}. You might be lacking the necessary privileges to "
                    "view/export this routine."
                ).format(item_name, backquote(database))
            )
        )

    payload = escape(delimited_definition(definition).strip())
    title = Markup("Export of routine {}").format(item_name)
    return ExportOutcome(
        message=ResultMessage.ok(title),
        title=title,
        payload=payload,
    )
