from __future__ import annotations

from dataclasses import dataclass, field
import logging

from markupsafe import Markup

from routinectl.core.errors import RoutineExecutionError
from routinectl.core.models import (
    PARAMETER_DIRECTION_INOUT,
    PARAMETER_DIRECTION_OUT,
    ROUTINE_KIND_PROCEDURE,
    ResultMessage,
    RoutineDescriptor,
)
from routinectl.services.routine_repository import (
    ResultSet,
    RoutineRepository,
    StatementResult,
)
from routinectl.services.routine_sql import (
    backquote,
    enum_values,
    format_query_failure,
    not_found_text,
    quote_string,
)

logger = logging.getLogger(__name__)

INPUT_TEXT = "text"
INPUT_TEXTAREA = "textarea"
INPUT_SELECT = "select"
INPUT_MULTISELECT = "multiselect"

# Functions offered as value wrappers on the execute dialog.
ALLOWED_FUNCTIONS = (
    "AES_DECRYPT",
    "AES_ENCRYPT",
    "BIN",
    "CHAR",
    "COMPRESS",
    "CURDATE",
    "CURRENT_DATE",
    "CURRENT_TIME",
    "CURTIME",
    "DATE",
    "FROM_BASE64",
    "FROM_UNIXTIME",
    "HEX",
    "LOWER",
    "LTRIM",
    "MD5",
    "NOW",
    "PASSWORD",
    "RAND",
    "RTRIM",
    "SHA1",
    "SHA2",
    "SOUNDEX",
    "TO_BASE64",
    "TRIM",
    "UNCOMPRESS",
    "UNHEX",
    "UNIX_TIMESTAMP",
    "UPPER",
    "USER",
    "UTC_DATE",
    "UTC_TIME",
    "UTC_TIMESTAMP",
    "UUID",
    "UUID_SHORT",
)
_NO_FUNCTION_TYPES = {
    "ENUM",
    "SET",
    "BINARY",
    "VARBINARY",
    "TINYBLOB",
    "BLOB",
    "MEDIUMBLOB",
    "LONGBLOB",
}
_TEXTAREA_TYPES = {
    "TINYTEXT",
    "TEXT",
    "MEDIUMTEXT",
    "LONGTEXT",
    "TINYBLOB",
    "BLOB",
    "MEDIUMBLOB",
    "LONGBLOB",
}


@dataclass(frozen=True)
class ExecuteField:
    name: str
    type: str
    input: str
    options: tuple[str, ...] = ()
    show_functions: bool = False


@dataclass
class ExecutionReport:
    routine_name: str
    kind: str
    statements: list[str] = field(default_factory=list)
    results: list[StatementResult] = field(default_factory=list)
    affected_rows: int = 0
    succeeded: bool = False

    @property
    def result_sets(self) -> list[ResultSet]:
        return [result_set for result in self.results for result_set in result.row_sets()]


def _input_for_type(data_type: str) -> str:
    if data_type == "ENUM":
        return INPUT_SELECT
    if data_type == "SET":
        return INPUT_MULTISELECT
    if data_type in _TEXTAREA_TYPES:
        return INPUT_TEXTAREA
    return INPUT_TEXT


def build_execute_form(
    routine: RoutineDescriptor, *, show_function_fields: bool = True
) -> list[ExecuteField]:
    fields = []
    for param in routine.parameters:
        if routine.kind == ROUTINE_KIND_PROCEDURE and param.direction == PARAMETER_DIRECTION_OUT:
            continue
        data_type = param.type.upper()
        input_kind = _input_for_type(data_type)
        options: tuple[str, ...] = ()
        if input_kind in {INPUT_SELECT, INPUT_MULTISELECT}:
            options = tuple(enum_values(param.length))
        fields.append(
            ExecuteField(
                name=param.name,
                type=data_type,
                input=input_kind,
                options=options,
                show_functions=show_function_fields and data_type not in _NO_FUNCTION_TYPES,
            )
        )
    return fields


def build_statements(
    routine: RoutineDescriptor,
    values: dict[str, list[str]],
    functions: dict[str, str] | None = None,
) -> list[str]:
    """Statements that bind ``values`` positionally to @p0..@pN and invoke the routine."""
    functions = functions or {}
    statements: list[str] = []
    args: list[str] = []
    for index, param in enumerate(routine.parameters):
        variable = f"@p{index}"
        if param.name in values:
            raw_values = values[param.name]
            value = quote_string(",".join(raw_values))
            function = functions.get(param.name, "").upper()
            if function and function in ALLOWED_FUNCTIONS:
                statements.append(f"SET {variable}={function}({value});\n")
            else:
                statements.append(f"SET {variable}={value};\n")
        else:
            # User variables outlive the request on a pooled connection.
            statements.append(f"SET {variable}=NULL;\n")
        args.append(variable)

    call_args = ", ".join(args)
    if routine.kind == ROUTINE_KIND_PROCEDURE:
        outputs = [
            f"@p{index} AS {backquote(param.name)}"
            for index, param in enumerate(routine.parameters)
            if param.direction in {PARAMETER_DIRECTION_OUT, PARAMETER_DIRECTION_INOUT}
        ]
        statements.append(f"CALL {backquote(routine.name)}({call_args});\n")
        if outputs:
            statements.append("SELECT " + ", ".join(outputs) + ";\n")
    else:
        statements.append(
            f"SELECT {backquote(routine.name)}({call_args}) AS {backquote(routine.name)};\n"
        )
    return statements


class RoutineExecutor:
    def __init__(self, repository: RoutineRepository) -> None:
        self._repository = repository

    def locate(self, database: str, name: str, kind: str | None) -> RoutineDescriptor | None:
        return self._repository.get_routine(database, name, kind)

    def run_statements(
        self,
        database: str,
        statements: list[str],
        *,
        routine_name: str = "",
        kind: str = ROUTINE_KIND_PROCEDURE,
    ) -> tuple[ExecutionReport, ResultMessage]:
        report = ExecutionReport(routine_name=routine_name, kind=kind, statements=list(statements))
        try:
            with self._repository.open_runner(database) as runner:
                for statement in statements:
                    result = runner.execute(statement)
                    report.results.append(result)
                    report.affected_rows = result.affected_rows
        except RoutineExecutionError as exc:
            logger.warning(
                "Routine execute: statement failed routine=%s reason=%s",
                routine_name,
                exc.reason,
            )
            report.results = []
            report.affected_rows = 0
            return report, ResultMessage.error(
                format_query_failure(exc.statement, exc.reason)
            )

        report.succeeded = True
        text = Markup("Your SQL query has been executed successfully.")
        if kind == ROUTINE_KIND_PROCEDURE:
            noun = "row" if report.affected_rows == 1 else "rows"
            text += Markup("<br>") + (
                f"{report.affected_rows} {noun} affected by the last statement "
                "inside the procedure."
            )
        logger.info(
            "Routine execute: completed routine=%s statements=%s",
            routine_name,
            len(statements),
        )
        return report, ResultMessage.ok(text)

    def execute(
        self,
        database: str,
        name: str,
        kind: str | None,
        values: dict[str, list[str]],
        functions: dict[str, str] | None = None,
    ) -> tuple[ExecutionReport | None, ResultMessage]:
        routine = self.locate(database, name, kind)
        if routine is None:
            logger.info("Routine execute: not found name=%s db=%s", name, database)
            return None, ResultMessage.error(
                Markup("Error in processing request: ") + not_found_text(name, database)
            )
        statements = build_statements(routine, values, functions)
        return self.run_statements(
            database, statements, routine_name=routine.name, kind=routine.kind
        )
