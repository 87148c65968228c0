from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass, field
import logging
from typing import Any, Iterator, Protocol

from sqlalchemy import text

from routinectl.core.db import get_engine, raw_connection_scope, session_scope
from routinectl.core.errors import RoutineExecutionError
from routinectl.core.models import (
    PARAMETER_DIRECTION_CHOICES,
    ROUTINE_KIND_FUNCTION,
    SECURITY_TYPE_INVOKER,
    SECURITY_TYPE_DEFINER,
    RoutineDescriptor,
    RoutineParameter,
    RoutineSummary,
    normalize_routine_kind,
)
from routinectl.services.routine_sql import backquote, parse_data_type

logger = logging.getLogger(__name__)


@dataclass
class ResultSet:
    columns: list[str] = field(default_factory=list)
    rows: list[tuple[Any, ...]] = field(default_factory=list)

    @property
    def has_rows(self) -> bool:
        return bool(self.columns) and bool(self.rows)


@dataclass
class StatementResult:
    """Outcome of one statement.

    ``columns`` and ``rows`` hold the first result set. A ``CALL`` can return
    several, and the later ones are kept in ``more_sets`` in server order.
    """

    statement: str
    columns: list[str] = field(default_factory=list)
    rows: list[tuple[Any, ...]] = field(default_factory=list)
    affected_rows: int = 0
    more_sets: list[ResultSet] = field(default_factory=list)

    @property
    def has_rows(self) -> bool:
        return bool(self.columns) and bool(self.rows)

    def row_sets(self) -> list[ResultSet]:
        sets = [ResultSet(self.columns, self.rows)] if self.has_rows else []
        return sets + [result for result in self.more_sets if result.has_rows]


class StatementRunner(Protocol):
    def execute(self, statement: str) -> StatementResult: ...


class RoutineRepository(Protocol):
    def database_exists(self, database: str) -> bool: ...

    def table_exists(self, database: str, table: str) -> bool: ...

    def count_routines(self, database: str, kind: str | None = None) -> int: ...

    def list_routines(
        self,
        database: str,
        kind: str | None = None,
        *,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[RoutineSummary]: ...

    def get_routine(
        self, database: str, name: str, kind: str | None
    ) -> RoutineDescriptor | None: ...

    def get_definition(self, database: str, name: str, kind: str) -> str | None: ...

    def list_charsets(self) -> list[str]: ...

    def has_privilege(self, privilege: str, database: str) -> bool: ...

    def open_runner(self, database: str): ...


class _DbapiStatementRunner:
    def __init__(self, connection, error_type: type[Exception]) -> None:
        self._connection = connection
        self._error_type = error_type

    def execute(self, statement: str) -> StatementResult:
        cursor = self._connection.cursor()
        try:
            cursor.execute(statement)
            result = StatementResult(statement=statement)
            while True:
                if cursor.description:
                    columns = [str(column[0]) for column in cursor.description]
                    rows = [tuple(row) for row in cursor.fetchall()]
                    if result.columns:
                        result.more_sets.append(ResultSet(columns, rows))
                    else:
                        result.columns, result.rows = columns, rows
                result.affected_rows = max(int(cursor.rowcount or 0), 0)
                # Errors raised by a later statement inside a CALL surface here.
                if not cursor.nextset():
                    break
            return result
        except self._error_type as exc:
            raise RoutineExecutionError(statement, _dbapi_error_text(exc)) from exc
        finally:
            cursor.close()


def _dbapi_error_text(exc: Exception) -> str:
    args = getattr(exc, "args", ())
    if len(args) >= 2:
        return f"#{args[0]} - {args[1]}"
    return str(exc)


class SqlRoutineRepository:
    """MySQL-backed routine metadata and execution over SQLAlchemy."""

    def database_exists(self, database: str) -> bool:
        with session_scope() as session:
            row = session.execute(
                text(
                    "SELECT SCHEMA_NAME FROM information_schema.SCHEMATA "
                    "WHERE SCHEMA_NAME = :db"
                ),
                {"db": database},
            ).first()
        return row is not None

    def table_exists(self, database: str, table: str) -> bool:
        with session_scope() as session:
            row = session.execute(
                text(
                    "SELECT TABLE_NAME FROM information_schema.TABLES "
                    "WHERE TABLE_SCHEMA = :db AND TABLE_NAME = :table"
                ),
                {"db": database, "table": table},
            ).first()
        return row is not None

    def count_routines(self, database: str, kind: str | None = None) -> int:
        sql = "SELECT COUNT(*) FROM information_schema.ROUTINES WHERE ROUTINE_SCHEMA = :db"
        params: dict[str, Any] = {"db": database}
        if kind:
            sql += " AND ROUTINE_TYPE = :kind"
            params["kind"] = kind
        with session_scope() as session:
            return int(session.execute(text(sql), params).scalar() or 0)

    def list_routines(
        self,
        database: str,
        kind: str | None = None,
        *,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[RoutineSummary]:
        sql = (
            "SELECT r.ROUTINE_NAME AS name, r.ROUTINE_TYPE AS kind, "
            "r.DTD_IDENTIFIER AS returns, r.DEFINER AS definer, "
            "r.ROUTINE_COMMENT AS comment, "
            "(SELECT COUNT(*) FROM information_schema.PARAMETERS p "
            " WHERE p.SPECIFIC_SCHEMA = r.ROUTINE_SCHEMA "
            " AND p.SPECIFIC_NAME = r.SPECIFIC_NAME "
            " AND p.ROUTINE_TYPE = r.ROUTINE_TYPE "
            " AND p.ORDINAL_POSITION > 0 "
            " AND (p.PARAMETER_MODE IS NULL OR p.PARAMETER_MODE <> 'OUT')) AS input_count "
            "FROM information_schema.ROUTINES r WHERE r.ROUTINE_SCHEMA = :db"
        )
        params: dict[str, Any] = {"db": database}
        if kind:
            sql += " AND r.ROUTINE_TYPE = :kind"
            params["kind"] = kind
        sql += " ORDER BY r.ROUTINE_NAME ASC"
        if limit is not None:
            sql += " LIMIT :limit OFFSET :offset"
            params["limit"] = int(limit)
            params["offset"] = max(int(offset), 0)
        with session_scope() as session:
            rows = session.execute(text(sql), params).mappings().all()
        return [
            RoutineSummary(
                name=str(row["name"]),
                kind=str(row["kind"]),
                returns=str(row["returns"] or "") if row["kind"] == ROUTINE_KIND_FUNCTION else "",
                definer=str(row["definer"] or ""),
                comment=str(row["comment"] or ""),
                has_input_params=int(row["input_count"] or 0) > 0,
            )
            for row in rows
        ]

    def get_routine(
        self, database: str, name: str, kind: str | None
    ) -> RoutineDescriptor | None:
        routine_kind = normalize_routine_kind(kind)
        if routine_kind is None:
            return None
        with session_scope() as session:
            row = (
                session.execute(
                    text(
                        "SELECT ROUTINE_NAME, ROUTINE_TYPE, SPECIFIC_NAME, DTD_IDENTIFIER, "
                        "ROUTINE_DEFINITION, IS_DETERMINISTIC, SQL_DATA_ACCESS, "
                        "SECURITY_TYPE, ROUTINE_COMMENT, DEFINER "
                        "FROM information_schema.ROUTINES "
                        "WHERE ROUTINE_SCHEMA = :db AND ROUTINE_NAME = :name "
                        "AND ROUTINE_TYPE = :kind"
                    ),
                    {"db": database, "name": name, "kind": routine_kind},
                )
                .mappings()
                .first()
            )
            if row is None:
                return None
            param_rows = (
                session.execute(
                    text(
                        "SELECT PARAMETER_MODE, PARAMETER_NAME, DTD_IDENTIFIER, "
                        "CHARACTER_SET_NAME FROM information_schema.PARAMETERS "
                        "WHERE SPECIFIC_SCHEMA = :db AND SPECIFIC_NAME = :specific "
                        "AND ROUTINE_TYPE = :kind AND ORDINAL_POSITION > 0 "
                        "ORDER BY ORDINAL_POSITION ASC"
                    ),
                    {"db": database, "specific": row["SPECIFIC_NAME"], "kind": routine_kind},
                )
                .mappings()
                .all()
            )

        parameters = []
        for param_row in param_rows:
            data_type, length, opts_num, opts_text = parse_data_type(
                param_row["DTD_IDENTIFIER"]
            )
            direction = str(param_row["PARAMETER_MODE"] or "").upper()
            parameters.append(
                RoutineParameter(
                    direction=direction if direction in PARAMETER_DIRECTION_CHOICES else "",
                    name=str(param_row["PARAMETER_NAME"] or ""),
                    type=data_type,
                    length=length,
                    opts_num=opts_num,
                    opts_text=opts_text or str(param_row["CHARACTER_SET_NAME"] or "").lower(),
                )
            )

        routine = RoutineDescriptor(
            name=str(row["ROUTINE_NAME"]),
            kind=routine_kind,
            parameters=parameters,
            definition=str(row["ROUTINE_DEFINITION"] or ""),
            is_deterministic=str(row["IS_DETERMINISTIC"] or "").upper() == "YES",
            security_type=(
                SECURITY_TYPE_INVOKER
                if str(row["SECURITY_TYPE"] or "").upper() == SECURITY_TYPE_INVOKER
                else SECURITY_TYPE_DEFINER
            ),
            sql_data_access=str(row["SQL_DATA_ACCESS"] or ""),
            comment=str(row["ROUTINE_COMMENT"] or ""),
            definer=str(row["DEFINER"] or ""),
        )
        if routine_kind == ROUTINE_KIND_FUNCTION:
            (
                routine.return_type,
                routine.return_length,
                routine.return_opts_num,
                routine.return_opts_text,
            ) = parse_data_type(row["DTD_IDENTIFIER"])
        return routine

    def get_definition(self, database: str, name: str, kind: str) -> str | None:
        routine_kind = normalize_routine_kind(kind)
        if routine_kind is None:
            return None
        statement = f"SHOW CREATE {routine_kind} {backquote(database)}.{backquote(name)}"
        column = "Create Function" if routine_kind == ROUTINE_KIND_FUNCTION else "Create Procedure"
        # An unknown routine and a missing SHOW privilege both surface as an
        # error here; callers report them with the same message.
        try:
            with raw_connection_scope() as connection:
                runner = _DbapiStatementRunner(connection, get_engine().dialect.dbapi.Error)
                result = runner.execute(statement)
        except RoutineExecutionError as exc:
            logger.info("Routine definition: lookup failed name=%s reason=%s", name, exc.reason)
            return None
        if not result.rows or column not in result.columns:
            return None
        value = result.rows[0][result.columns.index(column)]
        return str(value) if value is not None else None

    def list_charsets(self) -> list[str]:
        with session_scope() as session:
            rows = session.execute(
                text(
                    "SELECT CHARACTER_SET_NAME FROM information_schema.CHARACTER_SETS "
                    "ORDER BY CHARACTER_SET_NAME ASC"
                )
            ).all()
        return [str(row[0]) for row in rows]

    def has_privilege(self, privilege: str, database: str) -> bool:
        with session_scope() as session:
            current_user = str(session.execute(text("SELECT CURRENT_USER()")).scalar() or "")
            if "@" not in current_user:
                return False
            user, host = current_user.rsplit("@", 1)
            grantee = f"'{user}'@'{host}'"
            params = {"grantee": grantee, "privilege": privilege.upper(), "db": database}
            global_grant = session.execute(
                text(
                    "SELECT 1 FROM information_schema.USER_PRIVILEGES "
                    "WHERE GRANTEE = :grantee AND PRIVILEGE_TYPE = :privilege"
                ),
                params,
            ).first()
            if global_grant is not None:
                return True
            schema_grant = session.execute(
                text(
                    "SELECT 1 FROM information_schema.SCHEMA_PRIVILEGES "
                    "WHERE GRANTEE = :grantee AND PRIVILEGE_TYPE = :privilege "
                    "AND :db LIKE TABLE_SCHEMA"
                ),
                params,
            ).first()
        return schema_grant is not None

    @contextmanager
    def open_runner(self, database: str) -> Iterator[StatementRunner]:
        error_type = get_engine().dialect.dbapi.Error
        with raw_connection_scope() as connection:
            runner = _DbapiStatementRunner(connection, error_type)
            runner.execute(f"USE {backquote(database)}")
            try:
                yield runner
            finally:
                connection.commit()
