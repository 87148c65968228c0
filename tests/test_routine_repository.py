from __future__ import annotations

import unittest

from routine_fakes import SRC  # noqa: F401
from routinectl.core.errors import RoutineExecutionError
from routinectl.services.routine_repository import ResultSet, _DbapiStatementRunner


class ServerError(Exception):
    pass


class MultiResultCursor:
    """Cursor over a queue of result sets, read the way PyMySQL reads them.

    Each entry is ``(columns, rows, rowcount)`` or an exception the server
    sends in place of that result set. ``close()`` drains whatever is left.
    """

    def __init__(self, sets: list) -> None:
        self._sets = list(sets)
        self._index = 0
        self._drained = False
        self.description = None
        self.rowcount = -1
        self.rows: list[tuple] = []
        self.closed = False
        self.executed: list[str] = []

    def _load(self) -> None:
        entry = self._sets[self._index]
        if isinstance(entry, Exception):
            self._drained = True
            raise entry
        columns, rows, rowcount = entry
        self.description = tuple((name, None) for name in columns) or None
        self.rows = list(rows)
        self.rowcount = rowcount

    def execute(self, statement: str) -> None:
        self.executed.append(statement)
        self._load()

    def fetchall(self) -> list[tuple]:
        rows, self.rows = self.rows, []
        return rows

    def nextset(self) -> bool | None:
        if self._drained or self._index + 1 >= len(self._sets):
            return None
        self._index += 1
        self._load()
        return True

    def close(self) -> None:
        while self.nextset():
            pass
        self.closed = True


class StubConnection:
    def __init__(self, cursor: MultiResultCursor) -> None:
        self._cursor = cursor

    def cursor(self) -> MultiResultCursor:
        return self._cursor


def run(sets: list, statement: str = "CALL `report`();\n"):
    cursor = MultiResultCursor(sets)
    runner = _DbapiStatementRunner(StubConnection(cursor), ServerError)
    return cursor, runner, statement


class DbapiStatementRunnerTests(unittest.TestCase):
    def test_every_result_set_is_collected(self) -> None:
        cursor, runner, statement = run(
            [
                (["a"], [(1,)], 1),
                (["b", "c"], [(2, 3), (4, 5)], 2),
                ([], [], 3),
            ]
        )

        result = runner.execute(statement)

        self.assertEqual(["a"], result.columns)
        self.assertEqual([(1,)], result.rows)
        self.assertEqual([ResultSet(["b", "c"], [(2, 3), (4, 5)])], result.more_sets)
        self.assertEqual(3, result.affected_rows)
        self.assertEqual(
            [[(1,)], [(2, 3), (4, 5)]], [result_set.rows for result_set in result.row_sets()]
        )
        self.assertTrue(cursor.closed)

    def test_error_in_later_result_set_is_wrapped(self) -> None:
        cursor, runner, statement = run(
            [
                (["a"], [(1,)], 1),
                ServerError(1146, "Table 'shop.missing' doesn't exist"),
            ]
        )

        with self.assertRaises(RoutineExecutionError) as caught:
            runner.execute(statement)

        self.assertEqual(statement, caught.exception.statement)
        self.assertEqual("#1146 - Table 'shop.missing' doesn't exist", caught.exception.reason)
        self.assertIsInstance(caught.exception.__cause__, ServerError)
        self.assertTrue(cursor.closed)

    def test_error_on_first_result_is_wrapped(self) -> None:
        cursor, runner, statement = run([ServerError(1064, "You have an error")], "SELEC 1")

        with self.assertRaises(RoutineExecutionError) as caught:
            runner.execute(statement)

        self.assertEqual("#1064 - You have an error", caught.exception.reason)
        self.assertEqual(["SELEC 1"], cursor.executed)

    def test_statement_without_rows(self) -> None:
        _, runner, _ = run([([], [], 0)])

        result = runner.execute("SET @p0='x';\n")

        self.assertFalse(result.has_rows)
        self.assertEqual([], result.row_sets())
        self.assertEqual(0, result.affected_rows)

    def test_negative_rowcount_reads_as_zero(self) -> None:
        _, runner, statement = run([(["a"], [(1,)], -1)])

        self.assertEqual(0, runner.execute(statement).affected_rows)


if __name__ == "__main__":
    unittest.main()
