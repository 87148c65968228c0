from __future__ import annotations


class RoutineError(RuntimeError):
    pass


class RoutineExecutionError(RoutineError):
    """A single statement was rejected by the database server."""

    def __init__(self, statement: str, reason: str) -> None:
        super().__init__(f"{reason} (statement: {statement.strip()})")
        self.statement = statement
        self.reason = reason


class SelectionMissingError(RoutineError):
    """The request names no database, or one that does not exist."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message
