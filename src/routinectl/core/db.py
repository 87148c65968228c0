from __future__ import annotations

from contextlib import contextmanager
import time

from sqlalchemy import create_engine, text
from sqlalchemy.orm import Session, sessionmaker

_engine = None
SessionLocal = None


def init_engine(database_uri: str):
    global _engine, SessionLocal
    if _engine is None:
        if not database_uri:
            raise RuntimeError(
                "MySQL is required. Set ROUTINECTL_DATABASE_URI or "
                "ROUTINECTL_MYSQL_HOST, ROUTINECTL_MYSQL_USER, and "
                "ROUTINECTL_MYSQL_PASSWORD."
            )
        if not database_uri.lower().startswith("mysql"):
            raise RuntimeError("Only MySQL is supported for ROUTINECTL_DATABASE_URI.")
        _engine = create_engine(database_uri, pool_pre_ping=True, future=True)
        SessionLocal = sessionmaker(bind=_engine, expire_on_commit=False, class_=Session)
    return _engine


def get_engine():
    if _engine is None:
        raise RuntimeError("Database engine is not initialized")
    return _engine


@contextmanager
def session_scope():
    if SessionLocal is None:
        raise RuntimeError("Database session is not initialized")
    session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


@contextmanager
def raw_connection_scope():
    """Yield a pooled DBAPI connection.

    Statements run through the raw cursor so routine bodies containing ``%`` or
    ``:name`` reach the server untouched by bind-parameter parsing.
    """
    connection = get_engine().raw_connection()
    try:
        yield connection
    finally:
        connection.close()


def run_startup_db_healthcheck(
    database_uri: str,
    *,
    timeout_seconds: float = 60.0,
    interval_seconds: float = 2.0,
) -> None:
    if not database_uri:
        raise RuntimeError("Database URI is required for startup health checks.")
    engine = init_engine(database_uri)

    timeout = max(float(timeout_seconds), 0.0)
    interval = max(float(interval_seconds), 0.1)
    deadline = time.monotonic() + timeout
    last_error: Exception | None = None

    while True:
        try:
            with engine.connect() as connection:
                connection.execute(text("SELECT 1"))
            return
        except Exception as exc:
            last_error = exc
            if time.monotonic() >= deadline:
                break
            time.sleep(interval)

    raise RuntimeError(
        "Database health check failed after "
        f"{timeout:.1f}s (interval {interval:.1f}s)."
    ) from last_error
