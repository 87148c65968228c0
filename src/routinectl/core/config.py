from __future__ import annotations

import os
from urllib.parse import quote_plus


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name, "").strip().lower()
    if not raw:
        return default
    return raw in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int, *, minimum: int = 0) -> int:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        return default
    return value if value >= minimum else default


def _env_str(name: str, default: str) -> str:
    value = os.getenv(name)
    if value is None:
        return default
    text = value.strip()
    return text or default


def _build_database_uri() -> str:
    direct_uri = os.getenv("ROUTINECTL_DATABASE_URI", "").strip()
    if direct_uri:
        return direct_uri

    host = os.getenv("ROUTINECTL_MYSQL_HOST", "").strip()
    port = _env_str("ROUTINECTL_MYSQL_PORT", "3306")
    user = os.getenv("ROUTINECTL_MYSQL_USER", "").strip()
    password = os.getenv("ROUTINECTL_MYSQL_PASSWORD", "")
    if not host or not user:
        return ""
    safe_user = quote_plus(user)
    safe_password = quote_plus(password)
    credentials = f"{safe_user}:{safe_password}" if password else safe_user
    return f"mysql+pymysql://{credentials}@{host}:{port}/?charset=utf8mb4"


class Config:
    SQLALCHEMY_DATABASE_URI = _build_database_uri()
    SECRET_KEY = os.getenv("FLASK_SECRET_KEY", "dev")
    PREFERRED_URL_SCHEME = os.getenv("ROUTINECTL_PREFERRED_URL_SCHEME", "http")
    LOG_LEVEL = _env_str("ROUTINECTL_LOG_LEVEL", "INFO").upper()

    # Listing page size for /database/routines.
    MAX_ROUTINE_LIST = _env_int("ROUTINECTL_MAX_ROUTINE_LIST", 250, minimum=1)
    # Offer SQL function wrappers next to each input on the execute dialog.
    SHOW_FUNCTION_FIELDS = _env_bool("ROUTINECTL_SHOW_FUNCTION_FIELDS", True)

    # Reverse proxy trust controls. Keep disabled unless explicitly enabled.
    PROXY_FIX_ENABLED = _env_bool("ROUTINECTL_PROXY_FIX_ENABLED", False)
    PROXY_FIX_X_FOR = _env_int("ROUTINECTL_PROXY_FIX_X_FOR", 1, minimum=0)
    PROXY_FIX_X_PROTO = _env_int("ROUTINECTL_PROXY_FIX_X_PROTO", 1, minimum=0)
    PROXY_FIX_X_HOST = _env_int("ROUTINECTL_PROXY_FIX_X_HOST", 1, minimum=0)
    PROXY_FIX_X_PORT = _env_int("ROUTINECTL_PROXY_FIX_X_PORT", 1, minimum=0)
    PROXY_FIX_X_PREFIX = _env_int("ROUTINECTL_PROXY_FIX_X_PREFIX", 1, minimum=0)
