from __future__ import annotations

import os
import subprocess
import sys

TRUE_VALUES = {"1", "true", "yes", "on"}
FALSE_VALUES = {"0", "false", "no", "off"}


def _env_flag(name: str, default: bool) -> bool:
    raw = os.getenv(name, "").strip().lower()
    if not raw:
        return default
    if raw in TRUE_VALUES:
        return True
    if raw in FALSE_VALUES:
        return False
    return default


def _env_float(name: str, default: float, minimum: float) -> float:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        parsed = float(raw)
    except ValueError:
        return default
    if parsed < minimum:
        return default
    return parsed


def _run_database_preflight() -> None:
    if not _env_flag("ROUTINECTL_DB_HEALTHCHECK_ENABLED", True):
        return

    from routinectl.core.config import Config
    from routinectl.core.db import run_startup_db_healthcheck

    run_startup_db_healthcheck(
        Config.SQLALCHEMY_DATABASE_URI,
        timeout_seconds=_env_float("ROUTINECTL_DB_HEALTHCHECK_TIMEOUT_SECONDS", 60.0, 0.0),
        interval_seconds=_env_float("ROUTINECTL_DB_HEALTHCHECK_INTERVAL_SECONDS", 2.0, 0.1),
    )


def _should_use_gunicorn(debug: bool) -> bool:
    raw = os.getenv("ROUTINECTL_USE_GUNICORN", "").strip().lower()
    if raw in TRUE_VALUES:
        return True
    if raw in FALSE_VALUES:
        return False
    return not debug


def _start_gunicorn() -> subprocess.Popen:
    command = [
        sys.executable,
        "-m",
        "gunicorn",
        "-c",
        "python:routinectl.web.gunicorn_config",
        "routinectl.web.app:create_app()",
    ]
    return subprocess.Popen(command, env=os.environ.copy())


def _terminate_process(process: subprocess.Popen | None) -> None:
    if process is None:
        return
    process.terminate()
    try:
        process.wait(timeout=10)
    except subprocess.TimeoutExpired:
        process.kill()


def _run_flask_dev_server(host: str, port: int, debug: bool) -> int:
    from routinectl.web.app import create_app

    app = create_app()
    app.run(host=host, port=port, debug=debug)
    return 0


def main() -> int:
    _run_database_preflight()

    host = os.getenv("FLASK_HOST", "0.0.0.0")
    port = int(os.getenv("FLASK_PORT", "5060"))
    debug = _env_flag("FLASK_DEBUG", False)
    web_process: subprocess.Popen | None = None
    try:
        if _should_use_gunicorn(debug):
            web_process = _start_gunicorn()
            return web_process.wait()
        return _run_flask_dev_server(host, port, debug)
    except KeyboardInterrupt:
        _terminate_process(web_process)
        return 0


if __name__ == "__main__":
    raise SystemExit(main())
