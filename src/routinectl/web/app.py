from __future__ import annotations

from flask import Flask
from werkzeug.middleware.proxy_fix import ProxyFix

from routinectl.core.config import Config
from routinectl.core.db import init_engine
from routinectl.core.logging_utils import configure_logging
from routinectl.services.routine_repository import RoutineRepository, SqlRoutineRepository
from routinectl.web.views import bp as routines_bp


def _configure_proxy_middleware(app: Flask) -> None:
    if not bool(app.config.get("PROXY_FIX_ENABLED", False)):
        return

    app.wsgi_app = ProxyFix(
        app.wsgi_app,
        x_for=int(app.config.get("PROXY_FIX_X_FOR", 1)),
        x_proto=int(app.config.get("PROXY_FIX_X_PROTO", 1)),
        x_host=int(app.config.get("PROXY_FIX_X_HOST", 1)),
        x_port=int(app.config.get("PROXY_FIX_X_PORT", 1)),
        x_prefix=int(app.config.get("PROXY_FIX_X_PREFIX", 1)),
    )


def create_app(
    repository: RoutineRepository | None = None,
    config_overrides: dict | None = None,
) -> Flask:
    app = Flask(__name__, template_folder=None, static_folder=None)
    app.config.from_object(Config)
    if config_overrides:
        app.config.update(config_overrides)
    configure_logging(app.config.get("LOG_LEVEL"))
    _configure_proxy_middleware(app)

    if repository is None:
        init_engine(app.config["SQLALCHEMY_DATABASE_URI"])
        repository = SqlRoutineRepository()
    app.extensions["routine_repository"] = repository

    app.register_blueprint(routines_bp)
    return app
