from __future__ import annotations

import logging
from pathlib import Path

from flask import Blueprint, current_app, render_template, request

from routinectl.web.output import select_channel
from routinectl.web.request_context import RoutineRequest
from routinectl.web.workflow import RoutineWorkflow

logger = logging.getLogger(__name__)

TEMPLATES_DIR = Path(__file__).resolve().parents[1] / "templates"

bp = Blueprint("routines", __name__, template_folder=str(TEMPLATES_DIR))


def _routine_repository():
    return current_app.extensions["routine_repository"]


@bp.get("/")
def landing():
    return render_template(
        "routines/landing.html",
        message=request.args.get("message", ""),
        reload=request.args.get("reload") == "1",
    )


@bp.route("/database/routines", methods=["GET", "POST"])
def routines_index():
    ctx = RoutineRequest.from_flask(request)
    channel = select_channel(ctx)
    workflow = RoutineWorkflow(
        ctx,
        _routine_repository(),
        channel,
        page_size=int(current_app.config.get("MAX_ROUTINE_LIST", 250)),
        show_function_fields=bool(current_app.config.get("SHOW_FUNCTION_FIELDS", True)),
    )
    logger.debug(
        "Routines request: method=%s db=%s ajax=%s", request.method, ctx.database, ctx.is_ajax
    )
    return workflow.run()
