from __future__ import annotations

from typing import Any, Protocol

from flask import Response, jsonify, make_response, redirect, render_template, url_for
from markupsafe import Markup

from routinectl.core.models import ResultMessage
from routinectl.services.export import ExportOutcome
from routinectl.web.request_context import RoutineRequest


class OutputChannel(Protocol):
    """One presentation mode for the routines workflow.

    Workflow branches hand finished content to the channel. A method that
    returns ``None`` means the full page keeps going and the listing is
    appended below what was emitted so far.
    """

    ctx: RoutineRequest

    def fail(self, message: ResultMessage, *, terminal: bool = False) -> Response | None: ...

    def show_editor(
        self, *, title: str, editor: str, param_template: str, kind: str
    ) -> Response: ...

    def show_execute_dialog(self, *, title: str, form: str) -> Response: ...

    def show_execution(self, message: ResultMessage, output: str) -> Response | None: ...

    def show_export(self, outcome: ExportOutcome) -> Response | None: ...

    def show_submitted(
        self, message: ResultMessage, output: str, *, name: str, row: str
    ) -> Response | None: ...

    def show_listing(self, listing: str) -> Response: ...

    def show_selection_missing(self, message: ResultMessage) -> Response: ...

    def redirect(self, endpoint: str, **params: Any) -> Response: ...


def _redirect_to(endpoint: str, **params: Any) -> Response:
    return redirect(url_for(endpoint, **params))


class HtmlChannel:
    def __init__(self, ctx: RoutineRequest) -> None:
        self.ctx = ctx
        self._fragments: list[Markup] = []

    def _append(self, *fragments: str) -> None:
        self._fragments.extend(Markup(fragment) for fragment in fragments)

    def _page(self, listing: str = "") -> Response:
        body = render_template(
            "routines/page.html",
            db=self.ctx.database,
            fragments=self._fragments,
            listing=Markup(listing),
        )
        return make_response(body)

    def fail(self, message: ResultMessage, *, terminal: bool = False) -> Response | None:
        self._append(message.display())
        if terminal:
            return self._page()
        return None

    def show_editor(
        self, *, title: str, editor: str, param_template: str, kind: str
    ) -> Response:
        self._append(Markup("<h2>{}</h2>").format(title), editor)
        return self._page()

    def show_execute_dialog(self, *, title: str, form: str) -> Response:
        self._append(Markup("<h2>{}</h2>").format(title), form)
        return self._page()

    def show_execution(self, message: ResultMessage, output: str) -> Response | None:
        self._append(message.display(), output)
        if message.is_error:
            # A statement failed; nothing else runs for this request.
            return self._page()
        return None

    def show_export(self, outcome: ExportOutcome) -> Response | None:
        if not outcome.found:
            self._append(outcome.message.display())
            return None
        self._append(
            render_template(
                "routines/export.html", title=outcome.title, payload=outcome.payload
            )
        )
        return None

    def show_submitted(
        self, message: ResultMessage, output: str, *, name: str, row: str
    ) -> Response | None:
        self._append(message.display(), output)
        return None

    def show_listing(self, listing: str) -> Response:
        return self._page(listing)

    def show_selection_missing(self, message: ResultMessage) -> Response:
        return self.redirect("routines.landing", reload=1, message=str(message.text))

    def redirect(self, endpoint: str, **params: Any) -> Response:
        return _redirect_to(endpoint, **params)


class JsonChannel:
    def __init__(self, ctx: RoutineRequest) -> None:
        self.ctx = ctx

    def _json(self, success: bool, **payload: Any) -> Response:
        response = make_response(jsonify({"success": success, **payload}))
        if not success:
            response.status_code = 400
        return response

    def fail(self, message: ResultMessage, *, terminal: bool = False) -> Response | None:
        return self._json(False, message=message.display())

    def show_editor(
        self, *, title: str, editor: str, param_template: str, kind: str
    ) -> Response:
        return self._json(
            True,
            message=editor,
            title=title,
            paramTemplate=param_template,
            type=kind,
        )

    def show_execute_dialog(self, *, title: str, form: str) -> Response:
        return self._json(True, message=form, title=title, dialog=True)

    def show_execution(self, message: ResultMessage, output: str) -> Response | None:
        return self._json(
            message.success,
            message=message.display() + Markup(output),
            dialog=False,
        )

    def show_export(self, outcome: ExportOutcome) -> Response | None:
        if not outcome.found:
            return self._json(False, message=outcome.message.display())
        return self._json(True, message=outcome.payload, title=outcome.title)

    def show_submitted(
        self, message: ResultMessage, output: str, *, name: str, row: str
    ) -> Response | None:
        return self._json(
            True,
            message=message.display() + Markup(output),
            name=name,
            new_row=row,
            insert=True,
            tableType="routines",
        )

    def show_listing(self, listing: str) -> Response:
        return self._json(True, message=listing)

    def show_selection_missing(self, message: ResultMessage) -> Response:
        return self._json(False, message=message.display())

    def redirect(self, endpoint: str, **params: Any) -> Response:
        params.setdefault("ajax_request", "true")
        params.setdefault("ajax_page_request", "true")
        return _redirect_to(endpoint, **params)


def select_channel(ctx: RoutineRequest) -> OutputChannel:
    if ctx.is_ajax:
        return JsonChannel(ctx)
    return HtmlChannel(ctx)
