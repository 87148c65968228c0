from __future__ import annotations

from dataclasses import dataclass
import re

from flask import Request
from werkzeug.datastructures import ImmutableMultiDict

from routinectl.core.fields import field_value, is_filled
from routinectl.core.models import normalize_routine_kind
from routinectl.services.pagination import parse_offset

_BRACKET_FIELD_RE = re.compile(r"^(?P<group>params|funcs)\[(?P<name>.*)\]$")


def _wants_json(req: Request) -> bool:
    if is_filled(req.values.get("ajax_request")):
        return True
    if (req.headers.get("X-Requested-With") or "").lower() == "xmlhttprequest":
        return True
    if (req.args.get("format") or "").strip().lower() == "json":
        return True
    accepted = req.accept_mimetypes
    return (
        accepted["application/json"] > 0
        and accepted["application/json"] > accepted["text/html"]
    )


@dataclass(frozen=True)
class RoutineRequest:
    """Every field one routines request carries, read once from the transport."""

    fields: ImmutableMultiDict
    database: str = ""
    table: str = ""
    is_ajax: bool = False
    is_page_request: bool = False

    @classmethod
    def from_flask(cls, req: Request) -> "RoutineRequest":
        merged = ImmutableMultiDict(
            list(req.args.items(multi=True)) + list(req.form.items(multi=True))
        )
        return cls(
            fields=merged,
            database=field_value(merged, "db").strip(),
            table=field_value(merged, "table").strip(),
            is_ajax=_wants_json(req),
            is_page_request=is_filled(merged.get("ajax_page_request")),
        )

    @classmethod
    def from_fields(
        cls,
        fields: dict[str, str | list[str]],
        *,
        is_ajax: bool = False,
    ) -> "RoutineRequest":
        pairs: list[tuple[str, str]] = []
        for key, value in fields.items():
            if isinstance(value, list):
                pairs.extend((key, item) for item in value)
            else:
                pairs.append((key, value))
        merged = ImmutableMultiDict(pairs)
        return cls(
            fields=merged,
            database=field_value(merged, "db").strip(),
            table=field_value(merged, "table").strip(),
            is_ajax=is_ajax,
            is_page_request=is_filled(merged.get("ajax_page_request")),
        )

    def flag(self, name: str) -> bool:
        return is_filled(self.fields.get(name))

    def value(self, name: str, default: str = "") -> str:
        return field_value(self.fields, name, default)

    @property
    def item_name(self) -> str:
        return self.value("item_name")

    @property
    def list_kind(self) -> str | None:
        return normalize_routine_kind(self.value("type"))

    @property
    def offset(self) -> int:
        return parse_offset(self.value("pos", "0"))

    @property
    def is_submission(self) -> bool:
        return self.flag("editor_process_add") or self.flag("editor_process_edit")

    def bracket_group(self, group: str) -> dict[str, list[str]]:
        """Collect ``params[name]`` style fields into ``{name: [values]}``."""
        collected: dict[str, list[str]] = {}
        for key in self.fields.keys():
            match = _BRACKET_FIELD_RE.match(key)
            if match is None or match.group("group") != group:
                continue
            name = match.group("name")
            if name.endswith("]["):
                # params[name][] carries a SET value list.
                name = name[:-2]
            collected.setdefault(name, []).extend(
                str(value) for value in self.fields.getlist(key)
            )
        return collected
