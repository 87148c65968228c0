from __future__ import annotations

from typing import Any

from werkzeug.datastructures import MultiDict


def is_filled(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, (list, tuple)):
        return any(is_filled(item) for item in value)
    return str(value) not in {"", "0"}


def field_value(fields: MultiDict, name: str, default: str = "") -> str:
    value = fields.get(name)
    if value is None:
        return default
    return str(value)


def field_values(fields: MultiDict, name: str) -> list[str]:
    values = fields.getlist(name)
    if not values:
        # Accept PHP-style array names from older forms.
        values = fields.getlist(f"{name}[]")
    return [str(value) for value in values]
