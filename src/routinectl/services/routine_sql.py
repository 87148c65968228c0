from __future__ import annotations

import re

from markupsafe import Markup

from routinectl.core.models import (
    PARAMETER_DIRECTION_CHOICES,
    ROUTINE_KIND_CHOICES,
    ROUTINE_KIND_FUNCTION,
    ROUTINE_KIND_PROCEDURE,
    SECURITY_TYPE_CHOICES,
    SQL_DATA_ACCESS_CHOICES,
    RoutineDescriptor,
)

TYPE_CLASS_NUMBER = "NUMBER"
TYPE_CLASS_DATE = "DATE"
TYPE_CLASS_CHAR = "CHAR"
TYPE_CLASS_SPATIAL = "SPATIAL"
TYPE_CLASS_JSON = "JSON"

_TYPES_BY_CLASS: dict[str, tuple[str, ...]] = {
    TYPE_CLASS_NUMBER: (
        "TINYINT",
        "SMALLINT",
        "MEDIUMINT",
        "INT",
        "BIGINT",
        "DECIMAL",
        "FLOAT",
        "DOUBLE",
        "REAL",
        "BIT",
        "BOOLEAN",
        "SERIAL",
    ),
    TYPE_CLASS_DATE: ("DATE", "DATETIME", "TIMESTAMP", "TIME", "YEAR"),
    TYPE_CLASS_CHAR: (
        "CHAR",
        "VARCHAR",
        "TINYTEXT",
        "TEXT",
        "MEDIUMTEXT",
        "LONGTEXT",
        "BINARY",
        "VARBINARY",
        "TINYBLOB",
        "BLOB",
        "MEDIUMBLOB",
        "LONGBLOB",
        "ENUM",
        "SET",
    ),
    TYPE_CLASS_SPATIAL: (
        "GEOMETRY",
        "POINT",
        "LINESTRING",
        "POLYGON",
        "MULTIPOINT",
        "MULTILINESTRING",
        "MULTIPOLYGON",
        "GEOMETRYCOLLECTION",
    ),
    TYPE_CLASS_JSON: ("JSON",),
}
SUPPORTED_DATA_TYPES = tuple(
    data_type for types in _TYPES_BY_CLASS.values() for data_type in types
)

# Types whose declaration never takes a (length) suffix.
_NO_LENGTH_TYPES = {
    "DATE",
    "TINYBLOB",
    "TINYTEXT",
    "BLOB",
    "TEXT",
    "MEDIUMBLOB",
    "MEDIUMTEXT",
    "LONGBLOB",
    "LONGTEXT",
    "SERIAL",
    "BOOLEAN",
}
_NO_LENGTH_RETURN_TYPES = _NO_LENGTH_TYPES | {"DATETIME", "TIME"}
_LENGTH_REQUIRED_TYPES = {"ENUM", "SET", "VARCHAR", "VARBINARY"}
_BINARY_CHAR_TYPES = {"BINARY", "VARBINARY"}

_DTD_RE = re.compile(
    r"^\s*(?P<type>[A-Za-z]+)\s*(?:\((?P<length>.*)\))?\s*(?P<rest>.*?)\s*$",
    re.DOTALL,
)
_CHARSET_RE = re.compile(r"\bCHARSET\s+(?P<charset>\w+)", re.IGNORECASE)
_ENUM_VALUE_RE = re.compile(r"'((?:[^']|'')*)'")

LENGTH_REQUIRED_ERROR = (
    "You must provide length/values for routine parameters "
    "of type ENUM, SET, VARCHAR and VARBINARY."
)


def backquote(identifier: str) -> str:
    return "`" + str(identifier).replace("`", "``") + "`"


def quote_string(value: str) -> str:
    escaped = str(value).replace("\\", "\\\\").replace("'", "''")
    return f"'{escaped}'"


def type_class(data_type: str) -> str:
    normalized = str(data_type or "").strip().upper()
    for class_name, types in _TYPES_BY_CLASS.items():
        if normalized in types:
            return class_name
    return ""


def parse_data_type(dtd_identifier: str | None) -> tuple[str, str, str, str]:
    """Split ``varchar(20) CHARSET utf8mb4`` into type, length, numeric and text options."""
    match = _DTD_RE.match(str(dtd_identifier or ""))
    if match is None:
        return "", "", "", ""
    data_type = match.group("type").upper()
    length = (match.group("length") or "").strip()
    rest = match.group("rest") or ""
    opts_num = ""
    upper_rest = rest.upper()
    if "UNSIGNED" in upper_rest and "ZEROFILL" in upper_rest:
        opts_num = "UNSIGNED ZEROFILL"
    elif "UNSIGNED" in upper_rest:
        opts_num = "UNSIGNED"
    elif "ZEROFILL" in upper_rest:
        opts_num = "ZEROFILL"
    charset_match = _CHARSET_RE.search(rest)
    opts_text = charset_match.group("charset").lower() if charset_match else ""
    return data_type, length, opts_num, opts_text


def enum_values(length: str) -> list[str]:
    return [value.replace("''", "'") for value in _ENUM_VALUE_RE.findall(length or "")]


def _append_type_options(
    sql: str, data_type: str, opts_text: str, opts_num: str
) -> str:
    upper_type = data_type.upper()
    if opts_text and type_class(upper_type) == TYPE_CLASS_CHAR:
        if upper_type not in _BINARY_CHAR_TYPES:
            sql += " CHARSET " + opts_text.lower()
    if opts_num and type_class(upper_type) == TYPE_CLASS_NUMBER:
        sql += " " + opts_num.upper()
    return sql


def _definer_clause(definer: str, errors: list[str]) -> str:
    if "@" not in definer:
        errors.append('The definer must be in the "username@hostname" format!')
        return ""
    user, host = definer.split("@", 1)
    parts = []
    for part in (user, host):
        if len(part) > 1 and part.startswith("`") and part.endswith("`"):
            parts.append(part)
        else:
            parts.append(backquote(part))
    return f"DEFINER={parts[0]}@{parts[1]} "


def build_create_statement(routine: RoutineDescriptor) -> tuple[str, list[str]]:
    """Return the CREATE statement for ``routine`` and any validation errors.

    Error strings are markup; user-supplied fragments are escaped.
    """
    errors: list[str] = []
    query = "CREATE "
    if routine.definer:
        query += _definer_clause(routine.definer, errors)

    if routine.kind in ROUTINE_KIND_CHOICES:
        query += routine.kind + " "
    else:
        errors.append(
            Markup('Invalid routine type: "{}"').format(routine.kind)
        )

    if routine.name:
        query += backquote(routine.name)
    else:
        errors.append("You must provide a routine name!")

    params: list[str] = []
    warned_about_direction = False
    warned_about_length = False
    for param in routine.parameters:
        if not param.name or not param.type:
            errors.append(
                "You must provide a name and a type for each routine parameter."
            )
            break
        data_type = param.type.upper()
        fragment = ""
        if routine.kind == ROUTINE_KIND_PROCEDURE:
            if param.direction in PARAMETER_DIRECTION_CHOICES:
                fragment = f"{param.direction} {backquote(param.name)} {data_type}"
            elif not warned_about_direction:
                warned_about_direction = True
                errors.append(
                    Markup('Invalid direction "{}" given for parameter.').format(
                        param.direction
                    )
                )
        else:
            fragment = f"{backquote(param.name)} {data_type}"

        if param.length != "" and data_type not in _NO_LENGTH_TYPES:
            fragment += f"({param.length})"
        elif param.length == "" and data_type in _LENGTH_REQUIRED_TYPES:
            if not warned_about_length:
                warned_about_length = True
                errors.append(LENGTH_REQUIRED_ERROR)
        params.append(_append_type_options(fragment, data_type, param.opts_text, param.opts_num))
    query += "(" + ", ".join(params) + ") "

    if routine.kind == ROUTINE_KIND_FUNCTION:
        return_type = routine.return_type.upper()
        if return_type and return_type in SUPPORTED_DATA_TYPES:
            query += "RETURNS " + return_type
        else:
            errors.append("You must provide a valid return type for the routine.")
        if routine.return_length and return_type not in _NO_LENGTH_RETURN_TYPES:
            query += f"({routine.return_length})"
        elif not routine.return_length and return_type in _LENGTH_REQUIRED_TYPES:
            if not warned_about_length:
                errors.append(LENGTH_REQUIRED_ERROR)
        query = _append_type_options(
            query, return_type, routine.return_opts_text, routine.return_opts_num
        )
        query += " "

    if routine.comment:
        query += "COMMENT " + quote_string(routine.comment) + " "
    query += "DETERMINISTIC " if routine.is_deterministic else "NOT DETERMINISTIC "
    if routine.sql_data_access in SQL_DATA_ACCESS_CHOICES:
        query += routine.sql_data_access + " "
    if routine.security_type in SECURITY_TYPE_CHOICES:
        query += "SQL SECURITY " + routine.security_type + " "

    if routine.definition:
        query += routine.definition
    else:
        errors.append("You must provide a routine definition.")
    return query, errors


def build_drop_statement(kind: str, name: str) -> str:
    return f"DROP {kind} {backquote(name)};\n"


def format_query_failure(statement: str, reason: str) -> Markup:
    return Markup('The following query has failed: "{}"<br><br>MySQL said: {}').format(
        statement, reason
    )


def not_found_text(name: str, database: str) -> Markup:
    return Markup("No routine with name {} found in database {}.").format(
        backquote(name), backquote(database)
    )
