from __future__ import annotations

from dataclasses import dataclass, field

from markupsafe import Markup

ROUTINE_KIND_PROCEDURE = "PROCEDURE"
ROUTINE_KIND_FUNCTION = "FUNCTION"
ROUTINE_KIND_CHOICES = (ROUTINE_KIND_PROCEDURE, ROUTINE_KIND_FUNCTION)

PARAMETER_DIRECTION_IN = "IN"
PARAMETER_DIRECTION_OUT = "OUT"
PARAMETER_DIRECTION_INOUT = "INOUT"
PARAMETER_DIRECTION_CHOICES = (
    PARAMETER_DIRECTION_IN,
    PARAMETER_DIRECTION_OUT,
    PARAMETER_DIRECTION_INOUT,
)

SECURITY_TYPE_DEFINER = "DEFINER"
SECURITY_TYPE_INVOKER = "INVOKER"
SECURITY_TYPE_CHOICES = (SECURITY_TYPE_DEFINER, SECURITY_TYPE_INVOKER)

SQL_DATA_ACCESS_CHOICES = (
    "CONTAINS SQL",
    "NO SQL",
    "READS SQL DATA",
    "MODIFIES SQL DATA",
)
NUMERIC_OPTION_CHOICES = ("UNSIGNED", "ZEROFILL", "UNSIGNED ZEROFILL")

MESSAGE_LEVEL_SUCCESS = "success"
MESSAGE_LEVEL_ERROR = "error"
_ALERT_CLASSES = {
    MESSAGE_LEVEL_SUCCESS: "alert-success",
    MESSAGE_LEVEL_ERROR: "alert-danger",
}


def normalize_routine_kind(value: object) -> str | None:
    candidate = str(value or "").strip().upper()
    if candidate in ROUTINE_KIND_CHOICES:
        return candidate
    return None


def opposite_kind(kind: str) -> str:
    if kind == ROUTINE_KIND_PROCEDURE:
        return ROUTINE_KIND_FUNCTION
    return ROUTINE_KIND_PROCEDURE


@dataclass
class RoutineParameter:
    direction: str = ""
    name: str = ""
    type: str = ""
    length: str = ""
    opts_num: str = ""
    opts_text: str = ""

    def is_blank(self) -> bool:
        return not any(
            (
                self.direction,
                self.name,
                self.type,
                self.length,
                self.opts_num,
                self.opts_text,
            )
        )


@dataclass
class RoutineDescriptor:
    name: str = ""
    kind: str = ROUTINE_KIND_PROCEDURE
    parameters: list[RoutineParameter] = field(default_factory=list)
    return_type: str = ""
    return_length: str = ""
    return_opts_num: str = ""
    return_opts_text: str = ""
    definition: str = ""
    is_deterministic: bool = False
    security_type: str = SECURITY_TYPE_DEFINER
    sql_data_access: str = ""
    comment: str = ""
    definer: str = ""

    @property
    def is_function(self) -> bool:
        return self.kind == ROUTINE_KIND_FUNCTION

    def returns_label(self) -> str:
        if not self.is_function or not self.return_type:
            return ""
        label = self.return_type
        if self.return_length:
            label += f"({self.return_length})"
        if self.return_opts_num:
            label += f" {self.return_opts_num}"
        return label.lower()


@dataclass(frozen=True)
class RoutineSummary:
    name: str
    kind: str
    returns: str = ""
    definer: str = ""
    comment: str = ""
    has_input_params: bool = False

    @classmethod
    def from_descriptor(cls, routine: RoutineDescriptor) -> "RoutineSummary":
        has_inputs = any(
            param.direction != PARAMETER_DIRECTION_OUT for param in routine.parameters
        )
        return cls(
            name=routine.name,
            kind=routine.kind,
            returns=routine.returns_label(),
            definer=routine.definer,
            comment=routine.comment,
            has_input_params=has_inputs,
        )


@dataclass(frozen=True)
class PageWindow:
    offset: int
    page_size: int
    total_count: int

    @property
    def is_valid(self) -> bool:
        if self.offset < 0:
            return False
        return self.total_count == 0 or self.offset < self.total_count


@dataclass(frozen=True)
class ResultMessage:
    """Outcome text shared by both output channels.

    ``text`` is markup: callers escape any user-supplied value before
    formatting it in, usually through ``Markup(...).format(...)``.
    """

    success: bool
    text: str
    level: str = MESSAGE_LEVEL_SUCCESS

    @classmethod
    def ok(cls, text: str) -> "ResultMessage":
        return cls(success=True, text=Markup(text), level=MESSAGE_LEVEL_SUCCESS)

    @classmethod
    def error(cls, text: str) -> "ResultMessage":
        return cls(success=False, text=Markup(text), level=MESSAGE_LEVEL_ERROR)

    @property
    def is_error(self) -> bool:
        return not self.success

    def display(self) -> Markup:
        css_class = _ALERT_CLASSES.get(self.level, "alert-primary")
        return Markup('<div class="alert {}" role="alert">{}</div>').format(
            css_class, Markup(self.text)
        )
