"""
Conversion rules between CSV text and field values.

A ValueConverter knows one value kind plus an optional column pattern:

- str / int / float / decimal: Python format spec used on write
  (e.g. ``"08d"``, ``",.2f"``, ``".1%"``); grouping and percent are undone on read.
- bool: ``"<true>|<false>"`` texts, e.g. ``"Y|N"``.
- date / datetime / time: strftime/strptime pattern; ISO-8601 without one.
- enum: ``"value"`` (default) or ``"name"``.
- list: item delimiter, default ``";"``.
- json: no pattern.
"""

from __future__ import annotations

import json
import re
import types
import typing
from dataclasses import dataclass
from datetime import date, datetime, time, timezone
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Callable, Dict, Optional, Tuple

KINDS = ("str", "int", "float", "decimal", "bool", "date", "datetime", "time", "enum", "json", "list")
EXPLICIT_KINDS = tuple(k for k in KINDS if k != "enum")
SCALAR_KINDS = ("str", "int", "float", "decimal", "bool", "date", "datetime", "time")

DEFAULT_LIST_DELIMITER = ";"

_TRUE = {"1", "true", "t", "yes", "y", "on"}
_FALSE = {"0", "false", "f", "no", "n", "off"}

_INT_BASES = {"x": 16, "X": 16, "o": 8, "b": 2}

_SAMPLE_INT = 1234
_SAMPLE_MOMENT = datetime(2000, 1, 2, 3, 4, 5, tzinfo=timezone.utc)

_NAMED_KINDS = {
    "str": "str",
    "int": "int",
    "float": "float",
    "Decimal": "decimal",
    "decimal.Decimal": "decimal",
    "bool": "bool",
    "date": "date",
    "datetime.date": "date",
    "datetime": "datetime",
    "datetime.datetime": "datetime",
    "time": "time",
    "datetime.time": "time",
    "dict": "json",
    "Any": "str",
    "typing.Any": "str",
    "object": "str",
}

_OPTIONAL_RE = re.compile(r"^(?:typing\.)?Optional\[(.+)\]$")
_LIST_RE = re.compile(r"^(?:typing\.)?(?:list|List)\[(.+)\]$")


class UnsupportedKindError(ValueError):
    """No conversion rule exists for the requested or declared type."""


class InvalidPatternError(ValueError):
    """A column pattern is malformed for its value kind."""


@dataclass(frozen=True)
class ValueConverter:
    kind: str = "str"
    pattern: Optional[str] = None
    enum_type: Optional[type] = None
    item_kind: str = "str"

    def parse(self, text: str) -> Any:
        """Parse CSV cell text into a field value; raises ValueError on bad input."""
        return _PARSERS[self.kind](self, text)

    def format(self, value: Any) -> str:
        """Render a (non-null) field value as CSV cell text."""
        return _FORMATTERS[self.kind](self, value)


# ---------------------------------------------------------------------------
# parsing
# ---------------------------------------------------------------------------

def _clean_number(text: str, pattern: Optional[str]) -> Tuple[str, bool]:
    s = text.strip()
    percent = False
    if pattern:
        for sep in (",", "_"):
            if sep in pattern:
                s = s.replace(sep, "")
        if pattern.endswith("%") and s.endswith("%"):
            s = s[:-1].strip()
            percent = True
    return s, percent


def _parse_int(c: ValueConverter, text: str) -> int:
    s, _ = _clean_number(text, c.pattern)
    base = _INT_BASES.get(c.pattern[-1], 10) if c.pattern else 10
    return int(s, base)


def _parse_float(c: ValueConverter, text: str) -> float:
    s, percent = _clean_number(text, c.pattern)
    v = float(s)
    return v / 100 if percent else v


def _parse_decimal(c: ValueConverter, text: str) -> Decimal:
    s, percent = _clean_number(text, c.pattern)
    try:
        v = Decimal(s)
    except InvalidOperation as e:
        raise ValueError(f"invalid decimal: {text!r}") from e
    return v / 100 if percent else v


def _bool_texts(pattern: str) -> Tuple[str, str]:
    true_text, false_text = (p.strip() for p in pattern.split("|"))
    return true_text, false_text


def _parse_bool(c: ValueConverter, text: str) -> bool:
    s = text.strip().lower()
    if c.pattern:
        true_text, false_text = _bool_texts(c.pattern)
        if s == true_text.lower():
            return True
        if s == false_text.lower():
            return False
    elif s in _TRUE:
        return True
    elif s in _FALSE:
        return False
    raise ValueError(f"invalid boolean: {text!r}")


def _parse_date(c: ValueConverter, text: str) -> date:
    if c.pattern:
        return datetime.strptime(text.strip(), c.pattern).date()
    return date.fromisoformat(text.strip())


def _parse_datetime(c: ValueConverter, text: str) -> datetime:
    if c.pattern:
        return datetime.strptime(text.strip(), c.pattern)
    return datetime.fromisoformat(text.strip())


def _parse_time(c: ValueConverter, text: str) -> time:
    if c.pattern:
        return datetime.strptime(text.strip(), c.pattern).time()
    return time.fromisoformat(text.strip())


def _parse_enum(c: ValueConverter, text: str) -> Enum:
    s = text.strip()
    for member in c.enum_type:
        key = member.name if c.pattern == "name" else str(member.value)
        if key == s:
            return member
    raise ValueError(f"{text!r} is not a valid {c.enum_type.__name__}")


def _parse_json(c: ValueConverter, text: str) -> Any:
    return json.loads(text)


def _parse_list(c: ValueConverter, text: str) -> list:
    item = ValueConverter(kind=c.item_kind)
    delimiter = c.pattern or DEFAULT_LIST_DELIMITER
    return [item.parse(s.strip()) for s in text.split(delimiter) if s.strip()]


_PARSERS: Dict[str, Callable[[ValueConverter, str], Any]] = {
    "str": lambda c, text: text,
    "int": _parse_int,
    "float": _parse_float,
    "decimal": _parse_decimal,
    "bool": _parse_bool,
    "date": _parse_date,
    "datetime": _parse_datetime,
    "time": _parse_time,
    "enum": _parse_enum,
    "json": _parse_json,
    "list": _parse_list,
}


# ---------------------------------------------------------------------------
# formatting
# ---------------------------------------------------------------------------

def _format_with(cast: Callable[[Any], Any]) -> Callable[[ValueConverter, Any], str]:
    def _fmt(c: ValueConverter, value: Any) -> str:
        v = cast(value)
        return format(v, c.pattern) if c.pattern else str(v)
    return _fmt


def _format_bool(c: ValueConverter, value: Any) -> str:
    if c.pattern:
        true_text, false_text = _bool_texts(c.pattern)
        return true_text if value else false_text
    return "true" if value else "false"


def _format_temporal(c: ValueConverter, value: Any) -> str:
    return value.strftime(c.pattern) if c.pattern else value.isoformat()


def _format_enum(c: ValueConverter, value: Any) -> str:
    member = value if isinstance(value, c.enum_type) else c.enum_type(value)
    return member.name if c.pattern == "name" else str(member.value)


def _format_json(c: ValueConverter, value: Any) -> str:
    return json.dumps(value, ensure_ascii=False)


def _format_list(c: ValueConverter, value: Any) -> str:
    item = ValueConverter(kind=c.item_kind)
    delimiter = c.pattern or DEFAULT_LIST_DELIMITER
    return delimiter.join(item.format(v) for v in value if v is not None)


_FORMATTERS: Dict[str, Callable[[ValueConverter, Any], str]] = {
    "str": _format_with(str),
    "int": _format_with(int),
    "float": _format_with(float),
    "decimal": _format_with(lambda v: v if isinstance(v, Decimal) else Decimal(str(v))),
    "bool": _format_bool,
    "date": _format_temporal,
    "datetime": _format_temporal,
    "time": _format_temporal,
    "enum": _format_enum,
    "json": _format_json,
    "list": _format_list,
}


# ---------------------------------------------------------------------------
# rule selection
# ---------------------------------------------------------------------------

def _kind_for_name(name: str) -> Tuple[str, str]:
    s = name.strip()
    m = _OPTIONAL_RE.match(s)
    if m:
        s = m.group(1).strip()
    parts = [p.strip() for p in s.split("|")]
    parts = [p for p in parts if p != "None"]
    if len(parts) != 1:
        raise UnsupportedKindError(f"unsupported annotation {name!r}")
    s = parts[0]

    m = _LIST_RE.match(s)
    if m:
        item = _NAMED_KINDS.get(m.group(1).strip())
        if item not in SCALAR_KINDS:
            raise UnsupportedKindError(f"unsupported list item type in {name!r}")
        return "list", item
    if s in ("list", "List", "typing.List"):
        return "list", "str"
    if s in _NAMED_KINDS:
        return _NAMED_KINDS[s], "str"
    raise UnsupportedKindError(f"unsupported annotation {name!r}")


def kind_for_type(tp: Any) -> Tuple[str, Optional[type], str]:
    """
    Pick the conversion kind for a declared member type.

    Returns ``(kind, enum_type, item_kind)``. ``None`` (no annotation) maps to
    ``str``; ``Optional[X]`` unwraps to ``X``.
    """
    if tp is None or tp is Any or tp is object or tp is type(None):
        return "str", None, "str"
    if isinstance(tp, str):
        kind, item = _kind_for_name(tp)
        return kind, None, item

    origin = typing.get_origin(tp)
    if origin is typing.Union or origin is types.UnionType:
        args = [a for a in typing.get_args(tp) if a is not type(None)]
        if len(args) != 1:
            raise UnsupportedKindError(f"unsupported union type {tp!r}")
        return kind_for_type(args[0])
    if origin is list or tp is list:
        args = typing.get_args(tp)
        item_kind = "str"
        if args:
            item_kind, item_enum, _ = kind_for_type(args[0])
            if item_kind not in SCALAR_KINDS or item_enum is not None:
                raise UnsupportedKindError(f"unsupported list item type in {tp!r}")
        return "list", None, item_kind
    if origin is dict or tp is dict:
        return "json", None, "str"

    if isinstance(tp, type):
        if issubclass(tp, Enum):
            return "enum", tp, "str"
        if issubclass(tp, bool):
            return "bool", None, "str"
        if issubclass(tp, int):
            return "int", None, "str"
        if issubclass(tp, float):
            return "float", None, "str"
        if issubclass(tp, Decimal):
            return "decimal", None, "str"
        if issubclass(tp, str):
            return "str", None, "str"
        if issubclass(tp, datetime):
            return "datetime", None, "str"
        if issubclass(tp, date):
            return "date", None, "str"
        if issubclass(tp, time):
            return "time", None, "str"
    raise UnsupportedKindError(f"no conversion rule for type {tp!r}")


def validate_pattern(kind: str, pattern: str) -> None:
    """Raise InvalidPatternError when ``pattern`` cannot drive ``kind``."""
    try:
        if kind == "str":
            format("", pattern)
        elif kind == "int":
            # written values must read back
            if _parse_int(ValueConverter("int", pattern), format(_SAMPLE_INT, pattern)) != _SAMPLE_INT:
                raise ValueError("formatted integers do not read back")
        elif kind == "float":
            format(0.0, pattern)
        elif kind == "decimal":
            format(Decimal(0), pattern)
        elif kind == "bool":
            parts = [p.strip() for p in pattern.split("|")]
            if len(parts) != 2 or not all(parts) or parts[0].lower() == parts[1].lower():
                raise ValueError("expected '<true>|<false>' with two distinct texts")
        elif kind in ("date", "datetime", "time"):
            if "%" not in pattern:
                raise ValueError("no strftime directive")
            # strftime passes unknown directives through; strptime rejects them
            datetime.strptime(_SAMPLE_MOMENT.strftime(pattern), pattern)
        elif kind == "enum":
            if pattern not in ("name", "value"):
                raise ValueError("expected 'name' or 'value'")
        elif kind == "list":
            if not pattern:
                raise ValueError("empty item delimiter")
        elif kind == "json":
            raise ValueError("json values take no format")
    except ValueError as e:
        raise InvalidPatternError(f"format {pattern!r} is invalid for {kind} values: {e}") from e


def build_converter(
    declared_type: Any = None,
    explicit_kind: Optional[str] = None,
    pattern: Optional[str] = None,
) -> ValueConverter:
    """Select and validate the conversion rule for one column."""
    if explicit_kind is not None:
        kind = explicit_kind.strip().lower()
        if kind not in EXPLICIT_KINDS:
            raise UnsupportedKindError(
                f"unsupported value type {explicit_kind!r}; expected one of {list(EXPLICIT_KINDS)}"
            )
        enum_type = None
        item_kind = "str"
        if kind == "list":
            try:
                declared_kind, _, declared_item = kind_for_type(declared_type)
            except UnsupportedKindError:
                declared_kind, declared_item = None, "str"
            if declared_kind == "list":
                item_kind = declared_item
    else:
        kind, enum_type, item_kind = kind_for_type(declared_type)

    if pattern is not None:
        validate_pattern(kind, pattern)
    return ValueConverter(kind=kind, pattern=pattern, enum_type=enum_type, item_kind=item_kind)
