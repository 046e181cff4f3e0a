from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, time
from typing import Any, BinaryIO, Dict, Mapping, Optional, Tuple

import yaml

ROOT_NAME = "csv"
COLUMN_NAME = "column"
COLUMNS_KEY = "columns"


class ConfigError(ValueError):
    """Configuration source could not be parsed into a tree."""


@dataclass(frozen=True)
class Config:
    """
    Parsed configuration node: a name, string attributes and ordered children.

    The descriptor layer only ever reads a Config; nothing mutates it after
    build_config / config_from_mapping return.
    """

    name: str
    attributes: Dict[str, str] = field(default_factory=dict)
    children: Tuple["Config", ...] = ()

    def get_attribute(self, name: str, default: Optional[str] = None) -> Optional[str]:
        return self.attributes.get(name, default)

    def has_attribute(self, name: str) -> bool:
        return name in self.attributes


def _scalar_text(key: str, value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (str, int, float)):
        return str(value)
    if isinstance(value, (date, datetime, time)):
        return value.isoformat()
    raise ConfigError(f"attribute '{key}' must be a scalar, got {type(value).__name__}")


def _attributes(doc: Mapping[str, Any], skip: Tuple[str, ...] = ()) -> Dict[str, str]:
    attrs: Dict[str, str] = {}
    for key, value in doc.items():
        if not isinstance(key, str):
            raise ConfigError(f"attribute names must be strings, got {key!r}")
        if key in skip:
            continue
        text = _scalar_text(key, value)
        if text is not None:
            attrs[key] = text
    return attrs


def config_from_mapping(doc: Mapping[str, Any]) -> Config:
    """
    Build a Config tree from an already-loaded mapping.

    Root scalar keys become attributes; every entry of ``columns`` becomes a
    ``column`` child, in list order.
    """
    if not isinstance(doc, Mapping):
        raise ConfigError(f"configuration root must be a mapping, got {type(doc).__name__}")

    raw_columns = doc.get(COLUMNS_KEY)
    if raw_columns is None:
        raw_columns = []
    if not isinstance(raw_columns, list):
        raise ConfigError("'columns' must be a list")

    children = []
    for i, col in enumerate(raw_columns):
        if not isinstance(col, Mapping):
            raise ConfigError(f"columns[{i}] must be a mapping, got {type(col).__name__}")
        children.append(Config(name=COLUMN_NAME, attributes=_attributes(col)))

    return Config(
        name=ROOT_NAME,
        attributes=_attributes(doc, skip=(COLUMNS_KEY,)),
        children=tuple(children),
    )


def build_config(stream: BinaryIO) -> Config:
    """Read a YAML configuration document from ``stream`` and build its tree."""
    data = stream.read()
    try:
        doc = yaml.safe_load(data)
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid YAML: {e}") from e
    if doc is None:
        raise ConfigError("empty configuration document")
    return config_from_mapping(doc)
