"""
CSV descriptor: the compiled, immutable mapping between CSV columns and the
fields of a target record type.

Configuration document (YAML)::

    class: Person              # required, registered or dotted type name
    separator: semicolon       # tab | space | comma | dot | colon | semicolon
    null-value: "N/A"          # default ""
    charset: UTF-8             # default UTF-8
    debug: false               # default false
    columns:                   # one entry per CSV column, in column order
      - field: name
      - field: born
        format: "%d/%m/%Y"
      - field: score
        type: decimal

The target type is resolved before any column is built, so every column is
checked against the real members of the type while the descriptor is built
rather than when the first row is processed.
"""

from __future__ import annotations

import codecs
import logging
from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType
from typing import Any, BinaryIO, Dict, Mapping, Tuple, Union

from .classes import is_instantiable, resolve_type, type_members
from .config import Config, ConfigError, build_config, config_from_mapping
from .convert import InvalidPatternError, UnsupportedKindError, ValueConverter, build_converter
from .errors import CsvDescriptorError, Reason

log = logging.getLogger(__name__)

DEFAULT_SEPARATOR = ","
DEFAULT_NULL_VALUE = ""
DEFAULT_CHARSET = "UTF-8"

SEPARATORS: Mapping[str, str] = MappingProxyType({
    "tab": "\t",
    "space": " ",
    "comma": ",",
    "dot": ".",
    "colon": ":",
    "semicolon": ";",
})

_BOOLEANS = {"true": True, "false": False}


@dataclass(frozen=True)
class ValueDescriptor:
    """Binding of one CSV column to one field of the target type."""

    field_name: str
    converter: ValueConverter

    def parse(self, text: str) -> Any:
        return self.converter.parse(text)

    def format(self, value: Any) -> str:
        return self.converter.format(value)


@dataclass(frozen=True)
class CsvDescriptor:
    """
    Immutable schema for reading and writing ``target_type`` instances as CSV.

    ``columns`` preserves configuration order, which is CSV column order.
    ``charset`` holds the canonical Python codec name (``"UTF-8"`` is stored as
    ``"utf-8"``). Build instances with build_descriptor / load_descriptor.
    """

    target_type: type
    separator: str = DEFAULT_SEPARATOR
    null_value: str = DEFAULT_NULL_VALUE
    charset: str = "utf-8"
    debug: bool = False
    columns: Tuple[ValueDescriptor, ...] = ()

    @property
    def field_names(self) -> Tuple[str, ...]:
        return tuple(c.field_name for c in self.columns)


def build_value_descriptor(config: Config, target_type: type, members: Mapping[str, Any]) -> ValueDescriptor:
    """Build one column binding and check it against the members of ``target_type``."""
    field_name = (config.get_attribute("field") or "").strip()
    if not field_name:
        raise CsvDescriptorError(Reason.INVALID_COLUMN_BINDING, "Column without field attribute.")
    if field_name not in members:
        raise CsvDescriptorError(
            Reason.INVALID_COLUMN_BINDING,
            f"Field |{field_name}| not found on class |{target_type.__qualname__}|.",
        )

    pattern = config.get_attribute("format") or None
    try:
        converter = build_converter(members[field_name], config.get_attribute("type"), pattern)
    except UnsupportedKindError as e:
        raise CsvDescriptorError(Reason.UNSUPPORTED_VALUE_TYPE, f"Field |{field_name}|: {e}.") from e
    except InvalidPatternError as e:
        raise CsvDescriptorError(Reason.INVALID_VALUE_FORMAT, f"Field |{field_name}|: {e}.") from e

    return ValueDescriptor(field_name=field_name, converter=converter)


def _resolve_target_type(config: Config) -> Tuple[type, Dict[str, Any]]:
    class_name = config.get_attribute("class")
    if class_name is None or not class_name.strip():
        raise CsvDescriptorError(Reason.MISSING_CLASS_ATTRIBUTE, "Missing class attribute.")

    target_type = resolve_type(class_name)
    if target_type is None:
        raise CsvDescriptorError(Reason.CLASS_NOT_FOUND, f"Class |{class_name}| not found.")
    if not is_instantiable(target_type):
        raise CsvDescriptorError(Reason.CLASS_NOT_INSTANTIABLE, f"Class |{class_name}| not instantiable.")

    try:
        members = type_members(target_type)
    except Exception as e:
        raise CsvDescriptorError(
            Reason.CLASS_NOT_INSTANTIABLE,
            f"Class |{class_name}| not instantiable: {e}",
        ) from e
    return target_type, members


def _resolve_charset(name: str) -> str:
    try:
        info = codecs.lookup(name)
        # binary transforms such as base64 are not text encodings
        "".encode(info.name)
    except LookupError as e:
        raise CsvDescriptorError(Reason.UNSUPPORTED_CHARSET, f"Charset |{name}| not supported.") from e
    return info.name


def build_descriptor(config: Union[Config, Mapping[str, Any]]) -> CsvDescriptor:
    """
    Validate a configuration tree and compile it into a CsvDescriptor.

    Plain mappings (e.g. a dict loaded from YAML) are accepted and converted
    to a Config first. The first failure aborts construction.
    """
    if not isinstance(config, Config):
        try:
            config = config_from_mapping(config)
        except ConfigError as e:
            raise CsvDescriptorError(Reason.INVALID_CONFIGURATION_SOURCE, f"Invalid configuration source: {e}") from e

    target_type, members = _resolve_target_type(config)

    separator_value = config.get_attribute("separator")
    if separator_value is None:
        separator = DEFAULT_SEPARATOR
    else:
        separator = SEPARATORS.get(separator_value)
        if separator is None:
            raise CsvDescriptorError(
                Reason.UNSUPPORTED_SEPARATOR,
                f"Separator |{separator_value}| not supported.",
            )

    null_value = config.get_attribute("null-value", DEFAULT_NULL_VALUE)
    charset = _resolve_charset(config.get_attribute("charset", DEFAULT_CHARSET))

    debug_value = config.get_attribute("debug", "false")
    debug = _BOOLEANS.get(debug_value.strip().lower())
    if debug is None:
        raise CsvDescriptorError(
            Reason.INVALID_ATTRIBUTE_VALUE,
            f"Debug flag |{debug_value}| is not a boolean.",
        )

    columns = tuple(build_value_descriptor(child, target_type, members) for child in config.children)

    descriptor = CsvDescriptor(
        target_type=target_type,
        separator=separator,
        null_value=null_value,
        charset=charset,
        debug=debug,
        columns=columns,
    )
    log.debug(
        "Built CSV descriptor for %s: separator=%r charset=%s columns=%s",
        target_type.__qualname__, separator, charset, list(descriptor.field_names),
    )
    return descriptor


def load_descriptor(stream: BinaryIO) -> CsvDescriptor:
    """Parse a YAML configuration from a binary stream and build its descriptor."""
    try:
        config = build_config(stream)
    except ConfigError as e:
        raise CsvDescriptorError(Reason.INVALID_CONFIGURATION_SOURCE, "Invalid configuration source.") from e
    return build_descriptor(config)


def load_descriptor_file(path: Union[str, Path]) -> CsvDescriptor:
    path = Path(path).expanduser()
    with path.open("rb") as f:
        return load_descriptor(f)


def descriptor_to_dict(descriptor: CsvDescriptor) -> Dict[str, Any]:
    """JSON-safe summary of a descriptor."""
    t = descriptor.target_type
    return {
        "class": f"{t.__module__}.{t.__qualname__}",
        "separator": descriptor.separator,
        "null_value": descriptor.null_value,
        "charset": descriptor.charset,
        "debug": descriptor.debug,
        "columns": [
            {
                "field": c.field_name,
                "type": c.converter.kind,
                "format": c.converter.pattern,
                **({"item_type": c.converter.item_kind} if c.converter.kind == "list" else {}),
                **({"enum": c.converter.enum_type.__qualname__} if c.converter.enum_type else {}),
            }
            for c in descriptor.columns
        ],
    }
