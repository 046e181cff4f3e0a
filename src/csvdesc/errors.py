from __future__ import annotations

from enum import Enum
from typing import Optional


class Reason(str, Enum):
    """Reason codes carried by CsvDescriptorError."""

    MISSING_CLASS_ATTRIBUTE = "MissingClassAttribute"
    CLASS_NOT_FOUND = "ClassNotFound"
    CLASS_NOT_INSTANTIABLE = "ClassNotInstantiable"
    UNSUPPORTED_SEPARATOR = "UnsupportedSeparator"
    UNSUPPORTED_CHARSET = "UnsupportedCharset"
    INVALID_CONFIGURATION_SOURCE = "InvalidConfigurationSource"
    INVALID_COLUMN_BINDING = "InvalidColumnBinding"
    INVALID_ATTRIBUTE_VALUE = "InvalidAttributeValue"
    UNSUPPORTED_VALUE_TYPE = "UnsupportedValueType"
    INVALID_VALUE_FORMAT = "InvalidValueFormat"


class CsvDescriptorError(ValueError):
    """
    Descriptor construction failed.

    Every failure raised while validating a CSV configuration surfaces as this
    single error kind; ``reason`` tells the cases apart.
    """

    def __init__(self, reason: Reason, message: str):
        self.reason = reason
        super().__init__(f"Invalid CSV configuration. {message}")


class CsvRecordError(ValueError):
    """A CSV row could not be mapped to or from a target instance."""

    def __init__(self, message: str, *, row: Optional[int] = None, column: Optional[str] = None):
        self.row = row
        self.column = column
        where = []
        if row is not None:
            where.append(f"Row {row}")
        if column is not None:
            where.append(f"column {column}")
        prefix = " ".join(where)
        super().__init__(f"{prefix}: {message}" if prefix else message)
