import dataclasses
import io
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

import pytest

from csvdesc.classes import register_type
from csvdesc.config import Config
from csvdesc.descriptor import (
    SEPARATORS,
    CsvDescriptor,
    build_descriptor,
    descriptor_to_dict,
    load_descriptor,
    load_descriptor_file,
)
from csvdesc.errors import CsvDescriptorError, Reason


@register_type
@dataclass
class Person:
    name: Optional[str] = None
    age: int = 0


@register_type
class AbstractShape(ABC):
    @abstractmethod
    def area(self) -> float:
        ...


@register_type
class NeedsArgs:
    def __init__(self, value):
        self.value = value


@register_type
class Exploding:
    def __init__(self):
        raise RuntimeError("boom")


def _person(**attrs):
    doc = {"class": "Person", "columns": [{"field": "name"}, {"field": "age"}]}
    doc.update(attrs)
    return doc


def _reason(doc) -> Reason:
    with pytest.raises(CsvDescriptorError) as exc:
        build_descriptor(doc)
    return exc.value.reason


# ==========================================================
# HAPPY PATH
# ==========================================================


def test_person_semicolon_example():
    d = build_descriptor(_person(separator="semicolon"))

    assert d.target_type is Person
    assert d.separator == ";"
    assert d.null_value == ""
    assert d.charset == "utf-8"
    assert d.debug is False
    assert d.field_names == ("name", "age")
    assert [c.converter.kind for c in d.columns] == ["str", "int"]


def test_defaults_when_attributes_omitted():
    d = build_descriptor({"class": "Person"})
    assert d.separator == ","
    assert d.null_value == ""
    assert d.charset == "utf-8"
    assert d.debug is False
    assert d.columns == ()


def test_accepts_prebuilt_config_tree():
    config = Config(
        name="csv",
        attributes={"class": "Person", "separator": "tab"},
        children=(Config(name="column", attributes={"field": "age"}),),
    )
    d = build_descriptor(config)
    assert d.separator == "\t"
    assert d.field_names == ("age",)


def test_dotted_class_name_resolves():
    d = build_descriptor({"class": "types.SimpleNamespace"})
    import types

    assert d.target_type is types.SimpleNamespace


# ==========================================================
# ROOT ATTRIBUTES
# ==========================================================


@pytest.mark.parametrize(
    "name, char",
    [("tab", "\t"), ("space", " "), ("comma", ","), ("dot", "."), ("colon", ":"), ("semicolon", ";")],
)
def test_symbolic_separators(name, char):
    assert build_descriptor(_person(separator=name)).separator == char


@pytest.mark.parametrize("value", ["pipe", ",", ";", "Semicolon", ""])
def test_unsupported_separator(value):
    assert _reason(_person(separator=value)) is Reason.UNSUPPORTED_SEPARATOR


def test_separator_table_is_read_only():
    with pytest.raises(TypeError):
        SEPARATORS["pipe"] = "|"


def test_null_value_verbatim():
    assert build_descriptor(_person(**{"null-value": "N/A"})).null_value == "N/A"
    assert build_descriptor(_person(**{"null-value": " - "})).null_value == " - "


def test_charset_resolution():
    assert build_descriptor(_person(charset="latin-1")).charset == "iso8859-1"
    assert build_descriptor(_person(charset="UTF-8")).charset == "utf-8"


@pytest.mark.parametrize("charset", ["klingon-8", "base64", "rot13", "hex", "zlib"])
def test_unknown_charset(charset):
    assert _reason(_person(charset=charset)) is Reason.UNSUPPORTED_CHARSET


@pytest.mark.parametrize("value, expected", [("true", True), ("false", False), (True, True), (False, False)])
def test_debug_flag(value, expected):
    assert build_descriptor(_person(debug=value)).debug is expected


def test_invalid_debug_flag():
    assert _reason(_person(debug="maybe")) is Reason.INVALID_ATTRIBUTE_VALUE


# ==========================================================
# TARGET TYPE
# ==========================================================


def test_missing_class_attribute_checked_first():
    doc = {"null-value": "N/A", "separator": "pipe", "columns": [{"format": "x"}]}
    with pytest.raises(CsvDescriptorError) as exc:
        build_descriptor(doc)
    assert exc.value.reason is Reason.MISSING_CLASS_ATTRIBUTE
    assert str(exc.value) == "Invalid CSV configuration. Missing class attribute."


@pytest.mark.parametrize("name", ["NoSuchThing", "no.such.module.Thing", "collections.NoSuchThing"])
def test_class_not_found(name):
    with pytest.raises(CsvDescriptorError) as exc:
        build_descriptor({"class": name})
    assert exc.value.reason is Reason.CLASS_NOT_FOUND
    assert f"Class |{name}| not found." in str(exc.value)


@pytest.mark.parametrize("name", ["AbstractShape", "NeedsArgs", "Exploding", "collections.abc.Mapping"])
def test_class_not_instantiable(name):
    assert _reason({"class": name}) is Reason.CLASS_NOT_INSTANTIABLE


# ==========================================================
# COLUMNS
# ==========================================================


def test_column_order_follows_document():
    d1 = build_descriptor(_person())
    d2 = build_descriptor({"class": "Person", "columns": [{"field": "age"}, {"field": "name"}]})
    assert d1.field_names == ("name", "age")
    assert d2.field_names == ("age", "name")
    assert len(d2.columns) == 2


def test_column_without_field():
    assert _reason({"class": "Person", "columns": [{"format": "d"}]}) is Reason.INVALID_COLUMN_BINDING


def test_column_with_unknown_field():
    with pytest.raises(CsvDescriptorError) as exc:
        build_descriptor({"class": "Person", "columns": [{"field": "email"}]})
    assert exc.value.reason is Reason.INVALID_COLUMN_BINDING
    assert "email" in str(exc.value)


def test_first_column_error_wins():
    doc = {
        "class": "Person",
        "columns": [{"field": "name"}, {"field": "nope"}, {"field": "age", "type": "weird"}],
    }
    assert _reason(doc) is Reason.INVALID_COLUMN_BINDING


def test_bad_column_type_and_format():
    assert _reason({"class": "Person", "columns": [{"field": "age", "type": "weird"}]}) is Reason.UNSUPPORTED_VALUE_TYPE
    assert _reason({"class": "Person", "columns": [{"field": "age", "format": "zz"}]}) is Reason.INVALID_VALUE_FORMAT


def test_nested_attribute_is_invalid_source():
    assert _reason({"class": "Person", "separator": ["comma"]}) is Reason.INVALID_CONFIGURATION_SOURCE


# ==========================================================
# IMMUTABILITY / SERIALIZATION
# ==========================================================


def test_descriptor_is_frozen():
    d = build_descriptor(_person())
    assert isinstance(d, CsvDescriptor)
    assert isinstance(d.columns, tuple)
    with pytest.raises(dataclasses.FrozenInstanceError):
        d.separator = "|"
    with pytest.raises(dataclasses.FrozenInstanceError):
        d.columns[0].field_name = "other"


def test_descriptor_to_dict():
    d = build_descriptor(_person(separator="colon", **{"null-value": "-"}))
    out = descriptor_to_dict(d)
    assert out["class"].endswith(".Person")
    assert out["separator"] == ":"
    assert out["null_value"] == "-"
    assert out["columns"] == [
        {"field": "name", "type": "str", "format": None},
        {"field": "age", "type": "int", "format": None},
    ]


# ==========================================================
# STREAM SOURCES
# ==========================================================


YAML_DOC = b"""
class: Person
separator: semicolon
null-value: "N/A"
debug: true
columns:
  - field: name
  - field: age
    format: "03d"
"""


def test_load_descriptor_from_stream():
    stream = io.BytesIO(YAML_DOC)
    d = load_descriptor(stream)
    assert d.separator == ";"
    assert d.null_value == "N/A"
    assert d.debug is True
    assert d.columns[1].converter.pattern == "03d"
    # caller keeps ownership of the stream
    assert not stream.closed


@pytest.mark.parametrize(
    "payload",
    [
        b"class: [unclosed",
        b"- just\n- a list\n",
        b"",
        b"class: Person\ncolumns: name\n",
        b"class: Person\ncolumns:\n  - name\n",
    ],
)
def test_invalid_configuration_source(payload):
    with pytest.raises(CsvDescriptorError) as exc:
        load_descriptor(io.BytesIO(payload))
    assert exc.value.reason is Reason.INVALID_CONFIGURATION_SOURCE
    assert exc.value.__cause__ is not None


def test_load_descriptor_file(tmp_path):
    path = tmp_path / "person.yaml"
    path.write_bytes(YAML_DOC)
    d = load_descriptor_file(path)
    assert d.field_names == ("name", "age")

    with pytest.raises(FileNotFoundError):
        load_descriptor_file(tmp_path / "missing.yaml")
