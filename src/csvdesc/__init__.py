from .errors import CsvDescriptorError, CsvRecordError, Reason
from .classes import register_type, resolve_type
from .config import Config, build_config, config_from_mapping
from .convert import ValueConverter
from .descriptor import (
    CsvDescriptor,
    ValueDescriptor,
    SEPARATORS,
    build_descriptor,
    build_value_descriptor,
    load_descriptor,
    load_descriptor_file,
    descriptor_to_dict,
)
from .codec import read_objects, write_objects

__all__ = [
    "CsvDescriptorError",
    "CsvRecordError",
    "Reason",
    "register_type",
    "resolve_type",
    "Config",
    "build_config",
    "config_from_mapping",
    "ValueConverter",
    "CsvDescriptor",
    "ValueDescriptor",
    "SEPARATORS",
    "build_descriptor",
    "build_value_descriptor",
    "load_descriptor",
    "load_descriptor_file",
    "descriptor_to_dict",
    "read_objects",
    "write_objects",
]
