"""
Type resolution for CSV descriptors.

Target types are looked up by name in an explicit registry populated at import
time (``@register_type``), falling back to a dotted import path such as
``mypkg.models.Person`` or ``mypkg.models:Person``.
"""

from __future__ import annotations

import dataclasses
import importlib
import inspect
import typing
from enum import Enum
from typing import Any, Dict, Optional

_TYPES: Dict[str, type] = {}


def register_type(cls: Optional[type] = None, *, name: Optional[str] = None):
    """
    Register a record type so descriptors can name it in their ``class`` attribute.

    Usable bare (``@register_type``) or with an alias (``@register_type(name="Person")``).
    The class is always reachable by ``module.qualname``. Its short name is claimed
    too, except when an alias is given and the short name already belongs to
    another class.
    """

    def _register(c: type) -> type:
        if not isinstance(c, type):
            raise TypeError(f"register_type expects a class, got {c!r}")
        keys = {f"{c.__module__}.{c.__qualname__}"}
        if name:
            keys.add(name)
        short = _TYPES.get(c.__name__)
        if not name or short is None or short is c:
            keys.add(c.__name__)
        for key in keys:
            existing = _TYPES.get(key)
            if existing is not None and existing is not c:
                raise ValueError(f"type name {key!r} already registered for {existing!r}")
        for key in keys:
            _TYPES[key] = c
        return c

    if cls is not None:
        return _register(cls)
    return _register


def unregister_type(name: str) -> None:
    """Drop every registry key that points at the class registered as ``name``."""
    cls = _TYPES.get(name)
    if cls is None:
        return
    for key in [k for k, v in _TYPES.items() if v is cls]:
        del _TYPES[key]


def registered_types() -> Dict[str, type]:
    return dict(_TYPES)


def _import_dotted(name: str) -> Optional[type]:
    if ":" in name:
        module_name, _, attr_path = name.partition(":")
    elif "." in name:
        module_name, _, attr_path = name.rpartition(".")
    else:
        return None
    if not module_name or not attr_path:
        return None

    try:
        obj: Any = importlib.import_module(module_name)
    except ModuleNotFoundError:
        # "pkg.mod.Outer.Inner": walk back until an importable module is found
        if ":" in name or "." not in module_name:
            return None
        head, _, tail = module_name.rpartition(".")
        outer = _import_dotted(f"{head}:{tail}.{attr_path}")
        return outer

    for part in attr_path.split("."):
        obj = getattr(obj, part, None)
        if obj is None:
            return None
    return obj if isinstance(obj, type) else None


def resolve_type(name: str) -> Optional[type]:
    """Return the class registered or importable as ``name``, or None."""
    name = name.strip()
    if not name:
        return None
    if name in _TYPES:
        return _TYPES[name]
    return _import_dotted(name)


def _accepts_no_args(tp: type) -> bool:
    try:
        sig = inspect.signature(tp)
    except (TypeError, ValueError):
        # builtins without introspectable signatures
        return True
    for p in sig.parameters.values():
        if p.kind in (p.VAR_POSITIONAL, p.VAR_KEYWORD):
            continue
        if p.default is p.empty:
            return False
    return True


def is_instantiable(tp: Any) -> bool:
    """True when ``tp`` is a concrete class whose constructor needs no arguments."""
    if not isinstance(tp, type):
        return False
    if inspect.isabstract(tp):
        return False
    if getattr(tp, "_is_protocol", False):
        return False
    if issubclass(tp, Enum):
        return False
    return _accepts_no_args(tp)


def _annotations(tp: type) -> Dict[str, Any]:
    try:
        return typing.get_type_hints(tp)
    except (NameError, TypeError):
        # unresolvable forward references; keep the raw annotation strings
        merged: Dict[str, Any] = {}
        for klass in reversed(tp.__mro__):
            merged.update(getattr(klass, "__annotations__", {}) or {})
        return merged


def _public(name: str) -> bool:
    return not name.startswith("_")


def type_members(tp: type) -> Dict[str, Any]:
    """
    Map each public, assignable member of ``tp`` to its declared type (or None).

    Sources, in order: dataclass fields, class annotations, ``__slots__``,
    settable properties, plain class attributes, and the attributes of a probe
    instance ``tp()``. Exceptions raised by the probe propagate.
    """
    hints = _annotations(tp)
    members: Dict[str, Any] = {}

    if dataclasses.is_dataclass(tp):
        for f in dataclasses.fields(tp):
            members[f.name] = hints.get(f.name, f.type)

    for name, hint in hints.items():
        if typing.get_origin(hint) is typing.ClassVar:
            continue
        members.setdefault(name, hint)

    for klass in tp.__mro__:
        slots = klass.__dict__.get("__slots__", ())
        if isinstance(slots, str):
            slots = (slots,)
        for name in slots:
            members.setdefault(name, hints.get(name))

    for klass in reversed(tp.__mro__):
        if klass is object:
            continue
        for name, value in vars(klass).items():
            if isinstance(value, property):
                if value.fset is not None:
                    hint = None
                    if value.fget is not None:
                        hint = getattr(value.fget, "__annotations__", {}).get("return")
                    members.setdefault(name, hint)
                else:
                    members.pop(name, None)
            elif not callable(value) and not isinstance(value, (staticmethod, classmethod)):
                if typing.get_origin(hints.get(name)) is typing.ClassVar:
                    continue
                if _public(name):
                    members.setdefault(name, hints.get(name, type(value) if value is not None else None))

    probe = tp()
    for name, value in getattr(probe, "__dict__", {}).items():
        members.setdefault(name, type(value) if value is not None else None)

    return {name: hint for name, hint in members.items() if _public(name)}
