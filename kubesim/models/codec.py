"""Dataclass <-> wire-dict conversion for resource specs and statuses.

Wire keys are camelCase (``nodeSelector``) while Python fields are
snake_case (``node_selector``); decoding accepts either spelling. A field
may pin its wire name with ``field(metadata={"wire": "..."})``.

Decoding validates field names and value types, so a malformed spec is
rejected with ``ValueError`` at the boundary instead of surfacing later as
an ``AttributeError`` deep inside a controller.
"""

from __future__ import annotations

import copy
import dataclasses
import functools
import types
from collections.abc import Mapping
from enum import Enum
from typing import Any, Union, get_args, get_origin, get_type_hints


def camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part[:1].upper() + part[1:] for part in rest)


@functools.cache
def _fields(cls: type) -> tuple[tuple[str, str, Any], ...]:
    hints = get_type_hints(cls)
    return tuple(
        (f.name, f.metadata.get("wire", camel(f.name)), hints[f.name]) for f in dataclasses.fields(cls) if f.init
    )


@functools.cache
def _lookup(cls: type) -> dict[str, tuple[str, Any]]:
    table: dict[str, tuple[str, Any]] = {}
    for name, wire, hint in _fields(cls):
        table[name] = (name, hint)
        table[wire] = (name, hint)
    return table


def wire_name(cls: type, key: str) -> str:
    """Return the camelCase wire key for *key* (either spelling) on *cls*."""
    entry = _lookup(cls).get(key)
    if entry is None:
        raise ValueError(f"Unknown field {key!r} for {cls.__name__}")
    for name, wire, _ in _fields(cls):
        if name == entry[0]:
            return wire
    raise ValueError(f"Unknown field {key!r} for {cls.__name__}")  # pragma: no cover


def attribute_name(cls: type, key: str) -> str | None:
    """Return the Python attribute for a wire or attribute *key*, or None."""
    entry = _lookup(cls).get(key)
    return entry[0] if entry else None


def encode(value: Any) -> Any:
    """Convert dataclasses/enums recursively into plain JSON-able values."""
    to_wire = getattr(value, "to_wire", None)
    if to_wire is not None and not isinstance(value, type):
        return to_wire()
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return {wire: encode(getattr(value, name)) for name, wire, _ in _fields(type(value))}
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, Mapping):
        return {str(k): encode(v) for k, v in value.items()}
    if isinstance(value, list | tuple):
        return [encode(v) for v in value]
    return value


def decode(cls: type, data: Any, path: str = "") -> Any:
    """Build *cls* from a wire mapping, validating names and types."""
    from_wire = getattr(cls, "from_wire", None)
    if from_wire is not None:
        return from_wire(data)
    where = path or cls.__name__
    if not isinstance(data, Mapping):
        raise ValueError(f"{where}: expected an object, got {type(data).__name__}")
    lookup = _lookup(cls)
    kwargs: dict[str, Any] = {}
    for key, raw in data.items():
        entry = lookup.get(key)
        if entry is None:
            raise ValueError(f"{where}: unknown field {key!r}")
        name, hint = entry
        kwargs[name] = _coerce(hint, raw, f"{where}.{key}")
    return cls(**kwargs)


def _coerce(hint: Any, raw: Any, path: str) -> Any:
    if hint is Any:
        return copy.deepcopy(raw)
    origin = get_origin(hint)
    if origin in (Union, types.UnionType):
        args = [a for a in get_args(hint) if a is not type(None)]
        if raw is None:
            if len(args) == len(get_args(hint)):
                raise ValueError(f"{path}: value is required")
            return None
        return _coerce(args[0], raw, path)
    if origin is list:
        (item_type,) = get_args(hint)
        if not isinstance(raw, list | tuple):
            raise ValueError(f"{path}: expected a list, got {type(raw).__name__}")
        return [_coerce(item_type, item, f"{path}[{i}]") for i, item in enumerate(raw)]
    if origin is dict:
        _, value_type = get_args(hint)
        if not isinstance(raw, Mapping):
            raise ValueError(f"{path}: expected an object, got {type(raw).__name__}")
        return {str(k): _coerce(value_type, v, f"{path}.{k}") for k, v in raw.items()}
    if dataclasses.is_dataclass(hint):
        if isinstance(raw, hint):
            return copy.deepcopy(raw)
        return decode(hint, raw, path)
    if isinstance(hint, type) and issubclass(hint, Enum):
        try:
            return hint(raw)
        except ValueError:
            allowed = ", ".join(str(m.value) for m in hint)
            raise ValueError(f"{path}: {raw!r} is not one of {allowed}") from None
    if hint is bool:
        if not isinstance(raw, bool):
            raise ValueError(f"{path}: expected a boolean, got {raw!r}")
        return raw
    if hint is int:
        if isinstance(raw, bool) or not isinstance(raw, int | float):
            raise ValueError(f"{path}: expected an integer, got {raw!r}")
        if isinstance(raw, float) and not raw.is_integer():
            raise ValueError(f"{path}: expected an integer, got {raw!r}")
        return int(raw)
    if hint is float:
        if isinstance(raw, bool) or not isinstance(raw, int | float):
            raise ValueError(f"{path}: expected a number, got {raw!r}")
        return float(raw)
    if hint is str:
        if not isinstance(raw, str):
            raise ValueError(f"{path}: expected a string, got {raw!r}")
        return raw
    return raw
