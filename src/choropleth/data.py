"""Datum keying and property access."""

from __future__ import annotations

import logging
from typing import Any, Callable, Iterable, Mapping, Sequence, Union

from .errors import DuplicateKeyError


_LOGGER = logging.getLogger("choropleth.data")

Accessor = Union[str, Callable[[Any], Any]]


def resolve_property(obj: Any, accessor: Accessor) -> Any:
    """Call a function accessor, or follow a dotted path through mappings,
    attributes and sequence indices. Missing path segments resolve to None.
    """
    if callable(accessor):
        return accessor(obj)
    current = obj
    for part in str(accessor).split("."):
        if current is None:
            return None
        if isinstance(current, Mapping):
            current = current.get(part)
        elif isinstance(current, Sequence) and not isinstance(current, str) and part.lstrip("-").isdigit():
            index = int(part)
            current = current[index] if -len(current) <= index < len(current) else None
        else:
            current = getattr(current, part, None)
    return current


def key_data(data: Iterable[Any], key_field: Accessor, *, strict: bool = False) -> dict[Any, Any]:
    """Map `key_field(datum) -> datum`; later duplicates win unless `strict`."""
    keyed: dict[Any, Any] = {}
    duplicates = 0
    for datum in data:
        key = resolve_property(datum, key_field)
        if key in keyed:
            if strict:
                raise DuplicateKeyError(f"Duplicate datum key {key!r}")
            duplicates += 1
        keyed[key] = datum
    if duplicates:
        _LOGGER.debug("Keyed data: %d duplicate key(s) overwritten", duplicates)
    return keyed
