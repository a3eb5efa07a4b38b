"""Bounding boxes over GeoJSON-shaped geometry collections."""

from __future__ import annotations

import math
from typing import Any, Iterable, Iterator, Mapping, Sequence

from .errors import NoGeometryError
from .models import Bounds


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _is_position(value: Any) -> bool:
    return isinstance(value, (list, tuple)) and len(value) >= 2 and _is_number(value[0])


def _coordinate_arrays(obj: Any) -> Iterator[Any]:
    """Yield the `coordinates` member of every geometry reachable from `obj`."""
    stack = [obj]
    while stack:
        item = stack.pop()
        if not isinstance(item, Mapping):
            continue
        if "features" in item:
            stack.extend(reversed(item["features"] or ()))
        elif "geometries" in item:
            stack.extend(reversed(item["geometries"] or ()))
        elif "geometry" in item:
            stack.append(item["geometry"])
        elif "coordinates" in item:
            yield item["coordinates"]


def iter_positions(coordinates: Any) -> Iterator[Sequence[float]]:
    """Yield every position of a coordinate array nested to any depth."""
    stack = [coordinates]
    while stack:
        item = stack.pop()
        if _is_position(item):
            yield item
        elif isinstance(item, (list, tuple)):
            stack.extend(item)


def compute_bounds(collections: Iterable[Any]) -> Bounds:
    """Fold every position of every collection into one bounding box."""
    items = list(collections)
    if not items:
        raise NoGeometryError("Cannot compute bounds over zero geometry collections")

    min_x = min_y = math.inf
    max_x = max_y = -math.inf
    for item in items:
        for coordinates in _coordinate_arrays(item):
            for position in iter_positions(coordinates):
                x, y = position[0], position[1]
                if x < min_x:
                    min_x = x
                if x > max_x:
                    max_x = x
                if y < min_y:
                    min_y = y
                if y > max_y:
                    max_y = y

    if min_x > max_x:
        raise NoGeometryError(f"No coordinates found in {len(items)} geometry collection(s)")
    return Bounds(float(min_x), float(min_y), float(max_x), float(max_y))
