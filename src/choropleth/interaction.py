"""Feature hit-testing and pointer handler dispatch."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Callable, Mapping

from .data import Accessor, resolve_property
from .errors import InvalidArgumentError


_LOGGER = logging.getLogger("choropleth.interaction")

PointerHandler = Callable[[Any, Any], None]

POINTER_EVENTS = ("click", "mouse_over", "mouse_move", "mouse_down", "mouse_out")


@dataclass(frozen=True, slots=True)
class PointerHandlers:
    """Optional per-event handlers, each called as `handler(event, key)`."""

    on_click: PointerHandler | None = None
    on_mouse_over: PointerHandler | None = None
    on_mouse_move: PointerHandler | None = None
    on_mouse_down: PointerHandler | None = None
    on_mouse_out: PointerHandler | None = None

    def handler_for(self, kind: str) -> PointerHandler | None:
        if kind not in POINTER_EVENTS:
            raise InvalidArgumentError(
                f"Unknown pointer event '{kind}'; expected one of: " + ", ".join(POINTER_EVENTS)
            )
        return getattr(self, f"on_{kind}")

    def dispatch(self, kind: str, event: Any, key: Any) -> bool:
        handler = self.handler_for(kind)
        if handler is None:
            return False
        handler(event, key)
        return True


def _planar(coordinates: Any) -> Any:
    if coordinates and isinstance(coordinates[0], (int, float)):
        return (coordinates[0], coordinates[1])
    return [_planar(item) for item in coordinates]


def _planar_geometry(geometry: Mapping[str, Any]) -> dict[str, Any]:
    if geometry.get("type") == "GeometryCollection":
        return {
            "type": "GeometryCollection",
            "geometries": [
                _planar_geometry(child) for child in geometry.get("geometries", []) if child
            ],
        }
    return {"type": geometry["type"], "coordinates": _planar(geometry["coordinates"])}


def feature_shape(geometry: Mapping[str, Any]) -> Any:
    """Shapely geometry for a decoded GeoJSON geometry, extra ordinates dropped."""
    shape, _ = _require_shapely()
    return shape(_planar_geometry(geometry))


class FeatureIndex:
    """Spatial index over one FeatureCollection, queried in topology space."""

    def __init__(self, collection: Mapping[str, Any]) -> None:
        _, strtree = _require_shapely()
        self._features: list[Mapping[str, Any]] = []
        shapes: list[Any] = []
        for feature in collection.get("features", []):
            geometry = feature.get("geometry")
            if not geometry:
                continue
            shapes.append(feature_shape(geometry))
            self._features.append(feature)
        self._shapes = shapes
        self._tree = strtree(shapes)
        _LOGGER.debug("Built hit-test index over %d feature(s)", len(shapes))

    def __len__(self) -> int:
        return len(self._features)

    def locate(self, x: float, y: float) -> Mapping[str, Any] | None:
        """First feature (in collection order) covering the point, if any."""
        if not self._features:
            return None
        point = _require_shapely_point()(x, y)
        hits = self._tree.query(point, predicate="intersects")
        if len(hits) == 0:
            return None
        return self._features[int(min(hits))]


def feature_key(feature: Mapping[str, Any], key_field: Accessor) -> Any:
    return resolve_property(feature, key_field)


@lru_cache(maxsize=1)
def _require_shapely() -> tuple[Any, Any]:
    try:
        from shapely import STRtree
        from shapely.geometry import shape
    except ImportError as exc:  # pragma: no cover
        raise RuntimeError("shapely is required for feature hit-testing") from exc
    return (shape, STRtree)


@lru_cache(maxsize=1)
def _require_shapely_point() -> Any:
    try:
        from shapely.geometry import Point
    except ImportError as exc:  # pragma: no cover
        raise RuntimeError("shapely is required for feature hit-testing") from exc
    return Point
