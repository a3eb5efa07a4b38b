"""SVG path strings for cached geometry, streamed through a PathProjector."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, Iterator, Mapping, Sequence

from .data import Accessor, resolve_property
from .models import LAYER_FEATURE, LayerDescriptor, RenderState
from .viewport import PathProjector, Point

RING = "ring"
LINE = "line"
POINT = "point"


@dataclass(frozen=True, slots=True)
class ProjectedPart:
    kind: str
    points: tuple[Point, ...]


def _project_positions(positions: Sequence[Sequence[float]], projector: PathProjector) -> tuple[Point, ...]:
    out: list[Point] = []
    for position in positions:
        projected = projector.stream_point(position)
        if projected is not None:
            out.append(projected)
    return tuple(out)


def _geometry_parts(geometry: Mapping[str, Any], projector: PathProjector) -> Iterator[ProjectedPart]:
    geom_type = geometry.get("type")
    if geom_type == "GeometryCollection":
        for child in geometry.get("geometries", []):
            if child:
                yield from _geometry_parts(child, projector)
        return

    coordinates = geometry.get("coordinates")
    if geom_type == "Point":
        coordinates = [coordinates]
        geom_type = "MultiPoint"
    if geom_type == "MultiPoint":
        for position in coordinates:
            points = _project_positions([position], projector)
            if points:
                yield ProjectedPart(POINT, points)
    elif geom_type in ("LineString", "MultiLineString"):
        lines = [coordinates] if geom_type == "LineString" else coordinates
        for line in lines:
            points = _project_positions(line, projector)
            if len(points) >= 2:
                yield ProjectedPart(LINE, points)
    elif geom_type in ("Polygon", "MultiPolygon"):
        polygons = [coordinates] if geom_type == "Polygon" else coordinates
        for polygon in polygons:
            for ring in polygon:
                points = _project_positions(ring, projector)
                if len(points) > 1 and points[0] == points[-1]:
                    points = points[:-1]
                if len(points) >= 3:
                    yield ProjectedPart(RING, points)


def projected_parts(obj: Any, projector: PathProjector) -> Iterator[ProjectedPart]:
    """Stream any GeoJSON object through the projector's transform and area cutoff.

    Rings come out open (closing position dropped); rings left with fewer than
    three positions and lines with fewer than two are skipped.
    """
    if not isinstance(obj, Mapping):
        return
    obj_type = obj.get("type")
    if obj_type == "FeatureCollection":
        for feature in obj.get("features", []):
            yield from projected_parts(feature, projector)
    elif obj_type == "Feature":
        geometry = obj.get("geometry")
        if geometry:
            yield from _geometry_parts(geometry, projector)
    else:
        yield from _geometry_parts(obj, projector)


def _fmt(value: float) -> str:
    text = f"{value:.3f}".rstrip("0").rstrip(".")
    return "0" if text in ("-0", "") else text


class PathGenerator:
    """Formats projected geometry as SVG path data."""

    def __init__(self, projector: PathProjector, *, point_radius: float = 4.5) -> None:
        self.projector = projector
        self.point_radius = point_radius

    def _circle(self, point: Point) -> str:
        r = self.point_radius
        x, y = point
        return (
            f"M{_fmt(x)},{_fmt(y + r)}"
            f"a{_fmt(r)},{_fmt(r)} 0 1,1 0,{_fmt(-2 * r)}"
            f"a{_fmt(r)},{_fmt(r)} 0 1,1 0,{_fmt(2 * r)}Z"
        )

    def _segment(self, part: ProjectedPart) -> str:
        if part.kind == POINT:
            return self._circle(part.points[0])
        head, *rest = part.points
        text = f"M{_fmt(head[0])},{_fmt(head[1])}" + "".join(
            f"L{_fmt(x)},{_fmt(y)}" for x, y in rest
        )
        return text + "Z" if part.kind == RING else text

    def __call__(self, obj: Any) -> str | None:
        segments = [self._segment(part) for part in projected_parts(obj, self.projector)]
        return "".join(segments) if segments else None


def feature_paths(
    collection: Mapping[str, Any],
    generator: PathGenerator,
    key_field: Accessor = "id",
) -> list[tuple[Any, str]]:
    """(key, path data) for every feature that survives projection."""
    out: list[tuple[Any, str]] = []
    for feature in collection.get("features", []):
        d = generator(feature)
        if d is not None:
            out.append((resolve_property(feature, key_field), d))
    return out


def layer_paths(
    state: RenderState,
    layers: Iterable[LayerDescriptor],
    *,
    key_field: Accessor = "id",
    point_radius: float = 4.5,
) -> dict[tuple[str, str], list[tuple[Any, str]]]:
    """Path data per visible layer: per-feature for feature layers, one path for meshes."""
    generator = PathGenerator(state.projector, point_radius=point_radius)
    out: dict[tuple[str, str], list[tuple[Any, str]]] = {}
    for layer in layers:
        if not layer.visible:
            continue
        geometry = state.cache.get(layer.type, layer.name)
        if geometry is None:
            continue
        if layer.type == LAYER_FEATURE:
            out[layer.key] = feature_paths(geometry, generator, key_field)
        else:
            d = generator(geometry)
            out[layer.key] = [(layer.name, d)] if d is not None else []
    return out
