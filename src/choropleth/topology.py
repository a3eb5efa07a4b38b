"""TopoJSON topology value, decoding, mesh stitching and presimplification."""

from __future__ import annotations

import heapq
import logging
import math
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Iterator, Mapping, Sequence

from .errors import UnknownObjectError
from .models import MeshFilter


_LOGGER = logging.getLogger("choropleth.topology")

Position = tuple[float, ...]
Arc = tuple[Position, ...]
TriangleArea = Callable[[Position, Position, Position], float]


@dataclass(frozen=True, slots=True)
class TopologyTransform:
    """Quantization transform: absolute = quantized * scale + translate."""

    scale: tuple[float, float]
    translate: tuple[float, float]

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> TopologyTransform:
        scale = data.get("scale")
        translate = data.get("translate")
        if not _is_pair(scale) or not _is_pair(translate):
            raise ValueError("Topology transform requires numeric 'scale' and 'translate' pairs")
        return cls(
            scale=(float(scale[0]), float(scale[1])),
            translate=(float(translate[0]), float(translate[1])),
        )


def _is_pair(value: Any) -> bool:
    return (
        isinstance(value, (list, tuple))
        and len(value) == 2
        and all(isinstance(item, (int, float)) and not isinstance(item, bool) for item in value)
    )


@dataclass(frozen=True, slots=True, eq=False)
class Topology:
    """Immutable TopoJSON topology, compared by identity.

    Arcs keep the on-disk encoding: delta-encoded quantized positions when a
    transform is present, absolute positions otherwise. A presimplified
    topology carries a third value per position, the point's effective area.
    """

    arcs: tuple[Arc, ...]
    objects: Mapping[str, Mapping[str, Any]]
    transform: TopologyTransform | None = None
    bbox: tuple[float, ...] | None = None
    presimplified: bool = False
    _simplified: Topology | None = field(default=None, init=False, repr=False)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> Topology:
        if data.get("type") != "Topology":
            raise ValueError("Input is not a TopoJSON topology (missing type 'Topology')")
        objects = data.get("objects")
        if not isinstance(objects, Mapping) or not objects:
            raise ValueError("Topology contains no objects")
        arcs_raw = data.get("arcs", [])
        if not isinstance(arcs_raw, list):
            raise ValueError("Expected list for topology 'arcs'")

        arcs: list[Arc] = []
        for idx, arc in enumerate(arcs_raw):
            if not isinstance(arc, list) or not arc:
                raise ValueError(f"Expected non-empty list for arcs[{idx}]")
            arcs.append(tuple(tuple(float(v) for v in position) for position in arc))

        transform_raw = data.get("transform")
        transform = (
            TopologyTransform.from_mapping(transform_raw)
            if isinstance(transform_raw, Mapping)
            else None
        )
        bbox_raw = data.get("bbox")
        bbox = tuple(float(v) for v in bbox_raw) if isinstance(bbox_raw, list) else None
        return cls(
            arcs=tuple(arcs),
            objects=dict(objects),
            transform=transform,
            bbox=bbox,
        )

    def object(self, name: str) -> Mapping[str, Any]:
        try:
            return self.objects[name]
        except KeyError:
            available = ", ".join(sorted(self.objects))
            raise UnknownObjectError(
                f"Object '{name}' not found in topology. Available: {available}"
            ) from None

    def absolute_arc(self, index: int) -> list[Position]:
        """Positions of arc `index` (non-negative) in absolute coordinates."""
        arc = self.arcs[index]
        if self.transform is None:
            return list(arc)
        kx, ky = self.transform.scale
        dx, dy = self.transform.translate
        x0 = y0 = 0.0
        out: list[Position] = []
        for position in arc:
            x0 += position[0]
            y0 += position[1]
            out.append((x0 * kx + dx, y0 * ky + dy, *position[2:]))
        return out

    def arc_ends(self, index: int) -> tuple[tuple[float, float], tuple[float, float]]:
        """Start/end of a (possibly reversed) arc in encoded coordinates."""
        arc = self.arcs[~index if index < 0 else index]
        p0 = (arc[0][0], arc[0][1])
        if self.transform is not None:
            p1 = (sum(p[0] for p in arc), sum(p[1] for p in arc))
        else:
            p1 = (arc[-1][0], arc[-1][1])
        return (p1, p0) if index < 0 else (p0, p1)


# -- decoding -----------------------------------------------------------------


class _GeometryDecoder:
    """Turns topology geometry objects into GeoJSON-shaped mappings."""

    def __init__(self, topology: Topology) -> None:
        self.topology = topology
        self._absolute: dict[int, list[Position]] = {}

    def _arc(self, index: int, points: list[Position]) -> None:
        if points:
            points.pop()
        j = ~index if index < 0 else index
        decoded = self._absolute.get(j)
        if decoded is None:
            decoded = self.topology.absolute_arc(j)
            self._absolute[j] = decoded
        points.extend(reversed(decoded) if index < 0 else decoded)

    def _point(self, position: Sequence[float]) -> Position:
        transform = self.topology.transform
        if transform is None:
            return tuple(float(v) for v in position)
        kx, ky = transform.scale
        dx, dy = transform.translate
        return (position[0] * kx + dx, position[1] * ky + dy, *(float(v) for v in position[2:]))

    def line(self, arcs: Sequence[int]) -> list[Position]:
        points: list[Position] = []
        for index in arcs:
            self._arc(index, points)
        if len(points) < 2:
            points.append(points[0])
        return points

    def ring(self, arcs: Sequence[int]) -> list[Position]:
        points = self.line(arcs)
        while len(points) < 4:
            points.append(points[0])
        return points

    def polygon(self, arcs: Sequence[Sequence[int]]) -> list[list[Position]]:
        return [self.ring(ring) for ring in arcs]

    def geometry(self, obj: Mapping[str, Any]) -> dict[str, Any] | None:
        geom_type = obj.get("type")
        if geom_type == "GeometryCollection":
            return {
                "type": geom_type,
                "geometries": [self.geometry(child) for child in obj.get("geometries", [])],
            }
        if geom_type == "Point":
            coordinates: Any = self._point(obj["coordinates"])
        elif geom_type == "MultiPoint":
            coordinates = [self._point(p) for p in obj["coordinates"]]
        elif geom_type == "LineString":
            coordinates = self.line(obj["arcs"])
        elif geom_type == "MultiLineString":
            coordinates = [self.line(arcs) for arcs in obj["arcs"]]
        elif geom_type == "Polygon":
            coordinates = self.polygon(obj["arcs"])
        elif geom_type == "MultiPolygon":
            coordinates = [self.polygon(arcs) for arcs in obj["arcs"]]
        else:
            return None
        return {"type": geom_type, "coordinates": coordinates}

    def feature(self, obj: Mapping[str, Any]) -> dict[str, Any]:
        out: dict[str, Any] = {"type": "Feature"}
        if obj.get("id") is not None:
            out["id"] = obj["id"]
        out["properties"] = dict(obj.get("properties") or {})
        out["geometry"] = self.geometry(obj)
        return out


def decode_geometry(topology: Topology, obj: Mapping[str, Any]) -> dict[str, Any] | None:
    return _GeometryDecoder(topology).geometry(obj)


def decode_features(topology: Topology, name: str) -> dict[str, Any]:
    """Decode object `name` into a FeatureCollection.

    An object that is not a GeometryCollection becomes a one-feature collection.
    """
    obj = topology.object(name)
    decoder = _GeometryDecoder(topology)
    if obj.get("type") == "GeometryCollection":
        members = obj.get("geometries", [])
    else:
        members = [obj]
    return {
        "type": "FeatureCollection",
        "features": [decoder.feature(member) for member in members],
    }


def decode_mesh(
    topology: Topology,
    name: str | None = None,
    filter_predicate: MeshFilter | None = None,
) -> dict[str, Any]:
    """Decode the boundaries of object `name` into a stitched MultiLineString.

    Without a name every arc of the topology is meshed. The predicate receives
    the first and last geometry objects sharing an arc; exterior arcs pass the
    same object twice.
    """
    if name is None:
        arcs = list(range(len(topology.arcs)))
    else:
        arcs = mesh_arcs(topology, topology.object(name), filter_predicate)
    fragments = stitch_arcs(topology, arcs)
    decoder = _GeometryDecoder(topology)
    return {
        "type": "MultiLineString",
        "coordinates": [decoder.line(fragment) for fragment in fragments],
    }


def _iter_arc_owners(
    obj: Mapping[str, Any],
) -> Iterator[tuple[int, Mapping[str, Any]]]:
    geom_type = obj.get("type")
    if geom_type == "GeometryCollection":
        for child in obj.get("geometries", []):
            yield from _iter_arc_owners(child)
        return
    arcs = obj.get("arcs")
    if geom_type == "LineString":
        for index in arcs:
            yield (index, obj)
    elif geom_type in ("MultiLineString", "Polygon"):
        for line in arcs:
            for index in line:
                yield (index, obj)
    elif geom_type == "MultiPolygon":
        for polygon in arcs:
            for ring in polygon:
                for index in ring:
                    yield (index, obj)


def mesh_arcs(
    topology: Topology,
    obj: Mapping[str, Any],
    filter_predicate: MeshFilter | None = None,
) -> list[int]:
    """Select one signed arc index per arc referenced by `obj`, in arc order."""
    owners: dict[int, list[tuple[int, Mapping[str, Any]]]] = {}
    for index, geometry in _iter_arc_owners(obj):
        j = ~index if index < 0 else index
        owners.setdefault(j, []).append((index, geometry))

    selected: list[int] = []
    for j in sorted(owners):
        geoms = owners[j]
        if filter_predicate is None or filter_predicate(geoms[0][1], geoms[-1][1]):
            selected.append(geoms[0][0])
    _LOGGER.debug("Mesh selected %d of %d arcs", len(selected), len(owners))
    return selected


class _Fragment(list):
    """Ordered signed arc indices forming one stitched line."""

    __slots__ = ("start", "end")


def _is_empty_arc(topology: Topology, index: int) -> bool:
    arc = topology.arcs[~index if index < 0 else index]
    if len(arc) >= 3:
        return False
    start, end = topology.arc_ends(index)
    return start == end


def stitch_arcs(topology: Topology, arcs: Sequence[int]) -> list[list[int]]:
    """Join arcs sharing end points into the longest possible lines."""
    empty = [i for i in arcs if _is_empty_arc(topology, i)]
    ordered = empty + [i for i in arcs if not _is_empty_arc(topology, i)]

    by_start: dict[tuple[float, float], _Fragment] = {}
    by_end: dict[tuple[float, float], _Fragment] = {}

    def _register(fragment: _Fragment) -> None:
        by_start[fragment.start] = fragment
        by_end[fragment.end] = fragment

    for i in ordered:
        start, end = topology.arc_ends(i)
        f = by_end.get(start)
        if f is not None:
            del by_end[f.end]
            f.append(i)
            f.end = end
            g = by_start.get(end)
            if g is not None:
                del by_start[g.start]
                fg = f if g is f else _Fragment([*f, *g])
                fg.start = f.start
                fg.end = g.end
                _register(fg)
            else:
                _register(f)
            continue

        f = by_start.get(end)
        if f is not None:
            del by_start[f.start]
            f.insert(0, i)
            f.start = start
            g = by_end.get(start)
            if g is not None:
                del by_end[g.end]
                gf = f if g is f else _Fragment([*g, *f])
                gf.start = g.start
                gf.end = f.end
                _register(gf)
            else:
                _register(f)
            continue

        f = _Fragment([i])
        f.start = start
        f.end = end
        _register(f)

    fragments: list[list[int]] = []
    stitched: set[int] = set()

    def _flush(primary: dict[Any, _Fragment], secondary: dict[Any, _Fragment]) -> None:
        for f in list(primary.values()):
            secondary.pop(f.start, None)
            stitched.update(~i if i < 0 else i for i in f)
            fragments.append(list(f))

    _flush(by_end, by_start)
    _flush(by_start, by_end)
    for i in ordered:
        if (~i if i < 0 else i) not in stitched:
            fragments.append([i])
    return fragments


# -- presimplification --------------------------------------------------------


def cartesian_triangle_area(a: Position, b: Position, c: Position) -> float:
    """Twice the area of triangle abc."""
    return abs((a[0] - c[0]) * (b[1] - a[1]) - (a[0] - b[0]) * (c[1] - a[1]))


def effective_areas(
    points: Sequence[Position],
    triangle_area: TriangleArea = cartesian_triangle_area,
) -> list[float]:
    """Visvalingam effective area of each point; endpoints are infinite.

    Areas never decrease in elimination order, so a point cannot survive a
    threshold that removed a point eliminated before it.
    """
    n = len(points)
    areas = [math.inf] * n
    if n < 3:
        return areas

    prev = list(range(-1, n - 1))
    nxt = list(range(1, n + 1))
    version = [0] * n
    removed = [False] * n
    heap: list[tuple[float, int, int]] = []
    for i in range(1, n - 1):
        heap.append((triangle_area(points[i - 1], points[i], points[i + 1]), i, 0))
    heapq.heapify(heap)

    max_area = 0.0
    while heap:
        area, i, stamp = heapq.heappop(heap)
        if removed[i] or stamp != version[i]:
            continue
        if area < max_area:
            area = max_area
        else:
            max_area = area
        areas[i] = area
        removed[i] = True

        before, after = prev[i], nxt[i]
        nxt[before] = after
        prev[after] = before
        for j in (before, after):
            if 0 < j < n - 1:
                version[j] += 1
                heapq.heappush(
                    heap,
                    (triangle_area(points[prev[j]], points[j], points[nxt[j]]), j, version[j]),
                )
    return areas


def presimplify(
    topology: Topology,
    triangle_area: TriangleArea = cartesian_triangle_area,
) -> Topology:
    """Return a copy of `topology` whose arc positions carry effective areas."""
    if topology.presimplified:
        return topology
    arcs: list[Arc] = []
    for index, arc in enumerate(topology.arcs):
        areas = effective_areas(topology.absolute_arc(index), triangle_area)
        arcs.append(tuple((p[0], p[1], z) for p, z in zip(arc, areas)))
    _LOGGER.debug("Presimplified topology with %d arcs", len(arcs))
    return replace(topology, arcs=tuple(arcs), presimplified=True)


def simplify_topology(topology: Topology) -> Topology:
    """Presimplify once per topology object.

    The result is stored on the source topology, so it lives exactly as long
    as the topology does.
    """
    if topology.presimplified:
        return topology
    simplified = topology._simplified
    if simplified is None:
        simplified = presimplify(topology)
        object.__setattr__(topology, "_simplified", simplified)
    return simplified
