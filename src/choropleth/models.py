"""Domain models shared across engine modules."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable, Iterable, Mapping

from .errors import InvalidArgumentError

if TYPE_CHECKING:
    from .topology import Topology
    from .viewport import PathProjector


LAYER_FEATURE = "feature"
LAYER_MESH = "mesh"
LAYER_TYPES = (LAYER_FEATURE, LAYER_MESH)

MeshFilter = Callable[[Mapping[str, Any], Mapping[str, Any]], bool]


def _interior(a: Mapping[str, Any], b: Mapping[str, Any]) -> bool:
    return a is not b


def _exterior(a: Mapping[str, Any], b: Mapping[str, Any]) -> bool:
    return a is b


# Named mesh filters usable from YAML layer definitions.
MESH_FILTERS: Mapping[str, MeshFilter] = {
    "interior": _interior,
    "exterior": _exterior,
}


def _require_str(value: Any, field_name: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"Expected non-empty string for '{field_name}'")
    return value.strip()


@dataclass(frozen=True, slots=True)
class LayerDescriptor:
    """One named topology object and how to materialize it."""

    name: str
    object: str
    type: str
    filter_predicate: MeshFilter | None = None
    visible: bool = True

    def __post_init__(self) -> None:
        if self.type not in LAYER_TYPES:
            raise InvalidArgumentError(
                f"Layer '{self.name}' has unknown type '{self.type}'; expected one of: "
                + ", ".join(LAYER_TYPES)
            )
        if self.filter_predicate is not None and self.type != LAYER_MESH:
            raise InvalidArgumentError(f"Layer '{self.name}': filter_predicate is only valid for mesh layers")

    @property
    def key(self) -> tuple[str, str]:
        return (self.type, self.name)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> LayerDescriptor:
        name = _require_str(data.get("name"), "layers[].name")
        obj = _require_str(data.get("object", name), "layers[].object")
        layer_type = _require_str(data.get("type"), "layers[].type").casefold()

        visible_raw = data.get("visible", True)
        if not isinstance(visible_raw, bool):
            raise ValueError(f"Expected bool for 'layers[{name}].visible'")

        filter_raw = data.get("filter")
        predicate: MeshFilter | None
        if filter_raw is None:
            predicate = None
        else:
            filter_name = _require_str(filter_raw, f"layers[{name}].filter").casefold()
            if filter_name not in MESH_FILTERS:
                raise ValueError(
                    f"layers[{name}].filter must be one of: " + ", ".join(sorted(MESH_FILTERS))
                )
            predicate = MESH_FILTERS[filter_name]

        return cls(
            name=name,
            object=obj,
            type=layer_type,
            filter_predicate=predicate,
            visible=visible_raw,
        )


@dataclass(frozen=True, slots=True)
class GeometryCache:
    """Already-extracted geometry, one map per layer type.

    `features` holds FeatureCollections by layer name, `meshes` holds
    MultiLineString geometries by layer name.
    """

    features: Mapping[str, dict[str, Any]] = field(default_factory=dict)
    meshes: Mapping[str, dict[str, Any]] = field(default_factory=dict)

    def _by_type(self, layer_type: str) -> Mapping[str, dict[str, Any]]:
        if layer_type == LAYER_FEATURE:
            return self.features
        if layer_type == LAYER_MESH:
            return self.meshes
        raise InvalidArgumentError(f"Unknown layer type '{layer_type}'")

    def has(self, layer_type: str, name: str) -> bool:
        return name in self._by_type(layer_type)

    def get(self, layer_type: str, name: str) -> dict[str, Any] | None:
        return self._by_type(layer_type).get(name)

    def merge(self, incoming: GeometryCache) -> GeometryCache:
        return GeometryCache(
            features={**self.features, **incoming.features},
            meshes={**self.meshes, **incoming.meshes},
        )

    def geometries_for(self, layers: Iterable[LayerDescriptor]) -> list[dict[str, Any]]:
        """Cached geometry for the given layers, in layer order, skipping misses."""
        out: list[dict[str, Any]] = []
        for layer in layers:
            geometry = self.get(layer.type, layer.name)
            if geometry is not None:
                out.append(geometry)
        return out

    @property
    def is_empty(self) -> bool:
        return not self.features and not self.meshes

    def to_dict(self) -> dict[str, dict[str, Any]]:
        return {
            LAYER_FEATURE: dict(self.features),
            LAYER_MESH: dict(self.meshes),
        }


@dataclass(frozen=True, slots=True)
class Bounds:
    """Axis-aligned bounding box in topology coordinates."""

    min_x: float
    min_y: float
    max_x: float
    max_y: float

    @property
    def width(self) -> float:
        return self.max_x - self.min_x

    @property
    def height(self) -> float:
        return self.max_y - self.min_y

    @property
    def center(self) -> tuple[float, float]:
        return ((self.min_x + self.max_x) / 2.0, (self.min_y + self.max_y) / 2.0)

    def as_pairs(self) -> tuple[tuple[float, float], tuple[float, float]]:
        return ((self.min_x, self.min_y), (self.max_x, self.max_y))

    @classmethod
    def from_pairs(cls, pairs: Any) -> Bounds:
        (min_x, min_y), (max_x, max_y) = pairs
        return cls(float(min_x), float(min_y), float(max_x), float(max_y))


@dataclass(frozen=True, slots=True)
class ViewportState:
    """Scale/translate of the map; `scale == scale_base * scale_factor` at rest."""

    scale: float
    scale_base: float
    scale_factor: float
    translate: tuple[float, float]

    def to_dict(self) -> dict[str, Any]:
        return {
            "scale": self.scale,
            "scale_base": self.scale_base,
            "scale_factor": self.scale_factor,
            "translate": list(self.translate),
        }


@dataclass(frozen=True, slots=True)
class RenderState:
    """Render-ready snapshot. Replaced as a whole, never mutated."""

    topology: Topology
    cache: GeometryCache
    bounds: Bounds
    viewport: ViewportState
    projector: PathProjector
    keyed_data: Mapping[Any, Any] = field(default_factory=dict)

    @property
    def scale(self) -> float:
        return self.viewport.scale

    @property
    def scale_base(self) -> float:
        return self.viewport.scale_base

    @property
    def scale_factor(self) -> float:
        return self.viewport.scale_factor

    @property
    def translate(self) -> tuple[float, float]:
        return self.viewport.translate

    @property
    def path_projector(self) -> PathProjector:
        return self.projector
