"""Choropleth state machine: configuration diffing and render-state reduction."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Mapping, Sequence

from .bounds import compute_bounds
from .data import Accessor, key_data
from .errors import ChoroplethError, NoGeometryError
from .extract import extract_geometry, merge_cache
from .interaction import FeatureIndex, PointerHandlers, feature_key
from .models import LAYER_FEATURE, LAYER_MESH, GeometryCache, LayerDescriptor, RenderState, ViewportState
from .topology import Topology, simplify_topology
from .viewport import (
    DEFAULT_ZOOM_STEP,
    GestureTick,
    ViewportController,
    derive_projector,
    fit_viewport,
    resize_viewport,
)


_LOGGER = logging.getLogger("choropleth.state")


class ChangeReason(str, Enum):
    TOPOLOGY = "topology-changed"
    LAYERS = "layers-changed"
    DIMENSIONS = "dimensions-changed"
    DATA = "data-changed"


ALL_REASONS = frozenset(ChangeReason)


@dataclass(frozen=True, slots=True)
class ChoroplethConfig:
    """Declared inputs of one choropleth."""

    topology: Topology
    layers: tuple[LayerDescriptor, ...]
    data: Sequence[Any] = ()
    key_field: Accessor = "id"
    value_field: Accessor = "value"
    geojson_key_field: Accessor = "id"
    width: float = 600.0
    height: float = 400.0
    zoom_step: float = DEFAULT_ZOOM_STEP
    strict_keys: bool = False
    selected_locations: frozenset[Any] = frozenset()
    handlers: PointerHandlers = field(default_factory=PointerHandlers)

    def __post_init__(self) -> None:
        if not isinstance(self.layers, tuple):
            object.__setattr__(self, "layers", tuple(self.layers))
        if not isinstance(self.selected_locations, frozenset):
            object.__setattr__(self, "selected_locations", frozenset(self.selected_locations))

    @property
    def size(self) -> tuple[float, float]:
        return (self.width, self.height)

    @property
    def visible_layers(self) -> tuple[LayerDescriptor, ...]:
        return tuple(layer for layer in self.layers if layer.visible)

    def evolve(self, **changes: Any) -> ChoroplethConfig:
        return replace(self, **changes)

    def is_selected(self, feature: Mapping[str, Any]) -> bool:
        if not self.selected_locations:
            return False
        return feature_key(feature, self.geojson_key_field) in self.selected_locations


def diff_config(previous: ChoroplethConfig | None, config: ChoroplethConfig) -> frozenset[ChangeReason]:
    """Name the input groups that differ between two configurations."""
    if previous is None:
        return ALL_REASONS
    reasons: set[ChangeReason] = set()
    if config.topology is not previous.topology:
        reasons.add(ChangeReason.TOPOLOGY)
    if config.layers != previous.layers:
        reasons.add(ChangeReason.LAYERS)
    if config.size != previous.size:
        reasons.add(ChangeReason.DIMENSIONS)
    if (
        config.data is not previous.data
        or config.key_field != previous.key_field
        or config.strict_keys != previous.strict_keys
    ):
        reasons.add(ChangeReason.DATA)
    return frozenset(reasons)


def _uncached_layers(cache: GeometryCache, visible: Sequence[LayerDescriptor]) -> list[LayerDescriptor]:
    # Mesh layers are re-extracted on every pass: their filters may depend on
    # which features are currently shown.
    return [
        layer
        for layer in visible
        if layer.type == LAYER_MESH or not cache.has(layer.type, layer.name)
    ]


def reduce_state(
    state: RenderState | None,
    previous: ChoroplethConfig | None,
    config: ChoroplethConfig,
    reasons: frozenset[ChangeReason],
) -> RenderState:
    """Compute the next render state from the triggered change groups.

    Pure: `state` is never modified and a raised error leaves the caller's
    snapshot valid.
    """
    if state is None or previous is None:
        reasons = ALL_REASONS

    changes: dict[str, Any] = {}
    topology = state.topology if state is not None else None
    cache = state.cache if state is not None else GeometryCache()
    bounds = state.bounds if state is not None else None
    bounds_changed = False

    if ChangeReason.TOPOLOGY in reasons or ChangeReason.LAYERS in reasons:
        if topology is None or ChangeReason.TOPOLOGY in reasons:
            topology = simplify_topology(config.topology)
            cache = GeometryCache()
        visible = config.visible_layers
        uncached = _uncached_layers(cache, visible)
        if uncached:
            cache = merge_cache(cache, extract_geometry(topology, uncached))
        next_bounds = compute_bounds(cache.geometries_for(visible))
        bounds_changed = next_bounds != bounds
        bounds = next_bounds
        changes.update(topology=topology, cache=cache, bounds=bounds)
        _LOGGER.debug(
            "Geometry pass: %d visible layer(s), %d extracted, bounds %s",
            len(visible),
            len(uncached),
            "changed" if bounds_changed else "unchanged",
        )

    if bounds is None:
        raise NoGeometryError("No bounds available; the first pass must extract geometry")
    if ChangeReason.DIMENSIONS in reasons or bounds_changed:
        if bounds_changed or state is None or previous is None:
            viewport = fit_viewport(config.width, config.height, bounds)
        else:
            viewport = resize_viewport(state.viewport, previous.size, config.size, bounds)
        changes.update(
            viewport=viewport,
            projector=derive_projector(viewport.scale, viewport.translate),
        )

    if ChangeReason.DATA in reasons:
        changes["keyed_data"] = key_data(config.data, config.key_field, strict=config.strict_keys)

    if state is None:
        return RenderState(**changes)
    return replace(state, **changes)


class Choropleth:
    """Owner of one render-ready state.

    Configuration updates and viewport gestures each produce a complete new
    `RenderState` that replaces the previous one in a single assignment.
    """

    def __init__(self, config: ChoroplethConfig) -> None:
        state = reduce_state(None, None, config, ALL_REASONS)
        self._config = config
        self._state = state
        self._controller = ViewportController(
            state.viewport,
            width=config.width,
            height=config.height,
            bounds=state.bounds,
            zoom_step=config.zoom_step,
        )
        self._indexes: dict[str, tuple[Mapping[str, Any], FeatureIndex]] = {}

    @property
    def state(self) -> RenderState:
        return self._state

    @property
    def config(self) -> ChoroplethConfig:
        return self._config

    @property
    def controller(self) -> ViewportController:
        return self._controller

    def update(self, config: ChoroplethConfig) -> frozenset[ChangeReason]:
        """Apply a new configuration; on error the previous state is kept.

        Changes that need no recompute (selection, handlers, zoom step) are
        adopted as-is and leave the render state untouched.
        """
        reasons = diff_config(self._config, config)
        if not reasons:
            self._config = config
            self._controller.zoom_step = config.zoom_step
            return reasons
        _LOGGER.debug("Recompute for: %s", ", ".join(sorted(r.value for r in reasons)))
        try:
            state = reduce_state(self._state, self._config, config, reasons)
        except ChoroplethError as exc:
            _LOGGER.warning("Recompute failed, keeping previous state: %s", exc)
            raise
        self._commit(state, config)
        return reasons

    def _commit(self, state: RenderState, config: ChoroplethConfig) -> None:
        self._controller.sync(
            state.viewport,
            width=config.width,
            height=config.height,
            bounds=state.bounds,
            zoom_step=config.zoom_step,
        )
        self._config = config
        self._state = state

    def _publish_viewport(self, viewport: ViewportState) -> RenderState:
        self._state = replace(
            self._state,
            viewport=viewport,
            projector=derive_projector(viewport.scale, viewport.translate),
        )
        return self._state

    # -- viewport mutators ----------------------------------------------------

    def begin_gesture(self) -> None:
        self._controller.begin_gesture()

    def end_gesture(self) -> None:
        self._controller.end_gesture()

    def on_gesture_tick(
        self,
        scale_delta: float = 1.0,
        translate_delta: tuple[float, float] = (0.0, 0.0),
        anchor: tuple[float, float] | None = None,
    ) -> RenderState:
        viewport = self._controller.gesture_tick(
            GestureTick(scale_delta=scale_delta, translate_delta=translate_delta, anchor=anchor)
        )
        return self._publish_viewport(viewport)

    def zoom_to(self, target_scale: float) -> RenderState:
        return self._publish_viewport(self._controller.zoom_to(target_scale))

    def zoom_in(self) -> RenderState:
        return self._publish_viewport(self._controller.zoom_in())

    def zoom_out(self) -> RenderState:
        return self._publish_viewport(self._controller.zoom_out())

    def zoom_reset(self) -> RenderState:
        return self._publish_viewport(self._controller.zoom_reset())

    # -- pointer interaction --------------------------------------------------

    def _index_for(self, layer: LayerDescriptor) -> FeatureIndex | None:
        collection = self._state.cache.get(LAYER_FEATURE, layer.name)
        if collection is None:
            return None
        cached = self._indexes.get(layer.name)
        if cached is None or cached[0] is not collection:
            cached = (collection, FeatureIndex(collection))
            self._indexes[layer.name] = cached
        return cached[1]

    def locate(self, screen_x: float, screen_y: float) -> Mapping[str, Any] | None:
        """Feature under a screen point, searching the top-most visible layer first."""
        x, y = self._state.projector.invert(screen_x, screen_y)
        for layer in reversed(self._config.visible_layers):
            if layer.type != LAYER_FEATURE:
                continue
            index = self._index_for(layer)
            if index is None:
                continue
            feature = index.locate(x, y)
            if feature is not None:
                return feature
        return None

    def dispatch_pointer(self, kind: str, screen_x: float, screen_y: float, event: Any = None) -> Any:
        """Call the configured handler for `kind` with the key of the feature hit."""
        feature = self.locate(screen_x, screen_y)
        if feature is None:
            return None
        key = feature_key(feature, self._config.geojson_key_field)
        self._config.handlers.dispatch(kind, event, key)
        return key

    def datum_for(self, feature: Mapping[str, Any]) -> Any:
        return self._state.keyed_data.get(feature_key(feature, self._config.geojson_key_field))
