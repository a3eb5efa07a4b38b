"""Geometry extraction from a topology and the cache merge policy."""

from __future__ import annotations

import logging
import time
from typing import Iterable

from .models import LAYER_FEATURE, GeometryCache, LayerDescriptor
from .topology import Topology, decode_features, decode_mesh, simplify_topology


_LOGGER = logging.getLogger("choropleth.extract")


def extract_geometry(topology: Topology, layers: Iterable[LayerDescriptor]) -> GeometryCache:
    """Decode every visible layer into a partial geometry cache.

    The topology is presimplified first; that step runs once per topology
    object and is skipped for an already presimplified topology.
    """
    simplified = simplify_topology(topology)
    started = time.perf_counter()

    features: dict[str, dict] = {}
    meshes: dict[str, dict] = {}
    for layer in layers:
        if not layer.visible:
            continue
        if layer.type == LAYER_FEATURE:
            features[layer.name] = decode_features(simplified, layer.object)
        else:
            meshes[layer.name] = decode_mesh(simplified, layer.object, layer.filter_predicate)

    _LOGGER.debug(
        "Extracted %d feature layer(s) and %d mesh layer(s) in %.1f ms",
        len(features),
        len(meshes),
        (time.perf_counter() - started) * 1000.0,
    )
    return GeometryCache(features=features, meshes=meshes)


def merge_cache(existing: GeometryCache, incoming: GeometryCache) -> GeometryCache:
    """One-level merge: incoming (type, name) entries win, all others are kept."""
    return existing.merge(incoming)
