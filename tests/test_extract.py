from __future__ import annotations

import pytest

from choropleth.errors import InvalidArgumentError, UnknownObjectError
from choropleth.extract import extract_geometry, merge_cache
from choropleth.models import MESH_FILTERS, GeometryCache, LayerDescriptor
from choropleth.topology import Topology


def test_extracts_visible_layers_only(squares_topology: Topology) -> None:
    layers = [
        LayerDescriptor("regions", "regions", "feature"),
        LayerDescriptor("borders", "regions", "mesh", MESH_FILTERS["interior"]),
        LayerDescriptor("hidden", "left", "feature", visible=False),
    ]
    cache = extract_geometry(squares_topology, layers)
    assert set(cache.features) == {"regions"}
    assert set(cache.meshes) == {"borders"}
    assert cache.get("mesh", "borders")["type"] == "MultiLineString"
    assert len(cache.get("feature", "regions")["features"]) == 2


def test_extraction_is_deterministic(squares_topology: Topology) -> None:
    layers = [LayerDescriptor("regions", "regions", "feature")]
    assert extract_geometry(squares_topology, layers) == extract_geometry(squares_topology, layers)


def test_unknown_object_raises(squares_topology: Topology) -> None:
    with pytest.raises(UnknownObjectError):
        extract_geometry(squares_topology, [LayerDescriptor("x", "nope", "feature")])


def test_unknown_layer_type_rejected() -> None:
    with pytest.raises(InvalidArgumentError):
        LayerDescriptor("x", "x", "raster")


def test_filter_only_on_mesh_layers() -> None:
    with pytest.raises(InvalidArgumentError):
        LayerDescriptor("x", "x", "feature", MESH_FILTERS["interior"])


def test_merge_keeps_existing_and_lets_incoming_win() -> None:
    old_a = {"type": "FeatureCollection", "features": []}
    new_a = {"type": "FeatureCollection", "features": [{"type": "Feature"}]}
    mesh = {"type": "MultiLineString", "coordinates": []}
    existing = GeometryCache(features={"a": old_a, "b": old_a}, meshes={"m": mesh})
    incoming = GeometryCache(features={"a": new_a})

    merged = merge_cache(existing, incoming)

    assert merged.get("feature", "a") is new_a
    assert merged.get("feature", "b") is old_a
    assert merged.get("mesh", "m") is mesh
    assert existing.get("feature", "a") is old_a


def test_merge_is_idempotent() -> None:
    cache = GeometryCache(features={"a": {"type": "FeatureCollection", "features": []}})
    assert merge_cache(cache, cache) == cache


def test_cache_to_dict_shape() -> None:
    cache = GeometryCache(meshes={"m": {"type": "MultiLineString", "coordinates": []}})
    assert cache.to_dict() == {
        "feature": {},
        "mesh": {"m": {"type": "MultiLineString", "coordinates": []}},
    }
