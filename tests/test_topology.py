from __future__ import annotations

import math

import pytest

from choropleth.errors import UnknownObjectError
from choropleth.models import MESH_FILTERS
from choropleth.topology import (
    Topology,
    cartesian_triangle_area,
    decode_features,
    decode_geometry,
    decode_mesh,
    effective_areas,
    presimplify,
    simplify_topology,
    stitch_arcs,
)


def _xy(line):
    return [(p[0], p[1]) for p in line]


def test_from_mapping_rejects_non_topology() -> None:
    with pytest.raises(ValueError, match="not a TopoJSON topology"):
        Topology.from_mapping({"type": "FeatureCollection", "objects": {"a": {}}})


def test_topology_compares_by_identity(squares_mapping: dict) -> None:
    a = Topology.from_mapping(squares_mapping)
    b = Topology.from_mapping(squares_mapping)
    assert a != b
    assert a == a


def test_decode_features_polygons(squares_topology: Topology) -> None:
    collection = decode_features(squares_topology, "regions")
    assert collection["type"] == "FeatureCollection"
    left, right = collection["features"]
    assert left["id"] == "L"
    assert left["properties"] == {"name": "Left"}
    ring = left["geometry"]["coordinates"][0]
    assert _xy(ring) == [(5, 0), (5, 10), (0, 10), (0, 0), (5, 0)]
    right_ring = right["geometry"]["coordinates"][0]
    assert _xy(right_ring) == [(5, 0), (10, 0), (10, 10), (5, 10), (5, 0)]


def test_non_collection_object_becomes_single_feature(squares_topology: Topology) -> None:
    collection = decode_features(squares_topology, "left")
    assert len(collection["features"]) == 1
    assert collection["features"][0]["id"] == "L"
    assert collection["features"][0]["properties"] == {}


def test_quantized_arcs_are_delta_decoded(quantized_topology: Topology) -> None:
    line = decode_features(quantized_topology, "line")["features"][0]["geometry"]
    assert line["type"] == "LineString"
    assert _xy(line["coordinates"]) == [(100, 200), (101, 200), (101, 201)]


def test_points_are_transformed_without_delta(quantized_topology: Topology) -> None:
    point = decode_geometry(quantized_topology, quantized_topology.object("point"))
    assert point == {"type": "Point", "coordinates": (102.0, 202.0)}


def test_unknown_object_lists_available(squares_topology: Topology) -> None:
    with pytest.raises(UnknownObjectError, match="Available: left, regions"):
        decode_features(squares_topology, "missing")


def test_unknown_geometry_type_decodes_to_none(squares_topology: Topology) -> None:
    assert decode_geometry(squares_topology, {"type": None}) is None


def test_interior_mesh_is_shared_edge(squares_topology: Topology) -> None:
    mesh = decode_mesh(squares_topology, "regions", MESH_FILTERS["interior"])
    assert mesh["type"] == "MultiLineString"
    assert [_xy(line) for line in mesh["coordinates"]] == [[(5, 0), (5, 10)]]


def test_exterior_mesh_is_stitched_outline(squares_topology: Topology) -> None:
    mesh = decode_mesh(squares_topology, "regions", MESH_FILTERS["exterior"])
    assert [_xy(line) for line in mesh["coordinates"]] == [
        [(5, 10), (0, 10), (0, 0), (5, 0), (10, 0), (10, 10), (5, 10)]
    ]


def test_unfiltered_mesh_covers_every_arc_once(squares_topology: Topology) -> None:
    mesh = decode_mesh(squares_topology, "regions")
    assert len(mesh["coordinates"]) == 1
    assert len(mesh["coordinates"][0]) == 8


def test_stitch_leaves_disjoint_arcs_apart() -> None:
    topology = Topology.from_mapping(
        {
            "type": "Topology",
            "arcs": [[[0, 0], [1, 0]], [[5, 5], [6, 5]]],
            "objects": {"x": {"type": "MultiLineString", "arcs": [[0], [1]]}},
        }
    )
    assert sorted(stitch_arcs(topology, [0, 1])) == [[0], [1]]


def test_triangle_area_is_doubled() -> None:
    assert cartesian_triangle_area((0, 0), (1, 1), (2, 0)) == 2


def test_effective_areas_are_monotone() -> None:
    areas = effective_areas([(0, 0), (1, 0.1), (2, 0), (3, 5), (4, 0)])
    assert math.isinf(areas[0]) and math.isinf(areas[-1])
    assert areas[1:4] == pytest.approx([0.2, 10.0, 20.0])


def test_presimplify_appends_area(squares_topology: Topology) -> None:
    simplified = presimplify(squares_topology)
    assert simplified.presimplified
    assert simplified is not squares_topology
    assert all(len(position) == 3 for arc in simplified.arcs for position in arc)
    assert presimplify(simplified) is simplified


def test_simplify_topology_is_memoized(squares_topology: Topology) -> None:
    assert simplify_topology(squares_topology) is simplify_topology(squares_topology)


def test_simplify_topology_runs_once_per_topology(squares_mapping: dict, monkeypatch) -> None:
    import choropleth.topology as topology_module

    calls: list[Topology] = []
    original = topology_module.presimplify

    def counting(topology: Topology, *args, **kwargs) -> Topology:
        calls.append(topology)
        return original(topology, *args, **kwargs)

    monkeypatch.setattr(topology_module, "presimplify", counting)
    a, b, c = (Topology.from_mapping(squares_mapping) for _ in range(3))
    results = [simplify_topology(topology) for topology in (a, b, c, a, b, a)]

    assert len(calls) == 3
    assert calls[0] is a and calls[1] is b and calls[2] is c
    assert results[0] is results[3] is results[5]
    assert simplify_topology(results[0]) is results[0]
    assert len(calls) == 3
