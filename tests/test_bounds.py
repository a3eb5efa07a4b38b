from __future__ import annotations

import pytest

from choropleth.bounds import compute_bounds, iter_positions
from choropleth.errors import NoGeometryError
from choropleth.models import Bounds


def test_bounds_over_feature_collection_and_mesh() -> None:
    features = {
        "type": "FeatureCollection",
        "features": [
            {"type": "Feature", "geometry": {"type": "Point", "coordinates": [1, 2]}},
            {
                "type": "Feature",
                "geometry": {"type": "LineString", "coordinates": [[-3, 4], [5, -6]]},
            },
        ],
    }
    mesh = {"type": "MultiLineString", "coordinates": [[[0, 0, 99.0], [10, 1, 1.0]]]}
    assert compute_bounds([features, mesh]) == Bounds(-3.0, -6.0, 10.0, 4.0)


def test_bounds_ignore_presimplified_area() -> None:
    mesh = {"type": "LineString", "coordinates": [[0, 0, 1e9], [2, 3, 1e9]]}
    assert compute_bounds([mesh]).as_pairs() == ((0.0, 0.0), (2.0, 3.0))


def test_bounds_handle_nested_geometry_collections() -> None:
    nested = {"type": "Point", "coordinates": [7, 8]}
    for _ in range(50):
        nested = {"type": "GeometryCollection", "geometries": [nested]}
    assert compute_bounds([nested]) == Bounds(7.0, 8.0, 7.0, 8.0)


def test_iter_positions_deep_nesting() -> None:
    coordinates = [[[[[1, 2], [3, 4]]]], [[5, 6]]]
    assert sorted(tuple(p) for p in iter_positions(coordinates)) == [(1, 2), (3, 4), (5, 6)]


def test_no_collections_raises() -> None:
    with pytest.raises(NoGeometryError):
        compute_bounds([])


def test_collections_without_positions_raise() -> None:
    with pytest.raises(NoGeometryError):
        compute_bounds([{"type": "FeatureCollection", "features": []}])
