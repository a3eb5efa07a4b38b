from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import pytest

from choropleth.models import LayerDescriptor
from choropleth.state import ChoroplethConfig
from choropleth.topology import Topology


def two_squares_mapping() -> dict[str, Any]:
    """Two unit-10 squares sharing the edge x=5; absolute (untransformed) arcs."""
    return {
        "type": "Topology",
        "arcs": [
            [[5, 0], [5, 10]],
            [[5, 10], [0, 10], [0, 0], [5, 0]],
            [[5, 0], [10, 0], [10, 10], [5, 10]],
        ],
        "objects": {
            "regions": {
                "type": "GeometryCollection",
                "geometries": [
                    {
                        "type": "Polygon",
                        "id": "L",
                        "properties": {"name": "Left"},
                        "arcs": [[0, 1]],
                    },
                    {
                        "type": "Polygon",
                        "id": "R",
                        "properties": {"name": "Right"},
                        "arcs": [[2, -1]],
                    },
                ],
            },
            "left": {"type": "Polygon", "id": "L", "arcs": [[0, 1]]},
        },
    }


def quantized_mapping() -> dict[str, Any]:
    return {
        "type": "Topology",
        "transform": {"scale": [0.5, 0.5], "translate": [100, 200]},
        "arcs": [[[0, 0], [2, 0], [0, 2]]],
        "objects": {
            "line": {"type": "LineString", "id": "a", "arcs": [0]},
            "point": {"type": "Point", "id": "p", "coordinates": [4, 4]},
        },
    }


@pytest.fixture
def squares_mapping() -> dict[str, Any]:
    return two_squares_mapping()


@pytest.fixture
def squares_topology(squares_mapping: dict[str, Any]) -> Topology:
    return Topology.from_mapping(squares_mapping)


@pytest.fixture
def quantized_topology() -> Topology:
    return Topology.from_mapping(quantized_mapping())


@pytest.fixture
def regions_layer() -> LayerDescriptor:
    return LayerDescriptor(name="regions", object="regions", type="feature")


@pytest.fixture
def squares_config(squares_topology: Topology, regions_layer: LayerDescriptor) -> ChoroplethConfig:
    return ChoroplethConfig(
        topology=squares_topology,
        layers=(regions_layer,),
        data=[{"id": "L", "value": 1.0}, {"id": "R", "value": 3.0}],
        width=300,
        height=300,
    )


@pytest.fixture
def project_dir(tmp_path: Path) -> Path:
    """A config directory with topology, CSV data and `choropleth.yaml`."""
    (tmp_path / "regions.topojson").write_text(json.dumps(two_squares_mapping()), encoding="utf-8")
    (tmp_path / "values.csv").write_text("id,value\nL,1\nR,2.5\n", encoding="utf-8")
    (tmp_path / "choropleth.yaml").write_text(
        "\n".join(
            [
                "paths:",
                "  topology: regions.topojson",
                "  data: values.csv",
                "  output_dir: out",
                "  logs_dir: out/logs",
                "container:",
                "  width: 300",
                "  height: 300",
                "layers:",
                "  - name: regions",
                "    type: feature",
                "  - name: borders",
                "    object: regions",
                "    type: mesh",
                "    filter: interior",
                "render:",
                "  format: svg",
                "  dpi: 50",
                "",
            ]
        ),
        encoding="utf-8",
    )
    return tmp_path
