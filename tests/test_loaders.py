from __future__ import annotations

import json
from pathlib import Path

import pytest

from choropleth.config import load_config
from choropleth.loaders import load_choropleth_config, load_data, load_topology


def test_load_topology(project_dir: Path) -> None:
    topology = load_topology(project_dir / "regions.topojson")
    assert sorted(topology.objects) == ["left", "regions"]
    assert len(topology.arcs) == 3
    assert not topology.presimplified


def test_load_topology_errors(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        load_topology(tmp_path / "missing.json")
    bad = tmp_path / "bad.json"
    bad.write_text(json.dumps({"type": "Topology", "objects": {}}), encoding="utf-8")
    with pytest.raises(ValueError, match="Invalid topology"):
        load_topology(bad)


def test_load_csv_coerces_numbers(tmp_path: Path) -> None:
    path = tmp_path / "values.csv"
    path.write_text("id,value,label\nA,1,x\nB,2.5,\nC,nan,7\n", encoding="utf-8")
    assert load_data(path) == [
        {"id": "A", "value": 1, "label": "x"},
        {"id": "B", "value": 2.5, "label": None},
        {"id": "C", "value": None, "label": "7"},
    ]


def test_load_csv_keeps_zero_padded_keys(tmp_path: Path) -> None:
    path = tmp_path / "counties.csv"
    path.write_text("fips,rate\n01001,3\n", encoding="utf-8")
    assert load_data(path, numeric_fields=("rate",)) == [{"fips": "01001", "rate": 3}]


def test_load_json_list(tmp_path: Path) -> None:
    path = tmp_path / "values.json"
    path.write_text(json.dumps([{"id": "A", "value": 3}]), encoding="utf-8")
    assert load_data(path) == [{"id": "A", "value": 3}]
    path.write_text(json.dumps({"id": "A"}), encoding="utf-8")
    with pytest.raises(ValueError, match="Expected list"):
        load_data(path)


def test_load_choropleth_config(project_dir: Path) -> None:
    config = load_choropleth_config(load_config(project_dir / "choropleth.yaml"))
    assert config.size == (300.0, 300.0)
    assert [layer.name for layer in config.layers] == ["regions", "borders"]
    assert config.data == [{"id": "L", "value": 1}, {"id": "R", "value": 2.5}]
