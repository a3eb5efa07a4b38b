"""Topology and datum file loading."""

from __future__ import annotations

import csv
import json
import math
from pathlib import Path
from typing import Any, Collection

from .config import AppConfig
from .state import ChoroplethConfig
from .topology import Topology


def load_topology(path: Path) -> Topology:
    """Load a TopoJSON file into an immutable Topology."""
    if not path.exists():
        raise FileNotFoundError(f"Topology file not found: {path}")
    with path.open("r", encoding="utf-8") as fh:
        raw = json.load(fh)
    if not isinstance(raw, dict):
        raise ValueError(f"Expected JSON object in {path}")
    try:
        return Topology.from_mapping(raw)
    except ValueError as exc:
        raise ValueError(f"Invalid topology in {path}: {exc}") from exc


def _coerce_number(text: str) -> Any:
    try:
        return int(text)
    except ValueError:
        pass
    try:
        number = float(text)
    except ValueError:
        return text
    return number if math.isfinite(number) else None


def _csv_cell(value: str | None, numeric: bool) -> Any:
    text = (value or "").strip()
    if text == "":
        return None
    return _coerce_number(text) if numeric else text


def load_data(path: Path, numeric_fields: Collection[str] = ("value",)) -> list[dict[str, Any]]:
    """Load datum objects from a JSON list or a CSV file with a header row.

    Only CSV columns named in `numeric_fields` are parsed as int/float, so
    zero-padded codes in key columns stay strings. Empty cells and
    non-finite numbers become None.
    """
    if not path.exists():
        raise FileNotFoundError(f"Data file not found: {path}")
    if path.suffix.casefold() == ".csv":
        with path.open("r", encoding="utf-8", newline="") as fh:
            reader = csv.DictReader(fh)
            return [
                {
                    key: _csv_cell(value, key in numeric_fields)
                    for key, value in row.items()
                    if key is not None
                }
                for row in reader
            ]

    with path.open("r", encoding="utf-8") as fh:
        raw = json.load(fh)
    if not isinstance(raw, list):
        raise ValueError(f"Expected list of datum objects in {path}")
    for idx, item in enumerate(raw):
        if not isinstance(item, dict):
            raise ValueError(f"Expected mapping at index {idx} in {path}")
    return raw


def load_choropleth_config(cfg: AppConfig) -> ChoroplethConfig:
    """Resolve files referenced by the app config into engine inputs."""
    data = (
        load_data(cfg.paths.data, numeric_fields=(cfg.keys.value_field,))
        if cfg.paths.data is not None
        else []
    )
    return ChoroplethConfig(
        topology=load_topology(cfg.paths.topology),
        layers=cfg.layers,
        data=data,
        key_field=cfg.keys.key_field,
        value_field=cfg.keys.value_field,
        geojson_key_field=cfg.keys.geojson_key_field,
        width=cfg.container.width,
        height=cfg.container.height,
        zoom_step=cfg.zoom.step,
        strict_keys=cfg.keys.strict,
        selected_locations=cfg.keys.selected_locations,
    )
