"""Validation layer for config and input files."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from .config import AppConfig
from .data import resolve_property
from .errors import ChoroplethError
from .interaction import feature_shape
from .loaders import load_choropleth_config, load_data, load_topology
from .models import LAYER_FEATURE
from .render import has_colormap
from .state import Choropleth
from .topology import Topology, decode_features


@dataclass(slots=True)
class ValidationReport:
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    infos: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors

    def add_error(self, msg: str) -> None:
        self.errors.append(msg)

    def add_warning(self, msg: str) -> None:
        self.warnings.append(msg)

    def add_info(self, msg: str) -> None:
        self.infos.append(msg)


class Validator:
    """Checks that config, topology and data fit together."""

    def __init__(self, cfg: AppConfig) -> None:
        self.cfg = cfg

    def run(self) -> ValidationReport:
        report = ValidationReport()
        topology = self._validate_topology(report)
        data = self._validate_data(report)
        if topology is not None:
            self._validate_layers(report, topology)
            self._validate_joins(report, topology, data)
        self._validate_colormap(report)
        if report.ok:
            self._validate_recompute(report)
        return report

    def _validate_topology(self, report: ValidationReport) -> Topology | None:
        path = self.cfg.paths.topology
        try:
            topology = load_topology(path)
        except (OSError, ValueError) as exc:
            report.add_error(f"Failed loading topology '{path}': {exc}")
            return None
        report.add_info(
            f"Loaded topology with {len(topology.arcs)} arcs and objects: "
            + ", ".join(sorted(topology.objects))
        )
        return topology

    def _validate_data(self, report: ValidationReport) -> list[Any]:
        path = self.cfg.paths.data
        if path is None:
            report.add_info("No data file configured; all features render as no-data.")
            return []
        try:
            data = load_data(path, numeric_fields=(self.cfg.keys.value_field,))
        except (OSError, ValueError) as exc:
            report.add_error(f"Failed loading data '{path}': {exc}")
            return []
        report.add_info(f"Loaded {len(data)} datum records from {path}")

        seen: set[Any] = set()
        duplicates: list[str] = []
        missing_values = 0
        for datum in data:
            key = resolve_property(datum, self.cfg.keys.key_field)
            if key in seen:
                duplicates.append(str(key))
            seen.add(key)
            if resolve_property(datum, self.cfg.keys.value_field) is None:
                missing_values += 1
        if duplicates:
            msg = f"Duplicate datum keys: {_format_list(duplicates)}"
            if self.cfg.keys.strict:
                report.add_error(msg)
            else:
                report.add_warning(msg + " (last record wins)")
        if missing_values:
            report.add_warning(
                f"{missing_values} datum record(s) have no '{self.cfg.keys.value_field}' value"
            )
        return data

    def _validate_layers(self, report: ValidationReport, topology: Topology) -> None:
        if not any(layer.visible for layer in self.cfg.layers):
            report.add_error("No visible layers configured; bounds cannot be computed.")
        for layer in self.cfg.layers:
            if layer.object not in topology.objects:
                report.add_error(
                    f"Layer '{layer.type}.{layer.name}' references unknown object '{layer.object}'"
                )

    def _validate_joins(self, report: ValidationReport, topology: Topology, data: list[Any]) -> None:
        keys = {resolve_property(datum, self.cfg.keys.key_field) for datum in data}
        feature_ids: set[Any] = set()
        for layer in self.cfg.layers:
            if layer.type != LAYER_FEATURE or layer.object not in topology.objects:
                continue
            collection = decode_features(topology, layer.object)
            features = collection["features"]
            invalid: list[str] = []
            unmatched: list[str] = []
            for idx, feature in enumerate(features):
                feature_id = resolve_property(feature, self.cfg.keys.geojson_key_field)
                feature_ids.add(feature_id)
                label = str(feature_id) if feature_id is not None else f"#{idx}"
                geometry = feature.get("geometry")
                if geometry and not feature_shape(geometry).is_valid:
                    invalid.append(label)
                if data and feature_id not in keys:
                    unmatched.append(label)
            report.add_info(f"Layer '{layer.name}': {len(features)} features")
            if invalid:
                report.add_warning(
                    f"Layer '{layer.name}' has invalid geometries: {_format_list(invalid)}"
                )
            if unmatched:
                report.add_warning(
                    f"Layer '{layer.name}' features without data: {_format_list(unmatched)}"
                )
        missing = [
            str(location)
            for location in self.cfg.keys.selected_locations
            if location not in feature_ids
        ]
        if missing:
            report.add_warning(f"Selected locations match no feature: {_format_list(missing)}")

    def _validate_colormap(self, report: ValidationReport) -> None:
        if not has_colormap(self.cfg.render.colormap):
            report.add_error(f"Unknown matplotlib colormap '{self.cfg.render.colormap}'")

    def _validate_recompute(self, report: ValidationReport) -> None:
        try:
            choropleth = Choropleth(load_choropleth_config(self.cfg))
        except ChoroplethError as exc:
            report.add_error(f"Initial recompute failed: {exc}")
            return
        state = choropleth.state
        report.add_info(
            f"Bounds {state.bounds.as_pairs()}, scale {state.scale:.6g}, "
            f"translate ({state.translate[0]:.2f}, {state.translate[1]:.2f})"
        )


def format_report_lines(report: ValidationReport) -> list[str]:
    lines: list[str] = []
    for msg in report.infos:
        lines.append(f"INFO: {msg}")
    for msg in report.warnings:
        lines.append(f"WARNING: {msg}")
    for msg in report.errors:
        lines.append(f"ERROR: {msg}")
    lines.append(
        f"Validation summary: {len(report.errors)} error(s), {len(report.warnings)} warning(s)"
    )
    return lines


def _format_list(values: list[str], limit: int = 12) -> str:
    if len(values) <= limit:
        return ", ".join(values)
    shown = ", ".join(values[:limit])
    return f"{shown}, ... (+{len(values) - limit} more)"
