"""Typed configuration loader for `choropleth.yaml`."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping, cast

import yaml

from .models import LayerDescriptor
from .viewport import DEFAULT_ZOOM_STEP


def _mapping(value: Any, field_name: str) -> Mapping[str, Any]:
    if not isinstance(value, Mapping):
        raise ValueError(f"Expected mapping for '{field_name}'")
    return cast(Mapping[str, Any], value)


def _optional_mapping(value: Any, field_name: str) -> Mapping[str, Any]:
    return {} if value is None else _mapping(value, field_name)


def _str(value: Any, field_name: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"Expected non-empty string for '{field_name}'")
    return value.strip()


def _int(value: Any, field_name: str) -> int:
    if not isinstance(value, int) or isinstance(value, bool):
        raise ValueError(f"Expected integer for '{field_name}'")
    return value


def _float(value: Any, field_name: str) -> float:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return float(value)
    raise ValueError(f"Expected float for '{field_name}'")


def _bool(value: Any, field_name: str) -> bool:
    if not isinstance(value, bool):
        raise ValueError(f"Expected bool for '{field_name}'")
    return value


def _positive(value: float, field_name: str) -> float:
    if value <= 0:
        raise ValueError(f"{field_name} must be > 0")
    return value


def _locations(value: Any, field_name: str) -> tuple[str | int, ...]:
    if value is None:
        return ()
    if not isinstance(value, list):
        raise ValueError(f"Expected list for '{field_name}'")
    out: list[str | int] = []
    for idx, item in enumerate(value):
        if isinstance(item, bool) or not isinstance(item, (str, int)):
            raise ValueError(f"Expected string or integer at '{field_name}[{idx}]'")
        out.append(item)
    return tuple(out)


def _path_from_cfg(value: Any, field_name: str, root_dir: Path) -> Path:
    raw = _str(value, field_name)
    p = Path(raw)
    return p if p.is_absolute() else root_dir / p


@dataclass(frozen=True, slots=True)
class ContainerConfig:
    width: float
    height: float

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> ContainerConfig:
        return cls(
            width=_positive(_float(raw.get("width", 600), "container.width"), "container.width"),
            height=_positive(_float(raw.get("height", 400), "container.height"), "container.height"),
        )


@dataclass(frozen=True, slots=True)
class KeysConfig:
    key_field: str
    value_field: str
    geojson_key_field: str
    strict: bool
    selected_locations: tuple[str | int, ...]

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> KeysConfig:
        return cls(
            key_field=_str(raw.get("key_field", "id"), "keys.key_field"),
            value_field=_str(raw.get("value_field", "value"), "keys.value_field"),
            geojson_key_field=_str(raw.get("geojson_key_field", "id"), "keys.geojson_key_field"),
            strict=_bool(raw.get("strict", False), "keys.strict"),
            selected_locations=_locations(
                raw.get("selected_locations"), "keys.selected_locations"
            ),
        )


@dataclass(frozen=True, slots=True)
class ZoomConfig:
    step: float

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> ZoomConfig:
        step = _float(raw.get("step", DEFAULT_ZOOM_STEP), "zoom.step")
        if step <= 1.0:
            raise ValueError("zoom.step must be > 1.0")
        return cls(step=step)


@dataclass(frozen=True, slots=True)
class RenderConfig:
    dpi: int
    format: str
    background: str
    colormap: str
    no_data_color: str
    outline_color: str
    outline_width: float
    selected_outline_color: str
    selected_outline_width: float
    mesh_color: str
    mesh_width: float
    point_radius: float

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> RenderConfig:
        fmt = _str(raw.get("format", "png"), "render.format").casefold()
        allowed = {"png", "svg"}
        if fmt not in allowed:
            raise ValueError("render.format must be one of: " + ", ".join(sorted(allowed)))
        dpi = _int(raw.get("dpi", 100), "render.dpi")
        if dpi <= 0:
            raise ValueError("render.dpi must be > 0")
        return cls(
            dpi=dpi,
            format=fmt,
            background=_str(raw.get("background", "white"), "render.background"),
            colormap=_str(raw.get("colormap", "viridis"), "render.colormap"),
            no_data_color=_str(raw.get("no_data_color", "#d9d9d9"), "render.no_data_color"),
            outline_color=_str(raw.get("outline_color", "#ffffff"), "render.outline_color"),
            outline_width=_float(raw.get("outline_width", 0.5), "render.outline_width"),
            selected_outline_color=_str(
                raw.get("selected_outline_color", "#000000"), "render.selected_outline_color"
            ),
            selected_outline_width=_float(
                raw.get("selected_outline_width", 1.5), "render.selected_outline_width"
            ),
            mesh_color=_str(raw.get("mesh_color", "#333333"), "render.mesh_color"),
            mesh_width=_float(raw.get("mesh_width", 0.8), "render.mesh_width"),
            point_radius=_positive(
                _float(raw.get("point_radius", 4.5), "render.point_radius"), "render.point_radius"
            ),
        )

    @classmethod
    def default(cls) -> RenderConfig:
        return cls.from_mapping({})


@dataclass(frozen=True, slots=True)
class PathsConfig:
    topology: Path
    data: Path | None
    output_dir: Path
    logs_dir: Path

    @property
    def build_directories(self) -> tuple[Path, ...]:
        return (self.output_dir, self.logs_dir)

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any], root_dir: Path) -> PathsConfig:
        data_raw = raw.get("data")
        return cls(
            topology=_path_from_cfg(raw.get("topology"), "paths.topology", root_dir),
            data=_path_from_cfg(data_raw, "paths.data", root_dir) if data_raw is not None else None,
            output_dir=_path_from_cfg(raw.get("output_dir", "build"), "paths.output_dir", root_dir),
            logs_dir=_path_from_cfg(raw.get("logs_dir", "build/logs"), "paths.logs_dir", root_dir),
        )


@dataclass(frozen=True, slots=True)
class AppConfig:
    source_path: Path
    paths: PathsConfig
    container: ContainerConfig
    keys: KeysConfig
    layers: tuple[LayerDescriptor, ...]
    zoom: ZoomConfig
    render: RenderConfig

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any], source_path: Path) -> AppConfig:
        root_dir = source_path.parent.resolve()
        layers_raw = raw.get("layers")
        if not isinstance(layers_raw, list) or not layers_raw:
            raise ValueError("Expected non-empty list for 'layers'")
        layers: list[LayerDescriptor] = []
        seen: set[tuple[str, str]] = set()
        for idx, item in enumerate(layers_raw):
            layer = LayerDescriptor.from_mapping(_mapping(item, f"layers[{idx}]"))
            if layer.key in seen:
                raise ValueError(f"Duplicate layer '{layer.type}.{layer.name}' in 'layers'")
            seen.add(layer.key)
            layers.append(layer)

        return cls(
            source_path=source_path.resolve(),
            paths=PathsConfig.from_mapping(_mapping(raw.get("paths"), "paths"), root_dir),
            container=ContainerConfig.from_mapping(
                _optional_mapping(raw.get("container"), "container")
            ),
            keys=KeysConfig.from_mapping(_optional_mapping(raw.get("keys"), "keys")),
            layers=tuple(layers),
            zoom=ZoomConfig.from_mapping(_optional_mapping(raw.get("zoom"), "zoom")),
            render=RenderConfig.from_mapping(_optional_mapping(raw.get("render"), "render")),
        )


def load_config(path: str | Path) -> AppConfig:
    """Load and validate the YAML config file into typed settings."""
    cfg_path = Path(path).resolve()
    if not cfg_path.exists():
        raise FileNotFoundError(f"Config file not found: {cfg_path}")
    with cfg_path.open("r", encoding="utf-8") as fh:
        raw = yaml.safe_load(fh)
    if not isinstance(raw, Mapping):
        raise ValueError("Top-level config must be a YAML mapping")
    return AppConfig.from_mapping(cast(Mapping[str, Any], raw), cfg_path)
