"""CLI entrypoint for the choropleth toolkit."""

from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import Any, Sequence
from xml.sax.saxutils import quoteattr

from .config import AppConfig, load_config
from .errors import ChoroplethError
from .loaders import load_choropleth_config
from .models import LAYER_FEATURE
from .path import layer_paths
from .render import MapRenderer, datum_color_scale
from .state import Choropleth
from .util import ensure_directories, setup_logging, write_json, write_text
from .validate import Validator, format_report_lines

LOGGER = logging.getLogger("choropleth.cli")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="choropleth",
        description="TopoJSON choropleth toolkit.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    def add_common(p: argparse.ArgumentParser) -> None:
        p.add_argument("--config", default="choropleth.yaml", help="Path to YAML config.")
        p.add_argument("--verbose", action="store_true", help="Enable debug logs.")

    def add_view(p: argparse.ArgumentParser) -> None:
        p.add_argument(
            "--zoom",
            type=float,
            default=None,
            help="Zoom factor relative to the fitted scale (e.g. 2.0).",
        )
        p.add_argument(
            "--pan",
            type=float,
            nargs=2,
            metavar=("DX", "DY"),
            default=None,
            help="Pan by DX DY screen pixels after zooming.",
        )

    validate_p = subparsers.add_parser("validate", help="Validate config and input files.")
    add_common(validate_p)

    inspect_p = subparsers.add_parser(
        "inspect",
        help="Write a JSON summary of bounds, viewport and layers.",
    )
    add_common(inspect_p)
    add_view(inspect_p)
    inspect_p.add_argument("--output", default=None, help="Output JSON path.")
    inspect_p.add_argument(
        "--geometry",
        default=None,
        help="Also dump the extracted geometry cache as JSON to this path.",
    )

    svg_p = subparsers.add_parser("export-svg", help="Write projected layer paths as SVG.")
    add_common(svg_p)
    add_view(svg_p)
    svg_p.add_argument("--output", default=None, help="Output SVG path.")

    render_p = subparsers.add_parser("render", help="Render a filled preview with matplotlib.")
    add_common(render_p)
    add_view(render_p)
    render_p.add_argument("--output", default=None, help="Output image path.")

    return parser


def _load_and_setup(args: argparse.Namespace) -> AppConfig:
    cfg = load_config(args.config)
    log_path = cfg.paths.logs_dir / "choropleth.log"
    setup_logging(log_path, verbose=args.verbose)
    ensure_directories(cfg.paths.build_directories)
    return cfg


def _build_choropleth(cfg: AppConfig, args: argparse.Namespace) -> Choropleth:
    choropleth = Choropleth(load_choropleth_config(cfg))
    zoom = getattr(args, "zoom", None)
    if zoom is not None:
        choropleth.zoom_to(choropleth.state.scale_base * zoom)
    pan = getattr(args, "pan", None)
    if pan is not None:
        choropleth.on_gesture_tick(translate_delta=(float(pan[0]), float(pan[1])))
    return choropleth


def _output_path(cfg: AppConfig, raw: str | None, default_name: str) -> Path:
    return Path(raw) if raw else cfg.paths.output_dir / default_name


def _run_validate(cfg: AppConfig) -> int:
    report = Validator(cfg).run()
    for line in format_report_lines(report):
        LOGGER.info(line)
    return 0 if report.ok else 1


def inspection_summary(choropleth: Choropleth) -> dict[str, Any]:
    state = choropleth.state
    layers: list[dict[str, Any]] = []
    for layer in choropleth.config.layers:
        entry: dict[str, Any] = {
            "name": layer.name,
            "object": layer.object,
            "type": layer.type,
            "visible": layer.visible,
        }
        geometry = state.cache.get(layer.type, layer.name)
        if geometry is not None:
            if layer.type == LAYER_FEATURE:
                features = geometry.get("features", [])
                entry["features"] = len(features)
                entry["with_data"] = sum(1 for f in features if choropleth.datum_for(f) is not None)
                entry["selected"] = sum(1 for f in features if choropleth.config.is_selected(f))
            else:
                entry["lines"] = len(geometry.get("coordinates", []))
        layers.append(entry)
    return {
        "bounds": [list(pair) for pair in state.bounds.as_pairs()],
        "container": {"width": choropleth.config.width, "height": choropleth.config.height},
        "viewport": state.viewport.to_dict(),
        "layers": layers,
        "keyed_data": len(state.keyed_data),
    }


def _run_inspect(cfg: AppConfig, args: argparse.Namespace) -> int:
    choropleth = _build_choropleth(cfg, args)
    out_path = _output_path(cfg, args.output, "inspect.json")
    summary = inspection_summary(choropleth)
    write_json(out_path, summary)
    if args.geometry:
        geometry_path = Path(args.geometry)
        write_json(geometry_path, choropleth.state.cache.to_dict(), indent=None)
        LOGGER.info("Geometry cache written to %s", geometry_path)
    viewport = summary["viewport"]
    LOGGER.info(
        "Scale %.6g (base %.6g x %.4g), translate (%.2f, %.2f)",
        viewport["scale"],
        viewport["scale_base"],
        viewport["scale_factor"],
        viewport["translate"][0],
        viewport["translate"][1],
    )
    LOGGER.info("Inspection JSON written to %s", out_path)
    return 0


def svg_document(choropleth: Choropleth, cfg: AppConfig) -> str:
    """Standalone SVG of the current view: one group per visible layer,
    feature paths filled through the configured colormap.
    """
    state = choropleth.state
    width, height = choropleth.config.size
    color_for = datum_color_scale(choropleth, cfg.render)
    selected = choropleth.config.selected_locations
    paths = layer_paths(
        state,
        choropleth.config.layers,
        key_field=choropleth.config.geojson_key_field,
        point_radius=cfg.render.point_radius,
    )
    lines = [
        '<svg xmlns="http://www.w3.org/2000/svg" '
        f'width="{width:g}" height="{height:g}" viewBox="0 0 {width:g} {height:g}">'
    ]
    for layer in choropleth.config.layers:
        entries = paths.get(layer.key)
        if entries is None:
            continue
        if layer.type == LAYER_FEATURE:
            style = (
                f'stroke={quoteattr(cfg.render.outline_color)} '
                f'stroke-width="{cfg.render.outline_width:g}"'
            )
        else:
            style = (
                f'fill="none" stroke={quoteattr(cfg.render.mesh_color)} '
                f'stroke-width="{cfg.render.mesh_width:g}"'
            )
        lines.append(f'  <g class="{layer.type}" data-layer={quoteattr(layer.name)} {style}>')
        if layer.type == LAYER_FEATURE:
            # Selected features go last so their outline is drawn on top.
            entries = sorted(entries, key=lambda entry: entry[0] in selected)
        for key, d in entries:
            attrs = ""
            if layer.type == LAYER_FEATURE:
                if key in selected:
                    attrs += ' class="selected"'
                if key is not None:
                    attrs += f" data-key={quoteattr(str(key))}"
                attrs += f" fill={quoteattr(color_for(state.keyed_data.get(key)))}"
                if key in selected:
                    attrs += (
                        f" stroke={quoteattr(cfg.render.selected_outline_color)}"
                        f' stroke-width="{cfg.render.selected_outline_width:g}"'
                    )
            lines.append(f'    <path{attrs} d="{d}"/>')
        lines.append("  </g>")
    lines.append("</svg>")
    return "\n".join(lines) + "\n"


def _run_export_svg(cfg: AppConfig, args: argparse.Namespace) -> int:
    choropleth = _build_choropleth(cfg, args)
    out_path = _output_path(cfg, args.output, "choropleth.svg")
    write_text(out_path, svg_document(choropleth, cfg))
    LOGGER.info("SVG written to %s", out_path)
    return 0


def _run_render(cfg: AppConfig, args: argparse.Namespace) -> int:
    choropleth = _build_choropleth(cfg, args)
    out_path = _output_path(cfg, args.output, f"choropleth.{cfg.render.format}")
    MapRenderer(cfg.render).render(choropleth, out_path)
    return 0


def _dispatch(args: argparse.Namespace) -> int:
    cfg = _load_and_setup(args)
    command = str(args.command)
    try:
        if command == "validate":
            return _run_validate(cfg)
        if command == "inspect":
            return _run_inspect(cfg, args)
        if command == "export-svg":
            return _run_export_svg(cfg, args)
        if command == "render":
            return _run_render(cfg, args)
    except ChoroplethError as exc:
        LOGGER.error("%s failed: %s", command, exc)
        return 1
    raise ValueError(f"Unknown command: {command}")


def main(argv: Sequence[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    return _dispatch(args)


if __name__ == "__main__":
    raise SystemExit(main())
