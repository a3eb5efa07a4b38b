"""Preview rendering of a choropleth render state with matplotlib."""

from __future__ import annotations

import logging
import time
from functools import lru_cache
from pathlib import Path
from typing import Any, Callable, Mapping, Sequence

from .config import RenderConfig
from .data import resolve_property
from .models import LAYER_FEATURE
from .path import LINE, POINT, RING, projected_parts
from .state import Choropleth


_LOGGER = logging.getLogger("choropleth.render")


class MapRenderer:
    """Draws visible feature layers as filled patches and meshes as lines."""

    def __init__(self, cfg: RenderConfig) -> None:
        self.cfg = cfg

    def render(self, choropleth: Choropleth, output_path: Path) -> Path:
        mpl = _require_matplotlib()
        plt = mpl["pyplot"]
        width, height = choropleth.config.size
        dpi = self.cfg.dpi
        state = choropleth.state
        started = time.perf_counter()

        fig, ax = plt.subplots(figsize=(width / dpi, height / dpi), dpi=dpi)
        fig.subplots_adjust(left=0.0, right=1.0, bottom=0.0, top=1.0)
        try:
            ax.set_xlim(0.0, width)
            ax.set_ylim(height, 0.0)
            ax.set_axis_off()
            _apply_background(fig=fig, ax=ax, background=self.cfg.background)

            color_for = datum_color_scale(choropleth, self.cfg)
            drawn = 0
            for zorder, layer in enumerate(choropleth.config.visible_layers, start=1):
                geometry = state.cache.get(layer.type, layer.name)
                if geometry is None:
                    continue
                if layer.type == LAYER_FEATURE:
                    selected: list[Mapping[str, Any]] = []
                    for feature in geometry.get("features", []):
                        if choropleth.config.is_selected(feature):
                            selected.append(feature)
                            continue
                        if self._draw_feature(ax, mpl, choropleth, feature, color_for, zorder):
                            drawn += 1
                    for feature in selected:
                        if self._draw_feature(
                            ax, mpl, choropleth, feature, color_for, zorder + 0.5, selected=True
                        ):
                            drawn += 1
                else:
                    lines = [
                        part.points
                        for part in projected_parts(geometry, state.projector)
                        if part.kind == LINE
                    ]
                    if lines:
                        ax.add_collection(
                            mpl["LineCollection"](
                                lines,
                                colors=self.cfg.mesh_color,
                                linewidths=self.cfg.mesh_width,
                                zorder=zorder,
                            )
                        )
                        drawn += 1

            output_path.parent.mkdir(parents=True, exist_ok=True)
            fig.savefig(
                output_path,
                dpi=dpi,
                format=self.cfg.format,
                transparent=self.cfg.background.casefold() == "transparent",
            )
        finally:
            plt.close(fig)

        _LOGGER.info(
            "Rendered %d shape(s) to %s in %.2fs",
            drawn,
            output_path,
            time.perf_counter() - started,
        )
        return output_path

    def _draw_feature(
        self,
        ax: Any,
        mpl: Mapping[str, Any],
        choropleth: Choropleth,
        feature: Mapping[str, Any],
        color_for: Callable[[Any], str],
        zorder: float,
        *,
        selected: bool = False,
    ) -> bool:
        parts = list(projected_parts(feature, choropleth.state.projector))
        rings = [part.points for part in parts if part.kind == RING]
        points = [part.points[0] for part in parts if part.kind == POINT]
        if not rings and not points:
            return False
        color = color_for(choropleth.datum_for(feature))
        if selected:
            edge = self.cfg.selected_outline_color
            width = self.cfg.selected_outline_width
        else:
            edge = self.cfg.outline_color
            width = self.cfg.outline_width
        if rings:
            ax.add_patch(
                mpl["PathPatch"](
                    _rings_to_path(mpl["Path"], rings),
                    facecolor=color,
                    edgecolor=edge,
                    linewidth=width,
                    zorder=zorder,
                )
            )
        for x, y in points:
            ax.add_patch(
                mpl["Circle"](
                    (x, y),
                    radius=self.cfg.point_radius,
                    facecolor=color,
                    edgecolor=edge,
                    linewidth=width,
                    zorder=zorder,
                )
            )
        return True


def datum_color_scale(choropleth: Choropleth, cfg: RenderConfig) -> Callable[[Any], str]:
    """Map a datum to a hex color, normalized over every numeric keyed value.

    Missing datums and non-numeric values get `no_data_color`.
    """
    mpl = _require_matplotlib()
    value_field = choropleth.config.value_field
    values = [
        value
        for value in (
            _numeric(resolve_property(datum, value_field))
            for datum in choropleth.state.keyed_data.values()
        )
        if value is not None
    ]
    cmap = mpl["colormaps"][cfg.colormap]
    norm = mpl["Normalize"](vmin=min(values), vmax=max(values)) if values else None
    to_hex = mpl["to_hex"]

    def color_for(datum: Any) -> str:
        value = _numeric(resolve_property(datum, value_field)) if datum is not None else None
        if value is None or norm is None:
            return cfg.no_data_color
        return to_hex(cmap(norm(value)))

    return color_for


def has_colormap(name: str) -> bool:
    return name in _require_matplotlib()["colormaps"]


def _numeric(value: Any) -> float | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return float(value)


def _rings_to_path(path_factory: Any, rings: Sequence[Sequence[tuple[float, float]]]) -> Any:
    vertices: list[tuple[float, float]] = []
    codes: list[int] = []
    for ring in rings:
        vertices.extend(ring)
        vertices.append(ring[0])
        codes.append(path_factory.MOVETO)
        codes.extend([path_factory.LINETO] * (len(ring) - 1))
        codes.append(path_factory.CLOSEPOLY)
    return path_factory(vertices, codes)


def _apply_background(*, fig: Any, ax: Any, background: str) -> None:
    if background.casefold() == "transparent":
        fig.patch.set_facecolor("white")
        fig.patch.set_alpha(0.0)
        ax.set_facecolor((1.0, 1.0, 1.0, 0.0))
    else:
        fig.patch.set_facecolor(background)
        ax.set_facecolor(background)


@lru_cache(maxsize=1)
def _require_matplotlib() -> dict[str, Any]:
    try:
        import matplotlib

        matplotlib.use("Agg", force=False)
        import matplotlib.pyplot as plt
        from matplotlib import colormaps
        from matplotlib.collections import LineCollection
        from matplotlib.colors import Normalize, to_hex
        from matplotlib.patches import Circle, PathPatch
        from matplotlib.path import Path as MplPath
    except ImportError as exc:  # pragma: no cover
        raise RuntimeError("matplotlib is required for map rendering") from exc
    return {
        "pyplot": plt,
        "colormaps": colormaps,
        "LineCollection": LineCollection,
        "Normalize": Normalize,
        "to_hex": to_hex,
        "Circle": Circle,
        "PathPatch": PathPatch,
        "Path": MplPath,
    }
