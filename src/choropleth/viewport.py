"""Viewport transform (scale/translate arithmetic) and the pan/zoom controller."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import Sequence

from .errors import DegenerateBoundsError, InvalidArgumentError
from .models import Bounds, ViewportState


_LOGGER = logging.getLogger("choropleth.viewport")

Point = tuple[float, float]

DEFAULT_ZOOM_STEP = 1.1


@dataclass(frozen=True, slots=True)
class PathProjector:
    """Topology space to screen space, with a zoom-dependent area cutoff.

    Positions carrying a third value `z` (effective area from
    presimplification) are only emitted when `z >= 1 / scale**2`, so detail
    smaller than a pixel is dropped and comes back on zoom-in.
    """

    scale: float
    translate: Point

    @property
    def area_threshold(self) -> float:
        return 1.0 / self.scale / self.scale

    def project(self, x: float, y: float) -> Point:
        return (x * self.scale + self.translate[0], y * self.scale + self.translate[1])

    def invert(self, screen_x: float, screen_y: float) -> Point:
        return (
            (screen_x - self.translate[0]) / self.scale,
            (screen_y - self.translate[1]) / self.scale,
        )

    def is_visible(self, z: float) -> bool:
        return z >= self.area_threshold

    def stream_point(self, position: Sequence[float]) -> Point | None:
        if len(position) > 2 and not self.is_visible(position[2]):
            return None
        return self.project(position[0], position[1])

    def __call__(self, x: float, y: float) -> Point:
        return self.project(x, y)


def derive_projector(scale: float, translate: Sequence[float]) -> PathProjector:
    if not scale > 0 or not math.isfinite(scale):
        raise InvalidArgumentError(f"Projector scale must be a positive finite number, got {scale!r}")
    return PathProjector(scale=float(scale), translate=(float(translate[0]), float(translate[1])))


def _require_dimensions(width: float, height: float) -> None:
    if not width > 0 or not height > 0:
        raise InvalidArgumentError(
            f"Container dimensions must be positive, got {width!r}x{height!r}"
        )


def calc_scale(width: float, height: float, bounds: Bounds) -> float:
    """Largest scale at which `bounds` fits inside the container."""
    _require_dimensions(width, height)
    if bounds.width <= 0 or bounds.height <= 0:
        raise DegenerateBoundsError(
            f"Bounds {bounds.as_pairs()} have zero width or height; no scale can be derived"
        )
    return min(width / bounds.width, height / bounds.height)


def calc_translate(
    width: float,
    height: float,
    scale: float,
    bounds: Bounds | None = None,
    center: Sequence[float] | None = None,
) -> Point:
    """Translate that centers `bounds`, or keeps `center` at the container center."""
    if bounds is not None and center is None:
        return (
            (width - scale * (bounds.min_x + bounds.max_x)) / 2.0,
            (height - scale * (bounds.min_y + bounds.max_y)) / 2.0,
        )
    if center is not None and bounds is None:
        return (width / 2.0 - center[0] * scale, height / 2.0 - center[1] * scale)
    raise InvalidArgumentError("calc_translate requires exactly one of bounds or center")


def calc_center_point(
    width: float,
    height: float,
    scale: float,
    translate: Sequence[float],
) -> Point:
    """Topology point currently displayed at the container's visual center."""
    return ((width / 2.0 - translate[0]) / scale, (height / 2.0 - translate[1]) / scale)


# -- pure viewport transitions ------------------------------------------------


def fit_viewport(width: float, height: float, bounds: Bounds) -> ViewportState:
    scale_base = calc_scale(width, height, bounds)
    return ViewportState(
        scale=scale_base,
        scale_base=scale_base,
        scale_factor=1.0,
        translate=calc_translate(width, height, scale_base, bounds=bounds),
    )


def resize_viewport(
    state: ViewportState,
    previous_size: tuple[float, float],
    size: tuple[float, float],
    bounds: Bounds,
) -> ViewportState:
    """Refit the base scale to a new container, keeping zoom and visible center."""
    center = calc_center_point(previous_size[0], previous_size[1], state.scale, state.translate)
    scale_base = calc_scale(size[0], size[1], bounds)
    scale = scale_base * state.scale_factor
    return ViewportState(
        scale=scale,
        scale_base=scale_base,
        scale_factor=state.scale_factor,
        translate=calc_translate(size[0], size[1], scale, center=center),
    )


def zoom_viewport(
    state: ViewportState,
    size: tuple[float, float],
    target_scale: float,
) -> ViewportState:
    if not target_scale > 0 or not math.isfinite(target_scale):
        raise InvalidArgumentError(f"Zoom target scale must be positive, got {target_scale!r}")
    center = calc_center_point(size[0], size[1], state.scale, state.translate)
    return ViewportState(
        scale=target_scale,
        scale_base=state.scale_base,
        scale_factor=target_scale / state.scale_base,
        translate=calc_translate(size[0], size[1], target_scale, center=center),
    )


def reset_viewport(state: ViewportState, size: tuple[float, float], bounds: Bounds) -> ViewportState:
    return ViewportState(
        scale=state.scale_base,
        scale_base=state.scale_base,
        scale_factor=1.0,
        translate=calc_translate(size[0], size[1], state.scale_base, bounds=bounds),
    )


@dataclass(frozen=True, slots=True)
class GestureTick:
    """One pointer/wheel input delta.

    `scale_delta` multiplies the current scale about `anchor` (a screen
    point kept fixed; the container center when omitted), then
    `translate_delta` pans in screen pixels.
    """

    scale_delta: float = 1.0
    translate_delta: Point = (0.0, 0.0)
    anchor: Point | None = None


def apply_gesture(
    state: ViewportState,
    size: tuple[float, float],
    tick: GestureTick,
) -> ViewportState:
    if not tick.scale_delta > 0 or not math.isfinite(tick.scale_delta):
        raise InvalidArgumentError(f"Gesture scale delta must be positive, got {tick.scale_delta!r}")
    anchor = tick.anchor if tick.anchor is not None else (size[0] / 2.0, size[1] / 2.0)
    scale = state.scale * tick.scale_delta
    fixed_x = (anchor[0] - state.translate[0]) / state.scale
    fixed_y = (anchor[1] - state.translate[1]) / state.scale
    translate = (
        anchor[0] - fixed_x * scale + tick.translate_delta[0],
        anchor[1] - fixed_y * scale + tick.translate_delta[1],
    )
    return ViewportState(
        scale=scale,
        scale_base=state.scale_base,
        scale_factor=scale / state.scale_base,
        translate=translate,
    )


# -- controller ---------------------------------------------------------------


class ViewportMode(str, Enum):
    IDLE = "idle"
    GESTURE = "gesture"
    TRANSITION = "transition"


class ViewportController:
    """Sole writer of the viewport state for gestures and programmatic zoom.

    Calls are serialized by construction: each one runs to completion
    synchronously, and a programmatic zoom issued mid-gesture ends the
    gesture first.
    """

    def __init__(
        self,
        viewport: ViewportState,
        *,
        width: float,
        height: float,
        bounds: Bounds,
        zoom_step: float = DEFAULT_ZOOM_STEP,
    ) -> None:
        if not zoom_step > 0:
            raise InvalidArgumentError(f"zoom_step must be positive, got {zoom_step!r}")
        self._viewport = viewport
        self._size = (float(width), float(height))
        self._bounds = bounds
        self.zoom_step = zoom_step
        self._mode = ViewportMode.IDLE

    @property
    def viewport(self) -> ViewportState:
        return self._viewport

    @property
    def mode(self) -> ViewportMode:
        return self._mode

    def sync(
        self,
        viewport: ViewportState,
        *,
        width: float,
        height: float,
        bounds: Bounds,
        zoom_step: float | None = None,
    ) -> None:
        """Adopt a viewport recomputed from a configuration change."""
        self._viewport = viewport
        self._size = (float(width), float(height))
        self._bounds = bounds
        if zoom_step is not None:
            self.zoom_step = zoom_step

    def begin_gesture(self) -> None:
        self._mode = ViewportMode.GESTURE

    def end_gesture(self) -> None:
        if self._mode is ViewportMode.GESTURE:
            self._mode = ViewportMode.IDLE

    def gesture_tick(self, tick: GestureTick) -> ViewportState:
        implicit = self._mode is not ViewportMode.GESTURE
        if implicit:
            self.begin_gesture()
        try:
            self._viewport = apply_gesture(self._viewport, self._size, tick)
        finally:
            if implicit:
                self.end_gesture()
        return self._viewport

    def zoom_to(self, target_scale: float) -> ViewportState:
        return self._transition(lambda: zoom_viewport(self._viewport, self._size, target_scale))

    def zoom_in(self) -> ViewportState:
        return self.zoom_to(self._viewport.scale * self.zoom_step)

    def zoom_out(self) -> ViewportState:
        return self.zoom_to(self._viewport.scale / self.zoom_step)

    def zoom_reset(self) -> ViewportState:
        return self._transition(lambda: reset_viewport(self._viewport, self._size, self._bounds))

    def _transition(self, compute) -> ViewportState:
        if self._mode is ViewportMode.GESTURE:
            _LOGGER.debug("Programmatic zoom supersedes in-progress gesture")
        self._mode = ViewportMode.TRANSITION
        try:
            viewport = compute()
        finally:
            self._mode = ViewportMode.IDLE
        _LOGGER.debug(
            "Zoom transition: scale %.6g -> %.6g (factor %.4g)",
            self._viewport.scale,
            viewport.scale,
            viewport.scale_factor,
        )
        self._viewport = viewport
        return viewport
