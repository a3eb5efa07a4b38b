"""Error types raised by the geometry and viewport engine."""

from __future__ import annotations


class ChoroplethError(ValueError):
    """Base class for failures local to one recompute cycle."""


class NoGeometryError(ChoroplethError):
    """Raised when bounds are requested over zero geometry collections."""


class DegenerateBoundsError(ChoroplethError):
    """Raised when bounds have zero width or height and no scale can be derived."""


class InvalidArgumentError(ChoroplethError):
    """Raised for malformed calls, e.g. `calc_translate` with both bounds and center."""


class DuplicateKeyError(ChoroplethError):
    """Raised by strict keying when two datums resolve to the same key."""


class UnknownObjectError(ChoroplethError):
    """Raised when a layer names an object the topology does not contain."""
