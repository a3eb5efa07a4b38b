from __future__ import annotations

import pytest

from choropleth.errors import InvalidArgumentError
from choropleth.interaction import POINTER_EVENTS, FeatureIndex, PointerHandlers, feature_key


def _square(x0: float, y0: float, size: float, z: bool = False) -> list[list[list[float]]]:
    ring = [[x0, y0], [x0 + size, y0], [x0 + size, y0 + size], [x0, y0 + size], [x0, y0]]
    if z:
        ring = [[x, y, 1.0] for x, y in ring]
    return [ring]


COLLECTION = {
    "type": "FeatureCollection",
    "features": [
        {"type": "Feature", "id": "big", "properties": {}, "geometry": {"type": "Polygon", "coordinates": _square(0, 0, 10, z=True)}},
        {"type": "Feature", "id": "small", "properties": {}, "geometry": {"type": "Polygon", "coordinates": _square(2, 2, 2)}},
        {"type": "Feature", "id": "empty", "properties": {}, "geometry": None},
    ],
}


def test_locate_prefers_collection_order() -> None:
    index = FeatureIndex(COLLECTION)
    assert len(index) == 2
    assert index.locate(3, 3)["id"] == "big"
    assert index.locate(8, 8)["id"] == "big"
    assert index.locate(20, 20) is None


def test_empty_index_locates_nothing() -> None:
    assert FeatureIndex({"type": "FeatureCollection", "features": []}).locate(0, 0) is None


def test_dispatch_calls_matching_handler() -> None:
    seen: list[tuple[str, object, object]] = []
    handlers = PointerHandlers(
        on_mouse_move=lambda event, key: seen.append(("move", event, key)),
        on_mouse_out=lambda event, key: seen.append(("out", event, key)),
    )
    assert handlers.dispatch("mouse_move", {"x": 1}, "FR") is True
    assert handlers.dispatch("click", None, "FR") is False
    assert handlers.dispatch("mouse_out", None, "DE") is True
    assert seen == [("move", {"x": 1}, "FR"), ("out", None, "DE")]


def test_every_pointer_event_has_a_slot() -> None:
    handlers = PointerHandlers()
    for kind in POINTER_EVENTS:
        assert handlers.handler_for(kind) is None


def test_unknown_pointer_event_rejected() -> None:
    with pytest.raises(InvalidArgumentError):
        PointerHandlers().dispatch("double_click", None, None)


def test_feature_key_uses_accessor() -> None:
    feature = {"id": 1, "properties": {"iso": "FRA"}}
    assert feature_key(feature, "id") == 1
    assert feature_key(feature, "properties.iso") == "FRA"
