from __future__ import annotations

import json
from pathlib import Path

import pytest

from choropleth.cli import main


@pytest.fixture
def config_path(project_dir: Path) -> str:
    return str(project_dir / "choropleth.yaml")


def test_validate_command(config_path: str) -> None:
    assert main(["validate", "--config", config_path]) == 0


def test_inspect_writes_summary(project_dir: Path, config_path: str) -> None:
    assert main(["inspect", "--config", config_path]) == 0
    summary = json.loads((project_dir / "out" / "inspect.json").read_text(encoding="utf-8"))
    assert summary["bounds"] == [[0.0, 0.0], [10.0, 10.0]]
    assert summary["viewport"]["scale"] == 30
    assert summary["keyed_data"] == 2
    regions, borders = summary["layers"]
    assert regions["features"] == 2 and regions["with_data"] == 2
    assert borders["lines"] == 1


def test_inspect_dumps_geometry_cache(project_dir: Path, config_path: str) -> None:
    dump = project_dir / "cache.json"
    assert main(["inspect", "--config", config_path, "--geometry", str(dump)]) == 0
    cache = json.loads(dump.read_text(encoding="utf-8"))
    assert set(cache) == {"feature", "mesh"}
    assert len(cache["feature"]["regions"]["features"]) == 2
    first = cache["mesh"]["borders"]["coordinates"][0][0]
    assert first == [5.0, 0.0, None]


def test_inspect_with_zoom_and_pan(project_dir: Path, config_path: str) -> None:
    out = project_dir / "zoomed.json"
    assert main(["inspect", "--config", config_path, "--zoom", "2", "--pan", "10", "-5", "--output", str(out)]) == 0
    viewport = json.loads(out.read_text(encoding="utf-8"))["viewport"]
    assert viewport["scale"] == 60
    assert viewport["scale_factor"] == 2
    assert viewport["translate"] == [-140.0, -155.0]


def test_export_svg(project_dir: Path, config_path: str) -> None:
    assert main(["export-svg", "--config", config_path]) == 0
    svg = (project_dir / "out" / "choropleth.svg").read_text(encoding="utf-8")
    assert svg.startswith("<svg ")
    assert '<path data-key="L" fill="#440154" d="M150,0L150,300L0,300L0,0Z"/>' in svg
    assert '<path data-key="R" fill="#fde725" d="M150,0L300,0L300,300L150,300Z"/>' in svg
    assert '<path d="M150,0L150,300"/>' in svg


def test_render_preview(project_dir: Path, config_path: str) -> None:
    out = project_dir / "preview.svg"
    assert main(["render", "--config", config_path, "--output", str(out)]) == 0
    assert out.exists() and out.stat().st_size > 0


def test_recompute_failure_exits_nonzero(project_dir: Path) -> None:
    path = project_dir / "choropleth.yaml"
    path.write_text(path.read_text(encoding="utf-8").replace("    object: regions\n", "    object: nope\n"), encoding="utf-8")
    assert main(["inspect", "--config", str(path)]) == 1
    assert main(["validate", "--config", str(path)]) == 1


def test_selected_locations_drawn_last(project_dir: Path) -> None:
    path = project_dir / "choropleth.yaml"
    path.write_text(
        path.read_text(encoding="utf-8").replace(
            "container:", "keys:\n  selected_locations: [L]\ncontainer:"
        ),
        encoding="utf-8",
    )
    assert main(["export-svg", "--config", str(path)]) == 0
    svg = (project_dir / "out" / "choropleth.svg").read_text(encoding="utf-8")
    left = (
        '<path class="selected" data-key="L" fill="#440154" stroke="#000000" '
        'stroke-width="1.5" d="M150,0L150,300L0,300L0,0Z"/>'
    )
    right = '<path data-key="R" fill="#fde725" d="M150,0L300,0L300,300L150,300Z"/>'
    assert left in svg and right in svg
    assert svg.index(right) < svg.index(left)

    assert main(["inspect", "--config", str(path)]) == 0
    summary = json.loads((project_dir / "out" / "inspect.json").read_text(encoding="utf-8"))
    assert summary["layers"][0]["selected"] == 1

    preview = project_dir / "selected.svg"
    assert main(["render", "--config", str(path), "--output", str(preview)]) == 0
    assert preview.stat().st_size > 0
