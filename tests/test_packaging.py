from pathlib import Path

import pytest

tomllib = pytest.importorskip("tomllib")

PYPROJECT = Path(__file__).resolve().parent.parent / "pyproject.toml"


def test_long_description_is_not_the_design_notes():
    project = tomllib.loads(PYPROJECT.read_text(encoding="utf-8"))["project"]
    readme = project.get("readme")
    if readme is not None:
        assert readme != "DESIGN.md"
        assert (PYPROJECT.parent / readme).is_file()


def test_console_script_points_at_cli():
    project = tomllib.loads(PYPROJECT.read_text(encoding="utf-8"))["project"]
    assert project["scripts"]["news-ranking"] == "news_ranking.cli:main"
