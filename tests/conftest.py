"""Shared fixtures for the bundle tool tests."""

import pathlib
from datetime import date

import pytest

from pagebundle.bundle import PageBundle


@pytest.fixture
def site(tmp_path: pathlib.Path) -> pathlib.Path:
    """An empty Hugo site with a content root and a static dir."""
    (tmp_path / "content" / "posts").mkdir(parents=True)
    (tmp_path / "static").mkdir()
    return tmp_path


@pytest.fixture
def content_root(site: pathlib.Path) -> pathlib.Path:
    return site / "content" / "posts"


@pytest.fixture
def make_bundle(content_root):
    """Write a bundle by hand: entry body plus a list of asset files."""

    def _make(name="2025-11-01-my-post-title", body="", assets=(), title="My Post Title"):
        path = content_root / name
        (path / "images").mkdir(parents=True)
        (path / "index.md").write_text(
            f"---\ntitle: {title}\ndate: 2025-11-01\ndraft: false\ntags: []\n---\n\n{body}",
            encoding="utf-8",
        )
        for asset in assets:
            target = path / asset
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(b"\x89PNG fake")
        return PageBundle(path)

    return _make


@pytest.fixture
def nov_first() -> date:
    return date(2025, 11, 1)
