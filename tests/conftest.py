"""Pytest configuration and fixtures."""

import sys
from pathlib import Path

import pytest

# Ensure src is on path for tests
root = Path(__file__).resolve().parent.parent
src = root / "src"
if str(src) not in sys.path:
    sys.path.insert(0, str(src))

from smart_highlights.config import HighlightConfig  # noqa: E402
from smart_highlights.engine import HighlightEngine  # noqa: E402
from smart_highlights.workspace import HeadlessHost, LocalFileSystem  # noqa: E402


@pytest.fixture
def config():
    return HighlightConfig(debug_logging=False)


@pytest.fixture
def host(config):
    return HeadlessHost(config)


@pytest.fixture
def engine(host, config):
    return HighlightEngine(host, LocalFileSystem(), config)


@pytest.fixture
def workspace(tmp_path):
    """A small project tree on disk.

    project/
        a.txt        cat, cat
        b.txt        cat, cat, cat
        notes.md     cat
        sub/c.txt    cat
        node_modules/lib.txt  cat
    """
    project = tmp_path / "project"
    (project / "sub").mkdir(parents=True)
    (project / "node_modules").mkdir()
    (project / "a.txt").write_text("cat one\ncat two\n", encoding="utf-8")
    (project / "b.txt").write_text("cat cat cat\n", encoding="utf-8")
    (project / "notes.md").write_text("a cat here\n", encoding="utf-8")
    (project / "sub" / "c.txt").write_text("last cat\n", encoding="utf-8")
    (project / "node_modules" / "lib.txt").write_text("cat\n", encoding="utf-8")
    return project
