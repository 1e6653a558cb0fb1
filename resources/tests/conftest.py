"""Pytest configuration for resources/tests.

Ensures the repository root is on sys.path so tests can import
helpers via absolute package path like `resources.tests.helpers`.
"""

import logging
import os
import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[2]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from resources.tests.helpers.workspace import make_workspace, write_note  # noqa: E402


@pytest.fixture(autouse=True)
def reset_enkidu_logger():
    """Undo logging configuration done by CLI invocations."""
    yield
    logger = logging.getLogger("enkidu")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.setLevel(logging.NOTSET)
    logger.propagate = True


@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch, tmp_path):
    """Keep ENKIDU_ variables and a stray .env file out of the settings."""
    for name in list(os.environ):
        if name.startswith("ENKIDU_"):
            monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)


@pytest.fixture
def workspace(tmp_path):
    """Workspace with notes, blog and daily roots and a small linked corpus.

    Scan order: alpha, beta, gamma (notes), post (blog), 2026-02-15 (daily).
    """
    root = make_workspace(tmp_path / "pkm")
    write_note(root, "notes/alpha.md", "Links to [[beta]] and [[Beta|again]].\nAlso [[missing]].\n")
    write_note(root, "notes/beta.md", "---\ntitle: Beta Note\n---\nBack to [[alpha]].\n")
    write_note(root, "notes/gamma.md", "No links here.\n")
    write_note(root, "blog/post.md", "See [[alpha]] and [[2026-02-15]] and [[gama]].\n")
    write_note(root, "daily/2026/02/15.md", "Daily with [[post]].\n")
    return root
