"""Pytest configuration and shared fixtures."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

import pytest
from hypothesis import settings

from support import FakeRemover, FakeVcsReader, TreeSpec, build_tree

settings.register_profile("thorough", max_examples=500, deadline=None)
settings.register_profile("default", deadline=None)
settings.load_profile("default")


@pytest.fixture
def tree(tmp_path: Path) -> Callable[[TreeSpec], Path]:
    """Return a builder creating a directory tree under ``tmp_path``."""

    def build(spec: TreeSpec) -> Path:
        return build_tree(tmp_path, spec)

    return build


@pytest.fixture
def vcs_reader() -> FakeVcsReader:
    """VCS reader that knows no repositories."""
    return FakeVcsReader()


@pytest.fixture
def remover() -> FakeRemover:
    """Removal double that deletes for real."""
    return FakeRemover()
