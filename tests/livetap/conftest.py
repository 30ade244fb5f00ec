"""Shared pytest fixtures for livetap tests."""

from __future__ import annotations

import sys
from pathlib import Path

# Add src and the repo root to sys.path for imports
_repo_root = Path(__file__).parent.parent.parent
for _path in (_repo_root / "src", _repo_root):
    if str(_path.resolve()) not in sys.path:
        sys.path.insert(0, str(_path.resolve()))

import pytest

from livetap.models.config import DeviceConfig
from tests.livetap.mocks import FakeClock, make_device


@pytest.fixture
def device() -> DeviceConfig:
    return make_device()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()
