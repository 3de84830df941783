"""Shared fixtures for layout-switcher tests."""

from datetime import UTC
from datetime import datetime

import pytest

from switch_engine.clock import ManualClock

from .helpers import FakeInputSources


@pytest.fixture
def clock():
    return ManualClock(datetime(2026, 1, 5, 9, 0, tzinfo=UTC))


@pytest.fixture
def sources():
    return FakeInputSources()
