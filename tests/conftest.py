"""Shared fixtures."""

from datetime import datetime
from typing import Callable

import pytest

from quotawake.core.config import MonitorConfig

from tests.helpers import NOW, FakeTimer


@pytest.fixture
def config() -> MonitorConfig:
    return MonitorConfig()


@pytest.fixture
def clock() -> Callable[[], datetime]:
    return lambda: NOW


@pytest.fixture
def fake_timer() -> FakeTimer:
    return FakeTimer()
