"""
Pytest configuration and fixtures for automod tests.
"""

import sys
from pathlib import Path

import pytest

# Add src directory to path so imports work
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

# Shared fakes live next to the tests
sys.path.insert(0, str(Path(__file__).parent))

from fakes import (  # noqa: E402
    FakeAuditSink,
    FakeBackend,
    FakeHistory,
    FakeJoinCounter,
    FakeNotifier,
    ManualClock,
)


@pytest.fixture()
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture()
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture()
def history() -> FakeHistory:
    return FakeHistory()


@pytest.fixture()
def join_counter() -> FakeJoinCounter:
    return FakeJoinCounter()


@pytest.fixture()
def audit_sink() -> FakeAuditSink:
    return FakeAuditSink()


@pytest.fixture()
def notifier() -> FakeNotifier:
    return FakeNotifier()
