"""Shared pytest fixtures for fleetexec tests.

All tests run against the in-memory backend in tests/mocks or against
botocore stubs; nothing talks to AWS.
"""

from pathlib import Path
from typing import Generator

import pytest

from fleetexec.backends import reset_backend
from fleetexec.config import FleetConfig
from fleetexec.execution import StatusPoller
from fleetexec.models import Platform

from tests.mocks import FakeClock, FakeFleetBackend, make_target


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests (no external dependencies)")
    config.addinivalue_line("markers", "slow: Long-running tests")


@pytest.fixture
def clean_env(monkeypatch):
    """Provide a clean environment without fleetexec or AWS config vars.

    Removes environment variables that might interfere with config tests.
    """
    env_vars = [
        "FLEETEXEC_CONFIG_PATH",
        "FLEETEXEC_REGION",
        "FLEETEXEC_POLL_INTERVAL",
        "FLEETEXEC_DEADLINE",
        "FLEETEXEC_VERIFY_DEADLINE",
        "FLEETEXEC_UNKNOWN_PLATFORM",
        "FLEETEXEC_MAX_BATCH",
        "FLEETEXEC_DIAGNOSTIC_CONCURRENCY",
        "FLEETEXEC_LOG_LEVEL",
        "AWS_REGION",
        "AWS_PROFILE",
    ]
    for var in env_vars:
        monkeypatch.delenv(var, raising=False)


@pytest.fixture
def fake_clock() -> FakeClock:
    """Provide a clock whose sleeps advance time instantly."""
    return FakeClock()


@pytest.fixture
def mixed_fleet() -> FakeFleetBackend:
    """Provide a backend with two Linux and two Windows running targets.

    i-0000000a and i-0000000b are Linux, i-0000000c and i-0000000d are
    Windows; all are tagged Environment=Production.
    """
    targets = [
        make_target("i-0000000a", Platform.LINUX, name="web-1"),
        make_target("i-0000000b", Platform.LINUX, name="web-2"),
        make_target("i-0000000c", Platform.WINDOWS, name="win-1"),
        make_target("i-0000000d", Platform.WINDOWS, name="win-2"),
    ]
    tags = {t.target_id: {"Environment": "Production"} for t in targets}
    return FakeFleetBackend(targets, tags=tags)


@pytest.fixture
def fast_config() -> FleetConfig:
    """Provide a config with short intervals for orchestration tests."""
    return FleetConfig(poll_interval=5.0, deadline=60.0, verify_deadline=30.0)


@pytest.fixture
def fake_poller(fake_clock: FakeClock):
    """Build StatusPollers bound to the fake clock."""
    def factory(backend):
        return StatusPoller(backend, clock=fake_clock, sleep=fake_clock.sleep)
    return factory


@pytest.fixture
def target_file(tmp_path: Path):
    """Write a target list file and return its path."""
    def write(content: str) -> str:
        path = tmp_path / "instances.txt"
        path.write_text(content)
        return str(path)
    return write


# Autouse fixture for test isolation
@pytest.fixture(autouse=True)
def isolate_backend(monkeypatch) -> Generator[None, None, None]:
    """Ensure tests never reuse a global backend or real AWS settings."""
    monkeypatch.delenv("FLEETEXEC_CONFIG_PATH", raising=False)
    monkeypatch.setenv("AWS_ACCESS_KEY_ID", "testing")
    monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "testing")
    reset_backend()

    yield

    reset_backend()
