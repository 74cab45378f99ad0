"""Mock implementations for fleetexec tests.

Provides mock objects for:
- The inventory/remote-execution backend
- A monotonic clock with instant sleeps
"""

from .mock_fleet import FakeClock, FakeFleetBackend, SentCommand, make_target

__all__ = ["FakeClock", "FakeFleetBackend", "SentCommand", "make_target"]
