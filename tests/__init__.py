"""Tests for fleetexec.

Test Structure:
    tests/
    ├── conftest.py          # Shared pytest fixtures
    ├── unit/                # Unit tests (no external deps)
    │   ├── test_config.py
    │   ├── test_selectors.py
    │   ├── test_poller.py
    │   ├── test_orchestrator.py
    │   └── ...
    ├── mocks/               # Mock implementations
    │   └── mock_fleet.py
    └── schemas/             # JSON schemas for report and tool output

Usage:
    # Run all tests
    pytest

    # Run only unit tests
    pytest -m unit

    # Run with verbose output
    pytest -v
"""
