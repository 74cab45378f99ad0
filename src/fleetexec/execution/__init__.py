"""Command dispatch, status polling and result aggregation."""

from .platforms import (
    ADAPTERS,
    CommandTemplate,
    PlatformAdapter,
    get_adapter,
    render_template,
)
from .dispatcher import CommandDispatcher
from .poller import PollOutcome, StatusPoller
from .aggregator import DIAGNOSTIC_UNAVAILABLE, ResultAggregator

__all__ = [
    "ADAPTERS",
    "CommandTemplate",
    "PlatformAdapter",
    "get_adapter",
    "render_template",
    "CommandDispatcher",
    "PollOutcome",
    "StatusPoller",
    "DIAGNOSTIC_UNAVAILABLE",
    "ResultAggregator",
]
