"""
Inventory/execution backends.

The orchestrator talks to a FleetBackend. SSMBackend is the AWS
implementation.
"""

from typing import Optional

from .base import FleetBackend, ManagedNode
from .ssm_backend import SSMBackend
from ..config import FleetConfig, load_config

# Global backend instance
_backend: Optional[FleetBackend] = None


def get_backend(config: Optional[FleetConfig] = None) -> FleetBackend:
    """Get or create the global backend instance."""
    global _backend
    if _backend is None:
        config = config or load_config()
        _backend = SSMBackend(region=config.region, profile=config.profile)
    return _backend


def set_backend(backend: Optional[FleetBackend]) -> None:
    """Replace the global backend instance."""
    global _backend
    _backend = backend


def reset_backend() -> None:
    """Reset the global backend instance."""
    set_backend(None)


__all__ = [
    "FleetBackend",
    "ManagedNode",
    "SSMBackend",
    "get_backend",
    "set_backend",
    "reset_backend",
]
