"""
Error handling utilities for fleetexec.

Provides the exception hierarchy, input validators, AWS error mapping,
and SSM invocation hint extraction.
"""

from .exceptions import (
    FleetExecError,
    ConfigurationError,
    NoTargetsError,
    InventoryError,
    DispatchError,
    PollQueryError,
    DiagnosticUnavailableError,
    UnknownStatusError,
)
from .validators import (
    validate_instance_id,
    validate_tag_filter,
    validate_poll_settings,
)
from .aws_handlers import (
    aws_error_code,
    is_retryable_aws_error,
    map_aws_error,
)
from .ssm_helpers import (
    extract_invocation_hint,
    tail_output,
)

__all__ = [
    # Exceptions
    "FleetExecError",
    "ConfigurationError",
    "NoTargetsError",
    "InventoryError",
    "DispatchError",
    "PollQueryError",
    "DiagnosticUnavailableError",
    "UnknownStatusError",
    # Validators
    "validate_instance_id",
    "validate_tag_filter",
    "validate_poll_settings",
    # AWS handlers
    "aws_error_code",
    "is_retryable_aws_error",
    "map_aws_error",
    # SSM helpers
    "extract_invocation_hint",
    "tail_output",
]
