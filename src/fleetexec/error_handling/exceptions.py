"""
Exception hierarchy for fleet command orchestration.

Only ConfigurationError and NoTargetsError abort a run before dispatch.
Every other error is scoped to one dispatch batch or one target.
"""

from typing import Optional


class FleetExecError(Exception):
    """Base class for all fleetexec errors."""


class ConfigurationError(FleetExecError):
    """Malformed or missing selector input, template or setting."""


class NoTargetsError(FleetExecError):
    """Target resolution produced zero eligible targets."""


class InventoryError(FleetExecError):
    """The inventory collaborator could not be queried."""


class DispatchError(FleetExecError):
    """A batch command submission failed.

    Attributes:
        platform: Platform group the submission was for, if known
    """

    def __init__(self, message: str, platform: Optional[str] = None):
        super().__init__(message)
        self.platform = platform


class PollQueryError(FleetExecError):
    """A single status query failed. Retried on the next poll tick."""


class DiagnosticUnavailableError(FleetExecError):
    """Diagnostic output for a target could not be fetched."""


class UnknownStatusError(FleetExecError):
    """The provider reported an invocation status we do not recognise.

    Attributes:
        raw_status: The status string as reported
    """

    def __init__(self, raw_status: str):
        super().__init__(f"Unrecognized invocation status: '{raw_status}'")
        self.raw_status = raw_status
