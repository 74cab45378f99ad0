"""
Core data model for fleet command orchestration.

All values are created fresh per run and are immutable once built.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterable, Iterator, Mapping, Optional

from .error_handling import NoTargetsError, UnknownStatusError


class Platform(Enum):
    """Target platform families."""
    LINUX = "linux"
    WINDOWS = "windows"
    UNKNOWN = "unknown"


class LifecycleState(Enum):
    """Target lifecycle states. Only running targets are eligible."""
    RUNNING = "running"
    OTHER = "other"

    @classmethod
    def from_raw(cls, raw: Optional[str]) -> "LifecycleState":
        return cls.RUNNING if (raw or "").lower() == "running" else cls.OTHER


class InvocationStatus(Enum):
    """Per-target command execution status."""
    PENDING = "Pending"
    IN_PROGRESS = "InProgress"
    SUCCESS = "Success"
    FAILED = "Failed"
    TIMED_OUT = "TimedOut"
    CANCELLED = "Cancelled"

    @property
    def is_terminal(self) -> bool:
        return self not in (InvocationStatus.PENDING, InvocationStatus.IN_PROGRESS)


TERMINAL_STATUSES = tuple(s for s in InvocationStatus if s.is_terminal)

# Provider status strings that are transitional but not in our model
_TRANSITIONAL = {
    "Delayed": InvocationStatus.IN_PROGRESS,
    "Cancelling": InvocationStatus.IN_PROGRESS,
}


def decode_status(raw: str) -> InvocationStatus:
    """Decode a provider status string.

    Raises:
        UnknownStatusError: If the value is not a known status
    """
    if raw in _TRANSITIONAL:
        return _TRANSITIONAL[raw]
    try:
        return InvocationStatus(raw)
    except ValueError:
        raise UnknownStatusError(raw) from None


@dataclass(frozen=True)
class Target:
    """Read-only snapshot of a managed machine.

    Attributes:
        target_id: Provider identifier (e.g., 'i-0123456789abcdef0')
        platform: Platform family reported by the inventory
        state: Lifecycle state
        name: Display name, if tagged
        state_name: Raw provider state (e.g., 'stopped')
    """
    target_id: str
    platform: Platform = Platform.UNKNOWN
    state: LifecycleState = LifecycleState.OTHER
    name: Optional[str] = None
    state_name: Optional[str] = None

    @classmethod
    def placeholder(cls, target_id: str) -> "Target":
        """Build an unclassified snapshot for an explicitly selected ID."""
        return cls(target_id=target_id)

    @property
    def eligible(self) -> bool:
        return self.state is LifecycleState.RUNNING

    @property
    def label(self) -> str:
        return f"{self.target_id} ({self.name})" if self.name else self.target_id

    def to_dict(self) -> dict[str, Any]:
        return {
            "target_id": self.target_id,
            "name": self.name,
            "platform": self.platform.value,
            "state": self.state_name or self.state.value,
        }


class ResolvedTargetSet:
    """Deduplicated, ordered, non-empty sequence of targets.

    Order is discovery order; uniqueness is by target ID and the first
    occurrence wins.

    Raises:
        NoTargetsError: If constructed from zero targets
    """

    __slots__ = ("_targets",)

    def __init__(self, targets: Iterable[Target]):
        seen: dict[str, Target] = {}
        for target in targets:
            seen.setdefault(target.target_id, target)
        if not seen:
            raise NoTargetsError("Target resolution produced zero targets")
        self._targets = tuple(seen.values())

    def __iter__(self) -> Iterator[Target]:
        return iter(self._targets)

    def __len__(self) -> int:
        return len(self._targets)

    def __contains__(self, target_id: object) -> bool:
        return any(t.target_id == target_id for t in self._targets)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ResolvedTargetSet):
            return NotImplemented
        return self._targets == other._targets

    def __hash__(self) -> int:
        return hash(self._targets)

    def __repr__(self) -> str:
        return f"ResolvedTargetSet({list(self.ids)!r})"

    @property
    def ids(self) -> tuple[str, ...]:
        return tuple(t.target_id for t in self._targets)

    @property
    def targets(self) -> tuple[Target, ...]:
        return self._targets

    def batches(self, size: int) -> list["ResolvedTargetSet"]:
        """Split into consecutive sets of at most size targets."""
        return [
            ResolvedTargetSet(self._targets[i:i + size])
            for i in range(0, len(self._targets), size)
        ]


class ExclusionReason(Enum):
    """Why a resolved target was never dispatched to."""
    NOT_FOUND = "not_found"
    NOT_RUNNING = "not_running"
    UNKNOWN_PLATFORM = "unknown_platform"
    NO_COMMAND = "no_command"
    DISPATCH_FAILED = "dispatch_failed"


@dataclass(frozen=True)
class Exclusion:
    """A target kept out of dispatch, reported as Failed."""
    target: Target
    reason: ExclusionReason
    diagnostic: str


@dataclass(frozen=True)
class PlatformGroups:
    """Partition of a resolved target set by platform.

    Every input target is in exactly one group or in ``excluded``.
    Only non-empty groups are present.
    """
    groups: Mapping[Platform, ResolvedTargetSet]
    excluded: tuple[Exclusion, ...] = ()

    def all_ids(self) -> list[str]:
        ids = [tid for group in self.groups.values() for tid in group.ids]
        ids.extend(e.target.target_id for e in self.excluded)
        return ids

    def get(self, platform: Platform) -> Optional[ResolvedTargetSet]:
        return self.groups.get(platform)


@dataclass(frozen=True)
class CommandSpec:
    """One command submission for one platform.

    Attributes:
        platform: Platform the command dialect is written for
        document_name: SSM document to run
        parameters: Document parameters; all values are strings
        inline_payload: Script body sent as the 'commands' parameter
        comment: Free-form comment recorded with the command
    """
    platform: Platform
    document_name: str
    parameters: Mapping[str, str] = field(default_factory=dict)
    inline_payload: Optional[str] = None
    comment: Optional[str] = None

    def wire_parameters(self) -> dict[str, list[str]]:
        """Parameters in provider wire format (every value a one-element list)."""
        wire = {name: [value] for name, value in self.parameters.items()}
        if self.inline_payload is not None:
            wire["commands"] = [self.inline_payload]
        return wire

    def loggable_parameters(self) -> dict[str, str]:
        params = dict(self.parameters)
        if self.inline_payload is not None:
            params["commands"] = self.inline_payload
        return params


@dataclass(frozen=True)
class CommandHandle:
    """Opaque identity of one dispatch to one batch of targets."""
    command_id: str
    platform: Platform
    target_ids: tuple[str, ...]


@dataclass(frozen=True)
class InvocationOutput:
    """Output of one command on one target."""
    stdout: str = ""
    stderr: str = ""
    status_details: Optional[str] = None
    response_code: Optional[int] = None


@dataclass(frozen=True)
class TargetOutcome:
    """Terminal outcome of one target before aggregation.

    Attributes:
        target: The target
        status: Terminal invocation status
        handle: Command handle, None when the target was never dispatched
        diagnostic: Diagnostic already known (skips fetching)
        reason: Exclusion reason, when the target was never dispatched
        verified: Result of the verification probe, if one ran
    """
    target: Target
    status: InvocationStatus
    handle: Optional[CommandHandle] = None
    diagnostic: Optional[str] = None
    reason: Optional[ExclusionReason] = None
    verified: Optional[bool] = None


@dataclass(frozen=True)
class ReportEntry:
    """Final per-target line of a run report."""
    target: Target
    status: InvocationStatus
    diagnostic: Optional[str] = None
    reason: Optional[ExclusionReason] = None
    verified: Optional[bool] = None

    def to_dict(self) -> dict[str, Any]:
        result = self.target.to_dict()
        result["status"] = self.status.value
        if self.diagnostic is not None:
            result["diagnostic"] = self.diagnostic
        if self.reason is not None:
            result["reason"] = self.reason.value
        if self.verified is not None:
            result["verified"] = self.verified
        return result


@dataclass(frozen=True)
class RunReport:
    """Consolidated result of one orchestration run.

    Attributes:
        total: Number of resolved targets
        counts: Targets per terminal status (every terminal status present)
        entries: One entry per resolved target, in resolution order
    """
    total: int
    counts: Mapping[InvocationStatus, int]
    entries: tuple[ReportEntry, ...]

    @property
    def succeeded(self) -> bool:
        return self.counts.get(InvocationStatus.SUCCESS, 0) == self.total

    def failed_entries(self) -> list[ReportEntry]:
        return [e for e in self.entries if e.status is not InvocationStatus.SUCCESS]

    def entry_for(self, target_id: str) -> Optional[ReportEntry]:
        for entry in self.entries:
            if entry.target.target_id == target_id:
                return entry
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "total": self.total,
            "succeeded": self.succeeded,
            "counts": {status.value: count for status, count in self.counts.items()},
            "entries": [e.to_dict() for e in self.entries],
        }
