"""
Status polling state machine.

Each target moves Pending -> InProgress -> terminal. Once a target is
terminal it is never updated again. The loop ends when every target is
terminal or the deadline passes; remaining targets are then forced to
TimedOut locally without cancelling the remote execution.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Iterable, Optional

from ..backends.base import FleetBackend
from ..error_handling import PollQueryError, UnknownStatusError, validate_poll_settings
from ..models import CommandHandle, InvocationStatus, decode_status

logger = logging.getLogger(__name__)


@dataclass
class PollOutcome:
    """Final view of one command's targets.

    Attributes:
        statuses: Terminal status per target ID
        notes: Diagnostic notes gathered while polling, per target ID
        forced: Target IDs forced to TimedOut by the deadline
        polls: Number of status queries issued
        failed_polls: Number of status queries that failed
    """
    statuses: dict[str, InvocationStatus]
    notes: dict[str, str] = field(default_factory=dict)
    forced: list[str] = field(default_factory=list)
    polls: int = 0
    failed_polls: int = 0

    @property
    def timed_out(self) -> bool:
        return bool(self.forced)


def _progress_line(handle: CommandHandle, view: dict[str, InvocationStatus]) -> str:
    values = list(view.values())
    success = values.count(InvocationStatus.SUCCESS)
    failed = sum(1 for s in values if s.is_terminal and s is not InvocationStatus.SUCCESS)
    in_progress = len(values) - success - failed
    return (
        f"{handle.platform.value} {handle.command_id}: {success} Success, "
        f"{failed} Failed, {in_progress} In Progress (Total: {len(values)})"
    )


class StatusPoller:
    """Polls per-target status for a command handle until it settles."""

    def __init__(
        self,
        backend: FleetBackend,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.backend = backend
        self._clock = clock
        self._sleep = sleep

    def _apply(
        self,
        view: dict[str, InvocationStatus],
        notes: dict[str, str],
        pairs: Iterable[tuple[str, str]],
    ) -> None:
        for target_id, raw_status in pairs:
            current = view.get(target_id)
            if current is None:
                logger.debug("Ignoring status for untracked target %s", target_id)
                continue
            if current.is_terminal:
                continue
            try:
                status = decode_status(raw_status)
            except UnknownStatusError as e:
                logger.warning("%s on %s", e, target_id)
                notes[target_id] = f"last reported unrecognized status '{e.raw_status}'"
                continue
            view[target_id] = status

    async def await_completion(
        self,
        handle: CommandHandle,
        target_ids: Optional[Iterable[str]] = None,
        poll_interval: float = 10.0,
        deadline: float = 900.0,
    ) -> PollOutcome:
        """Wait for every target of a command to reach a terminal state.

        Args:
            handle: Command handle from dispatch
            target_ids: Targets to track (default: every target of the handle)
            poll_interval: Seconds between status queries
            deadline: Seconds after which non-terminal targets become TimedOut

        Returns:
            PollOutcome whose statuses are all terminal
        """
        poll_interval, deadline = validate_poll_settings(poll_interval, deadline)

        ids = list(target_ids) if target_ids is not None else list(handle.target_ids)
        view = {target_id: InvocationStatus.PENDING for target_id in ids}
        notes: dict[str, str] = {}
        outcome = PollOutcome(statuses=view, notes=notes)
        last_error: Optional[str] = None

        started = self._clock()
        while True:
            outcome.polls += 1
            try:
                pairs = await self.backend.list_invocations(handle.command_id)
            except PollQueryError as e:
                outcome.failed_polls += 1
                last_error = str(e)
                logger.warning("Status query for %s failed, retrying next tick: %s", handle.command_id, e)
            else:
                self._apply(view, notes, pairs)
                logger.info(_progress_line(handle, view))

            if all(status.is_terminal for status in view.values()):
                break

            remaining = deadline - (self._clock() - started)
            if remaining <= 0:
                break
            await self._sleep(min(poll_interval, remaining))

        forced = [target_id for target_id, status in view.items() if not status.is_terminal]
        for target_id in forced:
            view[target_id] = InvocationStatus.TIMED_OUT
            reason = f"no terminal status within {deadline:g}s deadline; remote execution may still be running"
            extra = notes.get(target_id) or (f"status queries failing: {last_error}" if last_error else None)
            notes[target_id] = f"{reason} ({extra})" if extra else reason

        if forced:
            outcome.forced = forced
            logger.warning(
                "%s %s: deadline reached, %d target(s) marked TimedOut",
                handle.platform.value, handle.command_id, len(forced),
            )
        return outcome
