"""
Result aggregation.

Collapses per-target terminal outcomes into one RunReport and fetches
diagnostics for targets that did not succeed. Diagnostic fetching is
best-effort: a failed fetch becomes a placeholder text.
"""

import asyncio
import logging
from typing import Optional, Sequence

from ..backends.base import FleetBackend
from ..error_handling import DiagnosticUnavailableError, extract_invocation_hint, tail_output
from ..models import (
    TERMINAL_STATUSES,
    CommandHandle,
    InvocationStatus,
    ReportEntry,
    ResolvedTargetSet,
    RunReport,
    TargetOutcome,
)

logger = logging.getLogger(__name__)

DIAGNOSTIC_UNAVAILABLE = "diagnostic unavailable"
NO_OUTCOME = "no outcome recorded for target"


class ResultAggregator:
    """Builds run reports from per-target outcomes."""

    def __init__(self, backend: FleetBackend, concurrency: int = 5):
        self.backend = backend
        self.concurrency = concurrency

    async def fetch_diagnostic(self, handle: CommandHandle, target_id: str) -> str:
        """Fetch a diagnostic text for one target. Never raises."""
        try:
            output = await self.backend.get_invocation_output(handle.command_id, target_id)
        except DiagnosticUnavailableError as e:
            logger.debug("Diagnostic for %s unavailable: %s", target_id, e)
            return DIAGNOSTIC_UNAVAILABLE
        except Exception:
            logger.exception("Unexpected error fetching diagnostic for %s", target_id)
            return DIAGNOSTIC_UNAVAILABLE

        parts = []
        stderr = tail_output(output.stderr)
        if stderr:
            parts.append(stderr)
        elif output.stdout:
            parts.append(f"no error output; last output:\n{tail_output(output.stdout, 500)}")
        else:
            parts.append("no error output")

        if output.response_code is not None:
            parts.append(f"exit code {output.response_code}")
        if output.status_details:
            parts.append(f"status details: {output.status_details}")
        hint = extract_invocation_hint(output.status_details)
        if hint:
            parts.append(f"Hint: {hint}")

        return "\n".join(parts)

    async def aggregate(
        self,
        outcomes: Sequence[TargetOutcome],
        targets: ResolvedTargetSet,
    ) -> RunReport:
        """Build the report for a run.

        Every resolved target gets exactly one entry, in resolution
        order. A target with no recorded outcome is reported as Failed.

        Args:
            outcomes: Terminal outcomes from all platform groups
            targets: The resolved target set of the run

        Returns:
            The run report
        """
        by_id = {outcome.target.target_id: outcome for outcome in outcomes}

        ordered: list[TargetOutcome] = []
        for target in targets:
            outcome = by_id.get(target.target_id)
            if outcome is None:
                logger.error("No outcome recorded for %s", target.target_id)
                outcome = TargetOutcome(target=target, status=InvocationStatus.FAILED, diagnostic=NO_OUTCOME)
            elif not outcome.status.is_terminal:
                logger.error("Non-terminal outcome %s for %s", outcome.status.value, target.target_id)
                outcome = TargetOutcome(
                    target=outcome.target,
                    status=InvocationStatus.FAILED,
                    handle=outcome.handle,
                    diagnostic=f"outcome still {outcome.status.value} at aggregation",
                )
            ordered.append(outcome)

        semaphore = asyncio.Semaphore(self.concurrency)

        async def diagnostic_for(outcome: TargetOutcome) -> Optional[str]:
            if outcome.status is InvocationStatus.SUCCESS:
                return outcome.diagnostic
            if outcome.diagnostic is not None or outcome.handle is None:
                return outcome.diagnostic or DIAGNOSTIC_UNAVAILABLE
            async with semaphore:
                return await self.fetch_diagnostic(outcome.handle, outcome.target.target_id)

        diagnostics = await asyncio.gather(*(diagnostic_for(o) for o in ordered))

        counts = {status: 0 for status in TERMINAL_STATUSES}
        entries = []
        for outcome, diagnostic in zip(ordered, diagnostics):
            counts[outcome.status] += 1
            entries.append(ReportEntry(
                target=outcome.target,
                status=outcome.status,
                diagnostic=diagnostic,
                reason=outcome.reason,
                verified=outcome.verified,
            ))

        report = RunReport(total=len(targets), counts=counts, entries=tuple(entries))
        logger.info(
            "Run complete: %s (Total: %d)",
            ", ".join(f"{n} {s.value}" for s, n in counts.items() if n),
            report.total,
        )
        return report
