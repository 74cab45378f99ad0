"""
End-to-end orchestration run.

resolve -> classify -> dispatch per platform batch -> poll -> aggregate.
Platform groups are independent and run concurrently; their outcomes
are disjoint and merged only at aggregation.
"""

import asyncio
import logging
from dataclasses import replace
from typing import Mapping, Optional

from .backends.base import FleetBackend
from .config import FleetConfig
from .logging_utils import secret_values
from .error_handling import ConfigurationError, DiagnosticUnavailableError, DispatchError
from .execution import (
    CommandDispatcher,
    CommandTemplate,
    PlatformAdapter,
    ResultAggregator,
    StatusPoller,
    get_adapter,
)
from .models import (
    CommandSpec,
    ExclusionReason,
    InvocationStatus,
    Platform,
    ResolvedTargetSet,
    RunReport,
    TargetOutcome,
)
from .targeting import TargetSelector, classify, resolve

logger = logging.getLogger(__name__)


class Orchestrator:
    """Runs one command across a fleet and reports per-target outcomes.

    Args:
        backend: Inventory/execution backend
        config: Run settings (default: FleetConfig())
        poller: Status poller (default: a real-time StatusPoller)
    """

    def __init__(
        self,
        backend: FleetBackend,
        config: Optional[FleetConfig] = None,
        poller: Optional[StatusPoller] = None,
    ):
        self.backend = backend
        self.config = config or FleetConfig()
        self.dispatcher = CommandDispatcher(backend)
        self.poller = poller or StatusPoller(backend)
        self.aggregator = ResultAggregator(backend, concurrency=self.config.diagnostic_concurrency)

    async def run(
        self,
        selector: TargetSelector,
        templates: Mapping[Platform, CommandTemplate],
        parameters: Optional[Mapping[str, str]] = None,
        comment: Optional[str] = None,
        verify: bool = False,
    ) -> RunReport:
        """Run a command on every target matched by a selector.

        Args:
            selector: Which targets to act on
            templates: Command template per platform
            parameters: Shared parameters used to render each template
            comment: Comment recorded with every dispatch
            verify: Run each template's verification probe on targets
                that succeeded

        Returns:
            RunReport covering every resolved target exactly once

        Raises:
            ConfigurationError: On bad selector input or templates (before any dispatch)
            NoTargetsError: If the selector matches no targets
            InventoryError: If the inventory cannot be queried
        """
        if not templates:
            raise ConfigurationError(
                "No command given for any platform. "
                "Hint: Provide a Linux and/or Windows script or document."
            )
        parameters = dict(parameters or {})

        targets = await resolve(selector, self.backend)
        groups = await classify(targets, self.backend, self.config.unknown_platform_policy)

        outcomes: list[TargetOutcome] = [
            TargetOutcome(
                target=exclusion.target,
                status=InvocationStatus.FAILED,
                diagnostic=exclusion.diagnostic,
                reason=exclusion.reason,
            )
            for exclusion in groups.excluded
        ]

        # Render every spec before dispatching anything
        plans = []
        for platform, group in groups.groups.items():
            template = templates.get(platform)
            if template is None:
                logger.warning("No %s command given; skipping %d target(s)", platform.value, len(group))
                outcomes.extend(
                    TargetOutcome(
                        target=target,
                        status=InvocationStatus.FAILED,
                        diagnostic=f"no command configured for platform {platform.value}",
                        reason=ExclusionReason.NO_COMMAND,
                    )
                    for target in group
                )
                continue
            adapter = get_adapter(platform)
            spec = adapter.build_spec(template, parameters, comment)
            secrets = secret_values({**parameters, **template.parameters})
            plans.append((adapter, template, spec, group, secrets))

        group_results = await asyncio.gather(*(
            self._run_group(adapter, template, spec, group, secrets, verify)
            for adapter, template, spec, group, secrets in plans
        ))
        for group_outcomes in group_results:
            outcomes.extend(group_outcomes)

        return await self.aggregator.aggregate(outcomes, targets)

    def _poll_interval(self, adapter: PlatformAdapter) -> float:
        return self.config.poll_interval or adapter.poll_interval

    async def _run_group(
        self,
        adapter: PlatformAdapter,
        template: CommandTemplate,
        spec: CommandSpec,
        group: ResolvedTargetSet,
        secrets: list[str],
        verify: bool,
    ) -> list[TargetOutcome]:
        batches = group.batches(self.config.max_targets_per_dispatch)
        logger.info(
            "Running %s on %d %s target(s) in %d batch(es)",
            spec.document_name, len(group), adapter.platform.value, len(batches),
        )
        results = await asyncio.gather(*(
            self._run_batch(adapter, template, spec, batch, secrets, verify) for batch in batches
        ))
        return [outcome for batch_outcomes in results for outcome in batch_outcomes]

    async def _run_batch(
        self,
        adapter: PlatformAdapter,
        template: CommandTemplate,
        spec: CommandSpec,
        batch: ResolvedTargetSet,
        secrets: list[str],
        verify: bool,
    ) -> list[TargetOutcome]:
        """Run one batch; any failure is confined to the batch's targets."""
        try:
            return await self._execute_batch(adapter, template, spec, batch, secrets, verify)
        except Exception as e:
            logger.exception("%s batch of %d target(s) failed", adapter.platform.value, len(batch))
            return [
                TargetOutcome(
                    target=target,
                    status=InvocationStatus.FAILED,
                    diagnostic=f"batch failed: {e}",
                )
                for target in batch
            ]

    async def _execute_batch(
        self,
        adapter: PlatformAdapter,
        template: CommandTemplate,
        spec: CommandSpec,
        batch: ResolvedTargetSet,
        secrets: list[str],
        verify: bool,
    ) -> list[TargetOutcome]:
        try:
            handle = await self.dispatcher.dispatch(spec, batch, secrets)
        except DispatchError as e:
            logger.error("%s dispatch failed for %d target(s): %s", adapter.platform.value, len(batch), e)
            return [
                TargetOutcome(
                    target=target,
                    status=InvocationStatus.FAILED,
                    diagnostic=f"dispatch failed: {e}",
                    reason=ExclusionReason.DISPATCH_FAILED,
                )
                for target in batch
            ]

        poll = await self.poller.await_completion(
            handle,
            target_ids=batch.ids,
            poll_interval=self._poll_interval(adapter),
            deadline=self.config.deadline,
        )

        forced = set(poll.forced)
        outcomes = [
            TargetOutcome(
                target=target,
                status=poll.statuses[target.target_id],
                handle=handle,
                diagnostic=poll.notes.get(target.target_id) if target.target_id in forced else None,
            )
            for target in batch
        ]

        if verify:
            outcomes = await self._verify(adapter, template, outcomes)
        return outcomes

    async def _verify(
        self,
        adapter: PlatformAdapter,
        template: CommandTemplate,
        outcomes: list[TargetOutcome],
    ) -> list[TargetOutcome]:
        """Run the verification probe on succeeded targets.

        The primary status is never changed; only ``verified`` is set.
        """
        probe = adapter.build_probe(template)
        succeeded = [o for o in outcomes if o.status is InvocationStatus.SUCCESS]
        if probe is None:
            logger.warning("Verification requested but no %s probe configured", adapter.platform.value)
            return outcomes
        if not succeeded:
            return outcomes

        probe_targets = ResolvedTargetSet(o.target for o in succeeded)
        verdicts: dict[str, bool] = {}
        try:
            handle = await self.dispatcher.dispatch(probe, probe_targets)
        except DispatchError as e:
            logger.warning("%s verification probe dispatch failed: %s", adapter.platform.value, e)
        else:
            poll = await self.poller.await_completion(
                handle,
                target_ids=probe_targets.ids,
                poll_interval=self._poll_interval(adapter),
                deadline=self.config.verify_deadline,
            )
            marker = template.verification_marker or adapter.success_marker
            for target_id, status in poll.statuses.items():
                output = None
                if status is InvocationStatus.SUCCESS and marker is not None:
                    try:
                        output = await self.backend.get_invocation_output(handle.command_id, target_id)
                    except DiagnosticUnavailableError as e:
                        logger.warning("Probe output for %s unavailable: %s", target_id, e)
                verdicts[target_id] = adapter.verification_passed(status, output, marker)

        passed = sum(verdicts.values())
        logger.info("%s verification: %d/%d passed", adapter.platform.value, passed, len(succeeded))

        return [
            replace(o, verified=verdicts.get(o.target.target_id, False))
            if o.status is InvocationStatus.SUCCESS else o
            for o in outcomes
        ]
