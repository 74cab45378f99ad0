"""
Asynchronous command dispatch.

One dispatch targets exactly one platform batch, so command syntax is
never branched on per target.
"""

import logging
from typing import Iterable

from ..backends.base import FleetBackend
from ..logging_utils import redact_parameters
from ..models import CommandHandle, CommandSpec, ResolvedTargetSet

logger = logging.getLogger(__name__)


class CommandDispatcher:
    """Submits commands to the remote execution backend."""

    def __init__(self, backend: FleetBackend):
        self.backend = backend

    async def dispatch(
        self,
        spec: CommandSpec,
        targets: ResolvedTargetSet,
        secrets: Iterable[str] = (),
    ) -> CommandHandle:
        """Submit one command to a batch of targets.

        Returns as soon as the backend accepts the command; execution
        continues remotely.

        Args:
            spec: Command to run
            targets: Targets of one platform group
            secrets: Secret values rendered into the command, masked in logs

        Returns:
            Handle for polling

        Raises:
            DispatchError: If the submission fails
        """
        logger.info(
            "Dispatching %s to %d %s target(s) (parameters: %s)",
            spec.document_name,
            len(targets),
            spec.platform.value,
            redact_parameters(spec.loggable_parameters(), secrets),
        )

        command_id = await self.backend.send_command(spec, targets.ids)

        logger.info("%s command sent. Command ID: %s", spec.platform.value.capitalize(), command_id)
        return CommandHandle(
            command_id=command_id,
            platform=spec.platform,
            target_ids=targets.ids,
        )
