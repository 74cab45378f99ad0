"""
Abstract base class for inventory/execution backends.

Defines the interface that the orchestrator needs from a remote
execution service. The core depends on nothing else.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Optional, Sequence

from ..models import CommandSpec, InvocationOutput, Target


@dataclass(frozen=True)
class ManagedNode:
    """Remote-execution agent registration of a target.

    Attributes:
        target_id: Target identifier
        ping_status: Agent ping status (e.g., 'Online', 'ConnectionLost')
        platform_type: Platform reported by the agent
        computer_name: Host name reported by the agent
        last_ping: Last ping time, ISO formatted
        agent_version: Agent version string
    """
    target_id: str
    ping_status: str
    platform_type: Optional[str] = None
    computer_name: Optional[str] = None
    last_ping: Optional[str] = None
    agent_version: Optional[str] = None

    @property
    def online(self) -> bool:
        return self.ping_status == "Online"

    def to_dict(self) -> dict[str, Any]:
        return {
            "target_id": self.target_id,
            "ping_status": self.ping_status,
            "platform_type": self.platform_type,
            "computer_name": self.computer_name,
            "last_ping": self.last_ping,
            "agent_version": self.agent_version,
        }


class FleetBackend(ABC):
    """Abstract base class for fleet backends.

    All calls may block on the network and are exposed as coroutines.
    Implementations translate provider errors into the fleetexec
    exception hierarchy.
    """

    @abstractmethod
    async def list_running_targets(
        self,
        tag: Optional[tuple[str, str]] = None,
    ) -> list[Target]:
        """List running targets, optionally filtered by one tag.

        Args:
            tag: Optional (key, value) tag filter

        Returns:
            Targets in provider order

        Raises:
            InventoryError: If the inventory cannot be queried
        """
        pass

    @abstractmethod
    async def describe_targets(self, target_ids: Sequence[str]) -> list[Target]:
        """Describe targets by ID.

        IDs unknown to the provider are simply missing from the result.

        Raises:
            InventoryError: If the inventory cannot be queried
        """
        pass

    @abstractmethod
    async def send_command(self, spec: CommandSpec, target_ids: Sequence[str]) -> str:
        """Submit a command to a batch of targets.

        Returns:
            Provider command ID

        Raises:
            DispatchError: If the submission fails
        """
        pass

    @abstractmethod
    async def list_invocations(self, command_id: str) -> list[tuple[str, str]]:
        """List per-target raw statuses for a command.

        Returns:
            (target_id, raw_status) pairs

        Raises:
            PollQueryError: If the status query fails
        """
        pass

    @abstractmethod
    async def get_invocation_output(self, command_id: str, target_id: str) -> InvocationOutput:
        """Fetch the output of a command on one target.

        Raises:
            DiagnosticUnavailableError: If the output cannot be fetched
        """
        pass

    @abstractmethod
    async def describe_managed_nodes(self, target_ids: Sequence[str]) -> dict[str, ManagedNode]:
        """Describe agent registration for targets.

        Targets without an agent registration are missing from the result.

        Raises:
            InventoryError: If the service cannot be queried
        """
        pass

    @abstractmethod
    async def verify_access(self) -> str:
        """Check credentials and return the caller identity.

        Raises:
            ConfigurationError: If the credentials are missing or invalid
        """
        pass
