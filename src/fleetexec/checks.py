"""
Fleet management check.

Reports, per selected target, whether the remote-execution agent is
registered and online. Nothing is dispatched.
"""

import logging
from dataclasses import dataclass
from typing import Any, Optional

from .backends.base import FleetBackend, ManagedNode
from .models import Target
from .targeting import TargetSelector, resolve

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ManagedStatus:
    """Agent registration state of one target.

    Attributes:
        target: Target snapshot (a placeholder if not in the inventory)
        found: Whether the inventory knows the target
        node: Agent registration, None when the target is not managed
    """
    target: Target
    found: bool
    node: Optional[ManagedNode] = None

    @property
    def managed(self) -> bool:
        return self.node is not None

    @property
    def online(self) -> bool:
        return self.node is not None and self.node.online

    def to_dict(self) -> dict[str, Any]:
        result = self.target.to_dict()
        result["found"] = self.found
        result["managed"] = self.managed
        result["online"] = self.online
        if self.node is not None:
            result["agent"] = self.node.to_dict()
        return result


async def check_fleet(selector: TargetSelector, backend: FleetBackend) -> list[ManagedStatus]:
    """Check agent registration for every target a selector matches.

    Args:
        selector: Which targets to check
        backend: Inventory/execution backend

    Returns:
        One ManagedStatus per resolved target, in resolution order

    Raises:
        ConfigurationError: On bad selector input
        NoTargetsError: If the selector matches no targets
        InventoryError: If the inventory cannot be queried
    """
    targets = await resolve(selector, backend)
    described = {t.target_id: t for t in await backend.describe_targets(targets.ids)}
    nodes = await backend.describe_managed_nodes(targets.ids)

    statuses = [
        ManagedStatus(
            target=described.get(target.target_id, target),
            found=target.target_id in described,
            node=nodes.get(target.target_id),
        )
        for target in targets
    ]

    online = sum(1 for s in statuses if s.online)
    managed = sum(1 for s in statuses if s.managed)
    logger.info("Fleet check: %d/%d managed, %d online", managed, len(statuses), online)
    return statuses
