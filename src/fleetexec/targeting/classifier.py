"""
Platform classification of resolved targets.

The platform tag always comes from the inventory, never from the
selector, because one selector may span both platform families.
"""

import logging

from ..backends.base import FleetBackend
from ..config import UNKNOWN_PLATFORM_POLICIES
from ..error_handling import ConfigurationError
from ..models import (
    Exclusion,
    ExclusionReason,
    Platform,
    PlatformGroups,
    ResolvedTargetSet,
    Target,
)

logger = logging.getLogger(__name__)

NOT_FOUND_DIAGNOSTIC = "target not found or not accessible"


async def classify(
    targets: ResolvedTargetSet,
    inventory: FleetBackend,
    unknown_platform_policy: str = "linux",
) -> PlatformGroups:
    """Partition targets into platform groups.

    Targets missing from the inventory, not running, or (under the
    'reject' policy) of unknown platform are excluded with a diagnostic
    instead of aborting the run.

    Args:
        targets: Resolved targets
        inventory: Backend holding the authoritative platform tags
        unknown_platform_policy: 'linux', 'windows' or 'reject'

    Returns:
        PlatformGroups covering every input target exactly once

    Raises:
        ConfigurationError: If the policy is not recognised
        InventoryError: If the inventory cannot be queried
    """
    if unknown_platform_policy not in UNKNOWN_PLATFORM_POLICIES:
        raise ConfigurationError(
            f"Unknown platform policy '{unknown_platform_policy}'. "
            f"Must be one of: {', '.join(UNKNOWN_PLATFORM_POLICIES)}"
        )

    described = {t.target_id: t for t in await inventory.describe_targets(targets.ids)}

    members: dict[Platform, list[Target]] = {}
    excluded: list[Exclusion] = []

    for requested in targets:
        snapshot = described.get(requested.target_id)

        if snapshot is None:
            excluded.append(Exclusion(requested, ExclusionReason.NOT_FOUND, NOT_FOUND_DIAGNOSTIC))
            continue

        if not snapshot.eligible:
            excluded.append(Exclusion(
                snapshot,
                ExclusionReason.NOT_RUNNING,
                f"target is not running (state: {snapshot.state_name or 'unknown'})",
            ))
            continue

        platform = snapshot.platform
        if platform is Platform.UNKNOWN:
            if unknown_platform_policy == "reject":
                excluded.append(Exclusion(
                    snapshot,
                    ExclusionReason.UNKNOWN_PLATFORM,
                    "platform could not be determined and unknown platforms are rejected",
                ))
                continue
            platform = Platform(unknown_platform_policy)
            logger.warning(
                "Target %s has unknown platform, routing to %s group",
                snapshot.target_id, platform.value,
            )

        members.setdefault(platform, []).append(snapshot)

    groups = {platform: ResolvedTargetSet(items) for platform, items in members.items()}

    summary = ", ".join(f"{len(g)} {p.value}" for p, g in groups.items()) or "none"
    logger.info("Classified targets: %s; %d excluded", summary, len(excluded))

    return PlatformGroups(groups=groups, excluded=tuple(excluded))
