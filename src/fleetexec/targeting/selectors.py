"""
Target selectors and their resolution.

A selector is one of four immutable variants. ``resolve`` turns it into
a non-empty ResolvedTargetSet using the inventory backend.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Union

from ..backends.base import FleetBackend
from ..error_handling import (
    ConfigurationError,
    NoTargetsError,
    validate_instance_id,
    validate_tag_filter,
)
from ..models import ResolvedTargetSet, Target

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ExplicitIds:
    """Explicit list of target IDs. Duplicates collapse, first seen wins."""
    ids: tuple[str, ...]

    def __init__(self, ids: Iterable[str]):
        object.__setattr__(self, "ids", tuple(ids))

    def describe(self) -> str:
        return f"instance IDs {' '.join(self.ids)}"


@dataclass(frozen=True)
class FileList:
    """File with one target ID per line; blank and '#' lines ignored."""
    path: str

    def describe(self) -> str:
        return f"IDs from file {self.path}"


@dataclass(frozen=True)
class TagQuery:
    """Running targets carrying tag key=value."""
    key: str
    value: str

    def describe(self) -> str:
        return f"running targets tagged {self.key}={self.value}"


@dataclass(frozen=True)
class AllTargets:
    """Every running target."""

    def describe(self) -> str:
        return "all running targets"


TargetSelector = Union[ExplicitIds, FileList, TagQuery, AllTargets]


def parse_tag_expression(expression: str) -> TagQuery:
    """Parse a 'Key=Value' expression into a TagQuery.

    Raises:
        ConfigurationError: If the expression is malformed
    """
    if "=" not in expression:
        raise ConfigurationError(
            f"Invalid tag filter '{expression}'. "
            "Hint: Use the form Key=Value, e.g. 'Environment=Production'."
        )
    key, value = expression.split("=", 1)
    try:
        key, value = validate_tag_filter(key, value)
    except ValueError as e:
        raise ConfigurationError(str(e)) from e
    return TagQuery(key=key, value=value)


def read_target_file(path: str) -> list[str]:
    """Read target IDs from a file.

    Blank lines and lines whose first non-whitespace character is '#'
    are ignored. A line may hold several whitespace-separated IDs.

    Raises:
        ConfigurationError: If the file is missing or yields no IDs
    """
    file_path = Path(path)
    if not file_path.is_file():
        raise ConfigurationError(
            f"Target file not found: {path}. "
            "Hint: Provide a file with one instance ID per line."
        )

    ids: list[str] = []
    for line in file_path.read_text().splitlines():
        stripped = line.strip()
        if not stripped or stripped.startswith("#"):
            continue
        ids.extend(stripped.split())

    if not ids:
        raise ConfigurationError(f"No valid instance IDs found in file: {path}")
    return ids


def _explicit_targets(ids: Iterable[str]) -> list[Target]:
    targets = []
    for raw_id in ids:
        try:
            target_id = validate_instance_id(raw_id)
        except ValueError as e:
            raise ConfigurationError(str(e)) from e
        targets.append(Target.placeholder(target_id))
    return targets


async def resolve(selector: TargetSelector, inventory: FleetBackend) -> ResolvedTargetSet:
    """Resolve a selector into a concrete target set.

    Explicit and file selectors are only checked for well-formedness;
    existence is confirmed at classification time.

    Raises:
        ConfigurationError: If the selector input is malformed
        NoTargetsError: If resolution yields zero targets
        InventoryError: If the inventory cannot be queried
    """
    if isinstance(selector, ExplicitIds):
        targets = _explicit_targets(selector.ids)
    elif isinstance(selector, FileList):
        targets = _explicit_targets(read_target_file(selector.path))
    elif isinstance(selector, TagQuery):
        try:
            tag = validate_tag_filter(selector.key, selector.value)
        except ValueError as e:
            raise ConfigurationError(str(e)) from e
        targets = await inventory.list_running_targets(tag=tag)
    elif isinstance(selector, AllTargets):
        targets = await inventory.list_running_targets()
    else:
        raise ConfigurationError(f"Unsupported selector: {selector!r}")

    if not targets:
        raise NoTargetsError(f"No targets found for {selector.describe()}")

    resolved = ResolvedTargetSet(targets)
    logger.info("Resolved %d target(s) from %s", len(resolved), selector.describe())
    return resolved
