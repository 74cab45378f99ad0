"""
Input validation functions for fleet targeting.

Provides validation for instance IDs, tag filters and polling settings.
"""

import re

_INSTANCE_ID_RE = re.compile(r"^i-(?:[0-9a-f]{8}|[0-9a-f]{17})$")
_MANAGED_INSTANCE_ID_RE = re.compile(r"^mi-[0-9a-f]{17}$")


def validate_instance_id(instance_id: str) -> str:
    """Validate an EC2 or SSM managed instance ID.

    Args:
        instance_id: The instance ID to validate

    Returns:
        The validated instance ID, stripped of surrounding whitespace

    Raises:
        ValueError: If the instance ID is malformed
    """
    if not instance_id or not instance_id.strip():
        raise ValueError(
            "Instance ID cannot be empty. "
            "Hint: Use the resolve command to list valid instance IDs."
        )

    instance_id = instance_id.strip()

    if not (_INSTANCE_ID_RE.match(instance_id) or _MANAGED_INSTANCE_ID_RE.match(instance_id)):
        raise ValueError(
            f"Invalid instance ID format: '{instance_id}'. "
            "Must look like 'i-1234567890abcdef0' or 'mi-1234567890abcdef0'. "
            "Hint: Use the resolve command to list valid instance IDs."
        )

    return instance_id


def validate_tag_filter(key: str, value: str) -> tuple[str, str]:
    """Validate a tag key/value filter.

    Args:
        key: Tag key (e.g., 'Environment')
        value: Tag value (e.g., 'Production')

    Returns:
        The validated (key, value) pair

    Raises:
        ValueError: If key or value is empty
    """
    if not key or not key.strip():
        raise ValueError(
            "Tag key cannot be empty. "
            "Hint: Use the form Key=Value, e.g. 'Environment=Production'."
        )

    if not value or not value.strip():
        raise ValueError(
            f"Tag value for '{key}' cannot be empty. "
            "Hint: Use the form Key=Value, e.g. 'Environment=Production'."
        )

    return key.strip(), value.strip()


def validate_poll_settings(poll_interval: float, deadline: float) -> tuple[float, float]:
    """Validate polling interval and deadline.

    Args:
        poll_interval: Seconds between status queries
        deadline: Seconds to wait before forcing TimedOut

    Returns:
        The validated (poll_interval, deadline) pair

    Raises:
        ValueError: If either value is not positive
    """
    if poll_interval <= 0:
        raise ValueError(
            f"Poll interval must be positive, got {poll_interval}. "
            "Hint: Use a few seconds; the provider is rate limited."
        )

    if deadline <= 0:
        raise ValueError(
            f"Deadline must be positive, got {deadline}. "
            "Hint: Remote execution has no upper bound, pick a realistic wait."
        )

    return poll_interval, deadline
