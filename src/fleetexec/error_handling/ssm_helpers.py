"""
SSM invocation detail parsing and hint extraction.

Helps users understand why a command did not succeed on a target.
"""

from typing import Optional


_HINTS = {
    "undeliverable": (
        "The command could not be delivered. The SSM agent is probably "
        "offline or the instance lacks an instance profile with "
        "AmazonSSMManagedInstanceCore."
    ),
    "deliverytimedout": (
        "The command was not delivered before the delivery timeout. "
        "Check the instance is online in Systems Manager."
    ),
    "executiontimedout": (
        "The command started but ran past its execution timeout. "
        "Increase executionTimeout or split the script."
    ),
    "invalidplatform": (
        "The document does not support this platform. Check the target "
        "was routed to the correct platform group."
    ),
    "accessdenied": (
        "The SSM agent was denied access. Check the instance role policy."
    ),
    "terminated": (
        "The instance was terminated while the command was running."
    ),
    "cancelled": (
        "The command was cancelled before it finished on this target."
    ),
}


def extract_invocation_hint(status_details: Optional[str]) -> Optional[str]:
    """Extract an actionable hint from SSM status details.

    Args:
        status_details: The StatusDetails value of an invocation
            (e.g., 'Undeliverable', 'ExecutionTimedOut')

    Returns:
        A user-friendly hint, or None when there is nothing to add
    """
    if not status_details:
        return None

    key = status_details.replace(" ", "").replace("_", "").lower()
    return _HINTS.get(key)


def tail_output(text: Optional[str], max_chars: int = 2000) -> str:
    """Return the last max_chars of command output."""
    if not text:
        return ""
    text = text.strip()
    if len(text) <= max_chars:
        return text
    return "...(truncated)\n" + text[-max_chars:]
