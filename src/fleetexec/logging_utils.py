"""
Logging setup and redaction helpers.
"""

import logging
import re
import sys
from typing import Iterable, Mapping

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

_SECRET_NAME = re.compile(r"(?i)(token|secret|password|passwd|key|credential)")

_SENSITIVE_PATTERNS = (
    (re.compile(r"(?i)(token\s*[:=]\s*)[^\s,;\"']+"), r"\1***"),
    (re.compile(r"(?i)(secret\s*[:=]\s*)[^\s,;\"']+"), r"\1***"),
    (re.compile(r"(?i)(password\s*[:=]\s*)[^\s,;\"']+"), r"\1***"),
)


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging to stderr for CLI and server entry points."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT,
        stream=sys.stderr,
    )


def mask_value(value: str, visible: int = 4) -> str:
    """Mask a secret, keeping only its first few characters."""
    if len(value) <= visible:
        return "***"
    return f"{value[:visible]}..."


def secret_values(parameters: Mapping[str, str]) -> list[str]:
    """Values of parameters whose names look like secrets."""
    return [value for name, value in parameters.items() if value and _SECRET_NAME.search(name)]


def redact_text(text: str, secrets: Iterable[str] = ()) -> str:
    """Mask known secret values and ``token=...`` style assignments in text."""
    # Longest first so a secret containing another is masked whole
    for secret in sorted(set(secrets), key=len, reverse=True):
        if secret:
            text = text.replace(secret, mask_value(secret))
    for pattern, replacement in _SENSITIVE_PATTERNS:
        text = pattern.sub(replacement, text)
    return text


def redact_parameters(
    parameters: Mapping[str, str],
    secrets: Iterable[str] = (),
) -> dict[str, str]:
    """Return a copy of a parameter map safe for logging.

    Values whose names look like secrets are masked, and every other
    value has the known secrets masked wherever they appear. Inline
    command bodies are shortened to their first line.

    Args:
        parameters: Parameters as sent to the backend
        secrets: Secret values rendered into the parameters, such as
            template parameters substituted into a command body
    """
    secrets = [*secrets, *secret_values(parameters)]
    redacted = {}
    for name, value in parameters.items():
        if _SECRET_NAME.search(name):
            redacted[name] = mask_value(value)
        elif name == "commands":
            value = redact_text(value, secrets)
            first_line = value.strip().splitlines()[0] if value.strip() else ""
            redacted[name] = f"{first_line[:60]}... ({len(value)} chars)"
        else:
            redacted[name] = redact_text(value, secrets)
    return redacted
