"""
Platform adapters.

An adapter holds everything that differs between platform families:
the run document for inline scripts, the poll cadence, and the
success-signal convention of verification probes.
"""

import re
from dataclasses import dataclass, field
from typing import Mapping, Optional

from ..error_handling import ConfigurationError
from ..models import CommandSpec, InvocationOutput, InvocationStatus, Platform

_PLACEHOLDER = re.compile(r"\{\{\s*([A-Za-z_][A-Za-z0-9_]*)\s*\}\}")


def render_template(body: str, parameters: Mapping[str, str]) -> str:
    """Replace {{Name}} placeholders with parameter values.

    Raises:
        ConfigurationError: If a placeholder has no value
    """
    missing = sorted({m for m in _PLACEHOLDER.findall(body) if m not in parameters})
    if missing:
        raise ConfigurationError(
            f"Command template references undefined parameter(s): {', '.join(missing)}. "
            "Hint: Pass them with --param NAME=VALUE."
        )
    return _PLACEHOLDER.sub(lambda m: parameters[m.group(1)], body)


@dataclass(frozen=True)
class CommandTemplate:
    """Per-platform command supplied by the caller.

    Attributes:
        document_name: Document to run. Required without a body; with a
            body it overrides the adapter's run document.
        body: Inline script with {{Name}} placeholders
        parameters: Extra document parameters for this platform only
        verification_probe: Script run after success to verify the result
        verification_marker: Text the probe output must contain
            (None = adapter convention)
    """
    document_name: Optional[str] = None
    body: Optional[str] = None
    parameters: Mapping[str, str] = field(default_factory=dict)
    verification_probe: Optional[str] = None
    verification_marker: Optional[str] = None

    def __post_init__(self):
        if not self.body and not self.document_name:
            raise ConfigurationError("A command template needs a script body or a document name")


@dataclass(frozen=True)
class PlatformAdapter:
    """Capabilities of one platform family.

    Attributes:
        platform: Platform family
        run_document: Document that runs an inline script
        poll_interval: Default seconds between status polls
        success_marker: Text a passing verification probe prints
            (None = exit status alone decides)
    """
    platform: Platform
    run_document: str
    poll_interval: float
    success_marker: Optional[str] = None

    def build_spec(
        self,
        template: CommandTemplate,
        parameters: Mapping[str, str],
        comment: Optional[str] = None,
    ) -> CommandSpec:
        """Build the CommandSpec for this platform.

        With a body, shared parameters fill its placeholders and the
        rendered script is the inline payload. Without one, shared
        parameters are passed to the named document.

        Raises:
            ConfigurationError: If the template cannot be rendered
        """
        merged = {**parameters, **template.parameters}
        if template.body:
            return CommandSpec(
                platform=self.platform,
                document_name=template.document_name or self.run_document,
                parameters={},
                inline_payload=render_template(template.body, merged),
                comment=comment,
            )
        return CommandSpec(
            platform=self.platform,
            document_name=template.document_name,
            parameters=merged,
            comment=comment,
        )

    def build_probe(self, template: CommandTemplate) -> Optional[CommandSpec]:
        """Build the verification probe spec, if the template has one."""
        if not template.verification_probe:
            return None
        return CommandSpec(
            platform=self.platform,
            document_name=self.run_document,
            inline_payload=template.verification_probe,
            comment=f"{self.platform.value} verification probe",
        )

    def verification_passed(
        self,
        status: InvocationStatus,
        output: Optional[InvocationOutput],
        marker: Optional[str] = None,
    ) -> bool:
        """Apply the success-signal convention to a probe result."""
        if status is not InvocationStatus.SUCCESS:
            return False
        marker = marker or self.success_marker
        if marker is None:
            return True
        return output is not None and marker in output.stdout


ADAPTERS: dict[Platform, PlatformAdapter] = {
    Platform.LINUX: PlatformAdapter(
        platform=Platform.LINUX,
        run_document="AWS-RunShellScript",
        poll_interval=10.0,
        success_marker=None,
    ),
    Platform.WINDOWS: PlatformAdapter(
        platform=Platform.WINDOWS,
        run_document="AWS-RunPowerShellScript",
        poll_interval=15.0,
        success_marker="Running",
    ),
}


def get_adapter(platform: Platform) -> PlatformAdapter:
    """Get the adapter for a platform.

    Raises:
        ValueError: If the platform has no adapter
    """
    if platform not in ADAPTERS:
        available = ", ".join(p.value for p in ADAPTERS)
        raise ValueError(f"No adapter for platform '{platform.value}'. Available: {available}")
    return ADAPTERS[platform]
