"""
Fleet tools for the fleetexec MCP server.

Provides tools to resolve targets, run a command across the fleet and
check Systems Manager registration of targets.
"""

import json
from typing import Any, Optional

from botocore.exceptions import BotoCoreError, ClientError
from mcp.types import TextContent

from ..server import mcp
from ..backends import get_backend
from ..checks import check_fleet
from ..config import load_config
from ..error_handling import (
    ConfigurationError,
    FleetExecError,
    NoTargetsError,
    map_aws_error,
)
from ..execution import CommandTemplate
from ..models import Platform
from ..orchestrator import Orchestrator
from ..targeting import (
    AllTargets,
    ExplicitIds,
    FileList,
    TargetSelector,
    classify,
    parse_tag_expression,
    resolve,
)

SELECTOR_HINT = "Provide exactly one of instance_ids, target_file, tag ('Key=Value') or all_targets=true"


def _text(payload: Any) -> list[TextContent]:
    return [TextContent(type="text", text=json.dumps(payload, indent=2, default=str))]


def build_selector(
    instance_ids: Optional[list[str]] = None,
    target_file: Optional[str] = None,
    tag: Optional[str] = None,
    all_targets: bool = False,
) -> TargetSelector:
    """Build a selector from tool arguments.

    Raises:
        ConfigurationError: Unless exactly one selector is given
    """
    given = [bool(instance_ids), bool(target_file), bool(tag), all_targets]
    if sum(given) != 1:
        raise ConfigurationError(f"Exactly one target selector is required. Hint: {SELECTOR_HINT}.")
    if instance_ids:
        return ExplicitIds(instance_ids)
    if target_file:
        return FileList(target_file)
    if tag:
        return parse_tag_expression(tag)
    return AllTargets()


def _error_response(error: Exception, operation: str) -> list[TextContent]:
    if isinstance(error, (ConfigurationError, ValueError)):
        return _text({
            "error": str(error),
            "hint": "Check the target selector, scripts and parameters",
        })
    if isinstance(error, NoTargetsError):
        return _text({
            "error": str(error),
            "hint": "Check the tag filter and that matching instances are running",
        })
    if isinstance(error, FleetExecError):
        return _text({
            "error": str(error),
            "hint": "Check AWS credentials, region and IAM permissions",
        })
    if isinstance(error, (BotoCoreError, ClientError)):
        return _text(map_aws_error(error, operation))
    # Generic errors - don't expose internals
    return _text({
        "error": f"Failed during {operation}",
        "hint": "Check AWS connectivity and try again",
    })


@mcp.tool()
async def resolve_targets(
    instance_ids: Optional[list[str]] = None,
    target_file: Optional[str] = None,
    tag: Optional[str] = None,
    all_targets: bool = False,
) -> list[TextContent]:
    """Resolve a target selector and group the targets by platform.

    Args:
        instance_ids: Explicit instance IDs (e.g., ['i-0123456789abcdef0'])
        target_file: Path to a file with one instance ID per line
        tag: Tag filter 'Key=Value' matching running instances
        all_targets: Select every running instance

    Returns:
        Targets per platform group and targets excluded from dispatch.
    """
    try:
        selector = build_selector(instance_ids, target_file, tag, all_targets)
        config = load_config()
        backend = get_backend(config)

        targets = await resolve(selector, backend)
        groups = await classify(targets, backend, config.unknown_platform_policy)

        return _text({
            "selector": selector.describe(),
            "total": len(targets),
            "groups": {
                platform.value: [t.to_dict() for t in group]
                for platform, group in groups.groups.items()
            },
            "excluded": [
                {**e.target.to_dict(), "reason": e.reason.value, "diagnostic": e.diagnostic}
                for e in groups.excluded
            ],
        })

    except Exception as e:
        return _error_response(e, "target resolution")


@mcp.tool()
async def run_fleet_command(
    linux_script: Optional[str] = None,
    windows_script: Optional[str] = None,
    linux_document: Optional[str] = None,
    windows_document: Optional[str] = None,
    parameters: Optional[dict[str, str]] = None,
    instance_ids: Optional[list[str]] = None,
    target_file: Optional[str] = None,
    tag: Optional[str] = None,
    all_targets: bool = False,
    comment: Optional[str] = None,
    deadline: Optional[float] = None,
    verify: bool = False,
    linux_probe: Optional[str] = None,
    windows_probe: Optional[str] = None,
    linux_probe_marker: Optional[str] = None,
    windows_probe_marker: Optional[str] = None,
) -> list[TextContent]:
    """Run a command on every selected instance and wait for the results.

    Linux targets run the shell script (AWS-RunShellScript) or the Linux
    document; Windows targets run the PowerShell script
    (AWS-RunPowerShellScript) or the Windows document. {{Name}}
    placeholders in scripts are filled from parameters.

    Args:
        linux_script: Shell script body for Linux targets
        windows_script: PowerShell script body for Windows targets
        linux_document: SSM document for Linux targets
        windows_document: SSM document for Windows targets
        parameters: Placeholder values or document parameters (strings)
        instance_ids: Explicit instance IDs
        target_file: Path to a file with one instance ID per line
        tag: Tag filter 'Key=Value' matching running instances
        all_targets: Select every running instance
        comment: Comment recorded with the command
        deadline: Seconds to wait before marking targets TimedOut
        verify: Run the verification probes on succeeded targets
        linux_probe: Verification command for Linux targets
        windows_probe: Verification command for Windows targets
        linux_probe_marker: Text the Linux probe output must contain
            (default: exit status alone)
        windows_probe_marker: Text the Windows probe output must contain
            (default: 'Running')

    Returns:
        Run report with counts per status and one entry per target.
    """
    try:
        selector = build_selector(instance_ids, target_file, tag, all_targets)

        templates = {}
        if linux_script or linux_document:
            templates[Platform.LINUX] = CommandTemplate(
                document_name=linux_document,
                body=linux_script,
                verification_probe=linux_probe,
                verification_marker=linux_probe_marker,
            )
        if windows_script or windows_document:
            templates[Platform.WINDOWS] = CommandTemplate(
                document_name=windows_document,
                body=windows_script,
                verification_probe=windows_probe,
                verification_marker=windows_probe_marker,
            )

        config = load_config()
        if deadline is not None:
            config.deadline = deadline
            config.validate()

        report = await Orchestrator(get_backend(config), config).run(
            selector,
            templates,
            parameters or {},
            comment=comment,
            verify=verify,
        )
        return _text(report.to_dict())

    except Exception as e:
        return _error_response(e, "fleet command run")


@mcp.tool()
async def check_fleet_management(
    instance_ids: Optional[list[str]] = None,
    target_file: Optional[str] = None,
    tag: Optional[str] = None,
    all_targets: bool = False,
) -> list[TextContent]:
    """Check that selected instances are managed by Systems Manager and online.

    Args:
        instance_ids: Explicit instance IDs
        target_file: Path to a file with one instance ID per line
        tag: Tag filter 'Key=Value' matching running instances
        all_targets: Select every running instance

    Returns:
        Per-target management status with agent ping details.
    """
    try:
        selector = build_selector(instance_ids, target_file, tag, all_targets)
        backend = get_backend(load_config())

        statuses = await check_fleet(selector, backend)
        return _text({
            "total": len(statuses),
            "online": sum(1 for s in statuses if s.online),
            "targets": [s.to_dict() for s in statuses],
        })

    except Exception as e:
        return _error_response(e, "fleet management check")
