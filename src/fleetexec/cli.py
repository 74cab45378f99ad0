"""
Command line interface.

    fleetexec run --tag Environment=Production --linux-script install.sh \\
        --windows-script install.ps1 --param Token=...
    fleetexec resolve --file instances.txt
    fleetexec check --all

Exit codes: 0 all targets succeeded, 1 some target did not, 2 bad
configuration or arguments, 3 no targets matched, 4 other fleet errors.
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Optional, Sequence, TextIO

from . import __version__
from .backends import FleetBackend, get_backend
from .checks import check_fleet
from .config import UNKNOWN_PLATFORM_POLICIES, FleetConfig, load_config
from .error_handling import ConfigurationError, FleetExecError, NoTargetsError
from .execution import CommandTemplate
from .logging_utils import configure_logging
from .models import Platform, RunReport
from .orchestrator import Orchestrator
from .targeting import (
    AllTargets,
    ExplicitIds,
    FileList,
    TargetSelector,
    classify,
    parse_tag_expression,
    resolve,
)

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_TARGET_FAILURES = 1
EXIT_CONFIGURATION = 2
EXIT_NO_TARGETS = 3
EXIT_FLEET_ERROR = 4


def _add_common_arguments(parser: argparse.ArgumentParser) -> None:
    selector = parser.add_mutually_exclusive_group(required=True)
    selector.add_argument("--instance-ids", nargs="+", metavar="ID", help="Explicit target IDs.")
    selector.add_argument("--file", metavar="PATH", help="File with one target ID per line.")
    selector.add_argument("--tag", metavar="KEY=VALUE", help="Running targets carrying this tag.")
    selector.add_argument("--all", action="store_true", help="Every running target.")

    parser.add_argument("--config", metavar="PATH", help="YAML configuration file.")
    parser.add_argument("--region", help="AWS region (overrides configuration).")
    parser.add_argument("--profile", help="AWS named profile (overrides configuration).")
    parser.add_argument(
        "--unknown-platform",
        choices=UNKNOWN_PLATFORM_POLICIES,
        help="Group for targets of unknown platform, or 'reject' to exclude them.",
    )
    parser.add_argument("--log-level", help="Logging level (default: from configuration).")
    parser.add_argument("--json", action="store_true", help="Print JSON instead of text.")


def _parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="fleetexec",
        description="Run a command across a fleet of Linux and Windows machines via AWS Systems Manager.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    subparsers = parser.add_subparsers(dest="command", required=True)

    run = subparsers.add_parser("run", help="Dispatch a command and wait for per-target results.")
    _add_common_arguments(run)
    run.add_argument("--linux-script", metavar="FILE", help="Shell script to run on Linux targets.")
    run.add_argument(
        "--linux-document",
        metavar="NAME",
        help="SSM document for Linux targets (runs the script with it when --linux-script is given).",
    )
    run.add_argument("--windows-script", metavar="FILE", help="PowerShell script to run on Windows targets.")
    run.add_argument(
        "--windows-document",
        metavar="NAME",
        help="SSM document for Windows targets (runs the script with it when --windows-script is given).",
    )
    run.add_argument(
        "--param",
        action="append",
        default=[],
        metavar="NAME=VALUE",
        help="Parameter for {{NAME}} placeholders or document parameters. Repeatable.",
    )
    run.add_argument("--comment", help="Comment recorded with the command.")
    run.add_argument("--deadline", type=float, help="Seconds to wait before marking targets TimedOut.")
    run.add_argument("--poll-interval", type=float, help="Seconds between status polls.")
    run.add_argument("--verify", action="store_true", help="Run the verification probe on succeeded targets.")
    run.add_argument("--linux-probe", metavar="COMMAND", help="Linux verification command.")
    run.add_argument("--windows-probe", metavar="COMMAND", help="Windows verification command.")
    run.add_argument(
        "--linux-probe-marker",
        metavar="TEXT",
        help="Text the Linux probe output must contain (default: exit status alone).",
    )
    run.add_argument(
        "--windows-probe-marker",
        metavar="TEXT",
        help="Text the Windows probe output must contain (default: 'Running').",
    )

    resolve_cmd = subparsers.add_parser("resolve", help="Show resolved targets grouped by platform.")
    _add_common_arguments(resolve_cmd)

    check = subparsers.add_parser("check", help="Check that targets are managed and online.")
    _add_common_arguments(check)

    return parser.parse_args(argv)


def build_selector(args: argparse.Namespace) -> TargetSelector:
    """Build the target selector from parsed arguments."""
    if args.instance_ids:
        return ExplicitIds(args.instance_ids)
    if args.file:
        return FileList(args.file)
    if args.tag:
        return parse_tag_expression(args.tag)
    return AllTargets()


def parse_params(items: Sequence[str]) -> dict[str, str]:
    """Parse NAME=VALUE items into a parameter map.

    Raises:
        ConfigurationError: If an item has no '=' or an empty name
    """
    params: dict[str, str] = {}
    for item in items:
        name, sep, value = item.partition("=")
        if not sep or not name.strip():
            raise ConfigurationError(f"Invalid parameter '{item}'. Hint: Use the form NAME=VALUE.")
        params[name.strip()] = value
    return params


def _read_script(path: str) -> str:
    script = Path(path)
    if not script.is_file():
        raise ConfigurationError(f"Script file not found: {path}")
    return script.read_text()


def build_templates(args: argparse.Namespace) -> dict[Platform, CommandTemplate]:
    """Build per-platform command templates from parsed arguments."""
    templates: dict[Platform, CommandTemplate] = {}
    for platform in (Platform.LINUX, Platform.WINDOWS):
        script = getattr(args, f"{platform.value}_script")
        document = getattr(args, f"{platform.value}_document")
        probe = getattr(args, f"{platform.value}_probe")
        if not script and not document:
            if probe:
                logger.warning("Ignoring --%s-probe without a %s command", platform.value, platform.value)
            continue
        templates[platform] = CommandTemplate(
            document_name=document,
            body=_read_script(script) if script else None,
            verification_probe=probe,
            verification_marker=getattr(args, f"{platform.value}_probe_marker"),
        )
    return templates


def _build_config(args: argparse.Namespace) -> FleetConfig:
    config = load_config(args.config)
    if args.region:
        config.region = args.region
    if args.profile:
        config.profile = args.profile
    if args.unknown_platform:
        config.unknown_platform_policy = args.unknown_platform
    if args.log_level:
        config.log_level = args.log_level
    if getattr(args, "deadline", None) is not None:
        config.deadline = args.deadline
    if getattr(args, "poll_interval", None) is not None:
        config.poll_interval = args.poll_interval
    config.validate()
    return config


def print_report(report: RunReport, stream: Optional[TextIO] = None) -> None:
    """Print a run report as text, with diagnostics for non-success targets."""
    for entry in report.entries:
        line = f"{entry.target.label}: {entry.status.value}"
        if entry.verified is not None:
            line += " (verified)" if entry.verified else " (verification failed)"
        print(line, file=stream)

    failed = report.failed_entries()
    if failed:
        print("\nDiagnostics:", file=stream)
    for entry in failed:
        print(f"  {entry.target.label}:", file=stream)
        for diagnostic_line in (entry.diagnostic or "no diagnostic").splitlines():
            print(f"    {diagnostic_line}", file=stream)

    counts = ", ".join(f"{n} {s.value}" for s, n in report.counts.items() if n)
    print(f"\nTotal: {report.total} ({counts})", file=stream)


async def _run_command(args: argparse.Namespace, backend: FleetBackend, config: FleetConfig) -> int:
    selector = build_selector(args)
    templates = build_templates(args)
    parameters = parse_params(args.param)

    identity = await backend.verify_access()
    logger.info("Using AWS identity %s in %s", identity, config.region)

    report = await Orchestrator(backend, config).run(
        selector,
        templates,
        parameters,
        comment=args.comment,
        verify=args.verify,
    )

    if args.json:
        print(json.dumps(report.to_dict(), indent=2))
    else:
        print_report(report)
    return EXIT_OK if report.succeeded else EXIT_TARGET_FAILURES


async def _resolve_command(args: argparse.Namespace, backend: FleetBackend, config: FleetConfig) -> int:
    targets = await resolve(build_selector(args), backend)
    groups = await classify(targets, backend, config.unknown_platform_policy)

    if args.json:
        print(json.dumps({
            "total": len(targets),
            "groups": {p.value: [t.to_dict() for t in g] for p, g in groups.groups.items()},
            "excluded": [
                {**e.target.to_dict(), "reason": e.reason.value, "diagnostic": e.diagnostic}
                for e in groups.excluded
            ],
        }, indent=2))
        return EXIT_OK

    for platform, group in groups.groups.items():
        print(f"{platform.value} ({len(group)}):")
        for target in group:
            print(f"  {target.label}")
    if groups.excluded:
        print(f"excluded ({len(groups.excluded)}):")
        for exclusion in groups.excluded:
            print(f"  {exclusion.target.label}: {exclusion.diagnostic}")
    return EXIT_OK


async def _check_command(args: argparse.Namespace, backend: FleetBackend, config: FleetConfig) -> int:
    statuses = await check_fleet(build_selector(args), backend)

    if args.json:
        print(json.dumps([s.to_dict() for s in statuses], indent=2))
    else:
        for status in statuses:
            if not status.found:
                state = "not found"
            elif not status.managed:
                state = "not managed by SSM"
            else:
                state = status.node.ping_status
            print(f"{status.target.label}: {state}")
    return EXIT_OK if all(s.online for s in statuses) else EXIT_TARGET_FAILURES


_COMMANDS = {
    "run": _run_command,
    "resolve": _resolve_command,
    "check": _check_command,
}


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = _parse_args(argv)

    try:
        config = _build_config(args)
    except (ValueError, FileNotFoundError) as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return EXIT_CONFIGURATION

    configure_logging(config.log_level)
    backend = get_backend(config)

    try:
        return asyncio.run(_COMMANDS[args.command](args, backend, config))
    except ConfigurationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return EXIT_CONFIGURATION
    except NoTargetsError as e:
        print(f"No targets: {e}", file=sys.stderr)
        return EXIT_NO_TARGETS
    except FleetExecError as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_FLEET_ERROR


if __name__ == "__main__":
    sys.exit(main())
