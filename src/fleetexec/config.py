"""
Configuration management for fleetexec.

Settings come from a YAML file or from environment variables.
"""

import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Optional

import yaml

UNKNOWN_PLATFORM_POLICIES = ("linux", "windows", "reject")

# SendCommand accepts at most 50 instance IDs per call
MAX_DISPATCH_BATCH = 50


@dataclass
class FleetConfig:
    """Settings for one orchestration run.

    Attributes:
        region: AWS region
        profile: AWS named profile (None = default credential chain)
        poll_interval: Seconds between status polls (None = platform default)
        deadline: Seconds to wait for a command before forcing TimedOut
        verify_deadline: Seconds to wait for the verification probe
        unknown_platform_policy: Group for targets of unknown platform,
            or 'reject' to exclude them
        max_targets_per_dispatch: Batch size for one SendCommand call
        diagnostic_concurrency: Parallel diagnostic fetches
        log_level: Logging level name
    """
    region: str = "us-east-1"
    profile: Optional[str] = None
    poll_interval: Optional[float] = None
    deadline: float = 900.0
    verify_deadline: float = 120.0
    unknown_platform_policy: str = "linux"
    max_targets_per_dispatch: int = MAX_DISPATCH_BATCH
    diagnostic_concurrency: int = 5
    log_level: str = "INFO"

    @classmethod
    def from_config_file(cls, config_path: str) -> "FleetConfig":
        """Load configuration from a YAML file.

        Args:
            config_path: Path to the YAML configuration file

        Returns:
            FleetConfig instance

        Raises:
            FileNotFoundError: If the file does not exist
            ValueError: If the file is not a mapping or has unknown keys
        """
        path = Path(config_path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")

        with open(path, "r") as f:
            data = yaml.safe_load(f) or {}

        if not isinstance(data, dict):
            raise ValueError(f"Config file must contain a mapping: {config_path}")

        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ValueError(f"Unknown config keys in {config_path}: {', '.join(unknown)}")

        return cls(**_coerce(data))

    @classmethod
    def from_env(cls) -> "FleetConfig":
        """Load configuration from environment variables."""
        data: dict[str, Any] = {}

        region = os.environ.get("FLEETEXEC_REGION") or os.environ.get("AWS_REGION")
        if region:
            data["region"] = region
        if os.environ.get("AWS_PROFILE"):
            data["profile"] = os.environ["AWS_PROFILE"]

        env_map = {
            "FLEETEXEC_POLL_INTERVAL": "poll_interval",
            "FLEETEXEC_DEADLINE": "deadline",
            "FLEETEXEC_VERIFY_DEADLINE": "verify_deadline",
            "FLEETEXEC_UNKNOWN_PLATFORM": "unknown_platform_policy",
            "FLEETEXEC_MAX_BATCH": "max_targets_per_dispatch",
            "FLEETEXEC_DIAGNOSTIC_CONCURRENCY": "diagnostic_concurrency",
            "FLEETEXEC_LOG_LEVEL": "log_level",
        }
        for var, name in env_map.items():
            value = os.environ.get(var)
            if value:
                data[name] = value

        return cls(**_coerce(data))

    def validate(self) -> None:
        """Validate the configuration.

        Raises:
            ValueError: If a setting is out of range
        """
        if not self.region:
            raise ValueError("AWS region is required")
        if self.poll_interval is not None and self.poll_interval <= 0:
            raise ValueError("poll_interval must be positive")
        if self.deadline <= 0:
            raise ValueError("deadline must be positive")
        if self.verify_deadline <= 0:
            raise ValueError("verify_deadline must be positive")
        if self.unknown_platform_policy not in UNKNOWN_PLATFORM_POLICIES:
            raise ValueError(
                f"unknown_platform_policy must be one of: {', '.join(UNKNOWN_PLATFORM_POLICIES)}"
            )
        if not 1 <= self.max_targets_per_dispatch <= MAX_DISPATCH_BATCH:
            raise ValueError(
                f"max_targets_per_dispatch must be between 1 and {MAX_DISPATCH_BATCH}"
            )
        if self.diagnostic_concurrency < 1:
            raise ValueError("diagnostic_concurrency must be at least 1")


def _coerce(data: dict[str, Any]) -> dict[str, Any]:
    """Convert raw YAML/env values to the field types."""
    result = dict(data)
    for name in ("poll_interval", "deadline", "verify_deadline"):
        if result.get(name) is not None:
            result[name] = float(result[name])
    for name in ("max_targets_per_dispatch", "diagnostic_concurrency"):
        if result.get(name) is not None:
            result[name] = int(result[name])
    if result.get("unknown_platform_policy") is not None:
        result["unknown_platform_policy"] = str(result["unknown_platform_policy"]).lower()
    return result


def load_config(config_path: Optional[str] = None) -> FleetConfig:
    """Load and validate configuration.

    Checks, in order: the explicit path, FLEETEXEC_CONFIG_PATH, then
    environment variables (falling back to defaults).

    Returns:
        Validated FleetConfig

    Raises:
        FileNotFoundError: If a config file path is given but missing
        ValueError: If the configuration is invalid
    """
    path = config_path or os.environ.get("FLEETEXEC_CONFIG_PATH")
    if path:
        config = FleetConfig.from_config_file(path)
    else:
        config = FleetConfig.from_env()

    config.validate()
    return config
