"""Tests for configuration handling."""

import pytest
import yaml

from fleetexec.config import FleetConfig, load_config


@pytest.mark.unit
class TestFleetConfig:
    """Tests for FleetConfig class."""

    def test_defaults(self):
        """Defaults match the original tooling."""
        config = FleetConfig()

        assert config.region == "us-east-1"
        assert config.poll_interval is None
        assert config.deadline == 900.0
        assert config.unknown_platform_policy == "linux"
        assert config.max_targets_per_dispatch == 50

    def test_from_config_file(self, tmp_path):
        """Test loading config from a YAML file."""
        config_data = {
            "region": "eu-west-1",
            "profile": "ops",
            "poll_interval": 3,
            "deadline": 600,
            "unknown_platform_policy": "Reject",
            "max_targets_per_dispatch": "25",
        }

        config_file = tmp_path / "fleetexec.yaml"
        with open(config_file, "w") as f:
            yaml.dump(config_data, f)

        config = FleetConfig.from_config_file(str(config_file))

        assert config.region == "eu-west-1"
        assert config.profile == "ops"
        assert config.poll_interval == 3.0
        assert config.deadline == 600.0
        assert config.unknown_platform_policy == "reject"
        assert config.max_targets_per_dispatch == 25

    def test_from_config_file_not_found(self):
        """Test error when config file doesn't exist."""
        with pytest.raises(FileNotFoundError):
            FleetConfig.from_config_file("/nonexistent/path.yaml")

    def test_from_config_file_unknown_key(self, tmp_path):
        """Unknown keys are rejected rather than ignored."""
        config_file = tmp_path / "fleetexec.yaml"
        config_file.write_text("region: us-east-2\npoll_intreval: 5\n")

        with pytest.raises(ValueError, match="poll_intreval"):
            FleetConfig.from_config_file(str(config_file))

    def test_from_config_file_not_mapping(self, tmp_path):
        config_file = tmp_path / "fleetexec.yaml"
        config_file.write_text("- a\n- b\n")

        with pytest.raises(ValueError, match="mapping"):
            FleetConfig.from_config_file(str(config_file))

    def test_from_env(self, clean_env, monkeypatch):
        """Test loading config from environment variables."""
        monkeypatch.setenv("FLEETEXEC_REGION", "ap-southeast-2")
        monkeypatch.setenv("AWS_PROFILE", "fleet")
        monkeypatch.setenv("FLEETEXEC_POLL_INTERVAL", "2.5")
        monkeypatch.setenv("FLEETEXEC_DEADLINE", "120")
        monkeypatch.setenv("FLEETEXEC_UNKNOWN_PLATFORM", "windows")
        monkeypatch.setenv("FLEETEXEC_DIAGNOSTIC_CONCURRENCY", "2")

        config = FleetConfig.from_env()

        assert config.region == "ap-southeast-2"
        assert config.profile == "fleet"
        assert config.poll_interval == 2.5
        assert config.deadline == 120.0
        assert config.unknown_platform_policy == "windows"
        assert config.diagnostic_concurrency == 2

    def test_from_env_falls_back_to_aws_region(self, clean_env, monkeypatch):
        monkeypatch.setenv("AWS_REGION", "us-west-2")

        assert FleetConfig.from_env().region == "us-west-2"

    def test_validate_missing_region(self):
        """Test validation fails without a region."""
        with pytest.raises(ValueError, match="AWS region is required"):
            FleetConfig(region="").validate()

    @pytest.mark.parametrize("field,value,message", [
        ("deadline", 0, "deadline must be positive"),
        ("poll_interval", -1.0, "poll_interval must be positive"),
        ("verify_deadline", 0, "verify_deadline must be positive"),
        ("unknown_platform_policy", "macos", "unknown_platform_policy"),
        ("max_targets_per_dispatch", 51, "between 1 and 50"),
        ("diagnostic_concurrency", 0, "diagnostic_concurrency"),
    ])
    def test_validate_out_of_range(self, field, value, message):
        config = FleetConfig(**{field: value})

        with pytest.raises(ValueError, match=message):
            config.validate()

    def test_validate_success(self):
        """Test validation passes with defaults."""
        # Should not raise
        FleetConfig().validate()


@pytest.mark.unit
class TestLoadConfig:
    """Tests for load_config function."""

    def test_load_from_env_config_path(self, tmp_path, monkeypatch):
        """Test loading config via FLEETEXEC_CONFIG_PATH."""
        config_file = tmp_path / "fleetexec.yaml"
        with open(config_file, "w") as f:
            yaml.dump({"region": "ca-central-1"}, f)

        monkeypatch.setenv("FLEETEXEC_CONFIG_PATH", str(config_file))

        config = load_config()

        assert config.region == "ca-central-1"

    def test_explicit_path_wins(self, tmp_path, monkeypatch):
        env_file = tmp_path / "env.yaml"
        env_file.write_text("region: eu-north-1\n")
        explicit_file = tmp_path / "explicit.yaml"
        explicit_file.write_text("region: sa-east-1\n")
        monkeypatch.setenv("FLEETEXEC_CONFIG_PATH", str(env_file))

        assert load_config(str(explicit_file)).region == "sa-east-1"

    def test_load_without_config_uses_defaults(self, clean_env):
        config = load_config()

        assert config.region == "us-east-1"

    def test_load_invalid_raises(self, clean_env, monkeypatch):
        monkeypatch.setenv("FLEETEXEC_DEADLINE", "-5")

        with pytest.raises(ValueError, match="deadline must be positive"):
            load_config()
