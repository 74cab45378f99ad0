"""Tests for SSMBackend using botocore stubs."""

from datetime import datetime, timezone

import pytest
from botocore.stub import Stubber

from fleetexec.backends import SSMBackend, get_backend, reset_backend, set_backend
from fleetexec.backends.ssm_backend import instance_to_target
from fleetexec.config import FleetConfig
from fleetexec.error_handling import (
    ConfigurationError,
    DiagnosticUnavailableError,
    DispatchError,
    InventoryError,
    PollQueryError,
)
from fleetexec.models import CommandSpec, LifecycleState, Platform

from tests.mocks import FakeFleetBackend

COMMAND_ID = "11111111-2222-3333-4444-555555555555"


def instance(instance_id, state="running", platform=None, details="Linux/UNIX", name=None):
    data = {
        "InstanceId": instance_id,
        "State": {"Code": 16 if state == "running" else 80, "Name": state},
    }
    if platform:
        data["Platform"] = platform
    if details:
        data["PlatformDetails"] = details
    if name:
        data["Tags"] = [{"Key": "Name", "Value": name}, {"Key": "Team", "Value": "ops"}]
    return data


def reservations(*instances):
    return {"Reservations": [{"Instances": list(instances)}]}


@pytest.fixture
def backend(clean_env):
    return SSMBackend(region="us-east-1")


@pytest.fixture
def no_retry_sleep(monkeypatch):
    """Make tenacity retries immediate."""
    for method in ("_describe_instances", "_list_invocations", "_get_invocation"):
        monkeypatch.setattr(getattr(SSMBackend, method).retry, "sleep", lambda seconds: None)


@pytest.mark.unit
class TestInstanceToTarget:
    """Tests for EC2 instance conversion."""

    @pytest.mark.parametrize("platform,details,expected", [
        ("windows", "Windows", Platform.WINDOWS),
        (None, "Windows with SQL Server Standard", Platform.WINDOWS),
        (None, "Linux/UNIX", Platform.LINUX),
        (None, "Red Hat Enterprise Linux", Platform.LINUX),
        (None, None, Platform.UNKNOWN),
    ])
    def test_platform(self, platform, details, expected):
        target = instance_to_target(instance("i-0000000a", platform=platform, details=details))

        assert target.platform is expected

    def test_name_and_state(self):
        target = instance_to_target(instance("i-0000000a", state="stopped", name="db-1"))

        assert target.name == "db-1"
        assert target.state is LifecycleState.OTHER
        assert target.state_name == "stopped"


@pytest.mark.unit
class TestInventory:
    """Tests for EC2 inventory calls."""

    @pytest.mark.asyncio
    async def test_list_running_targets_with_tag(self, backend):
        with Stubber(backend.ec2_client) as stub:
            stub.add_response(
                "describe_instances",
                reservations(
                    instance("i-0000000a", name="web-1"),
                    instance("i-0000000b", platform="windows", details="Windows"),
                ),
                {"Filters": [
                    {"Name": "instance-state-name", "Values": ["running"]},
                    {"Name": "tag:Environment", "Values": ["Production"]},
                ]},
            )

            targets = await backend.list_running_targets(tag=("Environment", "Production"))

            stub.assert_no_pending_responses()

        assert [t.target_id for t in targets] == ["i-0000000a", "i-0000000b"]
        assert [t.platform for t in targets] == [Platform.LINUX, Platform.WINDOWS]
        assert targets[0].name == "web-1"

    @pytest.mark.asyncio
    async def test_describe_targets_uses_id_filter(self, backend):
        with Stubber(backend.ec2_client) as stub:
            stub.add_response(
                "describe_instances",
                reservations(instance("i-0000000a")),
                {"Filters": [{"Name": "instance-id", "Values": ["i-0000000a", "i-0000000f"]}]},
            )

            targets = await backend.describe_targets(["i-0000000a", "i-0000000f"])

        # Unknown IDs are simply absent
        assert [t.target_id for t in targets] == ["i-0000000a"]

    @pytest.mark.asyncio
    async def test_inventory_error(self, backend):
        with Stubber(backend.ec2_client) as stub:
            stub.add_client_error("describe_instances", "UnauthorizedOperation", "not allowed")

            with pytest.raises(InventoryError, match="Permission denied"):
                await backend.list_running_targets()

    @pytest.mark.asyncio
    async def test_throttling_is_retried(self, backend, no_retry_sleep):
        with Stubber(backend.ec2_client) as stub:
            stub.add_client_error("describe_instances", "RequestLimitExceeded", "slow down")
            stub.add_response("describe_instances", reservations(instance("i-0000000a")))

            targets = await backend.list_running_targets()

            stub.assert_no_pending_responses()

        assert len(targets) == 1


@pytest.mark.unit
class TestExecution:
    """Tests for SSM Run Command calls."""

    @pytest.mark.asyncio
    async def test_send_command(self, backend):
        spec = CommandSpec(
            platform=Platform.WINDOWS,
            document_name="AWS-RunPowerShellScript",
            inline_payload="Get-Service agent",
            comment="x" * 150,
        )
        with Stubber(backend.ssm_client) as stub:
            stub.add_response(
                "send_command",
                {"Command": {"CommandId": COMMAND_ID}},
                {
                    "DocumentName": "AWS-RunPowerShellScript",
                    "InstanceIds": ["i-0000000c"],
                    "Parameters": {"commands": ["Get-Service agent"]},
                    "Comment": "x" * 100,
                },
            )

            command_id = await backend.send_command(spec, ("i-0000000c",))

        assert command_id == COMMAND_ID

    @pytest.mark.asyncio
    async def test_send_command_not_retried(self, backend):
        spec = CommandSpec(Platform.LINUX, "AWS-RunShellScript", inline_payload="uptime")
        with Stubber(backend.ssm_client) as stub:
            stub.add_client_error("send_command", "ThrottlingException", "Rate exceeded")
            stub.add_response("send_command", {"Command": {"CommandId": "99999999-8888-7777-6666-555555555555"}})

            with pytest.raises(DispatchError) as exc_info:
                await backend.send_command(spec, ["i-0000000a"])

        assert exc_info.value.platform == "linux"

    @pytest.mark.asyncio
    async def test_list_invocations(self, backend):
        with Stubber(backend.ssm_client) as stub:
            stub.add_response(
                "list_command_invocations",
                {"CommandInvocations": [
                    {"InstanceId": "i-0000000a", "Status": "Success"},
                    {"InstanceId": "i-0000000b", "Status": "InProgress"},
                ]},
                {"CommandId": COMMAND_ID},
            )

            pairs = await backend.list_invocations(COMMAND_ID)

        assert pairs == [("i-0000000a", "Success"), ("i-0000000b", "InProgress")]

    @pytest.mark.asyncio
    async def test_list_invocations_error(self, backend):
        with Stubber(backend.ssm_client) as stub:
            stub.add_client_error("list_command_invocations", "InvalidCommandId", "bad id")

            with pytest.raises(PollQueryError):
                await backend.list_invocations(COMMAND_ID)

    @pytest.mark.asyncio
    async def test_get_invocation_output(self, backend):
        with Stubber(backend.ssm_client) as stub:
            stub.add_response(
                "get_command_invocation",
                {
                    "CommandId": COMMAND_ID,
                    "InstanceId": "i-0000000a",
                    "Status": "Failed",
                    "StatusDetails": "Failed",
                    "ResponseCode": 1,
                    "StandardOutputContent": "installing",
                    "StandardErrorContent": "E: package not found",
                },
                {"CommandId": COMMAND_ID, "InstanceId": "i-0000000a"},
            )

            output = await backend.get_invocation_output(COMMAND_ID, "i-0000000a")

        assert output.stderr == "E: package not found"
        assert output.stdout == "installing"
        assert output.response_code == 1

    @pytest.mark.asyncio
    async def test_get_invocation_output_missing(self, backend):
        with Stubber(backend.ssm_client) as stub:
            stub.add_client_error("get_command_invocation", "InvocationDoesNotExist", "")

            with pytest.raises(DiagnosticUnavailableError, match="No invocation"):
                await backend.get_invocation_output(COMMAND_ID, "i-0000000a")


@pytest.mark.unit
class TestAgentRegistration:
    """Tests for managed node lookup and credential checks."""

    @pytest.mark.asyncio
    async def test_describe_managed_nodes(self, backend):
        with Stubber(backend.ssm_client) as stub:
            stub.add_response(
                "describe_instance_information",
                {"InstanceInformationList": [{
                    "InstanceId": "i-0000000a",
                    "PingStatus": "ConnectionLost",
                    "PlatformType": "Linux",
                    "ComputerName": "web-1.internal",
                    "LastPingDateTime": datetime(2026, 1, 2, 3, 4, 5, tzinfo=timezone.utc),
                    "AgentVersion": "3.3.0.0",
                }]},
                {"Filters": [{"Key": "InstanceIds", "Values": ["i-0000000a", "i-0000000b"]}]},
            )

            nodes = await backend.describe_managed_nodes(["i-0000000a", "i-0000000b"])

        assert set(nodes) == {"i-0000000a"}
        node = nodes["i-0000000a"]
        assert not node.online
        assert node.last_ping.startswith("2026-01-02T03:04:05")

    @pytest.mark.asyncio
    async def test_verify_access(self, backend):
        with Stubber(backend.sts_client) as stub:
            stub.add_response("get_caller_identity", {
                "UserId": "AIDAEXAMPLE",
                "Account": "123456789012",
                "Arn": "arn:aws:iam::123456789012:user/ops",
            })

            assert await backend.verify_access() == "arn:aws:iam::123456789012:user/ops"

    @pytest.mark.asyncio
    async def test_verify_access_denied(self, backend):
        with Stubber(backend.sts_client) as stub:
            stub.add_client_error("get_caller_identity", "ExpiredToken", "expired")

            with pytest.raises(ConfigurationError, match="Permission denied"):
                await backend.verify_access()


@pytest.mark.unit
class TestGlobalBackend:
    """Tests for the global backend accessors."""

    def test_get_backend_builds_ssm_backend(self, clean_env):
        backend = get_backend(FleetConfig(region="eu-west-1"))

        assert isinstance(backend, SSMBackend)
        assert backend.region == "eu-west-1"
        assert get_backend() is backend

    def test_set_and_reset(self):
        fake = FakeFleetBackend()
        set_backend(fake)

        assert get_backend() is fake

        reset_backend()
        assert get_backend(FleetConfig()) is not fake
