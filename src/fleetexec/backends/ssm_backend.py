"""
AWS Systems Manager backend.

Uses EC2 for inventory and SSM Run Command for remote execution.
"""

import asyncio
import logging
from typing import Any, Optional, Sequence

import boto3
from botocore.exceptions import BotoCoreError, ClientError
from tenacity import retry, stop_after_attempt, wait_exponential, retry_if_exception

from .base import FleetBackend, ManagedNode
from ..error_handling import (
    ConfigurationError,
    DiagnosticUnavailableError,
    DispatchError,
    InventoryError,
    PollQueryError,
    aws_error_code,
    is_retryable_aws_error,
    map_aws_error,
)
from ..models import CommandSpec, InvocationOutput, LifecycleState, Platform, Target

logger = logging.getLogger(__name__)

# EC2 filter values are limited to 200 per filter
_DESCRIBE_CHUNK = 200
_MANAGED_CHUNK = 50
_COMMENT_MAX = 100

_read_retry = retry(
    retry=retry_if_exception(is_retryable_aws_error),
    wait=wait_exponential(multiplier=1, min=1, max=10),
    stop=stop_after_attempt(3),
    reraise=True,
)


def _chunks(items: Sequence[str], size: int) -> list[list[str]]:
    return [list(items[i:i + size]) for i in range(0, len(items), size)]


def _platform_of(instance: dict[str, Any]) -> Platform:
    """Derive the platform family of an EC2 instance description."""
    platform = (instance.get("Platform") or "").lower()
    details = instance.get("PlatformDetails") or ""
    if platform == "windows" or "windows" in details.lower():
        return Platform.WINDOWS
    if details:
        return Platform.LINUX
    return Platform.UNKNOWN


def _name_of(instance: dict[str, Any]) -> Optional[str]:
    for tag in instance.get("Tags", []) or []:
        if tag.get("Key") == "Name":
            return tag.get("Value") or None
    return None


def instance_to_target(instance: dict[str, Any]) -> Target:
    """Convert one EC2 instance description to a Target."""
    state_name = (instance.get("State") or {}).get("Name")
    return Target(
        target_id=instance["InstanceId"],
        platform=_platform_of(instance),
        state=LifecycleState.from_raw(state_name),
        name=_name_of(instance),
        state_name=state_name,
    )


def _describe_error(error: Exception, operation: str) -> str:
    info = map_aws_error(error, operation)
    return f"{info['error']}. {info['hint']}"


class SSMBackend(FleetBackend):
    """Fleet backend on EC2 + SSM Run Command.

    Clients are created lazily. Read-only calls are retried on
    throttling; SendCommand is never retried.
    """

    def __init__(self, region: str = "us-east-1", profile: Optional[str] = None):
        """Initialize the backend.

        Args:
            region: AWS region
            profile: Named AWS profile (None = default credential chain)
        """
        self.region = region
        self.profile = profile
        self._session = None
        self._ec2_client = None
        self._ssm_client = None
        self._sts_client = None

    @property
    def session(self):
        """Get or create the boto3 session."""
        if self._session is None:
            self._session = boto3.session.Session(
                profile_name=self.profile,
                region_name=self.region,
            )
        return self._session

    @property
    def ec2_client(self):
        """Get or create EC2 client."""
        if self._ec2_client is None:
            self._ec2_client = self.session.client("ec2", region_name=self.region)
        return self._ec2_client

    @property
    def ssm_client(self):
        """Get or create SSM client."""
        if self._ssm_client is None:
            self._ssm_client = self.session.client("ssm", region_name=self.region)
        return self._ssm_client

    @property
    def sts_client(self):
        """Get or create STS client."""
        if self._sts_client is None:
            self._sts_client = self.session.client("sts", region_name=self.region)
        return self._sts_client

    # ---- inventory ----

    @_read_retry
    def _describe_instances(self, filters: list[dict[str, Any]]) -> list[Target]:
        paginator = self.ec2_client.get_paginator("describe_instances")
        targets = []
        for page in paginator.paginate(Filters=filters):
            for reservation in page.get("Reservations", []):
                for instance in reservation.get("Instances", []):
                    targets.append(instance_to_target(instance))
        return targets

    async def list_running_targets(
        self,
        tag: Optional[tuple[str, str]] = None,
    ) -> list[Target]:
        filters = [{"Name": "instance-state-name", "Values": ["running"]}]
        if tag:
            key, value = tag
            filters.append({"Name": f"tag:{key}", "Values": [value]})

        try:
            return await asyncio.to_thread(self._describe_instances, filters)
        except (ClientError, BotoCoreError) as e:
            raise InventoryError(_describe_error(e, "instance listing")) from e

    async def describe_targets(self, target_ids: Sequence[str]) -> list[Target]:
        targets: list[Target] = []
        try:
            for chunk in _chunks(target_ids, _DESCRIBE_CHUNK):
                filters = [{"Name": "instance-id", "Values": chunk}]
                targets.extend(await asyncio.to_thread(self._describe_instances, filters))
        except (ClientError, BotoCoreError) as e:
            raise InventoryError(_describe_error(e, "instance description")) from e
        return targets

    # ---- execution ----

    def _send_command(self, spec: CommandSpec, target_ids: list[str]) -> str:
        kwargs: dict[str, Any] = {
            "DocumentName": spec.document_name,
            "InstanceIds": target_ids,
            "Parameters": spec.wire_parameters(),
        }
        if spec.comment:
            kwargs["Comment"] = spec.comment[:_COMMENT_MAX]
        response = self.ssm_client.send_command(**kwargs)
        return response["Command"]["CommandId"]

    async def send_command(self, spec: CommandSpec, target_ids: Sequence[str]) -> str:
        try:
            return await asyncio.to_thread(self._send_command, spec, list(target_ids))
        except (ClientError, BotoCoreError) as e:
            raise DispatchError(
                _describe_error(e, f"{spec.platform.value} command dispatch"),
                platform=spec.platform.value,
            ) from e

    @_read_retry
    def _list_invocations(self, command_id: str) -> list[tuple[str, str]]:
        paginator = self.ssm_client.get_paginator("list_command_invocations")
        pairs = []
        for page in paginator.paginate(CommandId=command_id):
            for invocation in page.get("CommandInvocations", []):
                pairs.append((invocation["InstanceId"], invocation["Status"]))
        return pairs

    async def list_invocations(self, command_id: str) -> list[tuple[str, str]]:
        try:
            return await asyncio.to_thread(self._list_invocations, command_id)
        except (ClientError, BotoCoreError) as e:
            raise PollQueryError(_describe_error(e, f"status query for {command_id}")) from e

    @_read_retry
    def _get_invocation(self, command_id: str, target_id: str) -> dict[str, Any]:
        return self.ssm_client.get_command_invocation(
            CommandId=command_id,
            InstanceId=target_id,
        )

    async def get_invocation_output(self, command_id: str, target_id: str) -> InvocationOutput:
        try:
            response = await asyncio.to_thread(self._get_invocation, command_id, target_id)
        except (ClientError, BotoCoreError) as e:
            if aws_error_code(e) == "InvocationDoesNotExist":
                raise DiagnosticUnavailableError(
                    f"No invocation of {command_id} recorded for {target_id}"
                ) from e
            raise DiagnosticUnavailableError(
                _describe_error(e, f"output fetch for {target_id}")
            ) from e

        response_code = response.get("ResponseCode")
        return InvocationOutput(
            stdout=response.get("StandardOutputContent", "") or "",
            stderr=response.get("StandardErrorContent", "") or "",
            status_details=response.get("StatusDetails"),
            response_code=response_code if response_code is not None and response_code >= 0 else None,
        )

    # ---- agent registration ----

    @_read_retry
    def _describe_instance_information(self, target_ids: list[str]) -> list[dict[str, Any]]:
        paginator = self.ssm_client.get_paginator("describe_instance_information")
        rows = []
        for page in paginator.paginate(Filters=[{"Key": "InstanceIds", "Values": target_ids}]):
            rows.extend(page.get("InstanceInformationList", []))
        return rows

    async def describe_managed_nodes(self, target_ids: Sequence[str]) -> dict[str, ManagedNode]:
        nodes: dict[str, ManagedNode] = {}
        try:
            for chunk in _chunks(target_ids, _MANAGED_CHUNK):
                rows = await asyncio.to_thread(self._describe_instance_information, chunk)
                for row in rows:
                    last_ping = row.get("LastPingDateTime")
                    nodes[row["InstanceId"]] = ManagedNode(
                        target_id=row["InstanceId"],
                        ping_status=row.get("PingStatus", "Unknown"),
                        platform_type=row.get("PlatformType"),
                        computer_name=row.get("ComputerName"),
                        last_ping=last_ping.isoformat() if hasattr(last_ping, "isoformat") else last_ping,
                        agent_version=row.get("AgentVersion"),
                    )
        except (ClientError, BotoCoreError) as e:
            raise InventoryError(_describe_error(e, "managed node lookup")) from e
        return nodes

    async def verify_access(self) -> str:
        try:
            identity = await asyncio.to_thread(self.sts_client.get_caller_identity)
        except (ClientError, BotoCoreError) as e:
            raise ConfigurationError(_describe_error(e, "credential check")) from e
        logger.debug("Authenticated as %s", identity.get("Arn"))
        return identity.get("Arn", "")
