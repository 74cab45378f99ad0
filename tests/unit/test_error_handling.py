"""
Unit tests for error handling utilities.

Tests validators, AWS error handlers, and SSM invocation hint extraction.
"""

import pytest
from botocore.exceptions import ClientError, EndpointConnectionError, NoCredentialsError

from fleetexec.error_handling import (
    UnknownStatusError,
    extract_invocation_hint,
    is_retryable_aws_error,
    map_aws_error,
    tail_output,
    validate_instance_id,
    validate_poll_settings,
    validate_tag_filter,
)


def client_error(code: str, message: str = "boom", operation: str = "SendCommand") -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": message}}, operation)


# ==================== Validator Tests ====================


@pytest.mark.unit
@pytest.mark.parametrize("instance_id", [
    "i-0123abcd",
    "i-0123456789abcdef0",
    "mi-0123456789abcdef0",
])
def test_validate_instance_id_valid(instance_id):
    """Valid instance IDs pass validation."""
    assert validate_instance_id(instance_id) == instance_id


@pytest.mark.unit
def test_validate_instance_id_strips_whitespace():
    assert validate_instance_id("  i-0123abcd\n") == "i-0123abcd"


@pytest.mark.unit
def test_validate_instance_id_empty():
    """Empty instance ID raises ValueError."""
    with pytest.raises(ValueError) as exc_info:
        validate_instance_id("  ")
    assert "cannot be empty" in str(exc_info.value)
    assert "Hint:" in str(exc_info.value)


@pytest.mark.unit
@pytest.mark.parametrize("instance_id", ["i-1", "web-01", "i-0123ABCD", "i-0123456789abcdef"])
def test_validate_instance_id_invalid_format(instance_id):
    """Malformed instance IDs raise ValueError naming the input."""
    with pytest.raises(ValueError) as exc_info:
        validate_instance_id(instance_id)
    assert "Invalid instance ID format" in str(exc_info.value)
    assert instance_id in str(exc_info.value)


@pytest.mark.unit
def test_validate_tag_filter_valid():
    assert validate_tag_filter(" Environment ", "Production ") == ("Environment", "Production")


@pytest.mark.unit
@pytest.mark.parametrize("key,value,message", [
    ("", "Production", "Tag key cannot be empty"),
    ("Environment", " ", "cannot be empty"),
])
def test_validate_tag_filter_invalid(key, value, message):
    with pytest.raises(ValueError, match=message):
        validate_tag_filter(key, value)


@pytest.mark.unit
def test_validate_poll_settings():
    assert validate_poll_settings(10.0, 900.0) == (10.0, 900.0)

    with pytest.raises(ValueError, match="Poll interval must be positive"):
        validate_poll_settings(0, 900)

    with pytest.raises(ValueError, match="Deadline must be positive"):
        validate_poll_settings(10, -1)


# ==================== AWS Handler Tests ====================


@pytest.mark.unit
@pytest.mark.parametrize("code", ["ThrottlingException", "RequestLimitExceeded", "InternalServerError"])
def test_is_retryable_throttling(code):
    """Throttling and transient service errors are retryable."""
    assert is_retryable_aws_error(client_error(code)) is True


@pytest.mark.unit
def test_is_retryable_connection_error():
    error = EndpointConnectionError(endpoint_url="https://ssm.us-east-1.amazonaws.com")
    assert is_retryable_aws_error(error) is True


@pytest.mark.unit
@pytest.mark.parametrize("error", [
    client_error("AccessDeniedException"),
    client_error("InvalidInstanceId"),
    ValueError("not an AWS error"),
])
def test_is_not_retryable(error):
    assert is_retryable_aws_error(error) is False


@pytest.mark.unit
def test_map_aws_error_access_denied():
    """Access errors carry the AWS message and an IAM hint."""
    result = map_aws_error(client_error("AccessDeniedException", "not authorized"), "command dispatch")

    assert "Permission denied during command dispatch" in result["error"]
    assert "not authorized" in result["error"]
    assert "ssm:SendCommand" in result["hint"]
    assert result["aws_code"] == "AccessDeniedException"


@pytest.mark.unit
def test_map_aws_error_no_credentials():
    result = map_aws_error(NoCredentialsError(), "instance listing")

    assert result["aws_code"] == "NoCredentials"
    assert "aws configure" in result["hint"]


@pytest.mark.unit
def test_map_aws_error_invalid_instance():
    result = map_aws_error(client_error("InvalidInstanceId"), "command dispatch")

    assert "managed by Systems Manager" in result["hint"]


@pytest.mark.unit
def test_map_aws_error_unknown():
    result = map_aws_error(RuntimeError("weird"), "status query")

    assert result["aws_code"] == "UNKNOWN"
    assert "weird" in result["error"]


# ==================== SSM Helper Tests ====================


@pytest.mark.unit
@pytest.mark.parametrize("details,fragment", [
    ("Undeliverable", "SSM agent is probably offline"),
    ("DeliveryTimedOut", "delivery timeout"),
    ("ExecutionTimedOut", "executionTimeout"),
    ("InvalidPlatform", "platform"),
])
def test_extract_invocation_hint(details, fragment):
    assert fragment in extract_invocation_hint(details)


@pytest.mark.unit
@pytest.mark.parametrize("details", [None, "", "Failed", "Success"])
def test_extract_invocation_hint_nothing_to_add(details):
    assert extract_invocation_hint(details) is None


@pytest.mark.unit
def test_tail_output():
    assert tail_output(None) == ""
    assert tail_output("  short\n") == "short"

    tailed = tail_output("x" * 50 + "END", max_chars=10)
    assert tailed.startswith("...(truncated)")
    assert tailed.endswith("END")


@pytest.mark.unit
def test_unknown_status_error_keeps_raw_value():
    error = UnknownStatusError("Exploded")

    assert error.raw_status == "Exploded"
    assert "Exploded" in str(error)
