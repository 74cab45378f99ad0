"""
AWS error handling utilities.

Maps botocore errors to user-friendly error messages and determines
which errors are retryable.
"""

from typing import Any

from botocore.exceptions import (
    ClientError,
    ConnectTimeoutError,
    EndpointConnectionError,
    NoCredentialsError,
    ReadTimeoutError,
)

_RETRYABLE_CODES = frozenset({
    "Throttling",
    "ThrottlingException",
    "RequestLimitExceeded",
    "TooManyRequestsException",
    "ServiceUnavailable",
    "InternalServerError",
    "InternalError",
    "RequestTimeout",
})

_ACCESS_CODES = frozenset({
    "AccessDenied",
    "AccessDeniedException",
    "UnauthorizedOperation",
    "UnrecognizedClientException",
    "InvalidClientTokenId",
    "ExpiredToken",
    "ExpiredTokenException",
})


def aws_error_code(exception: Any) -> str:
    """Return the AWS error code of an exception, or an empty string."""
    if isinstance(exception, ClientError):
        return exception.response.get("Error", {}).get("Code", "") or ""
    return ""


def is_retryable_aws_error(exception: Any) -> bool:
    """Determine if an AWS error is retryable.

    Throttling, transient service errors and connection timeouts
    should be retried with exponential backoff.

    Args:
        exception: The exception to check

    Returns:
        True if the error is retryable, False otherwise
    """
    if isinstance(exception, (EndpointConnectionError, ConnectTimeoutError, ReadTimeoutError)):
        return True

    return aws_error_code(exception) in _RETRYABLE_CODES


def map_aws_error(error: Exception, operation: str) -> dict[str, str]:
    """Map an AWS error to a user-friendly message with hints.

    Args:
        error: The botocore error
        operation: Description of the operation that failed (e.g., "command dispatch")

    Returns:
        Dictionary with keys:
        - error: User-friendly error message
        - hint: Actionable hint for resolving the issue
        - aws_code: The AWS error code, or UNKNOWN
    """
    if isinstance(error, NoCredentialsError):
        return {
            "error": f"No AWS credentials available during {operation}",
            "hint": (
                "1. Run 'aws configure' or export AWS_PROFILE\n"
                "2. Check the instance role if running on EC2"
            ),
            "aws_code": "NoCredentials",
        }

    if isinstance(error, (EndpointConnectionError, ConnectTimeoutError, ReadTimeoutError)):
        return {
            "error": f"Could not reach the AWS endpoint during {operation}",
            "hint": (
                "1. Verify network connectivity\n"
                "2. Check the configured region"
            ),
            "aws_code": "ConnectionError",
        }

    code = aws_error_code(error)
    if not code:
        return {
            "error": f"Unknown error during {operation}: {error}",
            "hint": "Run again with FLEETEXEC_LOG_LEVEL=DEBUG for details.",
            "aws_code": "UNKNOWN",
        }

    message = ""
    if isinstance(error, ClientError):
        message = error.response.get("Error", {}).get("Message", "") or ""

    if code in _RETRYABLE_CODES:
        return {
            "error": f"AWS throttled or was unavailable during {operation}",
            "hint": (
                "1. The API is rate limited, try again after a delay\n"
                "2. Increase the poll interval for large fleets"
            ),
            "aws_code": code,
        }

    elif code in _ACCESS_CODES:
        return {
            "error": f"Permission denied during {operation}: {message}",
            "hint": (
                "1. Check the IAM policy allows ec2:DescribeInstances, ssm:SendCommand,\n"
                "   ssm:ListCommandInvocations and ssm:GetCommandInvocation\n"
                "2. Verify the credentials are not expired"
            ),
            "aws_code": code,
        }

    elif code in ("InvalidInstanceId", "InvalidInstanceID.NotFound", "InvalidInstanceID.Malformed"):
        return {
            "error": f"Invalid or unmanaged instance during {operation}: {message}",
            "hint": (
                "1. The instance must be running and managed by Systems Manager\n"
                "2. Use the check command to see SSM management status"
            ),
            "aws_code": code,
        }

    elif code in ("InvalidDocument", "InvalidParameters", "InvalidDocumentVersion"):
        return {
            "error": f"Invalid document or parameters during {operation}: {message}",
            "hint": (
                "1. Verify the document exists in this region\n"
                "2. Check parameter names match the document definition"
            ),
            "aws_code": code,
        }

    return {
        "error": f"AWS error during {operation}: {code} - {message}",
        "hint": "Check the AWS console or CloudTrail for details.",
        "aws_code": code,
    }
