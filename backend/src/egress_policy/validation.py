"""
Field validators shared by the Lambda handler and the operator CLI.

Each validator returns (is_valid, error_message); surrounding whitespace is
ignored.
"""

import re
from typing import Tuple

_ACCOUNT_ID = re.compile(r"[0-9]{12}")
_RESOURCE_ID = re.compile(r"[A-Za-z0-9][A-Za-z0-9_.-]{0,99}")
_BUCKET_NAME = re.compile(r"[a-z0-9][a-z0-9.-]{1,61}[a-z0-9]")


def validate_account_id(value: str) -> Tuple[bool, str]:
    """
    Validate an AWS account id (exactly 12 digits).

    Args:
        value: The account id to validate

    Returns:
        Tuple of (is_valid, error_message)
    """
    if not isinstance(value, str):
        return False, "Account id must be a string"
    if not _ACCOUNT_ID.fullmatch(value.strip()):
        return False, "Account id must be exactly 12 digits"
    return True, ""


def validate_resource_id(value: str) -> Tuple[bool, str]:
    """
    Validate a resource id used in statement ids and default prefixes.

    Args:
        value: The resource id to validate

    Returns:
        Tuple of (is_valid, error_message)
    """
    if not isinstance(value, str):
        return False, "Resource id must be a string"
    if not _RESOURCE_ID.fullmatch(value.strip()):
        return False, "Resource id must be 1-100 characters of letters, digits, '.', '_' or '-'"
    return True, ""


def validate_path_prefix(value: str) -> Tuple[bool, str]:
    """
    Validate an object key prefix.

    The prefix must end with "/" and may not start with "/" or contain
    wildcard characters, since it is embedded into ARNs and conditions.

    Args:
        value: The prefix to validate

    Returns:
        Tuple of (is_valid, error_message)
    """
    if not isinstance(value, str):
        return False, "Path prefix must be a string"

    value = value.strip()
    if not value:
        return False, "Path prefix must not be empty"
    if value.startswith("/"):
        return False, "Path prefix must not start with '/'"
    if not value.endswith("/"):
        return False, "Path prefix must end with '/'"
    if "*" in value or "?" in value:
        return False, "Path prefix must not contain wildcards"
    return True, ""


def validate_bucket_name(value: str) -> Tuple[bool, str]:
    if not isinstance(value, str):
        return False, "Bucket name must be a string"
    value = value.strip()
    if not _BUCKET_NAME.fullmatch(value) or ".." in value:
        return False, "Invalid S3 bucket name"
    return True, ""
