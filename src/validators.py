"""
Validation module for bucket-policy change requests.

Provides validation functions for all request fields with structured error handling.
"""

from typing import Dict, List, Any, Tuple, Union

from egress_policy.validation import (
    validate_account_id,
    validate_bucket_name,
    validate_path_prefix,
    validate_resource_id,
)


ALLOWED_ACTIONS = ("grant", "revoke")


class ValidationError:
    """Represents a single validation error."""

    def __init__(self, field: str, message: str):
        self.field = field
        self.message = message

    def to_dict(self) -> Dict[str, str]:
        """Convert to dictionary representation."""
        return {"field": self.field, "message": self.message}


class ValidationResult:
    """Result of validation containing errors if any."""

    def __init__(self, is_valid: bool, errors: List[ValidationError] = None):
        self.is_valid = is_valid
        self.errors = errors or []

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "is_valid": self.is_valid,
            "errors": [error.to_dict() for error in self.errors],
        }


def trim_whitespace(value: str) -> str:
    """
    Trim leading and trailing whitespace from a string.

    Args:
        value: The string to trim

    Returns:
        The trimmed string
    """
    if not isinstance(value, str):
        return value
    return value.strip()


def parse_boolean(value: Union[bool, str, None]) -> Tuple[bool, bool]:
    """
    Interpret a boolean flag sent as JSON boolean or as "true"/"false".

    Returns:
        Tuple of (is_valid, value); a missing value counts as False
    """
    if value is None:
        return True, False
    if isinstance(value, bool):
        return True, value
    if isinstance(value, str):
        normalized = trim_whitespace(value).lower()
        if normalized in ("true", "false"):
            return True, normalized == "true"
    return False, False


def validate_action(value: str) -> Tuple[bool, str]:
    if not isinstance(value, str):
        return False, "Action must be a string"
    if trim_whitespace(value) not in ALLOWED_ACTIONS:
        return False, f"Action must be one of: {', '.join(ALLOWED_ACTIONS)}"
    return True, ""


def validate_policy_change_request(request_data: Dict[str, Any]) -> ValidationResult:
    """
    Validate a complete bucket-policy change request.

    Args:
        request_data: Dictionary containing all request fields

    Returns:
        ValidationResult with any validation errors
    """
    errors: List[ValidationError] = []

    # Required string fields
    required = (
        ("action", validate_action),
        ("resourceId", validate_resource_id),
        ("accountId", validate_account_id),
    )
    for field, validator in required:
        if request_data.get(field) is None:
            errors.append(ValidationError(field, "Field is required"))
            continue
        is_valid, error_msg = validator(request_data[field])
        if not is_valid:
            errors.append(ValidationError(field, error_msg))

    # Access flags
    flags = {}
    for field in ("read", "write"):
        is_valid, flags[field] = parse_boolean(request_data.get(field))
        if not is_valid:
            errors.append(ValidationError(field, f"{field} must be a boolean"))

    flag_errors = any(error.field in ("read", "write") for error in errors)
    if not flag_errors and not (flags["read"] or flags["write"]):
        errors.append(ValidationError("read", "At least one of read or write must be true"))

    # Optional fields
    path_prefix = request_data.get("pathPrefix")
    if path_prefix is not None:
        is_valid, error_msg = validate_path_prefix(path_prefix)
        if not is_valid:
            errors.append(ValidationError("pathPrefix", error_msg))

    bucket_name = request_data.get("bucketName")
    if bucket_name is not None:
        is_valid, error_msg = validate_bucket_name(bucket_name)
        if not is_valid:
            errors.append(ValidationError("bucketName", error_msg))

    return ValidationResult(is_valid=len(errors) == 0, errors=errors)
