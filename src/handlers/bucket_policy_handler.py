"""
Lambda handler for bucket-policy grant/revoke requests.

Invoked directly (not through API Gateway) by the services that create egress
stores and workspaces. Validates the request, then adds or removes an AWS
account in the egress-store bucket policy under the bucket's write lock.
"""

import json
import os
from typing import Dict, Any, Optional

from egress_policy import (
    EgressPolicyError,
    LockUnavailableError,
    PolicyLockSettings,
    create_bucket_policy_updater,
    load_settings,
)
from egress_policy.log import configure_logging
from egress_policy.policy import build_statement_templates

from src.models import create_policy_change_request
from src.validators import trim_whitespace, parse_boolean, validate_policy_change_request


# Lazily initialized updater (tests patch this symbol).
updater = None


def get_updater(settings: Optional[PolicyLockSettings] = None):
    """
    Get the BucketPolicyUpdater, creating boto3 clients on first use.

    Raises:
        ConfigurationError: If LOCKS_TABLE is not set or a lock setting is invalid
    """
    global updater
    if updater is None:
        updater = create_bucket_policy_updater(settings or load_settings())
    return updater


def format_error_response(status_code: int, error_message: str, details: list = None) -> Dict[str, Any]:
    """
    Format an error response.

    Args:
        status_code: HTTP status code
        error_message: Main error message
        details: Optional list of detailed error objects

    Returns:
        Dictionary with statusCode and body
    """
    body = {
        "error": error_message,
    }
    if details:
        body["details"] = details

    return {
        "statusCode": status_code,
        "body": json.dumps(body),
        "headers": {
            "Content-Type": "application/json",
        },
    }


def format_success_response(request_id: str, action: str, bucket: str, statement_ids: list) -> Dict[str, Any]:
    """
    Format a success response.

    Args:
        request_id: The generated request ID
        action: "grant" or "revoke"
        bucket: Bucket whose policy was updated
        statement_ids: Sids of the statements the request touched

    Returns:
        Dictionary with statusCode and body
    """
    return {
        "statusCode": 200,
        "body": json.dumps({
            "request_id": request_id,
            "action": action,
            "bucket": bucket,
            "statementIds": statement_ids,
        }),
        "headers": {
            "Content-Type": "application/json",
        },
    }


def parse_event_body(event: Dict[str, Any]) -> Dict[str, Any]:
    """
    Return the request payload of a direct invocation.

    Accepts the payload itself or an API Gateway-style {"body": "<json>"} wrapper.

    Raises:
        ValueError: If the body is not valid JSON or not an object
    """
    body = event.get("body", event)
    if isinstance(body, str):
        try:
            body = json.loads(body)
        except json.JSONDecodeError as e:
            raise ValueError("Invalid JSON in request body") from e
    if not isinstance(body, dict):
        raise ValueError("Request body must be a JSON object")
    return body


def lambda_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """
    Handle a grant or revoke request.

    Args:
        event: Request payload (action, resourceId, accountId, read, write, ...)
        context: Lambda context object

    Returns:
        Response with statusCode and body
    """
    aws_request_id = getattr(context, "aws_request_id", None) or "-"
    log = configure_logging(request_id=aws_request_id, level=os.environ.get("LOG_LEVEL", "INFO"))

    try:
        try:
            body = parse_event_body(event)
        except ValueError as e:
            return format_error_response(400, str(e))

        validation_result = validate_policy_change_request(body)
        if not validation_result.is_valid:
            error_details = [error.to_dict() for error in validation_result.errors]
            return format_error_response(400, "Validation failed", error_details)

        settings = load_settings()
        bucket_name = trim_whitespace(body.get("bucketName") or "") or settings.egress_store_bucket_name
        if not bucket_name:
            return format_error_response(
                400,
                "Validation failed",
                [{"field": "bucketName", "message": "Field is required when EGRESS_STORE_BUCKET is not set"}],
            )

        path_prefix = body.get("pathPrefix")
        change_request = create_policy_change_request(
            action=trim_whitespace(body["action"]),
            resource_id=trim_whitespace(body["resourceId"]),
            bucket_name=bucket_name,
            account_id=trim_whitespace(body["accountId"]),
            read=parse_boolean(body.get("read"))[1],
            write=parse_boolean(body.get("write"))[1],
            path_prefix=trim_whitespace(path_prefix) if path_prefix else None,
        )
        grant = change_request.to_grant()
        request_context = body.get("requestContext") if isinstance(body.get("requestContext"), dict) else None

        log.info(
            "%s request %s: resource %s, account %s, bucket %s",
            change_request.action,
            change_request.request_id,
            grant.resource_id,
            grant.grantee_account_id,
            grant.bucket_name,
        )

        policy_updater = get_updater(settings)
        if change_request.action == "grant":
            policy_updater.grant_access(grant, request_context=request_context)
        else:
            policy_updater.revoke_access(grant, request_context=request_context)

        statement_ids = [template["Sid"] for template in build_statement_templates(grant)]
        return format_success_response(
            change_request.request_id, change_request.action, grant.bucket_name, statement_ids
        )

    except LockUnavailableError as e:
        log.warning("bucket policy lock unavailable: %s", e)
        return format_error_response(503, str(e))
    except EgressPolicyError as e:
        log.error("bucket policy update failed (%s): %s", e.code, e)
        return format_error_response(500, "Failed to update bucket policy")
    except Exception as e:
        log.exception("Unexpected error in bucket policy handler: %s", e)
        return format_error_response(500, "Internal server error")
