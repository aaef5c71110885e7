"""
Parsing and serialization of bucket-policy JSON documents.
"""

from __future__ import annotations

import json
from typing import Any, Optional

from ..errors import MalformedPolicyDocumentError


def empty_policy_document() -> dict[str, Any]:
    return {"Statement": []}


def parse_policy_document(text: Optional[str]) -> dict[str, Any]:
    """
    Parse a bucket policy into a dict with a list-valued "Statement".

    A bucket without a policy (None or empty text) yields an empty document,
    and a document without "Statement" gets an empty one.

    Raises:
        MalformedPolicyDocumentError: If the JSON is invalid or has the wrong shape
    """
    if text is None or not text.strip():
        return empty_policy_document()

    try:
        document = json.loads(text)
    except json.JSONDecodeError as e:
        raise MalformedPolicyDocumentError(f"Bucket policy is not valid JSON: {e}") from e

    if not isinstance(document, dict):
        raise MalformedPolicyDocumentError("Bucket policy must be a JSON object")

    statements = document.get("Statement")
    if statements is None:
        document["Statement"] = []
    elif isinstance(statements, dict):
        # IAM accepts a single statement object in place of the array.
        document["Statement"] = [statements]
    elif not isinstance(statements, list):
        raise MalformedPolicyDocumentError("Bucket policy 'Statement' must be an array")

    for index, statement in enumerate(document["Statement"]):
        if not isinstance(statement, dict):
            raise MalformedPolicyDocumentError(f"Bucket policy statement #{index} must be an object")

    return document


def serialize_policy_document(document: dict[str, Any]) -> str:
    """Compact JSON for put_bucket_policy (policies are size-limited to 20 KB)."""
    return json.dumps(document, separators=(",", ":"))


def with_statements(document: dict[str, Any], statements: list[dict]) -> dict[str, Any]:
    """Return a shallow copy of `document` with its statement array replaced."""
    revised = dict(document)
    revised["Statement"] = statements
    return revised
