"""
Runtime configuration for the bucket-policy updater.

Loads .env and builds an explicit settings object that is handed to the lock
service and the updater at construction time. Nothing below this module reads
the environment on its own.

Environment variables:
  - LOCKS_TABLE                        (required; DynamoDB table holding lock records)
  - AUDIT_TABLE                        (optional; DynamoDB table for audit events, empty = log only)
  - EGRESS_STORE_BUCKET                (optional; default bucket for egress-store grants)
  - AWS_REGION                         (optional; boto3 falls back to its own resolution)
  - BUCKET_POLICY_LOCK_TTL_SECONDS     (optional, default: 25)
  - BUCKET_POLICY_LOCK_MAX_ATTEMPTS    (optional, default: 15)
  - BUCKET_POLICY_LOCK_WAIT_SECONDS    (optional, default: 1.0)
  - LOG_LEVEL                          (optional, default: INFO)
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

from dotenv import load_dotenv

from .errors import ConfigurationError


DEFAULT_LOCK_TTL_SECONDS = 25
DEFAULT_LOCK_MAX_ATTEMPTS = 15
DEFAULT_LOCK_WAIT_SECONDS = 1.0


def _load_dotenv(log: Optional[logging.LoggerAdapter] = None) -> None:
    """
    Load a .env file into the process environment (if one exists).

    Search order:
    1. Current working directory (.env)
    2. The backend project root, two levels up from this file
       (backend/src/egress_policy/config.py → backend/)

    Shell / CI environment variables already set take priority: we always
    call load_dotenv() with override=False so existing values are never
    overwritten.
    """
    cwd_env = Path.cwd() / ".env"
    package_root_env = Path(__file__).resolve().parents[2] / ".env"

    env_file: Optional[Path] = None
    if cwd_env.is_file():
        env_file = cwd_env
    elif package_root_env.is_file():
        env_file = package_root_env

    if env_file is None:
        return

    loaded = load_dotenv(env_file, override=False)
    if log is not None:
        if loaded:
            log.debug("loaded .env from %s (shell vars take precedence)", env_file)
        else:
            log.debug(
                ".env found at %s but all variables were already set in the environment",
                env_file,
            )


def _get_env(environ: Mapping[str, str], name: str, default: Optional[str] = None) -> Optional[str]:
    """Get environment variable, stripped; return default if unset or empty."""
    value = environ.get(name)
    if value is None:
        return default
    value = value.strip()
    return value or default


def _get_int(environ: Mapping[str, str], name: str, default: int, *, minimum: int) -> int:
    raw = _get_env(environ, name)
    if raw is None:
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}") from None
    if value < minimum:
        raise ConfigurationError(f"{name} must be >= {minimum}, got {value}")
    return value


def _get_float(environ: Mapping[str, str], name: str, default: float, *, minimum: float) -> float:
    raw = _get_env(environ, name)
    if raw is None:
        return default
    try:
        value = float(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}") from None
    if value < minimum:
        raise ConfigurationError(f"{name} must be >= {minimum}, got {value}")
    return value


@dataclass(frozen=True)
class PolicyLockSettings:
    """
    Settings shared by the lock service and the bucket-policy updater.

    Attributes:
        locks_table_name: DynamoDB table with one item per held lock
        egress_store_bucket_name: Bucket used when a request names none
        audit_table_name: Optional DynamoDB table for audit events
        aws_region: Optional region override for boto3 clients
        lock_ttl_seconds: Lease length of a bucket-policy lock
        lock_max_attempts: How many times to try obtaining the lock
        lock_wait_seconds: Fixed pause between attempts
        log_level: Root log level name
    """

    locks_table_name: str
    egress_store_bucket_name: Optional[str] = None
    audit_table_name: Optional[str] = None
    aws_region: Optional[str] = None
    lock_ttl_seconds: int = DEFAULT_LOCK_TTL_SECONDS
    lock_max_attempts: int = DEFAULT_LOCK_MAX_ATTEMPTS
    lock_wait_seconds: float = DEFAULT_LOCK_WAIT_SECONDS
    log_level: str = "INFO"


def load_settings(environ: Optional[Mapping[str, str]] = None) -> PolicyLockSettings:
    """
    Build settings from the environment.

    Args:
        environ: Mapping to read from (default: os.environ after loading .env)

    Returns:
        PolicyLockSettings instance

    Raises:
        ConfigurationError: If LOCKS_TABLE is missing or a numeric value is invalid
    """
    if environ is None:
        _load_dotenv()
        environ = os.environ

    locks_table_name = _get_env(environ, "LOCKS_TABLE")
    if not locks_table_name:
        raise ConfigurationError("LOCKS_TABLE environment variable not set")

    return PolicyLockSettings(
        locks_table_name=locks_table_name,
        egress_store_bucket_name=_get_env(environ, "EGRESS_STORE_BUCKET"),
        audit_table_name=_get_env(environ, "AUDIT_TABLE"),
        aws_region=_get_env(environ, "AWS_REGION"),
        lock_ttl_seconds=_get_int(
            environ, "BUCKET_POLICY_LOCK_TTL_SECONDS", DEFAULT_LOCK_TTL_SECONDS, minimum=1
        ),
        lock_max_attempts=_get_int(
            environ, "BUCKET_POLICY_LOCK_MAX_ATTEMPTS", DEFAULT_LOCK_MAX_ATTEMPTS, minimum=1
        ),
        lock_wait_seconds=_get_float(
            environ, "BUCKET_POLICY_LOCK_WAIT_SECONDS", DEFAULT_LOCK_WAIT_SECONDS, minimum=0.0
        ),
        log_level=(_get_env(environ, "LOG_LEVEL", "INFO") or "INFO").upper(),
    )
