"""
Audit trail for bucket-policy changes.

An AuditWriter passes each event through an ordered list of sinks in two
stages: every sink's prepare() may enrich the event, then every sink's
write() persists it.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field, replace
from typing import Any, Iterable, Optional, Protocol

from ..errors import AuditWriteError

logger = logging.getLogger(__name__)


def _now_ms() -> int:
    return int(time.time() * 1000)


@dataclass(frozen=True)
class AuditEvent:
    """
    A single auditable action.

    Attributes:
        action: Machine-readable action name (e.g. "grant-bucket-policy-access")
        body: Action details; must be JSON-serializable
        message: Human-readable summary; defaults to the action
        actor: Principal that triggered the action, if known
        timestamp: Epoch milliseconds; defaults to now
        ip_address: Source IP of the request, if known
    """

    action: str
    body: dict = field(default_factory=dict)
    message: Optional[str] = None
    actor: Optional[str] = None
    timestamp: int = field(default_factory=_now_ms)
    ip_address: Optional[str] = None

    def __post_init__(self) -> None:
        if not self.action:
            raise ValueError("audit action must be a non-empty string")
        if self.message is None:
            object.__setattr__(self, "message", self.action)

    def to_dict(self) -> dict:
        return {
            "action": self.action,
            "message": self.message,
            "actor": self.actor,
            "timestamp": self.timestamp,
            "ipAddress": self.ip_address,
            "body": self.body,
        }


class AuditSink(Protocol):
    def prepare(self, event: AuditEvent, request_context: Optional[dict]) -> AuditEvent:
        ...

    def write(self, event: AuditEvent, request_context: Optional[dict]) -> None:
        ...


def actor_from_context(request_context: Optional[dict]) -> Optional[str]:
    """Best-effort principal id from a request context (explicit actor or API Gateway identity)."""
    if not isinstance(request_context, dict):
        return None
    actor = request_context.get("actor")
    if actor:
        return str(actor)
    principal = request_context.get("principalIdentifier")
    if isinstance(principal, dict) and principal.get("uid"):
        return str(principal["uid"])
    identity = request_context.get("identity") or {}
    if isinstance(identity, dict) and identity.get("userArn"):
        return str(identity["userArn"])
    return None


def ip_address_from_context(request_context: Optional[dict]) -> Optional[str]:
    if not isinstance(request_context, dict):
        return None
    if request_context.get("ipAddress"):
        return str(request_context["ipAddress"])
    identity = request_context.get("identity") or {}
    if isinstance(identity, dict) and identity.get("sourceIp"):
        return str(identity["sourceIp"])
    return None


def with_request_context(event: AuditEvent, request_context: Optional[dict]) -> AuditEvent:
    """Fill actor and ip_address from the request context where the event leaves them unset."""
    return replace(
        event,
        actor=event.actor or actor_from_context(request_context),
        ip_address=event.ip_address or ip_address_from_context(request_context),
    )


def _sink_name(sink: Any) -> str:
    return getattr(sink, "name", None) or type(sink).__name__


class AuditWriter:
    """Fan an audit event out to an ordered list of sinks."""

    def __init__(self, sinks: Iterable[AuditSink]) -> None:
        self._sinks = list(sinks)

    @property
    def sinks(self) -> list:
        return list(self._sinks)

    def write(self, request_context: Optional[dict], event: AuditEvent) -> AuditEvent:
        """
        Prepare and write the event through every sink.

        Returns:
            The event as prepared by all sinks

        Raises:
            AuditWriteError: On the first sink failure; later sinks are not called
        """
        prepared = event
        for sink in self._sinks:
            try:
                prepared = sink.prepare(prepared, request_context)
            except Exception as e:
                raise AuditWriteError(_sink_name(sink), e) from e

        for sink in self._sinks:
            try:
                sink.write(prepared, request_context)
            except Exception as e:
                raise AuditWriteError(_sink_name(sink), e) from e

        return prepared

    def write_and_forget(self, request_context: Optional[dict], event: AuditEvent) -> dict:
        """
        Like write(), but continue past failing sinks and never raise.

        Returns:
            {"status": "ok" | "partial", "errors": [{"sink", "stage", "message"}, ...]}
        """
        errors = []

        prepared = event
        for sink in self._sinks:
            try:
                prepared = sink.prepare(prepared, request_context)
            except Exception as e:
                logger.error("audit sink %s failed to prepare %s: %s", _sink_name(sink), event.action, e)
                errors.append({"sink": _sink_name(sink), "stage": "prepare", "message": str(e)})

        for sink in self._sinks:
            try:
                sink.write(prepared, request_context)
            except Exception as e:
                logger.error("audit sink %s failed to write %s: %s", _sink_name(sink), event.action, e)
                errors.append({"sink": _sink_name(sink), "stage": "write", "message": str(e)})

        return {"status": "partial" if errors else "ok", "errors": errors}
