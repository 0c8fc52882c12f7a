"""Audit records for access decisions and the sinks that deliver them.

Delivery is best-effort: :func:`notify` logs and swallows any sink failure so
an unavailable audit backend never changes an authorization decision. When
asynchronous delivery is enabled a slow backend does not delay it either.
"""

import atexit
import json
import logging
import threading
from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor
from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from django.conf import settings
from django.utils import timezone

from core.redis_client import get_redis_client

logger = logging.getLogger(__name__)
audit_logger = logging.getLogger("access_control.audit.records")


class AuditAction(str, Enum):
    ACCESS_GRANTED = "authz.access_granted"
    ACCESS_DENIED = "authz.access_denied"


@dataclass(frozen=True)
class AuditRecord:
    subject_id: str
    action: AuditAction
    resource: str
    success: bool
    resource_id: Optional[str] = None
    metadata: dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=timezone.now)

    @classmethod
    def for_decision(cls, subject_id: str, resource: str, allowed: bool, **extra) -> "AuditRecord":
        return cls(
            subject_id=subject_id,
            action=AuditAction.ACCESS_GRANTED if allowed else AuditAction.ACCESS_DENIED,
            resource=resource,
            success=allowed,
            **extra,
        )

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["action"] = self.action.value
        data["timestamp"] = self.timestamp.isoformat()
        return data


class AuditSink(ABC):
    @abstractmethod
    def deliver(self, record: AuditRecord) -> None:
        """Hand the record to the audit backend. May raise."""


class NullAuditSink(AuditSink):
    def deliver(self, record: AuditRecord) -> None:
        return None


class LoggingAuditSink(AuditSink):
    """Write records as JSON lines to the ``access_control.audit.records`` logger."""

    def deliver(self, record: AuditRecord) -> None:
        audit_logger.info(json.dumps(record.to_dict(), default=str))


class RedisAuditSink(AuditSink):
    """Append records to a Redis stream for a downstream audit consumer."""

    def __init__(self, stream: Optional[str] = None):
        self.stream = stream or settings.ACCESS_CONTROL_AUDIT_STREAM

    def deliver(self, record: AuditRecord) -> None:
        client = get_redis_client()
        client.xadd(self.stream, {"record": json.dumps(record.to_dict(), default=str)})


def build_audit_sink(name: Optional[str] = None) -> AuditSink:
    """Return the sink selected by ``ACCESS_CONTROL_AUDIT_SINK``."""
    name = name or settings.ACCESS_CONTROL_AUDIT_SINK
    if name == "redis":
        return RedisAuditSink()
    if name == "none":
        return NullAuditSink()
    return LoggingAuditSink()


_executor: Optional[ThreadPoolExecutor] = None
_slots: Optional[threading.BoundedSemaphore] = None
_executor_lock = threading.Lock()


def _deliver(sink: AuditSink, record: AuditRecord) -> None:
    try:
        sink.deliver(record)
    except Exception:
        logger.exception(
            "Audit delivery failed for subject=%s resource=%s", record.subject_id, record.resource
        )


def _get_executor() -> tuple[ThreadPoolExecutor, threading.BoundedSemaphore]:
    global _executor, _slots
    with _executor_lock:
        if _executor is None:
            _executor = ThreadPoolExecutor(
                max_workers=settings.ACCESS_CONTROL_AUDIT_WORKERS, thread_name_prefix="audit"
            )
            _slots = threading.BoundedSemaphore(settings.ACCESS_CONTROL_AUDIT_QUEUE_SIZE)
        return _executor, _slots


def notify(sink: Optional[AuditSink], record: AuditRecord) -> None:
    """Deliver ``record`` without letting a sink failure or stall reach the caller.

    With ``ACCESS_CONTROL_AUDIT_ASYNC`` enabled the record is handed to a
    small worker pool and this returns immediately. At most
    ``ACCESS_CONTROL_AUDIT_QUEUE_SIZE`` records wait for delivery; beyond
    that new records are dropped with a warning.
    """
    if sink is None:
        return
    if not settings.ACCESS_CONTROL_AUDIT_ASYNC:
        _deliver(sink, record)
        return

    executor, slots = _get_executor()
    if not slots.acquire(blocking=False):
        logger.warning(
            "Audit queue full, dropping record for subject=%s resource=%s", record.subject_id, record.resource
        )
        return
    try:
        future = executor.submit(_deliver, sink, record)
    except RuntimeError:
        # Executor shut down between lookup and submit.
        slots.release()
        logger.warning("Audit delivery stopped, dropping record for subject=%s", record.subject_id)
        return
    future.add_done_callback(lambda _: slots.release())


def shutdown_audit_delivery(wait: bool = True) -> None:
    """Stop the delivery pool, by default after pending records are delivered.

    A later :func:`notify` starts a fresh pool.
    """
    global _executor, _slots
    with _executor_lock:
        executor, _executor, _slots = _executor, None, None
    if executor is not None:
        executor.shutdown(wait=wait)


atexit.register(shutdown_audit_delivery)


__all__ = [
    "AuditAction",
    "AuditRecord",
    "AuditSink",
    "LoggingAuditSink",
    "NullAuditSink",
    "RedisAuditSink",
    "build_audit_sink",
    "notify",
    "shutdown_audit_delivery",
]
