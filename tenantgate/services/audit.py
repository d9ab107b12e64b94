"""
Audit event emission.

Services report security-relevant transitions to an AuditEmitter, which fans
them out to the configured sinks. Storage and querying of audit logs belong
to a separate service; the default sink only writes security log lines.

Emission is best-effort: a failing sink is logged and skipped, and emit()
never raises into the operation that produced the event.
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Protocol, runtime_checkable

from tenantgate.utils.logging import get_logger, log_security_event

logger = get_logger(__name__)


@dataclass(frozen=True)
class AuditEvent:
    action: str
    actor_user_id: Optional[str] = None
    tenant_id: Optional[str] = None
    entity_type: Optional[str] = None
    entity_id: Optional[str] = None
    meta: Dict[str, Any] = field(default_factory=dict)
    occurred_at: datetime = field(default_factory=datetime.utcnow)

    @property
    def scope(self) -> str:
        return "tenant" if self.tenant_id else "platform"


@runtime_checkable
class AuditSink(Protocol):
    def record(self, event: AuditEvent) -> None:
        ...


class LoggingAuditSink:
    """Writes each event as a security log line."""

    def __init__(self, sink_logger=None):
        self._logger = sink_logger or get_logger("tenantgate.audit")

    def record(self, event: AuditEvent) -> None:
        log_security_event(
            event.action,
            {
                "scope": event.scope,
                "actor_user_id": event.actor_user_id,
                "tenant_id": event.tenant_id,
                "entity_type": event.entity_type,
                "entity_id": event.entity_id,
                "meta": event.meta,
            },
            self._logger,
        )


class AuditEmitter:
    def __init__(self, sinks: Iterable[AuditSink] = ()):
        self._sinks: List[AuditSink] = list(sinks)

    def emit(
        self,
        action: str,
        *,
        actor_user_id: Optional[str] = None,
        tenant_id: Optional[str] = None,
        entity_type: Optional[str] = None,
        entity_id: Optional[str] = None,
        **meta: Any,
    ) -> None:
        event = AuditEvent(
            action=action,
            actor_user_id=actor_user_id,
            tenant_id=tenant_id,
            entity_type=entity_type,
            entity_id=entity_id,
            meta=meta,
        )
        for sink in self._sinks:
            try:
                sink.record(event)
            except Exception:
                # Audit trail is best-effort; the caller's operation already happened
                logger.warning(
                    f"Audit sink {type(sink).__name__} failed for {action}",
                    exc_info=True,
                )
