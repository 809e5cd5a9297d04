"""
core/audit.py
-------------
Audit trail for destructive operations.

Every delete (soft, hard, grant revocation) and every cascade-triggering
delete is reported here as a structured event:

    {operation, entity_kind, entity_id, detail}

The default sink writes the event through structlog at WARNING level so it
stands out from routine traffic. Storage and retention belong to whatever
consumes the log stream. Tests (or a future persistent audit table) inject
their own sink.
"""

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Optional

from portal.core.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class AuditEvent:
    operation: str
    entity_kind: str
    entity_id: str
    detail: dict[str, Any] = field(default_factory=dict)
    occurred_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


AuditSink = Callable[[AuditEvent], None]


def _log_sink(event: AuditEvent) -> None:
    payload = asdict(event)
    payload["occurred_at"] = event.occurred_at.isoformat()
    logger.warning("Audit event", **payload)


class AuditLog:

    def __init__(self, sink: Optional[AuditSink] = None) -> None:
        self._sink = sink or _log_sink

    def emit(
        self,
        operation: str,
        entity_kind: str,
        entity_id: str,
        **detail: Any,
    ) -> AuditEvent:
        event = AuditEvent(
            operation=operation,
            entity_kind=entity_kind,
            entity_id=entity_id,
            detail=detail,
        )
        self._sink(event)
        return event


audit_log = AuditLog()
