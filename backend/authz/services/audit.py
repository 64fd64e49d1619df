from __future__ import annotations
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AuditEvent:
    action: str
    entity: Optional[str] = None
    entity_id: Optional[str] = None
    meta: Dict[str, Any] = field(default_factory=dict)
    snapshot_version: Optional[str] = None
    at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


AuditSink = Callable[[AuditEvent], None]


def add_audit(
    sink: Optional[AuditSink],
    action: str,
    entity: Optional[str] = None,
    entity_id: Optional[str] = None,
    meta: Optional[Dict[str, Any]] = None,
    snapshot_version: Optional[str] = None,
) -> AuditEvent:
    """Build an audit event and hand it to the caller's sink.

    Parameters:
      action: short action code e.g. ROLE.CREATE, ROLE.UPDATE, ROLE.DELETE
      entity: optional entity name (Role)
      entity_id: optional identifier string
      meta: additional JSON-safe dictionary (will be shallow copied)
      snapshot_version: role set version after the change
    Persisting the event is the sink's job; without a sink the event is only logged.
    """
    event = AuditEvent(
        action=action,
        entity=entity,
        entity_id=str(entity_id) if entity_id is not None else None,
        meta=dict(meta or {}),
        snapshot_version=snapshot_version,
    )
    logger.info('%s %s %s', action, entity or '-', event.entity_id or '-')
    if sink is not None:
        try:
            sink(event)
        except Exception:
            # audit must not undo a mutation that already happened
            logger.exception('Audit sink failed for %s %s', action, event.entity_id)
    return event
