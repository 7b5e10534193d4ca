# Overview: Service-layer operations for the audit trail.

from __future__ import annotations

from typing import Optional
from datetime import datetime

from ..extensions import db
from ..models import AuditEvent
"""
Audit Trail Invariants

- Append-only log for catalog and sale events.
- No domain/business logic in the audit trail itself.
- Events are written inside the same DB transaction as the change they record,
  so a rolled-back checkout leaves no audit event behind.
"""


def append_audit_event(
    *,
    event_type: str,
    entity_type: str,
    entity_id: int,
    actor_id: str | None = None,
    occurred_at: Optional[datetime] = None,
    note: Optional[str] = None,
) -> AuditEvent:
    """Append one audit event; flushes, never commits."""
    ev = AuditEvent(
        event_type=event_type,
        entity_type=entity_type,
        entity_id=entity_id,
        actor_id=actor_id,
        occurred_at=occurred_at,  # if None, db default applies
        note=note[:255] if note else note,
    )
    db.session.add(ev)
    db.session.flush()  # ensures ev.id is assigned without committing
    return ev


def list_audit_events(*, entity_type: str | None = None, entity_id: int | None = None, limit: int = 200) -> list[AuditEvent]:
    query = db.session.query(AuditEvent)
    if entity_type:
        query = query.filter(AuditEvent.entity_type == entity_type)
    if entity_id is not None:
        query = query.filter(AuditEvent.entity_id == entity_id)
    return query.order_by(AuditEvent.id.asc()).limit(min(max(limit, 1), 1000)).all()
