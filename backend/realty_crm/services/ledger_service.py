# Overview: Service-layer operations for the audit ledger.

from __future__ import annotations

import json
from datetime import datetime
from typing import Any, Optional

from ..extensions import db
from ..models import LedgerEvent
"""
Audit ledger invariants

- Append-only audit log for cross-cutting domain events.
- No business logic in the ledger itself.
- Events are written inside the same DB transaction as the change they record.
- occurred_at is business time; created_at is system time (DB default).
"""


def append_event(
    *,
    event_type: str,
    entity_type: str,
    entity_id: int,
    actor_user_id: int | None = None,
    inventory_unit_id: int | None = None,
    plot_id: int | None = None,
    investor_id: int | None = None,
    occurred_at: Optional[datetime] = None,
    note: Optional[str] = None,
    payload: Optional[dict[str, Any]] = None,
) -> LedgerEvent:
    """
    Append one audit event to the current session.

    Flushes so ev.id is assigned; the caller's transaction commits it.
    """
    ev = LedgerEvent(
        event_type=event_type,
        entity_type=entity_type,
        entity_id=entity_id,
        actor_user_id=actor_user_id,
        inventory_unit_id=inventory_unit_id,
        plot_id=plot_id,
        investor_id=investor_id,
        occurred_at=occurred_at,  # if None, db default applies
        note=note,
        payload=json.dumps(payload, sort_keys=True) if payload is not None else None,
    )
    db.session.add(ev)
    db.session.flush()
    return ev


def list_events(
    *,
    event_type: str | None = None,
    entity_type: str | None = None,
    entity_id: int | None = None,
    inventory_unit_id: int | None = None,
    before_id: int | None = None,
    limit: int = 100,
) -> list[LedgerEvent]:
    """
    Newest-first event listing with id-based cursor pagination.
    """
    limit = max(1, min(limit, 500))

    q = db.session.query(LedgerEvent)
    if event_type:
        q = q.filter(LedgerEvent.event_type == event_type)
    if entity_type:
        q = q.filter(LedgerEvent.entity_type == entity_type)
    if entity_id is not None:
        q = q.filter(LedgerEvent.entity_id == entity_id)
    if inventory_unit_id is not None:
        q = q.filter(LedgerEvent.inventory_unit_id == inventory_unit_id)
    if before_id is not None:
        q = q.filter(LedgerEvent.id < before_id)

    return q.order_by(LedgerEvent.id.desc()).limit(limit).all()
