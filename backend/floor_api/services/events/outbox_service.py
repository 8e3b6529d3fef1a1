"""
Outbox service for transactional event publishing.

Events are written with the same db session as the business change and
committed together with it; OutboxProcessor publishes them afterwards.

Usage:
    table.state = TableState.OCCUPIED
    write_table_outbox_event(db, TABLE_STATE_CHANGED, table_id=table.id, ...)
    safe_commit(db)  # table row and event are saved atomically
"""

import json
from typing import Any

from sqlalchemy.orm import Session

from floor_api.models import OutboxEvent, OutboxStatus
from shared.config.logging import get_logger

logger = get_logger(__name__)

AGGREGATE_SESSION = "order_session"
AGGREGATE_TABLE = "floor_table"


def write_outbox_event(
    db: Session,
    event_type: str,
    aggregate_type: str,
    aggregate_id: int,
    payload: dict[str, Any],
) -> OutboxEvent:
    """
    Queue an event in the outbox table.

    MUST be called inside the transaction of the business operation;
    nothing is flushed or committed here.
    """
    outbox_event = OutboxEvent(
        event_type=event_type,
        aggregate_type=aggregate_type,
        aggregate_id=aggregate_id,
        payload=json.dumps(payload, default=str),
        status=OutboxStatus.PENDING,
        retry_count=0,
    )
    db.add(outbox_event)
    logger.debug(
        "Outbox event queued",
        event_type=event_type,
        aggregate_type=aggregate_type,
        aggregate_id=aggregate_id,
    )
    return outbox_event


def write_session_outbox_event(
    db: Session,
    event_type: str,
    session_id: int,
    table_id: int,
    actor_staff_id: int | None = None,
    extra_data: dict[str, Any] | None = None,
) -> OutboxEvent:
    """Order session events (ORDER_OPENED, ORDER_DISPATCHED, ORDER_CANCELLED...)."""
    payload = {
        "session_id": session_id,
        "table_id": table_id,
        "actor_staff_id": actor_staff_id,
    }
    if extra_data:
        payload.update(extra_data)

    return write_outbox_event(
        db=db,
        event_type=event_type,
        aggregate_type=AGGREGATE_SESSION,
        aggregate_id=session_id,
        payload=payload,
    )


def write_table_outbox_event(
    db: Session,
    event_type: str,
    table_id: int,
    actor_staff_id: int | None = None,
    extra_data: dict[str, Any] | None = None,
) -> OutboxEvent:
    """Table events (TABLE_STATE_CHANGED, TABLE_ASSIGNED)."""
    payload = {
        "table_id": table_id,
        "actor_staff_id": actor_staff_id,
    }
    if extra_data:
        payload.update(extra_data)

    return write_outbox_event(
        db=db,
        event_type=event_type,
        aggregate_type=AGGREGATE_TABLE,
        aggregate_id=table_id,
        payload=payload,
    )
