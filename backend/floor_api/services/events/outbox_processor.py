"""
Outbox processor: publishes outbox rows to Redis.

Reads PENDING events, marks them PROCESSING, publishes each one to every
channel channels_for_event() names, then marks them PUBLISHED. Failed
events go back to PENDING until MAX_RETRIES, then FAILED.
"""

import asyncio
import json
from typing import Any

from sqlalchemy import select, update

from floor_api.models import OutboxEvent, OutboxStatus, utcnow
from shared.config.logging import get_logger
from shared.infrastructure.correlation import correlation_scope
from shared.infrastructure.db import SessionLocal
from shared.infrastructure.events import (
    Event,
    channels_for_event,
    get_redis_pool,
    publish_event,
)
from shared.infrastructure.metrics import get_metrics

logger = get_logger(__name__)

MAX_RETRIES = 5
BATCH_SIZE = 50
POLL_INTERVAL_SECONDS = 1.0


def build_event(outbox_event: OutboxEvent) -> Event:
    """Turn a stored outbox row into the wire Event."""
    payload: dict[str, Any] = json.loads(outbox_event.payload)
    table_id = payload.pop("table_id", None)
    session_id = payload.pop("session_id", None)
    actor_staff_id = payload.pop("actor_staff_id", None)

    return Event(
        type=outbox_event.event_type,
        table_id=table_id,
        session_id=session_id,
        entity=payload,
        actor={"staff_id": actor_staff_id} if actor_staff_id else {"role": "SYSTEM"},
        ts=outbox_event.created_at.isoformat() if outbox_event.created_at else None,
    )


class OutboxProcessor:
    """
    Polls the outbox table and publishes pending events.

    Runs as an asyncio task started from the FastAPI lifespan.
    """

    def __init__(self, session_factory=SessionLocal):
        self._session_factory = session_factory
        self._running = False
        self._task: asyncio.Task | None = None

    async def start(self) -> None:
        if self._running:
            logger.warning("Outbox processor already running")
            return

        self._running = True
        self._task = asyncio.create_task(self._run_loop())
        logger.info("Outbox processor started")

    async def stop(self) -> None:
        """Stop the processor gracefully."""
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        logger.info("Outbox processor stopped")

    async def _run_loop(self) -> None:
        while self._running:
            try:
                with correlation_scope("outbox"):
                    processed = await self.process_batch()
                if processed == 0:
                    await asyncio.sleep(POLL_INTERVAL_SECONDS)
            except Exception as e:
                logger.error("Outbox processor error", error=str(e))
                await asyncio.sleep(POLL_INTERVAL_SECONDS)

    async def process_batch(self) -> int:
        """
        Process one batch of PENDING events.

        Returns:
            Number of events published
        """
        db = self._session_factory()
        try:
            events = db.execute(
                select(OutboxEvent)
                .where(OutboxEvent.status == OutboxStatus.PENDING)
                .order_by(OutboxEvent.created_at.asc(), OutboxEvent.id.asc())
                .limit(BATCH_SIZE)
                .with_for_update(skip_locked=True)
            ).scalars().all()

            if not events:
                return 0

            # PROCESSING keeps a second worker from publishing the same rows
            event_ids = [e.id for e in events]
            db.execute(
                update(OutboxEvent)
                .where(OutboxEvent.id.in_(event_ids))
                .values(status=OutboxStatus.PROCESSING)
            )
            db.commit()

            published = 0
            for event in events:
                if await self._publish(event):
                    event.status = OutboxStatus.PUBLISHED
                    event.processed_at = utcnow()
                    published += 1
                else:
                    event.retry_count += 1
                    if event.retry_count >= MAX_RETRIES:
                        event.status = OutboxStatus.FAILED
                        logger.error(
                            "Outbox event failed after max retries",
                            event_id=event.id,
                            event_type=event.event_type,
                        )
                    else:
                        event.status = OutboxStatus.PENDING

            db.commit()
            get_metrics().inc("outbox_events_published_total", published)
            logger.info("Outbox batch processed", total=len(events), published=published)
            return published

        except Exception as e:
            db.rollback()
            logger.error("Outbox batch processing failed", error=str(e))
            return 0
        finally:
            db.close()

    async def _publish(self, outbox_event: OutboxEvent) -> bool:
        try:
            event = build_event(outbox_event)
            redis_client = await get_redis_pool()
            for channel in channels_for_event(event.type, event.table_id):
                await publish_event(redis_client, channel, event)
            return True
        except Exception as e:
            outbox_event.last_error = str(e)
            logger.error(
                "Failed to publish outbox event",
                event_id=outbox_event.id,
                event_type=outbox_event.event_type,
                error=str(e),
            )
            return False


_processor: OutboxProcessor | None = None


def get_outbox_processor() -> OutboxProcessor:
    global _processor
    if _processor is None:
        _processor = OutboxProcessor()
    return _processor


async def start_outbox_processor() -> None:
    """Call from the FastAPI lifespan startup."""
    await get_outbox_processor().start()


async def stop_outbox_processor() -> None:
    await get_outbox_processor().stop()
