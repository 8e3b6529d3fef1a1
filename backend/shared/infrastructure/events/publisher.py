"""
Event publishing with retry, size validation and a circuit breaker.
"""

from __future__ import annotations

import asyncio

import redis.asyncio as redis

from shared.config.settings import settings
from shared.config.logging import get_logger
from shared.infrastructure.circuit_breaker import (
    CircuitBreaker,
    CircuitBreakerConfig,
    calculate_retry_delay_with_jitter,
)
from .event_types import MAX_EVENT_SIZE
from .event_schema import Event

logger = get_logger(__name__)

redis_publish_breaker = CircuitBreaker(
    CircuitBreakerConfig(
        name="redis_publish",
        failure_threshold=settings.redis_publish_max_retries + 2,
        recovery_timeout=30.0,
        half_open_max_calls=3,
    )
)


class EventPublishSkipped(Exception):
    """Raised when the circuit breaker rejects a publish without trying."""


def _validate_event_size(event_json: str, event_type: str) -> None:
    size = len(event_json.encode("utf-8"))
    if size > MAX_EVENT_SIZE:
        raise ValueError(
            f"Event {event_type} exceeds max size: {size} > {MAX_EVENT_SIZE} bytes"
        )


async def publish_event(
    redis_client: redis.Redis,
    channel: str,
    event: Event,
) -> int:
    """
    Publish an event to a Redis channel.

    Returns:
        Number of subscribers that received the message.

    Raises:
        ValueError: If the serialized event is too large.
        EventPublishSkipped: If the circuit breaker is open.
        Exception: The last Redis error once all retries are exhausted.
    """
    event_json = event.to_json()
    _validate_event_size(event_json, event.type)

    if not redis_publish_breaker.can_execute():
        logger.warning(
            "Event publish skipped - circuit breaker open",
            channel=channel,
            event_type=event.type,
        )
        raise EventPublishSkipped(channel)

    last_error: Exception | None = None
    for attempt in range(settings.redis_publish_max_retries):
        try:
            result = await redis_client.publish(channel, event_json)
            redis_publish_breaker.record_success()
            return result
        except Exception as e:
            last_error = e
            if attempt < settings.redis_publish_max_retries - 1:
                delay = calculate_retry_delay_with_jitter(
                    attempt, settings.redis_publish_retry_delay
                )
                logger.warning(
                    "Redis publish failed, retrying",
                    channel=channel,
                    event_type=event.type,
                    attempt=attempt + 1,
                    delay_seconds=round(delay, 2),
                    error=str(e),
                )
                await asyncio.sleep(delay)

    logger.error(
        "Redis publish failed after all retries",
        channel=channel,
        event_type=event.type,
        error=str(last_error),
    )
    redis_publish_breaker.record_failure()
    raise last_error  # type: ignore[misc]
