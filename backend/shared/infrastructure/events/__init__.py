"""
Event system for real-time floor and kitchen notifications via Redis pub/sub.

- event_types.py: Event type constants
- event_schema.py: Event dataclass with validation
- channels.py: Channel naming and fan-out rules
- redis_pool.py: Connection pool management and health check
- publisher.py: publish_event with retry and circuit breaker
"""

from .event_types import (
    ORDER_OPENED,
    ORDER_ITEMS_ADDED,
    ORDER_LINE_REMOVED,
    ORDER_CANCELLED,
    ORDER_CLOSED,
    ORDER_DISPATCHED,
    TABLE_STATE_CHANGED,
    TABLE_ASSIGNED,
    KITCHEN_EVENTS,
    MAX_EVENT_SIZE,
)
from .event_schema import Event
from .channels import (
    CHANNEL_FLOOR,
    CHANNEL_KITCHEN,
    CHANNEL_ORDERS,
    channel_table,
    channels_for_event,
)
from .redis_pool import get_redis_pool, check_redis_health, close_redis_pool
from .publisher import publish_event, EventPublishSkipped, redis_publish_breaker

__all__ = [
    # Event types
    "ORDER_OPENED",
    "ORDER_ITEMS_ADDED",
    "ORDER_LINE_REMOVED",
    "ORDER_CANCELLED",
    "ORDER_CLOSED",
    "ORDER_DISPATCHED",
    "TABLE_STATE_CHANGED",
    "TABLE_ASSIGNED",
    "KITCHEN_EVENTS",
    "MAX_EVENT_SIZE",
    # Schema
    "Event",
    # Channels
    "CHANNEL_FLOOR",
    "CHANNEL_KITCHEN",
    "CHANNEL_ORDERS",
    "channel_table",
    "channels_for_event",
    # Redis pool
    "get_redis_pool",
    "check_redis_health",
    "close_redis_pool",
    # Publishing
    "publish_event",
    "EventPublishSkipped",
    "redis_publish_breaker",
]
