"""
Event Type Constants.

Domain events written to the outbox and published on Redis pub/sub.
"""

# =============================================================================
# Order session lifecycle
# =============================================================================

ORDER_OPENED = "ORDER_OPENED"
ORDER_ITEMS_ADDED = "ORDER_ITEMS_ADDED"
ORDER_LINE_REMOVED = "ORDER_LINE_REMOVED"
ORDER_CANCELLED = "ORDER_CANCELLED"
ORDER_CLOSED = "ORDER_CLOSED"

# Consumed by the kitchen display
ORDER_DISPATCHED = "ORDER_DISPATCHED"

# =============================================================================
# Table events
# =============================================================================

TABLE_STATE_CHANGED = "TABLE_STATE_CHANGED"
TABLE_ASSIGNED = "TABLE_ASSIGNED"

KITCHEN_EVENTS = frozenset({ORDER_DISPATCHED, ORDER_CANCELLED, ORDER_LINE_REMOVED})

# =============================================================================
# Size limits
# =============================================================================

MAX_EVENT_SIZE = 64 * 1024
