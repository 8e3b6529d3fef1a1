"""
Redis channel naming.
"""

from __future__ import annotations

from .event_types import KITCHEN_EVENTS

CHANNEL_FLOOR = "floor:tables"
CHANNEL_KITCHEN = "floor:kitchen"
CHANNEL_ORDERS = "floor:orders"


def channel_table(table_id: int) -> str:
    """Channel for terminals following a single table."""
    if not isinstance(table_id, int) or table_id <= 0:
        raise ValueError(f"table_id must be a positive integer, got {table_id}")
    return f"floor:table:{table_id}"


def channels_for_event(event_type: str, table_id: int | None = None) -> list[str]:
    """
    Channels an event is fanned out to.

    Table events go to the floor channel, order events to the orders
    channel, and kitchen-relevant order events additionally to the kitchen
    display channel. Anything tied to a table also reaches that table's
    channel.
    """
    if event_type.startswith("TABLE_"):
        channels = [CHANNEL_FLOOR]
    else:
        channels = [CHANNEL_ORDERS]
        if event_type in KITCHEN_EVENTS:
            channels.append(CHANNEL_KITCHEN)

    if table_id is not None:
        channels.append(channel_table(table_id))
    return channels
