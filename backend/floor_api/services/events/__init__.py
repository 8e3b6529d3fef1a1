"""
Domain events: transactional outbox and its Redis publisher.
"""

from .outbox_service import (
    AGGREGATE_SESSION,
    AGGREGATE_TABLE,
    write_outbox_event,
    write_session_outbox_event,
    write_table_outbox_event,
)
from .outbox_processor import (
    OutboxProcessor,
    build_event,
    get_outbox_processor,
    start_outbox_processor,
    stop_outbox_processor,
)

__all__ = [
    "AGGREGATE_SESSION",
    "AGGREGATE_TABLE",
    "write_outbox_event",
    "write_session_outbox_event",
    "write_table_outbox_event",
    "OutboxProcessor",
    "build_event",
    "get_outbox_processor",
    "start_outbox_processor",
    "stop_outbox_processor",
]
