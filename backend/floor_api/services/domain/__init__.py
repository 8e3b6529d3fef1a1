"""
Domain services.

- TableRegistryService: table state machine, assignment, floor views
- OrderSessionService: sessions, lines, totals, cancellation
- KitchenDispatchService: send-to-kitchen and kitchen backlog
- SessionQueryService: read-side session assembly
"""

from .table_registry_service import (
    TableRegistryService,
    TableNotFoundError,
    UnknownTableStateError,
    elapsed_minutes,
    format_elapsed,
)
from .order_session_service import (
    OrderSessionService,
    ItemRequest,
    AddItemsResult,
    SessionNotFoundError,
    SessionNotOpenError,
    SessionAlreadyCancelledError,
    LineNotFoundError,
)
from .dispatch_service import KitchenDispatchService
from .session_query_service import SessionQueryService

__all__ = [
    "TableRegistryService",
    "TableNotFoundError",
    "UnknownTableStateError",
    "elapsed_minutes",
    "format_elapsed",
    "OrderSessionService",
    "ItemRequest",
    "AddItemsResult",
    "SessionNotFoundError",
    "SessionNotOpenError",
    "SessionAlreadyCancelledError",
    "LineNotFoundError",
    "KitchenDispatchService",
    "SessionQueryService",
]
