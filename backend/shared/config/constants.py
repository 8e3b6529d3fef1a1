"""
Centralized constants for the floor operations backend.
Avoids magic strings and repeated constants.

Usage:
    from shared.config.constants import TableState, SessionStatus

    if table.state == TableState.OCCUPIED:
        ...
"""

from typing import Final


# =============================================================================
# Table States
# =============================================================================


class TableState:
    """
    Floor state of a physical table.

    Stored values are the ones the floor terminals already speak.
    """

    FREE: Final[str] = "LIBRE"
    OCCUPIED: Final[str] = "OCUPADA"
    RESERVED: Final[str] = "RESERVADA"
    DIRTY: Final[str] = "LIMPIEZA"
    MAINTENANCE: Final[str] = "FUERA_SERVICIO"
    BLOCKED: Final[str] = "BLOQUEADA"

    ALL: Final[list[str]] = [FREE, OCCUPIED, RESERVED, DIRTY, MAINTENANCE, BLOCKED]

    # English names accepted on input
    ALIASES: Final[dict[str, str]] = {
        "FREE": FREE,
        "OCCUPIED": OCCUPIED,
        "RESERVED": RESERVED,
        "DIRTY": DIRTY,
        "CLEANING": DIRTY,
        "MAINTENANCE": MAINTENANCE,
        "OUT_OF_SERVICE": MAINTENANCE,
        "BLOCKED": BLOCKED,
    }

    # Display colors for floor terminals
    COLORS: Final[dict[str, str]] = {
        FREE: "#10B981",
        OCCUPIED: "#EF4444",
        RESERVED: "#F59E0B",
        DIRTY: "#8B5CF6",
        MAINTENANCE: "#6B7280",
        BLOCKED: "#374151",
    }

    @classmethod
    def normalize(cls, name: str | None) -> str | None:
        """Return the stored value for a state name or alias, or None if unknown."""
        if not name:
            return None
        key = name.strip().upper()
        if key in cls.ALL:
            return key
        return cls.ALIASES.get(key)


class AssignmentKind:
    """Kind of waitstaff assignment on a table."""

    PRINCIPAL: Final[str] = "PRINCIPAL"
    SUPPORT: Final[str] = "APOYO"
    TEMPORARY: Final[str] = "TEMPORAL"

    ALL: Final[list[str]] = [PRINCIPAL, SUPPORT, TEMPORARY]


# =============================================================================
# Order Sessions
# =============================================================================


class SessionStatus:
    """Order session status constants."""

    OPEN: Final[str] = "OPEN"
    CLOSED: Final[str] = "CLOSED"
    CANCELLED: Final[str] = "CANCELLED"

    TERMINAL: Final[list[str]] = [CLOSED, CANCELLED]


CANCELLATION_MARKER: Final[str] = " - CANCELADA: "
DEFAULT_CANCELLATION_REASON: Final[str] = "Sin motivo especificado"


# =============================================================================
# Staff
# =============================================================================


class StaffRole:
    """Staff role constants."""

    WAITER: Final[str] = "WAITER"
    MANAGER: Final[str] = "MANAGER"
    CASHIER: Final[str] = "CASHIER"
    KITCHEN: Final[str] = "KITCHEN"

    FLOOR_ROLES: Final[frozenset[str]] = frozenset({WAITER, MANAGER, CASHIER})


# =============================================================================
# Stock Ledger
# =============================================================================


class StockOperation:
    """Operations accepted by the stock ledger collaborator."""

    REDUCE: Final[str] = "reduce"
    RESTORE: Final[str] = "restore"


# =============================================================================
# Occupancy Alerts
# =============================================================================


class AlertLevel:
    """Occupancy alert levels."""

    WARNING: Final[str] = "warning"
    EXCEEDED: Final[str] = "exceeded"


OCCUPANCY_WARNING_RATIO: Final[float] = 0.8


# =============================================================================
# Limits
# =============================================================================


class Limits:
    """Validation limits shared by schemas and services."""

    MAX_LINE_QUANTITY: Final[int] = 99
    MAX_ITEMS_PER_REQUEST: Final[int] = 50
    MAX_PARTY_SIZE: Final[int] = 50
    MAX_OBSERVATIONS_LENGTH: Final[int] = 500
    MAX_RESERVATION_MINUTES: Final[int] = 24 * 60
    DEFAULT_HISTORY_LIMIT: Final[int] = 50
    MAX_HISTORY_LIMIT: Final[int] = 500
