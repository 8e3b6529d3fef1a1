"""
SQLAlchemy ORM Models Package.

- base: Base class, AuditMixin, timestamp helpers
- floor: Zone, FloorTable, OccupancyRecord, TableStateHistory
- staff: Staff
- catalog: Category, Product
- order: OrderSession, OrderLine, DispatchEvent
- outbox: OutboxEvent
"""

from .base import Base, AuditMixin, BigIntPK, utcnow, as_utc
from .floor import Zone, FloorTable, OccupancyRecord, TableStateHistory
from .staff import Staff
from .catalog import Category, Product
from .order import OrderSession, OrderLine, DispatchEvent, OPEN_SESSION_INDEX
from .outbox import OutboxEvent, OutboxStatus

__all__ = [
    "Base",
    "AuditMixin",
    "BigIntPK",
    "utcnow",
    "as_utc",
    "Zone",
    "FloorTable",
    "OccupancyRecord",
    "TableStateHistory",
    "Staff",
    "Category",
    "Product",
    "OrderSession",
    "OrderLine",
    "DispatchEvent",
    "OPEN_SESSION_INDEX",
    "OutboxEvent",
    "OutboxStatus",
]
