"""
Test support: environment, in-memory database, seed data and fakes.

Imported first by conftest.py (as tests.support) so the environment is in place before any
application module reads settings.
"""

import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["ENABLE_BACKGROUND_WORKERS"] = "false"
os.environ["CREATE_SCHEMA_ON_STARTUP"] = "false"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["ENVIRONMENT"] = "test"
os.environ["STOCK_LEDGER_URL"] = ""

from dataclasses import dataclass, field  # noqa: E402

from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import Session, sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from floor_api.models import (  # noqa: E402
    Category,
    FloorTable,
    Product,
    Staff,
    Zone,
)
from floor_api.services.stock import StockAdjustment, StockOutcome  # noqa: E402
from shared.config.constants import StaffRole, StockOperation  # noqa: E402


# SQLite in-memory database shared by every connection of the test run
engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


class FakeStockLedger:
    """Records every adjustment; fails all of them when fail=True."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.calls: list[tuple[str, StockAdjustment]] = []

    def reduce(self, adjustment: StockAdjustment) -> StockOutcome:
        return self._record(StockOperation.REDUCE, adjustment)

    def restore(self, adjustment: StockAdjustment) -> StockOutcome:
        return self._record(StockOperation.RESTORE, adjustment)

    def _record(self, operation: str, adjustment: StockAdjustment) -> StockOutcome:
        self.calls.append((operation, adjustment))
        if self.fail:
            return StockOutcome(
                ok=False, operation=operation, adjustment=adjustment, error="ledger down"
            )
        return StockOutcome(ok=True, operation=operation, adjustment=adjustment)

    def of(self, operation: str) -> list[StockAdjustment]:
        return [adj for op, adj in self.calls if op == operation]


class ExplodingStockLedger:
    """A broken adapter that raises instead of returning an outcome."""

    def reduce(self, adjustment: StockAdjustment) -> StockOutcome:
        raise RuntimeError("adapter bug")

    def restore(self, adjustment: StockAdjustment) -> StockOutcome:
        raise RuntimeError("adapter bug")


@dataclass
class Floor:
    zones: dict[str, Zone] = field(default_factory=dict)
    tables: dict[int, FloorTable] = field(default_factory=dict)
    staff: dict[str, Staff] = field(default_factory=dict)
    products: dict[str, Product] = field(default_factory=dict)


def seed_floor(db: Session) -> Floor:
    """
    Two zones, six tables, three staff members (one inactive) and a
    small catalog. Prices: lomo 2500, bebida 1500, postre 3000.
    """
    floor = Floor()

    salon = Zone(name="Salón", display_order=1)
    terraza = Zone(name="Terraza", display_order=2)
    db.add_all([salon, terraza])
    db.flush()
    floor.zones = {"salon": salon, "terraza": terraza}

    layout = [
        (1, salon, 2, False),
        (2, salon, 4, False),
        (3, salon, 4, True),
        (4, terraza, 6, False),
        (5, salon, 4, False),
        (6, terraza, 2, True),
    ]
    for number, zone, capacity, vip in layout:
        table = FloorTable(
            number=number,
            name=f"Mesa {number}",
            zone_id=zone.id,
            capacity=capacity,
            is_vip=vip,
        )
        db.add(table)
        floor.tables[number] = table

    ana = Staff(code="M01", full_name="Ana Rojas", role=StaffRole.WAITER)
    luis = Staff(code="M02", full_name="Luis Soto", role=StaffRole.WAITER)
    former = Staff(code="M99", full_name="Ex Mesero", role=StaffRole.WAITER, is_active=False)
    db.add_all([ana, luis, former])
    floor.staff = {"M01": ana, "M02": luis, "M99": former}

    fondos = Category(name="Fondos", display_order=1)
    bebidas = Category(name="Bebidas", display_order=2)
    db.add_all([fondos, bebidas])
    db.flush()

    floor.products = {
        "lomo": Product(name="Lomo a lo pobre", category_id=fondos.id, price_cents=2500),
        "bebida": Product(name="Bebida", category_id=bebidas.id, price_cents=1500),
        "postre": Product(name="Postre", category_id=None, price_cents=3000),
        "retirado": Product(
            name="Plato retirado", category_id=fondos.id, price_cents=1000, is_active=False
        ),
    }
    db.add_all(floor.products.values())
    db.commit()
    return floor
