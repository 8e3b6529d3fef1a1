"""
Service factories used as FastAPI dependencies.

Tests override get_db, get_stock_ledger and get_floor_cache; the
services below pick those overrides up automatically.
"""

from fastapi import Depends
from sqlalchemy.orm import Session

from floor_api.services.domain import (
    KitchenDispatchService,
    OrderSessionService,
    SessionQueryService,
    TableRegistryService,
)
from floor_api.services.floor_cache import FloorStateCache, get_floor_cache
from floor_api.services.stock import StockLedgerPort, get_stock_ledger
from shared.infrastructure.db import get_db


def get_order_service(
    db: Session = Depends(get_db),
    ledger: StockLedgerPort = Depends(get_stock_ledger),
    cache: FloorStateCache = Depends(get_floor_cache),
) -> OrderSessionService:
    return OrderSessionService(db, stock_ledger=ledger, cache=cache)


def get_table_registry(
    db: Session = Depends(get_db),
    cache: FloorStateCache = Depends(get_floor_cache),
) -> TableRegistryService:
    return TableRegistryService(db, cache=cache)


def get_dispatch_service(db: Session = Depends(get_db)) -> KitchenDispatchService:
    return KitchenDispatchService(db)


def get_session_query(db: Session = Depends(get_db)) -> SessionQueryService:
    return SessionQueryService(db)
