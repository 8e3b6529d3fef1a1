"""
Stock Ledger Port and adapters.
"""

from .port import StockAdjustment, StockOutcome, StockLedgerPort
from .ledger import (
    HttpStockLedger,
    NullStockLedger,
    stock_ledger_breaker,
    get_stock_ledger,
    close_stock_ledger,
    log_stock_outcome,
)

__all__ = [
    "StockAdjustment",
    "StockOutcome",
    "StockLedgerPort",
    "HttpStockLedger",
    "NullStockLedger",
    "stock_ledger_breaker",
    "get_stock_ledger",
    "close_stock_ledger",
    "log_stock_outcome",
]
