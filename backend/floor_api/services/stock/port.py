"""
Stock Ledger Port.

The floor never owns how inventory is decremented: it asks the external
ledger to reduce or restore, and accepts whatever comes back. A port
implementation never raises; failures come back as StockOutcome(ok=False).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol


@dataclass(frozen=True)
class StockAdjustment:
    """One reduce/restore request for a single line."""

    warehouse_id: int
    product_id: int
    quantity: int
    actor_id: int | None = None
    session_id: int | None = None
    line_id: int | None = None

    def to_payload(self) -> dict:
        return {
            "warehouse_id": self.warehouse_id,
            "product_id": self.product_id,
            "quantity": self.quantity,
            "actor_id": self.actor_id,
            "session_id": self.session_id,
            "line_id": self.line_id,
        }


@dataclass(frozen=True)
class StockOutcome:
    """
    Result of a stock call.

    disabled=True means no ledger is configured; such outcomes are not
    treated as warnings.
    """

    ok: bool
    operation: str
    adjustment: StockAdjustment
    error: str | None = None
    disabled: bool = False

    @property
    def is_soft_failure(self) -> bool:
        return not self.ok and not self.disabled


class StockLedgerPort(Protocol):
    def reduce(self, adjustment: StockAdjustment) -> StockOutcome: ...

    def restore(self, adjustment: StockAdjustment) -> StockOutcome: ...
