"""
Stock ledger adapters: HTTP client and the disabled fallback.
"""

from __future__ import annotations

import httpx

from shared.config.constants import StockOperation
from shared.config.logging import stock_logger as logger
from shared.config.settings import settings
from shared.infrastructure.circuit_breaker import CircuitBreaker, CircuitBreakerConfig
from shared.infrastructure.metrics import get_metrics

from .port import StockAdjustment, StockLedgerPort, StockOutcome

stock_ledger_breaker = CircuitBreaker(
    CircuitBreakerConfig(
        name="stock_ledger",
        failure_threshold=5,
        recovery_timeout=30.0,
    )
)


class HttpStockLedger:
    """
    Ledger reached over HTTP: POST {base_url}/reduce and /restore.

    Any 2xx is success. Timeouts, connection errors and non-2xx responses
    become failed outcomes and count against the circuit breaker; while
    the circuit is open no request is sent at all.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 3.0,
        breaker: CircuitBreaker = stock_ledger_breaker,
        client: httpx.Client | None = None,
    ):
        self._base_url = base_url.rstrip("/")
        self._breaker = breaker
        self._client = client or httpx.Client(timeout=timeout)

    def reduce(self, adjustment: StockAdjustment) -> StockOutcome:
        return self._call(StockOperation.REDUCE, adjustment)

    def restore(self, adjustment: StockAdjustment) -> StockOutcome:
        return self._call(StockOperation.RESTORE, adjustment)

    def close(self) -> None:
        self._client.close()

    def _call(self, operation: str, adjustment: StockAdjustment) -> StockOutcome:
        if not self._breaker.can_execute():
            return StockOutcome(
                ok=False,
                operation=operation,
                adjustment=adjustment,
                error="circuit open",
            )

        try:
            response = self._client.post(
                f"{self._base_url}/{operation}",
                json=adjustment.to_payload(),
            )
        except httpx.HTTPError as e:
            self._breaker.record_failure()
            return StockOutcome(
                ok=False,
                operation=operation,
                adjustment=adjustment,
                error=f"{type(e).__name__}: {e}",
            )

        if response.is_success:
            self._breaker.record_success()
            return StockOutcome(ok=True, operation=operation, adjustment=adjustment)

        # A 4xx is the ledger refusing this adjustment, not the ledger being down
        if response.status_code >= 500:
            self._breaker.record_failure()
        return StockOutcome(
            ok=False,
            operation=operation,
            adjustment=adjustment,
            error=f"HTTP {response.status_code}",
        )


class NullStockLedger:
    """Used when no ledger URL is configured."""

    def reduce(self, adjustment: StockAdjustment) -> StockOutcome:
        return StockOutcome(
            ok=False, operation=StockOperation.REDUCE, adjustment=adjustment, disabled=True
        )

    def restore(self, adjustment: StockAdjustment) -> StockOutcome:
        return StockOutcome(
            ok=False, operation=StockOperation.RESTORE, adjustment=adjustment, disabled=True
        )


_ledger: StockLedgerPort | None = None


def get_stock_ledger() -> StockLedgerPort:
    """Process-wide ledger built from settings. FastAPI dependency."""
    global _ledger
    if _ledger is None:
        if settings.stock_ledger_url:
            _ledger = HttpStockLedger(
                settings.stock_ledger_url,
                timeout=settings.stock_ledger_timeout,
            )
            logger.info("Stock ledger configured", url=settings.stock_ledger_url)
        else:
            _ledger = NullStockLedger()
            logger.info("Stock ledger disabled: STOCK_LEDGER_URL not set")
    return _ledger


def close_stock_ledger() -> None:
    global _ledger
    if isinstance(_ledger, HttpStockLedger):
        _ledger.close()
    _ledger = None


def log_stock_outcome(outcome: StockOutcome) -> bool:
    """
    Log and count a stock outcome.

    Returns True if it was a soft failure the caller should report.
    """
    if not outcome.is_soft_failure:
        return False

    adj = outcome.adjustment
    logger.warning(
        "Stock adjustment failed; sale continues",
        operation=outcome.operation,
        session_id=adj.session_id,
        line_id=adj.line_id,
        product_id=adj.product_id,
        quantity=adj.quantity,
        warehouse_id=adj.warehouse_id,
        error=outcome.error,
    )
    get_metrics().inc("stock_soft_failures_total", labels={"operation": outcome.operation})
    return True
