"""
Order Session Domain Service.

Owns the lifecycle of the order session opened against a table: one open
session per table, line add/merge/remove with prices captured at order
time, totals, cancellation and close.

Transactions:
- Every public mutation is a single transaction (_write). Any failure
  inside it rolls back everything, table transition included.
- Stock adjustments are sent only after the commit, so a rolled-back
  request never touches inventory, and a stock failure never undoes a sale.
"""

from __future__ import annotations

from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from dataclasses import dataclass

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from floor_api.models import OPEN_SESSION_INDEX, FloorTable, OrderLine, OrderSession, utcnow
from floor_api.services.collaborators import Catalog, StaffDirectory
from floor_api.services.events import write_session_outbox_event
from floor_api.services.floor_cache import FloorStateCache
from floor_api.services.stock import (
    StockAdjustment,
    StockLedgerPort,
    StockOutcome,
    get_stock_ledger,
    log_stock_outcome,
)
from shared.config.constants import (
    CANCELLATION_MARKER,
    DEFAULT_CANCELLATION_REASON,
    SessionStatus,
    StockOperation,
    TableState,
)
from shared.config.logging import orders_logger as logger
from shared.config.settings import settings
from shared.infrastructure.db import safe_commit
from shared.infrastructure.events import (
    ORDER_CANCELLED,
    ORDER_CLOSED,
    ORDER_ITEMS_ADDED,
    ORDER_LINE_REMOVED,
    ORDER_OPENED,
)
from shared.infrastructure.metrics import get_metrics
from shared.utils.exceptions import (
    ConflictError,
    DatabaseError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from shared.utils.schemas import CancelResult, CloseResult, OpenOrderResult, RemoveLineResult

from .table_registry_service import TableRegistryService

SESSION_ENTITY = "Venta"


class SessionNotFoundError(NotFoundError):
    def __init__(self, session_id: int):
        super().__init__(SESSION_ENTITY, session_id)


class LineNotFoundError(NotFoundError):
    def __init__(self, line_id: int):
        super().__init__("Línea de venta", line_id)


class SessionNotOpenError(InvalidStateError):
    def __init__(self, session: OrderSession):
        super().__init__(
            SESSION_ENTITY,
            session.status,
            [SessionStatus.OPEN],
            session_id=session.id,
        )


class SessionAlreadyCancelledError(SessionNotOpenError):
    """A session can be cancelled only once."""


@dataclass(frozen=True)
class ItemRequest:
    product_id: int
    quantity: int
    observations: str | None = None


@dataclass
class AddItemsResult:
    session_id: int
    total_cents: int
    lines_touched: int
    stock_warnings: int


def normalize_observations(value: str | None) -> str:
    """Absent observations are stored as ''. Any other text is kept as sent."""
    return value or ""


# SQLite names the indexed column, not the index
SQLITE_OPEN_SESSION_VIOLATION = "UNIQUE constraint failed: order_session.table_id"


def is_open_session_conflict(error: IntegrityError) -> bool:
    """True when the violation is a second OPEN session for the same table."""
    diag = getattr(error.orig, "diag", None)
    constraint = getattr(diag, "constraint_name", None)
    if constraint:
        return constraint == OPEN_SESSION_INDEX
    message = str(error.orig)
    return OPEN_SESSION_INDEX in message or SQLITE_OPEN_SESSION_VIOLATION in message


def validate_items(items: Sequence[ItemRequest]) -> None:
    if not items:
        raise ValidationError("Debe incluir al menos un producto", field="items")
    for index, item in enumerate(items):
        if item.quantity is None or item.quantity <= 0:
            raise ValidationError(
                "La cantidad debe ser mayor a 0",
                field=f"items[{index}].quantity",
                value=item.quantity,
            )


class OrderSessionService:
    """Domain service for order sessions and their lines."""

    def __init__(
        self,
        db: Session,
        stock_ledger: StockLedgerPort | None = None,
        staff_directory: StaffDirectory | None = None,
        catalog: Catalog | None = None,
        cache: FloorStateCache | None = None,
    ):
        self._db = db
        self._stock = stock_ledger or get_stock_ledger()
        self._staff = staff_directory or StaffDirectory(db)
        self._catalog = catalog or Catalog(db)
        self._registry = TableRegistryService(db, staff_directory=self._staff, cache=cache)

    # =========================================================================
    # Transaction helpers
    # =========================================================================

    @contextmanager
    def _write(self, operation: str, **log_context) -> Iterator[None]:
        """One transaction: commit on success, roll back on any error."""
        try:
            yield
            safe_commit(self._db)
        except IntegrityError as e:
            self._db.rollback()
            if not is_open_session_conflict(e):
                raise DatabaseError(operation, error=str(e.orig), **log_context) from e
            get_metrics().inc("session_conflicts_total")
            raise ConflictError(
                "Otra terminal modificó esta mesa al mismo tiempo. Reintente la operación.",
                retryable=True,
                operation=operation,
                **log_context,
            ) from e
        except SQLAlchemyError as e:
            self._db.rollback()
            raise DatabaseError(operation, error=str(e), **log_context) from e
        except Exception:
            self._db.rollback()
            raise

    def _lock_session(self, session_id: int) -> OrderSession:
        session = self._db.scalar(
            select(OrderSession).where(OrderSession.id == session_id).with_for_update()
        )
        if not session:
            raise SessionNotFoundError(session_id)
        return session

    def _lock_table_then_session(self, session_id: int) -> tuple[FloorTable, OrderSession]:
        """Locks in the same order as open_order (table first) to avoid deadlocks."""
        table_id = self._db.scalar(
            select(OrderSession.table_id).where(OrderSession.id == session_id)
        )
        if table_id is None:
            raise SessionNotFoundError(session_id)
        table = self._registry.lock_table(table_id)
        return table, self._lock_session(session_id)

    def _find_open_session(self, table_id: int) -> OrderSession | None:
        return self._db.scalar(
            select(OrderSession)
            .where(
                OrderSession.table_id == table_id,
                OrderSession.status == SessionStatus.OPEN,
            )
            .order_by(OrderSession.id.desc())
            .limit(1)
        )

    def _recompute_total(self, session: OrderSession) -> int:
        """Full SUM over the stored lines, inside the writing transaction."""
        self._db.flush()
        total = self._db.scalar(
            select(
                func.coalesce(func.sum(OrderLine.quantity * OrderLine.unit_price_cents), 0)
            ).where(OrderLine.session_id == session.id)
        )
        session.total_cents = int(total)
        return session.total_cents

    def _warehouse(self, warehouse_id: int | None) -> int:
        return warehouse_id or settings.default_warehouse_id

    # =========================================================================
    # Staging (no commit)
    # =========================================================================

    def _attach(
        self,
        table: FloorTable,
        party_size: int,
        staff_id: int | None,
        customer_id: int | None = None,
        cash_register_id: int | None = None,
        observations: str | None = None,
    ) -> tuple[OrderSession, bool]:
        """Return (session, created). The table row must already be locked."""
        session = self._find_open_session(table.id)
        if session is not None:
            session.party_size = max(session.party_size, party_size)
            if customer_id is not None and session.customer_id is None:
                session.customer_id = customer_id
            if cash_register_id is not None and session.cash_register_id is None:
                session.cash_register_id = cash_register_id
            return session, False

        session = OrderSession(
            table_id=table.id,
            party_size=party_size,
            staff_id=staff_id,
            customer_id=customer_id,
            cash_register_id=cash_register_id,
            status=SessionStatus.OPEN,
            total_cents=0,
            observations=normalize_observations(observations),
            opened_at=utcnow(),
        )
        self._db.add(session)
        # The partial unique index fires here if another terminal won the race
        self._db.flush()
        logger.info("Order session opened", session_id=session.id, table_id=table.id)
        return session, True

    def _stage_items(
        self,
        session: OrderSession,
        items: Sequence[ItemRequest],
        staff_id: int | None,
        warehouse_id: int,
    ) -> tuple[int, list[StockAdjustment]]:
        """
        Merge or insert every item. Returns (lines touched, stock reductions).

        A line absorbs an item only if it is not dispatched yet and carries
        the same product and normalized observations; anything else gets a
        new line at the current catalog price.
        """
        products = self._catalog.get_products(item.product_id for item in items)

        mergeable: dict[tuple[int, str], OrderLine] = {}
        for line in session.lines:
            key = (line.product_id, line.observations)
            if line.dispatched_quantity == 0 and key not in mergeable:
                mergeable[key] = line

        touched: list[tuple[OrderLine, int]] = []
        metrics = get_metrics()
        for item in items:
            observations = normalize_observations(item.observations)
            key = (item.product_id, observations)
            line = mergeable.get(key)
            if line is not None:
                line.quantity = line.quantity + item.quantity
                metrics.inc("order_lines_merged_total")
            else:
                line = OrderLine(
                    product_id=item.product_id,
                    quantity=item.quantity,
                    unit_price_cents=products[item.product_id].price_cents,
                    observations=observations,
                    dispatched_quantity=0,
                    created_by_id=staff_id,
                    created_at=utcnow(),
                )
                session.lines.append(line)
                mergeable[key] = line
                metrics.inc("order_lines_inserted_total")
            touched.append((line, item.quantity))

        self._db.flush()
        adjustments = [
            StockAdjustment(
                warehouse_id=warehouse_id,
                product_id=line.product_id,
                quantity=quantity,
                actor_id=staff_id,
                session_id=session.id,
                line_id=line.id,
            )
            for line, quantity in touched
        ]
        return len({id(line) for line, _ in touched}), adjustments

    # =========================================================================
    # Stock (after commit)
    # =========================================================================

    def _apply_stock(self, operation: str, adjustments: list[StockAdjustment]) -> int:
        """Send adjustments best-effort. Returns the number of soft failures."""
        warnings = 0
        call = self._stock.reduce if operation == StockOperation.REDUCE else self._stock.restore
        for adjustment in adjustments:
            try:
                outcome = call(adjustment)
            except Exception as e:
                outcome = StockOutcome(
                    ok=False, operation=operation, adjustment=adjustment, error=str(e)
                )
            if log_stock_outcome(outcome):
                warnings += 1
        return warnings

    # =========================================================================
    # Public operations
    # =========================================================================

    def create_or_attach_session(
        self,
        table_id: int,
        party_size: int,
        staff_code: str | int,
        customer_id: int | None = None,
        cash_register_id: int | None = None,
    ) -> OrderSession:
        """
        Return the table's open session, or open a new one.

        Does not change the table state.
        """
        if party_size < 1:
            raise ValidationError("partySize debe ser mayor a 0", field="partySize")
        staff = self._staff.resolve(staff_code)

        with self._write("apertura de venta", table_id=table_id):
            table = self._registry.lock_table(table_id)
            session, _ = self._attach(
                table, party_size, staff.id, customer_id, cash_register_id
            )
        return session

    def add_items(
        self,
        session_id: int,
        items: Sequence[ItemRequest],
        staff_code: str | int,
        warehouse_id: int | None = None,
    ) -> AddItemsResult:
        """
        Add items to an open session.

        Raises:
            ValidationError: empty items or a non-positive quantity.
            UnauthorizedError: unknown staff code.
            SessionNotFoundError / SessionNotOpenError
            NotFoundError: unknown or inactive product (nothing is written).
        """
        validate_items(items)
        staff = self._staff.resolve(staff_code)

        with self._write("agregar productos", session_id=session_id):
            session = self._lock_session(session_id)
            if session.status != SessionStatus.OPEN:
                raise SessionNotOpenError(session)
            lines_touched, adjustments = self._stage_items(
                session, items, staff.id, self._warehouse(warehouse_id)
            )
            total = self._recompute_total(session)
            write_session_outbox_event(
                self._db,
                ORDER_ITEMS_ADDED,
                session_id=session.id,
                table_id=session.table_id,
                actor_staff_id=staff.id,
                extra_data={"total_cents": total, "lines_touched": lines_touched},
            )

        warnings = self._apply_stock(StockOperation.REDUCE, adjustments)
        logger.info(
            "Items added",
            session_id=session_id,
            lines_touched=lines_touched,
            total_cents=total,
            stock_warnings=warnings,
        )
        return AddItemsResult(
            session_id=session_id,
            total_cents=total,
            lines_touched=lines_touched,
            stock_warnings=warnings,
        )

    def open_order(
        self,
        table_id: int,
        party_size: int,
        staff_code: str | int,
        items: Sequence[ItemRequest],
        customer_id: int | None = None,
        cash_register_id: int | None = None,
        warehouse_id: int | None = None,
        observations: str | None = None,
    ) -> OpenOrderResult:
        """
        The waiter's "take order" action, in one transaction:

        1. occupy the table if it is not occupied yet (starts the clock),
        2. find or create its open session,
        3. add the items.
        """
        if party_size < 1:
            raise ValidationError("partySize debe ser mayor a 0", field="partySize")
        validate_items(items)
        staff = self._staff.resolve(staff_code)

        with self._write("apertura de venta", table_id=table_id):
            table = self._registry.lock_table(table_id)
            if table.state != TableState.OCCUPIED:
                self._registry.apply_transition(
                    table,
                    TableState.OCCUPIED,
                    staff=staff,
                    party_size=party_size,
                    reason="Apertura de venta",
                )
            session, created = self._attach(
                table, party_size, staff.id, customer_id, cash_register_id, observations
            )
            lines_touched, adjustments = self._stage_items(
                session, items, staff.id, self._warehouse(warehouse_id)
            )
            total = self._recompute_total(session)
            write_session_outbox_event(
                self._db,
                ORDER_OPENED if created else ORDER_ITEMS_ADDED,
                session_id=session.id,
                table_id=table.id,
                actor_staff_id=staff.id,
                extra_data={"total_cents": total, "lines_touched": lines_touched},
            )

        self._registry.publish_to_cache(table)
        warnings = self._apply_stock(StockOperation.REDUCE, adjustments)

        if created:
            get_metrics().inc("orders_opened_total")
        logger.info(
            "Order taken",
            session_id=session.id,
            table_id=table_id,
            created=created,
            total_cents=total,
            stock_warnings=warnings,
        )
        return OpenOrderResult(
            session_id=session.id,
            table_id=table_id,
            created=created,
            total_cents=total,
            lines_touched=lines_touched,
            stock_warnings=warnings,
        )

    def remove_line(
        self,
        line_id: int,
        actor_code: str | int,
        warehouse_id: int | None = None,
    ) -> RemoveLineResult:
        """Delete a line, restore its stock and recompute the total."""
        staff = self._staff.resolve(actor_code)

        with self._write("eliminar línea", line_id=line_id):
            line = self._db.scalar(
                select(OrderLine).where(OrderLine.id == line_id).with_for_update()
            )
            if not line:
                raise LineNotFoundError(line_id)
            session = self._lock_session(line.session_id)
            if session.status != SessionStatus.OPEN:
                raise SessionNotOpenError(session)

            adjustment = StockAdjustment(
                warehouse_id=self._warehouse(warehouse_id),
                product_id=line.product_id,
                quantity=line.quantity,
                actor_id=staff.id,
                session_id=session.id,
                line_id=line.id,
            )
            session.lines.remove(line)
            total = self._recompute_total(session)
            write_session_outbox_event(
                self._db,
                ORDER_LINE_REMOVED,
                session_id=session.id,
                table_id=session.table_id,
                actor_staff_id=staff.id,
                extra_data={
                    "line_id": line_id,
                    "product_id": adjustment.product_id,
                    "quantity": adjustment.quantity,
                    "total_cents": total,
                },
            )

        warnings = self._apply_stock(StockOperation.RESTORE, [adjustment])
        logger.info("Line removed", session_id=session.id, line_id=line_id, total_cents=total)
        return RemoveLineResult(
            session_id=session.id,
            line_id=line_id,
            total_cents=total,
            stock_warnings=warnings,
        )

    def cancel_session(
        self,
        session_id: int,
        actor_code: str | int,
        reason: str | None = None,
        warehouse_id: int | None = None,
    ) -> CancelResult:
        """
        Cancel an open session, restore stock for every line and free the table.

        Stock failures are reported, never blocking: the session ends up
        CANCELLED regardless.
        """
        staff = self._staff.resolve(actor_code)
        reason_text = (reason or "").strip() or DEFAULT_CANCELLATION_REASON

        with self._write("cancelar venta", session_id=session_id):
            table, session = self._lock_table_then_session(session_id)
            if session.status == SessionStatus.CANCELLED:
                raise SessionAlreadyCancelledError(session)
            if session.status != SessionStatus.OPEN:
                raise SessionNotOpenError(session)

            warehouse = self._warehouse(warehouse_id)
            adjustments = [
                StockAdjustment(
                    warehouse_id=warehouse,
                    product_id=line.product_id,
                    quantity=line.quantity,
                    actor_id=staff.id,
                    session_id=session.id,
                    line_id=line.id,
                )
                for line in session.lines
            ]

            session.status = SessionStatus.CANCELLED
            session.cancelled_at = utcnow()
            session.cancelled_by_id = staff.id
            session.observations = f"{session.observations or ''}{CANCELLATION_MARKER}{reason_text}"

            if table.state != TableState.FREE:
                self._registry.apply_transition(
                    table,
                    TableState.FREE,
                    staff=staff,
                    reason=f"Venta {session.id} cancelada",
                )

            write_session_outbox_event(
                self._db,
                ORDER_CANCELLED,
                session_id=session.id,
                table_id=session.table_id,
                actor_staff_id=staff.id,
                extra_data={"reason": reason_text, "line_count": len(adjustments)},
            )

        self._registry.publish_to_cache(table)
        warnings = self._apply_stock(StockOperation.RESTORE, adjustments)

        get_metrics().inc("orders_cancelled_total")
        logger.info(
            "Order session cancelled",
            session_id=session_id,
            reason=reason_text,
            stock_warnings=warnings,
        )
        return CancelResult(
            session_id=session_id,
            status=SessionStatus.CANCELLED,
            stock_warnings=warnings,
        )

    def close_session(self, session_id: int, actor_code: str | int) -> CloseResult:
        """
        Payment finished: OPEN -> CLOSED, table goes to cleaning.
        """
        staff = self._staff.resolve(actor_code)

        with self._write("cerrar venta", session_id=session_id):
            table, session = self._lock_table_then_session(session_id)
            if session.status != SessionStatus.OPEN:
                raise SessionNotOpenError(session)

            session.status = SessionStatus.CLOSED
            session.closed_at = utcnow()
            session.closed_by_id = staff.id

            self._registry.apply_transition(
                table,
                TableState.DIRTY,
                staff=staff,
                reason=f"Venta {session.id} cerrada",
            )
            write_session_outbox_event(
                self._db,
                ORDER_CLOSED,
                session_id=session.id,
                table_id=session.table_id,
                actor_staff_id=staff.id,
                extra_data={"total_cents": session.total_cents},
            )

        self._registry.publish_to_cache(table)
        get_metrics().inc("orders_closed_total")
        logger.info("Order session closed", session_id=session_id, total_cents=session.total_cents)
        return CloseResult(
            session_id=session.id,
            table_id=session.table_id,
            status=SessionStatus.CLOSED,
            total_cents=session.total_cents,
        )
