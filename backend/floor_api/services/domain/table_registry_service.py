"""
Table Registry Domain Service.

Owns the floor state machine: every change of FloorTable.state goes
through apply_transition(), which also keeps the occupancy clock, the
reservation expiry, the state history and the outbox in step.
"""

from __future__ import annotations

from collections import defaultdict
from datetime import datetime, timedelta

from sqlalchemy import select
from sqlalchemy.orm import Session

from floor_api.models import (
    FloorTable,
    OccupancyRecord,
    Staff,
    TableStateHistory,
    as_utc,
    utcnow,
)
from floor_api.services.collaborators import StaffDirectory
from floor_api.services.events import write_table_outbox_event
from floor_api.services.floor_cache import FloorStateCache, TableSnapshot, get_floor_cache
from shared.config.constants import (
    OCCUPANCY_WARNING_RATIO,
    AlertLevel,
    AssignmentKind,
    Limits,
    TableState,
)
from shared.config.logging import tables_logger as logger
from shared.config.settings import settings
from shared.infrastructure.db import safe_commit
from shared.infrastructure.events import TABLE_ASSIGNED, TABLE_STATE_CHANGED
from shared.infrastructure.metrics import get_metrics
from shared.utils.exceptions import NotFoundError, ValidationError
from shared.utils.schemas import (
    FloorStatsOutput,
    OccupancyAlertOutput,
    TableHistoryOutput,
    TableOutput,
    ZoneFloorOutput,
)

NO_ZONE_NAME = "Sin zona"
RESERVATION_EXPIRED_REASON = "Reserva expirada"


class TableNotFoundError(NotFoundError):
    def __init__(self, table_id: int):
        super().__init__("Mesa", table_id)


class UnknownTableStateError(ValidationError):
    def __init__(self, name: str | None):
        valid = ", ".join(TableState.ALL)
        super().__init__(
            f"Estado de mesa desconocido: '{name}'. Valores válidos: {valid}",
            field="newState",
            value=name,
        )


def elapsed_minutes(since: datetime | None, now: datetime | None = None) -> int | None:
    """Whole minutes elapsed since an occupancy clock started."""
    if since is None:
        return None
    now = now or utcnow()
    seconds = (now - as_utc(since)).total_seconds()
    return max(0, int(seconds // 60))


def format_elapsed(minutes: int | None) -> str | None:
    """'1h 05m' from one hour up, '12m' below."""
    if minutes is None:
        return None
    hours, mins = divmod(minutes, 60)
    if hours:
        return f"{hours}h {mins:02d}m"
    return f"{mins}m"


def table_output(snapshot: TableSnapshot, now: datetime | None = None) -> TableOutput:
    elapsed = None
    if snapshot.state == TableState.OCCUPIED:
        elapsed = elapsed_minutes(snapshot.occupied_since, now)
    return TableOutput(
        id=snapshot.id,
        number=snapshot.number,
        name=snapshot.name,
        zone_id=snapshot.zone_id,
        zone_name=snapshot.zone_name,
        capacity=snapshot.capacity,
        state=snapshot.state,
        color=TableState.COLORS.get(snapshot.state, TableState.COLORS[TableState.FREE]),
        assigned_staff_id=snapshot.assigned_staff_id,
        assigned_staff_name=snapshot.assigned_staff_name,
        assignment_kind=snapshot.assignment_kind,
        party_size=snapshot.party_size,
        occupied_since=snapshot.occupied_since,
        elapsed_minutes=elapsed,
        elapsed_label=format_elapsed(elapsed),
        reservation_expires_at=snapshot.reservation_expires_at,
        observations=snapshot.observations,
        version=snapshot.version,
    )


class TableRegistryService:
    """
    Domain service for floor tables.

    Mutating methods commit their own transaction. apply_transition() is
    the exception: it only stages changes so that OrderSessionService can
    move a table inside its own transaction; the caller then commits and
    calls publish_to_cache().
    """

    def __init__(
        self,
        db: Session,
        staff_directory: StaffDirectory | None = None,
        cache: FloorStateCache | None = None,
    ):
        self._db = db
        self._staff = staff_directory or StaffDirectory(db)
        self._cache = cache or get_floor_cache()

    # =========================================================================
    # Lookups
    # =========================================================================

    def get_table(self, table_id: int) -> FloorTable:
        table = self._db.scalar(
            select(FloorTable).where(
                FloorTable.id == table_id,
                FloorTable.is_active.is_(True),
            )
        )
        if not table:
            raise TableNotFoundError(table_id)
        return table

    def lock_table(self, table_id: int) -> FloorTable:
        """SELECT ... FOR UPDATE on an active table."""
        table = self._db.scalar(
            select(FloorTable)
            .where(
                FloorTable.id == table_id,
                FloorTable.is_active.is_(True),
            )
            .with_for_update()
        )
        if not table:
            raise TableNotFoundError(table_id)
        return table

    @staticmethod
    def resolve_state(name: str | None) -> str:
        state = TableState.normalize(name)
        if state is None:
            raise UnknownTableStateError(name)
        return state

    # =========================================================================
    # State machine
    # =========================================================================

    def apply_transition(
        self,
        table: FloorTable,
        new_state: str,
        staff: Staff | None = None,
        observations: str | None = None,
        estimated_minutes: int | None = None,
        party_size: int | None = None,
        reason: str | None = None,
        now: datetime | None = None,
    ) -> FloorTable:
        """
        Stage a state change on a locked table. Does not commit.

        Any state may move to any other. Re-entering OCUPADA keeps the
        running clock.
        """
        now = now or utcnow()
        previous = table.state
        staff_id = staff.id if staff else None

        if previous == TableState.OCCUPIED and new_state != TableState.OCCUPIED:
            started = as_utc(table.occupied_since) or now
            self._db.add(
                OccupancyRecord(
                    table_id=table.id,
                    started_at=started,
                    ended_at=now,
                    duration_seconds=max(0, int((now - started).total_seconds())),
                    party_size=table.party_size,
                    staff_id=table.assigned_staff_id,
                )
            )
            table.occupied_since = None

        if new_state == TableState.OCCUPIED:
            if previous != TableState.OCCUPIED or table.occupied_since is None:
                table.occupied_since = now
            if staff is not None:
                table.assigned_staff_id = staff.id
                table.assignment_kind = table.assignment_kind or AssignmentKind.PRINCIPAL
            if party_size is not None:
                table.party_size = party_size

        if new_state == TableState.RESERVED and estimated_minutes:
            table.reservation_expires_at = now + timedelta(minutes=estimated_minutes)
        elif new_state != TableState.RESERVED:
            table.reservation_expires_at = None

        if new_state == TableState.FREE:
            table.assigned_staff_id = None
            table.assignment_kind = None
            table.party_size = None

        if observations is not None:
            table.observations = observations

        table.state = new_state
        table.version = table.version + 1

        self._db.add(
            TableStateHistory(
                table_id=table.id,
                previous_state=previous,
                new_state=new_state,
                staff_id=staff_id,
                reason=reason,
                party_size=party_size,
                created_at=now,
            )
        )
        write_table_outbox_event(
            self._db,
            TABLE_STATE_CHANGED,
            table_id=table.id,
            actor_staff_id=staff_id,
            extra_data={
                "table_number": table.number,
                "previous_state": previous,
                "new_state": new_state,
                "version": table.version,
            },
        )

        get_metrics().inc("table_transitions_total", labels={"to_state": new_state})
        logger.info(
            "Table state changed",
            table_id=table.id,
            table_number=table.number,
            previous_state=previous,
            new_state=new_state,
            staff_id=staff_id,
        )
        return table

    def transition(
        self,
        table_id: int,
        new_state: str,
        staff_code: str | int | None = None,
        observations: str | None = None,
        estimated_minutes: int | None = None,
        party_size: int | None = None,
        reason: str | None = None,
    ) -> TableOutput:
        """
        Move a table to a new state and commit.

        Raises:
            UnknownTableStateError: new_state is not a known state or alias.
            UnauthorizedError: staff_code given but not an active staff member.
            TableNotFoundError: unknown or inactive table.
        """
        state = self.resolve_state(new_state)
        staff = self._staff.resolve_optional(staff_code)

        table = self.lock_table(table_id)
        self.apply_transition(
            table,
            state,
            staff=staff,
            observations=observations,
            estimated_minutes=estimated_minutes,
            party_size=party_size,
            reason=reason,
        )
        safe_commit(self._db)
        return table_output(self.publish_to_cache(table))

    def publish_to_cache(self, table: FloorTable) -> TableSnapshot:
        """Push a committed table to the floor cache."""
        snapshot = TableSnapshot.from_model(table)
        self._cache.put(snapshot)
        return snapshot

    # =========================================================================
    # Assignment
    # =========================================================================

    def assign(
        self,
        table_id: int,
        staff_code: str | int,
        assignment_kind: str = AssignmentKind.PRINCIPAL,
    ) -> TableOutput:
        """Overwrite the waitstaff assignment without touching the state."""
        if assignment_kind not in AssignmentKind.ALL:
            raise ValidationError(
                f"Tipo de asignación inválido: '{assignment_kind}'",
                field="assignmentKind",
            )
        staff = self._staff.resolve(staff_code)

        table = self.lock_table(table_id)
        table.assigned_staff_id = staff.id
        table.assignment_kind = assignment_kind
        table.version = table.version + 1

        write_table_outbox_event(
            self._db,
            TABLE_ASSIGNED,
            table_id=table.id,
            actor_staff_id=staff.id,
            extra_data={
                "table_number": table.number,
                "assignment_kind": assignment_kind,
                "version": table.version,
            },
        )
        safe_commit(self._db)

        logger.info(
            "Table assigned",
            table_id=table_id,
            staff_id=staff.id,
            assignment_kind=assignment_kind,
        )
        return table_output(self.publish_to_cache(table))

    def release_table(self, table_id: int, staff_code: str | int) -> TableOutput:
        self._staff.resolve(staff_code)
        return self.transition(
            table_id,
            TableState.FREE,
            staff_code=staff_code,
            reason="Mesa liberada",
        )

    # =========================================================================
    # Floor views
    # =========================================================================

    def floor_snapshot(self, now: datetime | None = None) -> list[ZoneFloorOutput]:
        """Tables grouped by zone, served from the floor cache."""
        self._cache.ensure_loaded(self._db)
        now = now or utcnow()

        zones: dict[tuple[int, str], ZoneFloorOutput] = {}
        for snapshot in self._cache.all():
            zone_name = snapshot.zone_name or NO_ZONE_NAME
            key = (snapshot.zone_order, zone_name)
            if key not in zones:
                zones[key] = ZoneFloorOutput(
                    zone_id=snapshot.zone_id, zone_name=zone_name, tables=[]
                )
            zones[key].tables.append(table_output(snapshot, now))

        return [zones[key] for key in sorted(zones)]

    def floor_stats(self) -> FloorStatsOutput:
        self._cache.ensure_loaded(self._db)
        snapshots = self._cache.all()

        by_state = {state: 0 for state in TableState.ALL}
        by_zone: dict[str, dict[str, int]] = defaultdict(lambda: {s: 0 for s in TableState.ALL})
        for snapshot in snapshots:
            by_state[snapshot.state] = by_state.get(snapshot.state, 0) + 1
            zone_counts = by_zone[snapshot.zone_name or NO_ZONE_NAME]
            zone_counts[snapshot.state] = zone_counts.get(snapshot.state, 0) + 1

        total = len(snapshots)
        occupancy = round(by_state[TableState.OCCUPIED] * 100 / total, 1) if total else 0.0
        return FloorStatsOutput(
            total_tables=total,
            by_state=by_state,
            by_zone=dict(by_zone),
            occupancy_percent=occupancy,
        )

    def find_available_tables(
        self,
        party_size: int,
        zone_id: int | None = None,
    ) -> list[TableOutput]:
        """Free tables that seat the party: smallest fit first, VIP first, then by number."""
        if party_size < 1:
            raise ValidationError("partySize debe ser mayor a 0", field="partySize")

        query = select(FloorTable).where(
            FloorTable.is_active.is_(True),
            FloorTable.state == TableState.FREE,
            FloorTable.capacity >= party_size,
        )
        if zone_id is not None:
            query = query.where(FloorTable.zone_id == zone_id)
        query = query.order_by(
            FloorTable.capacity.asc(),
            FloorTable.is_vip.desc(),
            FloorTable.number.asc(),
        )

        tables = self._db.execute(query).scalars().all()
        return [table_output(TableSnapshot.from_model(t)) for t in tables]

    def occupancy_alerts(self, now: datetime | None = None) -> list[OccupancyAlertOutput]:
        """Occupied tables at or past 80% of the occupancy limit, longest first."""
        self._cache.ensure_loaded(self._db)
        now = now or utcnow()
        limit = settings.table_occupancy_limit_minutes

        alerts = []
        for snapshot in self._cache.all():
            if snapshot.state != TableState.OCCUPIED or snapshot.occupied_since is None:
                continue
            elapsed = elapsed_minutes(snapshot.occupied_since, now)
            if elapsed >= limit:
                level = AlertLevel.EXCEEDED
            elif elapsed >= limit * OCCUPANCY_WARNING_RATIO:
                level = AlertLevel.WARNING
            else:
                continue
            alerts.append(
                OccupancyAlertOutput(
                    table_id=snapshot.id,
                    table_number=snapshot.number,
                    zone_name=snapshot.zone_name,
                    elapsed_minutes=elapsed,
                    limit_minutes=limit,
                    level=level,
                    assigned_staff_name=snapshot.assigned_staff_name,
                )
            )

        alerts.sort(key=lambda a: a.elapsed_minutes, reverse=True)
        return alerts

    def state_history(
        self,
        table_id: int,
        limit: int = Limits.DEFAULT_HISTORY_LIMIT,
    ) -> list[TableHistoryOutput]:
        self.get_table(table_id)
        limit = max(1, min(limit, Limits.MAX_HISTORY_LIMIT))

        rows = self._db.execute(
            select(TableStateHistory)
            .where(TableStateHistory.table_id == table_id)
            .order_by(TableStateHistory.created_at.desc(), TableStateHistory.id.desc())
            .limit(limit)
        ).scalars().all()

        return [
            TableHistoryOutput(
                id=row.id,
                previous_state=row.previous_state,
                new_state=row.new_state,
                staff_id=row.staff_id,
                reason=row.reason,
                party_size=row.party_size,
                created_at=as_utc(row.created_at),
            )
            for row in rows
        ]

    # =========================================================================
    # Timed transitions
    # =========================================================================

    def expire_reservations(self, now: datetime | None = None) -> list[int]:
        """
        Free every reserved table whose reservation has run out.

        Each candidate is re-read under a row lock; a table that left
        RESERVADA (or got a later expiry) in the meantime is skipped.
        Returns the ids of the tables freed.
        """
        now = now or utcnow()
        candidate_ids = self._db.execute(
            select(FloorTable.id).where(
                FloorTable.is_active.is_(True),
                FloorTable.state == TableState.RESERVED,
                FloorTable.reservation_expires_at.is_not(None),
                FloorTable.reservation_expires_at <= now,
            )
        ).scalars().all()

        freed: list[int] = []
        for table_id in candidate_ids:
            table = self._db.scalar(
                select(FloorTable).where(FloorTable.id == table_id).with_for_update()
            )
            expires_at = as_utc(table.reservation_expires_at) if table else None
            if (
                table is None
                or table.state != TableState.RESERVED
                or expires_at is None
                or expires_at > now
            ):
                self._db.rollback()
                continue

            self.apply_transition(
                table, TableState.FREE, reason=RESERVATION_EXPIRED_REASON, now=now
            )
            safe_commit(self._db)
            self.publish_to_cache(table)
            freed.append(table_id)

        if freed:
            get_metrics().inc("reservations_expired_total", len(freed))
            logger.info("Reservations expired", table_ids=freed)
        return freed
