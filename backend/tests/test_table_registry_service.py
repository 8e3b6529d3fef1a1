"""
Tests for TableRegistryService: state machine, occupancy clock,
reservations, assignment and floor views.
"""

from datetime import timedelta

import pytest
from sqlalchemy import select

from floor_api.models import OccupancyRecord, OutboxEvent, utcnow
from floor_api.services.domain import (
    TableNotFoundError,
    TableRegistryService,
    UnknownTableStateError,
    format_elapsed,
)
from floor_api.services.domain.table_registry_service import (
    NO_ZONE_NAME,
    RESERVATION_EXPIRED_REASON,
    elapsed_minutes,
)
from floor_api.services.floor_cache import get_floor_cache
from shared.config.constants import AlertLevel, AssignmentKind, TableState
from shared.infrastructure.events import TABLE_ASSIGNED, TABLE_STATE_CHANGED
from shared.infrastructure.metrics import get_metrics
from shared.utils.exceptions import UnauthorizedError, ValidationError


def occupy_at(db_session, registry, table, when, party_size=2, staff=None):
    """Occupy a table with a clock starting at `when`."""
    locked = registry.lock_table(table.id)
    registry.apply_transition(
        locked, TableState.OCCUPIED, staff=staff, party_size=party_size, now=when
    )
    db_session.commit()
    return locked


class TestTransitions:

    def test_transition_to_occupied(self, db_session, floor, registry, floor_cache):
        table = floor.tables[1]

        output = registry.transition(table.id, TableState.OCCUPIED, staff_code="M01", party_size=2)

        assert output.state == TableState.OCCUPIED
        assert output.color == TableState.COLORS[TableState.OCCUPIED]
        assert output.assigned_staff_name == "Ana Rojas"
        assert output.assignment_kind == AssignmentKind.PRINCIPAL
        assert output.party_size == 2
        assert output.occupied_since is not None
        assert output.elapsed_minutes == 0
        assert output.elapsed_label == "0m"
        assert output.version == 2
        assert floor_cache.get(table.id).version == 2

        event = db_session.scalar(
            select(OutboxEvent).where(OutboxEvent.event_type == TABLE_STATE_CHANGED)
        )
        assert event.aggregate_id == table.id
        assert get_metrics().get(
            "table_transitions_total", labels={"to_state": TableState.OCCUPIED}
        ) == 1

    @pytest.mark.parametrize(
        "name,expected",
        [
            ("occupied", TableState.OCCUPIED),
            ("CLEANING", TableState.DIRTY),
            ("out_of_service", TableState.MAINTENANCE),
            (" reservada ", TableState.RESERVED),
            ("BLOQUEADA", TableState.BLOCKED),
        ],
    )
    def test_state_names_and_aliases(self, floor, registry, name, expected):
        output = registry.transition(floor.tables[2].id, name)
        assert output.state == expected

    def test_unknown_state_is_rejected(self, db_session, floor, registry):
        table = floor.tables[2]

        with pytest.raises(UnknownTableStateError) as exc_info:
            registry.transition(table.id, "ROTA")

        assert exc_info.value.status_code == 400
        assert "ROTA" in exc_info.value.detail
        db_session.refresh(table)
        assert table.state == TableState.FREE
        assert table.version == 1

    def test_unknown_table(self, floor, registry):
        with pytest.raises(TableNotFoundError):
            registry.transition(9999, TableState.OCCUPIED)

    def test_inactive_table_is_not_found(self, db_session, floor, registry):
        table = floor.tables[2]
        table.deactivate()
        db_session.commit()

        with pytest.raises(TableNotFoundError):
            registry.transition(table.id, TableState.OCCUPIED)

    def test_unknown_staff(self, floor, registry):
        with pytest.raises(UnauthorizedError):
            registry.transition(floor.tables[2].id, TableState.OCCUPIED, staff_code="M99")

    def test_any_state_reaches_any_other(self, floor, registry):
        table_id = floor.tables[2].id
        for state in [
            TableState.BLOCKED,
            TableState.DIRTY,
            TableState.RESERVED,
            TableState.MAINTENANCE,
            TableState.OCCUPIED,
            TableState.FREE,
        ]:
            assert registry.transition(table_id, state).state == state

    def test_free_clears_assignment(self, db_session, floor, registry):
        table = floor.tables[2]
        registry.transition(table.id, TableState.OCCUPIED, staff_code="M01", party_size=3)

        output = registry.transition(table.id, TableState.FREE)

        assert output.assigned_staff_id is None
        assert output.assignment_kind is None
        assert output.party_size is None
        assert output.occupied_since is None
        assert output.elapsed_minutes is None


class TestOccupancyClock:

    def test_leaving_occupied_writes_occupancy_record(self, db_session, floor, registry):
        table = floor.tables[1]
        started = utcnow() - timedelta(minutes=90)
        locked = occupy_at(db_session, registry, table, started, party_size=2,
                           staff=floor.staff["M01"])

        registry.apply_transition(locked, TableState.DIRTY, now=started + timedelta(minutes=90))
        db_session.commit()

        record = db_session.scalar(select(OccupancyRecord))
        assert record.table_id == table.id
        assert record.duration_seconds == 90 * 60
        assert record.party_size == 2
        assert record.staff_id == floor.staff["M01"].id
        db_session.refresh(table)
        assert table.occupied_since is None

    def test_reentering_occupied_keeps_clock(self, db_session, floor, registry):
        table = floor.tables[1]
        started = utcnow() - timedelta(minutes=30)
        occupy_at(db_session, registry, table, started)

        output = registry.transition(table.id, TableState.OCCUPIED, party_size=4)

        assert output.elapsed_minutes == 30
        assert output.party_size == 4
        assert db_session.scalar(select(OccupancyRecord)) is None

    def test_elapsed_computed_on_read(self, db_session, floor, registry):
        table = floor.tables[1]
        occupy_at(db_session, registry, table, utcnow() - timedelta(minutes=65))

        zones = registry.floor_snapshot()

        outputs = {t.id: t for zone in zones for t in zone.tables}
        assert outputs[table.id].elapsed_minutes == 65
        assert outputs[table.id].elapsed_label == "1h 05m"

    @pytest.mark.parametrize(
        "minutes,label",
        [(None, None), (0, "0m"), (12, "12m"), (60, "1h 00m"), (125, "2h 05m")],
    )
    def test_format_elapsed(self, minutes, label):
        assert format_elapsed(minutes) == label

    def test_elapsed_never_negative(self):
        now = utcnow()
        assert elapsed_minutes(now + timedelta(minutes=5), now) == 0
        assert elapsed_minutes(None, now) is None


class TestReservations:

    def test_reservation_sets_expiry(self, floor, registry):
        before = utcnow()
        output = registry.transition(floor.tables[4].id, TableState.RESERVED, estimated_minutes=30)

        assert output.reservation_expires_at >= before + timedelta(minutes=30)
        assert output.reservation_expires_at <= utcnow() + timedelta(minutes=30)

    def test_expired_reservation_frees_table(self, db_session, floor, registry, floor_cache):
        table = floor.tables[4]
        registry.transition(table.id, TableState.RESERVED, estimated_minutes=30)

        freed = registry.expire_reservations(now=utcnow() + timedelta(minutes=31))

        assert freed == [table.id]
        db_session.refresh(table)
        assert table.state == TableState.FREE
        assert table.reservation_expires_at is None
        assert floor_cache.get(table.id).state == TableState.FREE

        history = registry.state_history(table.id)
        assert history[0].reason == RESERVATION_EXPIRED_REASON
        assert history[0].previous_state == TableState.RESERVED
        assert get_metrics().get("reservations_expired_total") == 1

    def test_unexpired_reservation_is_kept(self, floor, registry):
        table = floor.tables[4]
        registry.transition(table.id, TableState.RESERVED, estimated_minutes=30)

        assert registry.expire_reservations(now=utcnow() + timedelta(minutes=10)) == []

    def test_reservation_left_before_expiry_is_not_touched(self, db_session, floor, registry):
        table = floor.tables[4]
        registry.transition(table.id, TableState.RESERVED, estimated_minutes=30)
        registry.transition(table.id, TableState.OCCUPIED, party_size=4)

        freed = registry.expire_reservations(now=utcnow() + timedelta(minutes=60))

        assert freed == []
        db_session.refresh(table)
        assert table.state == TableState.OCCUPIED

    def test_reservation_without_estimate_never_expires(self, floor, registry):
        registry.transition(floor.tables[4].id, TableState.RESERVED)

        assert registry.expire_reservations(now=utcnow() + timedelta(days=1)) == []


class TestAssignment:

    def test_assign_keeps_state(self, db_session, floor, registry):
        table = floor.tables[3]
        registry.transition(table.id, TableState.OCCUPIED, staff_code="M01")

        output = registry.assign(table.id, "M02", AssignmentKind.SUPPORT)

        assert output.state == TableState.OCCUPIED
        assert output.assigned_staff_name == "Luis Soto"
        assert output.assignment_kind == AssignmentKind.SUPPORT
        assert output.version == 3

        event = db_session.scalar(
            select(OutboxEvent).where(OutboxEvent.event_type == TABLE_ASSIGNED)
        )
        assert event is not None

    def test_assign_invalid_kind(self, floor, registry):
        with pytest.raises(ValidationError):
            registry.assign(floor.tables[3].id, "M02", "JEFE")

    def test_assign_unknown_staff(self, floor, registry):
        with pytest.raises(UnauthorizedError):
            registry.assign(floor.tables[3].id, "M99")

    def test_release_table(self, floor, registry):
        table = floor.tables[3]
        registry.transition(table.id, TableState.OCCUPIED, staff_code="M01", party_size=2)

        output = registry.release_table(table.id, "M02")

        assert output.state == TableState.FREE
        assert output.assigned_staff_id is None

    def test_release_requires_known_staff(self, floor, registry):
        with pytest.raises(UnauthorizedError):
            registry.release_table(floor.tables[3].id, "NOPE")


class TestHistory:

    def test_history_newest_first(self, floor, registry):
        table_id = floor.tables[5].id
        registry.transition(table_id, TableState.OCCUPIED, staff_code="M01", reason="Llegada")
        registry.transition(table_id, TableState.DIRTY, reason="Pago")

        history = registry.state_history(table_id)

        assert [(h.previous_state, h.new_state) for h in history] == [
            (TableState.OCCUPIED, TableState.DIRTY),
            (TableState.FREE, TableState.OCCUPIED),
        ]
        assert history[1].staff_id == floor.staff["M01"].id
        assert history[1].reason == "Llegada"

    def test_history_limit(self, floor, registry):
        table_id = floor.tables[5].id
        for state in [TableState.OCCUPIED, TableState.DIRTY, TableState.FREE]:
            registry.transition(table_id, state)

        assert len(registry.state_history(table_id, limit=2)) == 2

    def test_history_unknown_table(self, floor, registry):
        with pytest.raises(TableNotFoundError):
            registry.state_history(9999)


class TestFindAvailableTables:

    def test_smallest_fit_then_vip_then_number(self, floor, registry):
        numbers = [t.number for t in registry.find_available_tables(2)]
        assert numbers == [6, 1, 3, 2, 5, 4]

    def test_capacity_filter(self, floor, registry):
        numbers = [t.number for t in registry.find_available_tables(3)]
        assert numbers == [3, 2, 5, 4]

    def test_zone_filter(self, floor, registry):
        terraza = floor.zones["terraza"]
        numbers = [t.number for t in registry.find_available_tables(2, zone_id=terraza.id)]
        assert numbers == [6, 4]

    def test_only_free_tables(self, floor, registry):
        registry.transition(floor.tables[6].id, TableState.OCCUPIED)
        registry.transition(floor.tables[3].id, TableState.DIRTY)

        numbers = [t.number for t in registry.find_available_tables(2)]
        assert numbers == [1, 2, 5, 4]

    def test_nothing_fits(self, floor, registry):
        assert registry.find_available_tables(7) == []

    def test_invalid_party_size(self, floor, registry):
        with pytest.raises(ValidationError):
            registry.find_available_tables(0)


class TestFloorViews:

    def test_floor_snapshot_grouped_by_zone(self, db_session, floor, registry):
        # A table without a zone
        loose = floor.tables[5]
        loose.zone_id = None
        db_session.commit()

        zones = registry.floor_snapshot()

        assert [z.zone_name for z in zones] == [NO_ZONE_NAME, "Salón", "Terraza"]
        assert [t.number for t in zones[1].tables] == [1, 2, 3]
        assert [t.number for t in zones[2].tables] == [4, 6]

    def test_floor_stats(self, floor, registry):
        registry.transition(floor.tables[1].id, TableState.OCCUPIED)
        registry.transition(floor.tables[4].id, TableState.OCCUPIED)
        registry.transition(floor.tables[6].id, TableState.RESERVED)

        stats = registry.floor_stats()

        assert stats.total_tables == 6
        assert stats.by_state[TableState.OCCUPIED] == 2
        assert stats.by_state[TableState.RESERVED] == 1
        assert stats.by_state[TableState.FREE] == 3
        assert stats.by_zone["Terraza"][TableState.OCCUPIED] == 1
        assert stats.occupancy_percent == 33.3

    def test_occupancy_alerts(self, db_session, floor, registry):
        now = utcnow()
        occupy_at(db_session, registry, floor.tables[1], now - timedelta(minutes=130),
                  staff=floor.staff["M01"])
        occupy_at(db_session, registry, floor.tables[2], now - timedelta(minutes=100))
        occupy_at(db_session, registry, floor.tables[3], now - timedelta(minutes=20))

        alerts = registry.occupancy_alerts(now=now)

        assert [(a.table_number, a.level) for a in alerts] == [
            (1, AlertLevel.EXCEEDED),
            (2, AlertLevel.WARNING),
        ]
        assert alerts[0].elapsed_minutes == 130
        assert alerts[0].limit_minutes == 120
        assert alerts[0].assigned_staff_name == "Ana Rojas"

    def test_floor_views_read_through_cache(self, floor, registry, floor_cache):
        assert floor_cache.is_loaded is False

        registry.floor_stats()
        registry.floor_stats()

        assert floor_cache.is_loaded is True
        assert get_metrics().get("floor_cache_misses_total") == 1
        assert get_metrics().get("floor_cache_hits_total") == 1

    def test_registry_without_explicit_cache_uses_shared_one(self, db_session, floor):
        registry = TableRegistryService(db_session)
        registry.transition(floor.tables[1].id, TableState.BLOCKED)
        try:
            assert get_floor_cache().get(floor.tables[1].id).state == TableState.BLOCKED
        finally:
            get_floor_cache().clear()
