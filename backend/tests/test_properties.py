"""
Property-based Testing with Hypothesis.

Database-backed properties build a fresh schema per example instead of
using function-scoped fixtures, which hypothesis would share across examples.
"""

import re
from contextlib import contextmanager
from dataclasses import replace

from hypothesis import given, settings, strategies as st
from sqlalchemy import select

from floor_api.models import Base, OrderLine, OrderSession
from floor_api.services.domain import (
    ItemRequest,
    KitchenDispatchService,
    OrderSessionService,
    format_elapsed,
)
from floor_api.services.domain.order_session_service import normalize_observations
from floor_api.services.floor_cache import FloorStateCache, load_floor_snapshots
from tests.support import FakeStockLedger, TestingSessionLocal, engine, seed_floor


@contextmanager
def fresh_floor():
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db, seed_floor(db)
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


PRODUCTS = ["lomo", "bebida", "postre"]
OBSERVATIONS = [None, "", "sin sal", "  sin sal  "]

add_op = st.tuples(
    st.just("add"),
    st.sampled_from(PRODUCTS),
    st.integers(min_value=1, max_value=5),
    st.sampled_from(OBSERVATIONS),
)
remove_op = st.tuples(st.just("remove"), st.integers(min_value=0, max_value=10))
dispatch_op = st.tuples(st.just("dispatch"))


class TestOrderSessionProperties:

    @given(ops=st.lists(st.one_of(add_op, remove_op, dispatch_op), min_size=1, max_size=12))
    @settings(max_examples=30, deadline=None)
    def test_total_always_matches_lines(self, ops):
        """Property: total == sum(quantity * unit price) after any add/remove/dispatch mix."""
        with fresh_floor() as (db, floor):
            service = OrderSessionService(
                db, stock_ledger=FakeStockLedger(), cache=FloorStateCache()
            )
            dispatcher = KitchenDispatchService(db)
            session = service.create_or_attach_session(
                floor.tables[1].id, party_size=2, staff_code="M01"
            )
            session_id = session.id

            for op in ops:
                if op[0] == "add":
                    _, name, qty, obs = op
                    service.add_items(
                        session_id,
                        [ItemRequest(floor.products[name].id, qty, obs)],
                        staff_code="M01",
                    )
                elif op[0] == "remove":
                    line_ids = db.execute(
                        select(OrderLine.id)
                        .where(OrderLine.session_id == session_id)
                        .order_by(OrderLine.id)
                    ).scalars().all()
                    if line_ids:
                        service.remove_line(line_ids[op[1] % len(line_ids)], actor_code="M01")
                else:
                    dispatcher.dispatch(session_id)

                db.expire_all()
                stored = db.get(OrderSession, session_id)
                lines = stored.lines
                assert stored.total_cents == sum(
                    line.quantity * line.unit_price_cents for line in lines
                )

                # At most one mergeable line per (product, observations)
                open_keys = [
                    (line.product_id, line.observations)
                    for line in lines
                    if line.dispatched_quantity == 0
                ]
                assert len(open_keys) == len(set(open_keys))

    @given(
        quantities=st.lists(st.integers(min_value=1, max_value=9), min_size=1, max_size=6),
    )
    @settings(max_examples=20, deadline=None)
    def test_repeated_adds_merge_into_one_line(self, quantities):
        """Property: the same undispatched item always lands on a single line."""
        with fresh_floor() as (db, floor):
            service = OrderSessionService(
                db, stock_ledger=FakeStockLedger(), cache=FloorStateCache()
            )
            product_id = floor.products["bebida"].id
            result = None
            for qty in quantities:
                result = service.open_order(
                    table_id=floor.tables[2].id,
                    party_size=2,
                    staff_code="M01",
                    items=[ItemRequest(product_id, qty)],
                )

            lines = db.execute(
                select(OrderLine).where(OrderLine.session_id == result.session_id)
            ).scalars().all()
            assert len(lines) == 1
            assert lines[0].quantity == sum(quantities)
            assert result.total_cents == sum(quantities) * 1500


class TestFloorCacheProperties:

    @given(versions=st.lists(st.integers(min_value=1, max_value=50), min_size=1, max_size=15))
    @settings(max_examples=30, deadline=None)
    def test_cache_keeps_highest_version(self, versions):
        """Property: whatever the arrival order, the newest snapshot wins."""
        with fresh_floor() as (db, floor):
            base = load_floor_snapshots(db)[0]
            cache = FloorStateCache()
            for version in versions:
                cache.put(replace(base, version=version, observations=f"v{version}"))

            stored = cache.get(base.id)
            assert stored.version == max(versions)
            assert stored.observations == f"v{max(versions)}"


class TestFormattingProperties:

    @given(value=st.one_of(st.none(), st.text(max_size=40)))
    def test_normalize_observations_is_idempotent(self, value):
        once = normalize_observations(value)
        assert normalize_observations(once) == once

    @given(value=st.text(min_size=1, max_size=40))
    def test_observations_text_is_kept_verbatim(self, value):
        """Only an absent note becomes ''; spacing is part of the note."""
        assert normalize_observations(value) == value

    @given(minutes=st.integers(min_value=0, max_value=48 * 60))
    def test_elapsed_label_round_trips(self, minutes):
        label = format_elapsed(minutes)
        match = re.fullmatch(r"(?:(\d+)h (\d{2})m|(\d+)m)", label)
        assert match is not None
        if match.group(1):
            assert int(match.group(1)) * 60 + int(match.group(2)) == minutes
            assert minutes >= 60
        else:
            assert int(match.group(3)) == minutes
            assert minutes < 60
