"""
Floor State Cache.

In-memory view of every active table, served to the floor map and the
occupancy alerts without touching the database on each poll.

- Entries are immutable TableSnapshot values carrying the table version.
- Writes come only from committed mutations; a snapshot whose version is
  not newer than the stored one is dropped, so a slow writer can never
  overwrite a fresher state.
- One writer per key: each table id has its own lock.
- FloorReconciler reloads the whole floor from storage periodically and
  replaces any entry that diverged, except where the cache already holds
  a newer version.
- The entry dict is read and resized only under the meta lock.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.orm import Session, joinedload

from floor_api.models import FloorTable, as_utc
from shared.config.logging import get_logger
from shared.infrastructure.metrics import get_metrics

logger = get_logger(__name__)


@dataclass(frozen=True)
class TableSnapshot:
    id: int
    number: int
    name: str | None
    zone_id: int | None
    zone_name: str | None
    zone_order: int
    capacity: int
    state: str
    is_vip: bool
    assigned_staff_id: int | None
    assigned_staff_name: str | None
    assignment_kind: str | None
    party_size: int | None
    occupied_since: datetime | None
    reservation_expires_at: datetime | None
    observations: str | None
    version: int

    @classmethod
    def from_model(cls, table: FloorTable) -> "TableSnapshot":
        zone = table.zone
        staff = table.assigned_staff
        return cls(
            id=table.id,
            number=table.number,
            name=table.name,
            zone_id=table.zone_id,
            zone_name=zone.name if zone else None,
            zone_order=zone.display_order if zone else 0,
            capacity=table.capacity,
            state=table.state,
            is_vip=table.is_vip,
            assigned_staff_id=table.assigned_staff_id,
            assigned_staff_name=staff.full_name if staff else None,
            assignment_kind=table.assignment_kind,
            party_size=table.party_size,
            occupied_since=as_utc(table.occupied_since),
            reservation_expires_at=as_utc(table.reservation_expires_at),
            observations=table.observations,
            version=table.version,
        )


def load_floor_snapshots(db: Session) -> list[TableSnapshot]:
    """Read every active table from storage."""
    tables = db.execute(
        select(FloorTable)
        .options(joinedload(FloorTable.zone), joinedload(FloorTable.assigned_staff))
        .where(FloorTable.is_active.is_(True))
        .order_by(FloorTable.number)
    ).scalars().all()
    return [TableSnapshot.from_model(t) for t in tables]


class FloorStateCache:
    """Versioned, per-key locked cache of table snapshots."""

    def __init__(self) -> None:
        self._entries: dict[int, TableSnapshot] = {}
        self._key_locks: dict[int, threading.Lock] = {}
        self._meta_lock = threading.Lock()
        self._loaded = False

    def _lock_for(self, table_id: int) -> threading.Lock:
        with self._meta_lock:
            lock = self._key_locks.get(table_id)
            if lock is None:
                lock = threading.Lock()
                self._key_locks[table_id] = lock
            return lock

    @property
    def is_loaded(self) -> bool:
        return self._loaded

    def get(self, table_id: int) -> TableSnapshot | None:
        return self._entries.get(table_id)

    def all(self) -> list[TableSnapshot]:
        with self._meta_lock:
            entries = list(self._entries.values())
        return sorted(entries, key=lambda s: s.number)

    def _store(self, snapshot: TableSnapshot) -> None:
        # Caller holds the key lock; the meta lock guards the dict shape
        with self._meta_lock:
            self._entries[snapshot.id] = snapshot

    def put(self, snapshot: TableSnapshot) -> bool:
        """
        Store a snapshot taken after a committed mutation.

        Returns False (and keeps the current entry) when the stored
        version is the same or newer.
        """
        with self._lock_for(snapshot.id):
            current = self._entries.get(snapshot.id)
            if current is not None and current.version >= snapshot.version:
                get_metrics().inc("floor_cache_stale_writes_total")
                logger.debug(
                    "Stale floor cache write ignored",
                    table_id=snapshot.id,
                    current_version=current.version,
                    incoming_version=snapshot.version,
                )
                return False
            self._store(snapshot)
            return True

    def remove(self, table_id: int) -> None:
        with self._lock_for(table_id), self._meta_lock:
            self._entries.pop(table_id, None)

    def replace_all(self, snapshots: list[TableSnapshot]) -> int:
        """
        Bring the cache in line with a fresh read of storage.

        A divergent entry is replaced unless the cached version is newer:
        a mutation committed after the rows were read has already put a
        fresher snapshot. Returns how many entries were repaired, added
        or removed.
        """
        repaired = 0
        fresh_ids = set()
        for snapshot in snapshots:
            fresh_ids.add(snapshot.id)
            with self._lock_for(snapshot.id):
                current = self._entries.get(snapshot.id)
                if current is not None and current.version > snapshot.version:
                    continue
                if current != snapshot:
                    self._store(snapshot)
                    repaired += 1

        with self._meta_lock:
            cached_ids = list(self._entries)
        for table_id in cached_ids:
            if table_id not in fresh_ids:
                self.remove(table_id)
                repaired += 1

        self._loaded = True
        return repaired

    def load(self, db: Session) -> int:
        return self.replace_all(load_floor_snapshots(db))

    def ensure_loaded(self, db: Session) -> None:
        """Read-through: populate from storage on first use."""
        if self._loaded:
            get_metrics().inc("floor_cache_hits_total")
            return
        get_metrics().inc("floor_cache_misses_total")
        self.load(db)

    def clear(self) -> None:
        with self._meta_lock:
            self._entries.clear()
            self._key_locks.clear()
            self._loaded = False


_floor_cache = FloorStateCache()


def get_floor_cache() -> FloorStateCache:
    """Process-wide cache. FastAPI dependency; tests override it."""
    return _floor_cache
