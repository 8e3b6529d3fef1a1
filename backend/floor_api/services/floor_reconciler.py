"""
Floor reconciler: periodic background task started from the lifespan.

Each cycle:
1. expires reservations whose time has run out,
2. reloads every active table and repairs cache entries that diverged
   from storage (missed writes, tables deactivated elsewhere).

Database work is synchronous, so the cycle runs in a worker thread.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass

from floor_api.services.domain.table_registry_service import TableRegistryService
from floor_api.services.floor_cache import FloorStateCache, get_floor_cache
from shared.config.logging import get_logger
from shared.config.settings import settings
from shared.infrastructure.correlation import correlation_scope
from shared.infrastructure.db import SessionLocal
from shared.infrastructure.metrics import get_metrics

logger = get_logger(__name__)


@dataclass
class ReconcileResult:
    expired_reservations: list[int]
    repaired_entries: int


class FloorReconciler:
    def __init__(
        self,
        cache: FloorStateCache | None = None,
        session_factory=SessionLocal,
        interval_seconds: float | None = None,
    ):
        self._cache = cache or get_floor_cache()
        self._session_factory = session_factory
        self._interval = interval_seconds or settings.floor_reconcile_interval_seconds
        self._running = False
        self._task: asyncio.Task | None = None

    def run_once(self) -> ReconcileResult:
        """One synchronous reconciliation cycle."""
        db = self._session_factory()
        try:
            registry = TableRegistryService(db, cache=self._cache)
            expired = registry.expire_reservations()
            repaired = self._cache.load(db)
        finally:
            db.close()

        metrics = get_metrics()
        metrics.inc("floor_reconcile_runs_total")
        if repaired:
            metrics.inc("floor_cache_repairs_total", repaired)
            logger.info("Floor cache reconciled", repaired=repaired)
        return ReconcileResult(expired_reservations=expired, repaired_entries=repaired)

    async def start(self) -> None:
        if self._running:
            logger.warning("Floor reconciler already running")
            return
        self._running = True
        self._task = asyncio.create_task(self._run_loop())
        logger.info("Floor reconciler started", interval_seconds=self._interval)

    async def stop(self) -> None:
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        logger.info("Floor reconciler stopped")

    async def _run_loop(self) -> None:
        while self._running:
            try:
                with correlation_scope("reconcile"):
                    await asyncio.to_thread(self.run_once)
            except Exception as e:
                logger.error("Floor reconciliation failed", error=str(e))
            await asyncio.sleep(self._interval)


_reconciler: FloorReconciler | None = None


def get_floor_reconciler() -> FloorReconciler:
    global _reconciler
    if _reconciler is None:
        _reconciler = FloorReconciler()
    return _reconciler


async def start_floor_reconciler() -> None:
    await get_floor_reconciler().start()


async def stop_floor_reconciler() -> None:
    await get_floor_reconciler().stop()
