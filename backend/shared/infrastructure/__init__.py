"""
Infrastructure module: database, events, metrics, resilience.

- db.py: SQLAlchemy engine, sessions, safe_commit()
- correlation.py: request correlation ids for logs
- circuit_breaker.py: fail-fast guard for collaborators
- events/: Redis pub/sub publishing
- metrics/: in-process counters with Prometheus exposition
"""

from shared.infrastructure.db import (
    engine,
    SessionLocal,
    get_db,
    get_db_context,
    safe_commit,
)

__all__ = [
    "engine",
    "SessionLocal",
    "get_db",
    "get_db_context",
    "safe_commit",
]
