"""
In-process metrics collector.

Counters and gauges are kept in memory and rendered in Prometheus text
format by the /metrics endpoint. Request handlers run in a threadpool,
so every update goes through a threading.Lock.
"""

from __future__ import annotations

import threading
from typing import Any

LabelKey = tuple[tuple[str, str], ...]


def _label_key(labels: dict[str, Any] | None) -> LabelKey:
    if not labels:
        return ()
    return tuple(sorted((k, str(v)) for k, v in labels.items()))


class MetricsCollector:
    """
    Thread-safe metrics collector.

    Usage:
        metrics = get_metrics()
        metrics.inc("orders_opened_total")
        metrics.inc("stock_soft_failures_total", labels={"operation": "reduce"})
        metrics.set_gauge("floor_tables_occupied", 7)
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._counters: dict[str, dict[LabelKey, float]] = {}
        self._gauges: dict[str, dict[LabelKey, float]] = {}
        self._help: dict[str, str] = {}

    def describe(self, name: str, help_text: str) -> None:
        """Attach HELP text to a metric."""
        with self._lock:
            self._help[name] = help_text

    def inc(self, name: str, amount: float = 1, labels: dict[str, Any] | None = None) -> None:
        key = _label_key(labels)
        with self._lock:
            series = self._counters.setdefault(name, {})
            series[key] = series.get(key, 0) + amount

    def set_gauge(self, name: str, value: float, labels: dict[str, Any] | None = None) -> None:
        key = _label_key(labels)
        with self._lock:
            self._gauges.setdefault(name, {})[key] = value

    def get(self, name: str, labels: dict[str, Any] | None = None) -> float:
        """Current value of a counter or gauge series (0 if never touched)."""
        key = _label_key(labels)
        with self._lock:
            if name in self._counters:
                return self._counters[name].get(key, 0)
            return self._gauges.get(name, {}).get(key, 0)

    def snapshot(self) -> dict[str, Any]:
        """Copy of all series, safe to serialize or format."""
        with self._lock:
            return {
                "counters": {n: dict(s) for n, s in self._counters.items()},
                "gauges": {n: dict(s) for n, s in self._gauges.items()},
                "help": dict(self._help),
            }

    def reset(self) -> None:
        with self._lock:
            self._counters.clear()
            self._gauges.clear()


_metrics = MetricsCollector()


def get_metrics() -> MetricsCollector:
    """Get the process-wide collector."""
    return _metrics
