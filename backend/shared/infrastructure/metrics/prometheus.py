"""
Prometheus text exposition for the in-process collector.

Reference: https://prometheus.io/docs/instrumenting/exposition_formats/
"""

from __future__ import annotations

from .collector import LabelKey, MetricsCollector, get_metrics

DEFAULT_PREFIX = "floorops"


def _escape_label_value(value: str) -> str:
    return value.replace("\\", "\\\\").replace("\n", "\\n").replace('"', '\\"')


def _format_series(full_name: str, key: LabelKey, value: float) -> str:
    if key:
        labels = ",".join(f'{k}="{_escape_label_value(v)}"' for k, v in key)
        return f"{full_name}{{{labels}}} {value}"
    return f"{full_name} {value}"


class PrometheusFormatter:
    """
    Formats a MetricsCollector snapshot.

    Usage:
        formatter = PrometheusFormatter()
        body = formatter.format(get_metrics())
    """

    def __init__(self, prefix: str = DEFAULT_PREFIX):
        self.prefix = prefix

    def format(self, collector: MetricsCollector) -> str:
        snap = collector.snapshot()
        lines: list[str] = []

        for metric_type, group in (("counter", snap["counters"]), ("gauge", snap["gauges"])):
            for name in sorted(group):
                full_name = f"{self.prefix}_{name}"
                help_text = snap["help"].get(name)
                if help_text:
                    lines.append(f"# HELP {full_name} {help_text}")
                lines.append(f"# TYPE {full_name} {metric_type}")
                for key, value in sorted(group[name].items()):
                    lines.append(_format_series(full_name, key, value))

        return "\n".join(lines) + "\n" if lines else ""


def generate_prometheus_metrics(prefix: str = DEFAULT_PREFIX) -> str:
    """Render the process-wide collector."""
    return PrometheusFormatter(prefix).format(get_metrics())
