"""In-process metrics for the audit pipeline.

This registry is the pipeline's reporting side channel: overflow drops,
flush outcomes and queue depth are recorded here instead of being raised
into the code that emits audit events. The server exposes it in
Prometheus text format and as JSON.
"""

from collections import defaultdict
from dataclasses import dataclass, field
from threading import Lock
from typing import Any

HTTP_REQUESTS = "payaudit_http_requests_total"
HTTP_DURATION = "payaudit_http_request_duration_seconds"
ENTRIES_INGESTED = "payaudit_entries_ingested_total"
QUEUE_OVERFLOW = "payaudit_queue_overflow_total"
QUEUE_DEPTH = "payaudit_queue_depth"
FLUSH_CYCLES = "payaudit_flush_cycles_total"
FLUSH_ENTRIES = "payaudit_flush_entries_total"
FLUSH_DURATION = "payaudit_flush_duration_seconds"


@dataclass
class Histogram:
    """Cumulative-bucket histogram for latency tracking."""

    buckets: list[float] = field(
        default_factory=lambda: [0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0]
    )
    counts: dict[float, int] = field(default_factory=lambda: defaultdict(int))
    sum: float = 0.0
    count: int = 0

    def observe(self, value: float) -> None:
        self.sum += value
        self.count += 1
        for bucket in self.buckets:
            if value <= bucket:
                self.counts[bucket] += 1

    def to_prometheus(self, name: str, labels: str = "") -> str:
        extra = f", {labels}" if labels else ""
        label_str = f"{{{labels}}}" if labels else ""
        lines = [f'{name}_bucket{{le="{bucket}"{extra}}} {self.counts[bucket]}' for bucket in self.buckets]
        lines.append(f'{name}_bucket{{le="+Inf"{extra}}} {self.count}')
        lines.append(f"{name}_sum{label_str} {self.sum}")
        lines.append(f"{name}_count{label_str} {self.count}")
        return "\n".join(lines)


class MetricsRegistry:
    """Thread-safe registry of counters, gauges and histograms."""

    def __init__(self) -> None:
        self._lock = Lock()
        self._counters: dict[str, dict[str, int]] = defaultdict(lambda: defaultdict(int))
        self._gauges: dict[str, dict[str, float]] = defaultdict(lambda: defaultdict(float))
        self._histograms: dict[str, dict[str, Histogram]] = defaultdict(dict)

    def inc_counter(self, name: str, labels: dict[str, str] | None = None, value: int = 1) -> None:
        label_key = self._labels_to_key(labels)
        with self._lock:
            self._counters[name][label_key] += value

    def set_gauge(self, name: str, value: float, labels: dict[str, str] | None = None) -> None:
        label_key = self._labels_to_key(labels)
        with self._lock:
            self._gauges[name][label_key] = value

    def observe_histogram(self, name: str, value: float, labels: dict[str, str] | None = None) -> None:
        label_key = self._labels_to_key(labels)
        with self._lock:
            if label_key not in self._histograms[name]:
                self._histograms[name][label_key] = Histogram()
            self._histograms[name][label_key].observe(value)

    def counter_value(self, name: str, labels: dict[str, str] | None = None) -> int:
        """Return a counter's current value, or its total across labels if
        ``labels`` is None."""
        with self._lock:
            values = self._counters.get(name, {})
            if labels is None:
                return sum(values.values())
            return values.get(self._labels_to_key(labels), 0)

    def gauge_value(self, name: str, labels: dict[str, str] | None = None) -> float | None:
        with self._lock:
            return self._gauges.get(name, {}).get(self._labels_to_key(labels))

    def _labels_to_key(self, labels: dict[str, str] | None) -> str:
        if not labels:
            return ""
        return ",".join(f'{k}="{v}"' for k, v in sorted(labels.items()))

    def to_prometheus(self) -> str:
        lines = []

        with self._lock:
            for name, label_values in self._counters.items():
                lines.append(f"# TYPE {name} counter")
                for label_key, value in label_values.items():
                    label_str = f"{{{label_key}}}" if label_key else ""
                    lines.append(f"{name}{label_str} {value}")
                lines.append("")

            for name, label_values in self._gauges.items():
                lines.append(f"# TYPE {name} gauge")
                for label_key, value in label_values.items():
                    label_str = f"{{{label_key}}}" if label_key else ""
                    lines.append(f"{name}{label_str} {value}")
                lines.append("")

            for name, label_histograms in self._histograms.items():
                lines.append(f"# TYPE {name} histogram")
                for label_key, histogram in label_histograms.items():
                    lines.append(histogram.to_prometheus(name, label_key))
                lines.append("")

        return "\n".join(lines)

    def get_stats(self) -> dict[str, Any]:
        with self._lock:
            return {
                "counters": {k: dict(v) for k, v in self._counters.items()},
                "gauges": {k: dict(v) for k, v in self._gauges.items()},
                "histograms": {
                    k: {lk: {"count": h.count, "sum": h.sum} for lk, h in v.items()}
                    for k, v in self._histograms.items()
                },
            }


# Process-wide registry used by the server when none is injected
metrics = MetricsRegistry()


def record_request(method: str, path: str, status_code: int, duration: float) -> None:
    """Record an HTTP request against the process-wide registry."""
    labels = {"method": method, "path": path, "status": str(status_code)}
    metrics.inc_counter(HTTP_REQUESTS, labels)
    metrics.observe_histogram(HTTP_DURATION, duration, {"method": method, "path": path})
