"""Prometheus-compatible metrics for MindCanvas.

Generates the text exposition format directly.

Tracked metrics:
- mindcanvas_events_total (counter, by pipeline and label)
- mindcanvas_ticks_total (counter, by pipeline)
- mindcanvas_ticks_skipped_total (counter, by pipeline; inference still in flight)
- mindcanvas_inference_failures_total (counter, by pipeline)
- mindcanvas_inference_latency_seconds (histogram, by pipeline)
- mindcanvas_active_connections (gauge)
"""

from __future__ import annotations

import threading
import time
from collections import Counter

LATENCY_BUCKETS = [0.005, 0.010, 0.020, 0.033, 0.050, 0.100, 0.200, 0.500]


class _Histogram:
    """Histogram with fixed buckets, rendered with a pipeline label."""

    def __init__(self, buckets: list[float]):
        self.buckets = sorted(buckets)
        self.bucket_counts = [0] * len(self.buckets)
        self.count = 0
        self.sum = 0.0
        self._lock = threading.Lock()

    def observe(self, value: float):
        with self._lock:
            self.count += 1
            self.sum += value
            for i, b in enumerate(self.buckets):
                if value <= b:
                    self.bucket_counts[i] += 1

    def render_samples(self, name: str, labels: str) -> list[str]:
        lines = []
        with self._lock:
            # bucket_counts already hold everything <= b
            for i, b in enumerate(self.buckets):
                lines.append(f'{name}_bucket{{{labels},le="{b}"}} {self.bucket_counts[i]}')
            lines.append(f'{name}_bucket{{{labels},le="+Inf"}} {self.count}')
            lines.append(f"{name}_sum{{{labels}}} {self.sum:.6f}")
            lines.append(f"{name}_count{{{labels}}} {self.count}")
        return lines


class MetricsCollector:
    """Collects and renders pipeline metrics."""

    def __init__(self):
        self._events: Counter = Counter()  # (pipeline, label) → count
        self._ticks: Counter = Counter()
        self._skipped: Counter = Counter()
        self._failures: Counter = Counter()
        self._latency: dict[str, _Histogram] = {}
        self._active_connections = 0
        self._lock = threading.Lock()
        self._start_time = time.time()

    def record_event(self, pipeline: str, label: str):
        with self._lock:
            self._events[(pipeline, label)] += 1

    def record_tick(self, pipeline: str, skipped: bool = False):
        with self._lock:
            self._ticks[pipeline] += 1
            if skipped:
                self._skipped[pipeline] += 1

    def record_failure(self, pipeline: str):
        with self._lock:
            self._failures[pipeline] += 1

    def record_latency(self, pipeline: str, seconds: float):
        with self._lock:
            hist = self._latency.get(pipeline)
            if hist is None:
                hist = self._latency[pipeline] = _Histogram(LATENCY_BUCKETS)
        hist.observe(seconds)

    def set_connections(self, count: int):
        self._active_connections = count

    def render(self) -> str:
        """Render all metrics in Prometheus text exposition format."""
        lines: list[str] = []

        uptime = time.time() - self._start_time
        lines.append("# HELP mindcanvas_uptime_seconds Time since collector start")
        lines.append("# TYPE mindcanvas_uptime_seconds gauge")
        lines.append(f"mindcanvas_uptime_seconds {uptime:.1f}")
        lines.append("")

        with self._lock:
            events = sorted(self._events.items())
            ticks = sorted(self._ticks.items())
            skipped = sorted(self._skipped.items())
            failures = sorted(self._failures.items())
            latency = sorted(self._latency.items())

        lines.append("# HELP mindcanvas_events_total Stable change events by pipeline and label")
        lines.append("# TYPE mindcanvas_events_total counter")
        for (pipeline, label), count in events:
            lines.append(f'mindcanvas_events_total{{pipeline="{pipeline}",label="{label}"}} {count}')
        lines.append("")

        lines.append("# HELP mindcanvas_ticks_total Scheduler ticks by pipeline")
        lines.append("# TYPE mindcanvas_ticks_total counter")
        for pipeline, count in ticks:
            lines.append(f'mindcanvas_ticks_total{{pipeline="{pipeline}"}} {count}')
        lines.append("")

        lines.append("# HELP mindcanvas_ticks_skipped_total Ticks skipped while inference was in flight")
        lines.append("# TYPE mindcanvas_ticks_skipped_total counter")
        for pipeline, count in skipped:
            lines.append(f'mindcanvas_ticks_skipped_total{{pipeline="{pipeline}"}} {count}')
        lines.append("")

        lines.append("# HELP mindcanvas_inference_failures_total Inference cycles that raised")
        lines.append("# TYPE mindcanvas_inference_failures_total counter")
        for pipeline, count in failures:
            lines.append(f'mindcanvas_inference_failures_total{{pipeline="{pipeline}"}} {count}')
        lines.append("")

        lines.append("# HELP mindcanvas_inference_latency_seconds Inference latency in seconds")
        lines.append("# TYPE mindcanvas_inference_latency_seconds histogram")
        for pipeline, hist in latency:
            lines.extend(hist.render_samples(
                "mindcanvas_inference_latency_seconds", f'pipeline="{pipeline}"'
            ))
        lines.append("")

        lines.append("# HELP mindcanvas_active_connections Current WebSocket connections")
        lines.append("# TYPE mindcanvas_active_connections gauge")
        lines.append(f"mindcanvas_active_connections {self._active_connections}")
        lines.append("")

        return "\n".join(lines) + "\n"

    def event_counts(self, pipeline: str) -> dict[str, int]:
        with self._lock:
            return {label: n for (p, label), n in self._events.items() if p == pipeline}

    def skipped_ticks(self, pipeline: str) -> int:
        with self._lock:
            return self._skipped[pipeline]

    def failures(self, pipeline: str) -> int:
        with self._lock:
            return self._failures[pipeline]
