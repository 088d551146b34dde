# backend/app/services/runtime_metrics.py
from __future__ import annotations

import threading
from typing import Optional


class RuntimeMetrics:
    """
    Process-local counters and gauges, rendered in Prometheus text format by
    GET /api/metrics. Counters only ever go up; gauges hold the last value set.
    """

    def __init__(self, prefix: str = "") -> None:
        self.prefix = prefix
        self._lock = threading.Lock()
        self._counters: dict[str, int] = {}
        self._gauges: dict[str, float] = {}

    def inc(self, name: str, n: int = 1) -> None:
        if n < 0:
            raise ValueError("counters cannot decrease")
        with self._lock:
            self._counters[name] = self._counters.get(name, 0) + int(n)

    def set_gauge(self, name: str, value: float) -> None:
        with self._lock:
            self._gauges[name] = float(value)

    def get(self, name: str) -> int:
        with self._lock:
            return self._counters.get(name, 0)

    def gauge(self, name: str) -> Optional[float]:
        with self._lock:
            return self._gauges.get(name)

    def snapshot(self) -> dict[str, float]:
        with self._lock:
            out: dict[str, float] = dict(self._counters)
            out.update(self._gauges)
        return dict(sorted(out.items()))

    def render(self) -> str:
        with self._lock:
            counters = sorted(self._counters.items())
            gauges = sorted(self._gauges.items())

        lines: list[str] = []
        for kind, items in (("counter", counters), ("gauge", gauges)):
            for name, value in items:
                full = f"{self.prefix}{name}"
                lines.append(f"# TYPE {full} {kind}")
                lines.append(f"{full} {value}")
        return "\n".join(lines) + "\n"


METRICS = RuntimeMetrics(prefix="rentflow_")
