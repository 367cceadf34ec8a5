from __future__ import annotations

import time
from collections import deque
from dataclasses import dataclass, field

from loguru import logger

MAX_METRICS = 1000
HEALTH_WINDOW_SEC = 300.0


@dataclass
class MetricPoint:
    name: str
    value: float
    timestamp: float
    tags: dict[str, str] = field(default_factory=dict)


@dataclass
class MonitoringService:
    """Bounded in-process metric buffer. One instance per process, passed to whoever records."""

    max_metrics: int = MAX_METRICS
    started_at: float = field(default_factory=time.monotonic)
    _metrics: deque[MetricPoint] = field(default_factory=deque, init=False, repr=False)

    def __post_init__(self):
        self._metrics = deque(maxlen=self.max_metrics)

    def record(self, name: str, value: float = 1, **tags: str) -> None:
        self._metrics.append(MetricPoint(name=name, value=value, timestamp=time.time(), tags=tags))
        if "error" in name or "failure" in name:
            logger.error("Critical metric: {} = {} {}", name, value, tags)

    def get(self, name: str | None = None) -> list[MetricPoint]:
        if name is None:
            return list(self._metrics)
        return [m for m in self._metrics if m.name == name]

    def health_status(self, now: float | None = None) -> dict:
        now = time.time() if now is None else now
        recent = [m for m in self._metrics if now - m.timestamp < HEALTH_WINDOW_SEC]
        errors = sum(1 for m in recent if m.name.endswith(".error"))
        requests_ = sum(1 for m in recent if m.name.endswith(".request"))
        rate = errors / requests_ if requests_ else 0.0

        status = "healthy"
        if rate > 0.10:
            status = "unhealthy"
        elif rate > 0.05:
            status = "degraded"
        return {
            "status": status,
            "uptime": round(time.monotonic() - self.started_at, 3),
            "metrics": {"totalRequests": requests_, "errorCount": errors, "errorRate": rate},
        }
