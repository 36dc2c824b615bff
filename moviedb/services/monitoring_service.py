"""
In-process metrics and component health checks.

Metrics are keyed by name plus tags (``http_requests_total[method=GET,path=/movies,status=200]``)
and exposed by ``GET /metrics`` as JSON or Prometheus text. Health checks run
concurrently, each bounded by a timeout, and roll up into one status for ``GET /health``.
"""

import asyncio
import bisect
import time
from abc import ABC, abstractmethod
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from threading import Lock
from typing import Any, Callable, Deque, Dict, List, Optional, Tuple

from sqlalchemy import text

from moviedb.services.logger_service import get_logger

logger = get_logger("monitoring")

HISTOGRAM_WINDOW = 1000
HEALTH_CHECK_TIMEOUT = 5.0

Tags = Dict[str, str]


def metric_key(name: str, tags: Optional[Tags] = None) -> str:
    if not tags:
        return name
    return f"{name}[{','.join(f'{k}={v}' for k, v in sorted(tags.items()))}]"


@dataclass
class Counter:
    name: str
    tags: Tags
    value: int = 0


@dataclass
class Gauge:
    name: str
    tags: Tags
    value: float = 0.0
    updated_at: datetime = field(default_factory=datetime.utcnow)


@dataclass
class Histogram:
    """Sliding window over the most recent observations"""

    name: str
    tags: Tags
    values: Deque[float] = field(default_factory=lambda: deque(maxlen=HISTOGRAM_WINDOW))
    total_count: int = 0

    def observe(self, value: float):
        self.values.append(value)
        self.total_count += 1

    def percentile(self, percentile: float) -> Optional[float]:
        if not self.values:
            return None
        ordered = sorted(self.values)
        rank = max(0, min(len(ordered) - 1, int(round(percentile / 100 * len(ordered))) - 1))
        return ordered[rank]

    def average(self) -> Optional[float]:
        return sum(self.values) / len(self.values) if self.values else None

    def bucket_counts(self, bounds: Tuple[float, ...]) -> List[int]:
        """Cumulative counts per upper bound over the current window"""
        ordered = sorted(self.values)
        return [bisect.bisect_right(ordered, bound) for bound in bounds]


class HealthStatus(Enum):
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"


@dataclass
class ComponentHealth:
    name: str
    status: HealthStatus
    message: str
    details: Dict[str, Any] = field(default_factory=dict)
    check_duration_ms: float = 0.0
    error: Optional[str] = None


class HealthCheck(ABC):
    """A named probe of one dependency"""

    def __init__(self, name: str):
        self.name = name

    @abstractmethod
    async def check(self) -> ComponentHealth:
        ...


class DatabaseHealthCheck(HealthCheck):
    """Runs SELECT 1 against the configured engine"""

    def __init__(self, engine_provider: Callable):
        super().__init__("database")
        self.engine_provider = engine_provider

    def _ping(self):
        with self.engine_provider().connect() as conn:
            conn.execute(text("SELECT 1"))

    async def check(self) -> ComponentHealth:
        try:
            await asyncio.get_running_loop().run_in_executor(None, self._ping)
        except Exception as e:
            return ComponentHealth(self.name, HealthStatus.UNHEALTHY, "Database unreachable", error=str(e))
        return ComponentHealth(self.name, HealthStatus.HEALTHY, "Database reachable")


class CacheHealthCheck(HealthCheck):
    """Redis ping; a cache outage only degrades the service"""

    def __init__(self, cache_provider: Callable):
        super().__init__("cache")
        self.cache_provider = cache_provider

    async def check(self) -> ComponentHealth:
        cache = self.cache_provider()
        if not cache.enabled:
            return ComponentHealth(self.name, HealthStatus.HEALTHY, "Cache disabled")

        if await asyncio.get_running_loop().run_in_executor(None, cache.ping):
            return ComponentHealth(self.name, HealthStatus.HEALTHY, "Redis reachable")
        return ComponentHealth(self.name, HealthStatus.DEGRADED, "Redis unreachable")


class TmdbHealthCheck(HealthCheck):
    """Reports whether TMDB synchronization can run"""

    def __init__(self, settings):
        super().__init__("tmdb")
        self.settings = settings

    async def check(self) -> ComponentHealth:
        details = {"base_url": self.settings.tmdb_base_url, "sync_enabled": self.settings.sync_enabled}
        if not self.settings.tmdb_api_key:
            return ComponentHealth(self.name, HealthStatus.DEGRADED, "TMDB API key not configured", details)
        return ComponentHealth(self.name, HealthStatus.HEALTHY, "TMDB configured", details)


def _overall(results: List[ComponentHealth]) -> HealthStatus:
    statuses = {r.status for r in results}
    if HealthStatus.UNHEALTHY in statuses:
        return HealthStatus.UNHEALTHY
    if HealthStatus.DEGRADED in statuses:
        return HealthStatus.DEGRADED
    return HealthStatus.HEALTHY


class MonitoringService:
    """Thread-safe metric registry plus the registered health checks"""

    # Upper bounds in seconds for the Prometheus histogram buckets
    BUCKETS = (0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0)

    def __init__(self, health_check_timeout: float = HEALTH_CHECK_TIMEOUT):
        self._counters: Dict[str, Counter] = {}
        self._histograms: Dict[str, Histogram] = {}
        self._gauges: Dict[str, Gauge] = {}
        self._lock = Lock()
        self.started_at = time.time()
        self.health_check_timeout = health_check_timeout
        self.health_checks: List[HealthCheck] = []

    def increment_counter(self, name: str, amount: int = 1, tags: Optional[Tags] = None) -> None:
        key = metric_key(name, tags)
        with self._lock:
            counter = self._counters.setdefault(key, Counter(name, dict(tags or {})))
            counter.value += amount

    def record_histogram(self, name: str, value: float, tags: Optional[Tags] = None) -> None:
        key = metric_key(name, tags)
        with self._lock:
            self._histograms.setdefault(key, Histogram(name, dict(tags or {}))).observe(value)

    def set_gauge(self, name: str, value: float, tags: Optional[Tags] = None) -> None:
        key = metric_key(name, tags)
        with self._lock:
            self._gauges[key] = Gauge(name, dict(tags or {}), value)

    def get_counter_value(self, name: str, tags: Optional[Tags] = None) -> int:
        with self._lock:
            counter = self._counters.get(metric_key(name, tags))
            return counter.value if counter else 0

    def get_all_metrics(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "uptime_seconds": round(time.time() - self.started_at, 1),
                "counters": {k: {"name": c.name, "value": c.value, "tags": c.tags} for k, c in self._counters.items()},
                "histograms": {
                    k: {
                        "name": h.name,
                        "count": h.total_count,
                        "window": len(h.values),
                        "average": h.average(),
                        "p50": h.percentile(50),
                        "p95": h.percentile(95),
                        "p99": h.percentile(99),
                        "tags": h.tags,
                    }
                    for k, h in self._histograms.items()
                },
                "gauges": {
                    k: {"name": g.name, "value": g.value, "timestamp": g.updated_at.isoformat(), "tags": g.tags}
                    for k, g in self._gauges.items()
                },
            }

    def render_prometheus(self) -> str:
        """Prometheus text exposition of every metric"""

        def labels(tags: Tags, extra: Optional[Tags] = None) -> str:
            merged = {**tags, **(extra or {})}
            if not merged:
                return ""
            return "{" + ",".join(f'{k}="{v}"' for k, v in sorted(merged.items())) + "}"

        lines: List[str] = []
        with self._lock:
            for kind, metrics in (("counter", self._counters), ("gauge", self._gauges)):
                declared = set()
                for metric in metrics.values():
                    if metric.name not in declared:
                        lines.append(f"# TYPE {metric.name} {kind}")
                        declared.add(metric.name)
                    lines.append(f"{metric.name}{labels(metric.tags)} {metric.value}")

            declared = set()
            for h in self._histograms.values():
                if h.name not in declared:
                    lines.append(f"# TYPE {h.name} histogram")
                    declared.add(h.name)
                for bound, count in zip(self.BUCKETS, h.bucket_counts(self.BUCKETS)):
                    lines.append(f"{h.name}_bucket{labels(h.tags, {'le': str(bound)})} {count}")
                lines.append(f"{h.name}_bucket{labels(h.tags, {'le': '+Inf'})} {len(h.values)}")
                lines.append(f"{h.name}_sum{labels(h.tags)} {sum(h.values)}")
                lines.append(f"{h.name}_count{labels(h.tags)} {len(h.values)}")

        return "\n".join(lines) + "\n"

    def add_health_check(self, check: HealthCheck) -> None:
        """Register a health check, replacing any existing check with the same name"""
        self.health_checks = [c for c in self.health_checks if c.name != check.name]
        self.health_checks.append(check)

    async def _run_check(self, check: HealthCheck) -> ComponentHealth:
        started = time.perf_counter()
        try:
            result = await asyncio.wait_for(check.check(), timeout=self.health_check_timeout)
        except asyncio.TimeoutError:
            result = ComponentHealth(
                check.name, HealthStatus.UNHEALTHY, f"Health check timed out after {self.health_check_timeout}s"
            )
        except Exception as e:
            logger.error("Health check raised", check=check.name, error=str(e))
            result = ComponentHealth(check.name, HealthStatus.UNHEALTHY, "Health check failed", error=str(e))
        result.check_duration_ms = round((time.perf_counter() - started) * 1000, 2)
        return result

    async def check_health(self) -> Dict[str, Any]:
        """Run every check concurrently and roll the results up"""
        started = time.perf_counter()
        results = await asyncio.gather(*(self._run_check(check) for check in self.health_checks))
        overall = _overall(results)

        return {
            "status": overall.value,
            "timestamp": datetime.utcnow().isoformat(),
            "uptime_seconds": round(time.time() - self.started_at, 1),
            "duration_ms": round((time.perf_counter() - started) * 1000, 2),
            "components": {
                r.name: {
                    "status": r.status.value,
                    "message": r.message,
                    "details": r.details,
                    "check_duration_ms": r.check_duration_ms,
                    "error": r.error,
                }
                for r in results
            },
            "summary": {
                "total_checks": len(results),
                "healthy_checks": sum(r.status is HealthStatus.HEALTHY for r in results),
                "degraded_checks": sum(r.status is HealthStatus.DEGRADED for r in results),
                "unhealthy_checks": sum(r.status is HealthStatus.UNHEALTHY for r in results),
            },
        }


_monitoring_service: Optional[MonitoringService] = None


def get_monitoring_service() -> MonitoringService:
    """Get global monitoring service instance"""
    global _monitoring_service
    if _monitoring_service is None:
        _monitoring_service = MonitoringService()
    return _monitoring_service
