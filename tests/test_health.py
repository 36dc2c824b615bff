import asyncio

from moviedb.database import connection
from moviedb.database.models import Genre
from moviedb.services.monitoring_service import (
    ComponentHealth,
    HealthCheck,
    HealthStatus,
    MonitoringService,
)


class StaticCheck(HealthCheck):
    def __init__(self, name, status):
        super().__init__(name)
        self.status = status

    async def check(self):
        return ComponentHealth(name=self.name, status=self.status, message=self.status.value)


class BrokenCheck(HealthCheck):
    async def check(self):
        raise RuntimeError("probe crashed")


def test_root_lists_endpoints(client):
    response = client.get("/")

    assert response.status_code == 200
    body = response.json()
    assert body["endpoints"]["health"] == "/health"
    assert "version" in body


def test_health_is_degraded_without_tmdb_key(client):
    response = client.get("/health")

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "degraded"
    assert body["components"]["database"]["status"] == "healthy"
    assert body["components"]["cache"]["message"] == "Cache disabled"
    assert body["components"]["tmdb"]["status"] == "degraded"
    assert body["summary"]["total_checks"] == 3


def test_metrics_count_requests(client):
    client.get("/genres")

    counters = client.get("/metrics").json()["metrics"]["counters"]

    assert "http_requests_total[method=GET,path=/genres,status=200]" in counters


def test_genres_sorted_by_name(client, db_session):
    db_session.add_all([Genre(id=878, name="Science Fiction"), Genre(id=28, name="Action"), Genre(id=35, name="Comedy")])
    db_session.commit()

    response = client.get("/genres")

    assert [g["name"] for g in response.json()] == ["Action", "Comedy", "Science Fiction"]


def test_unhealthy_component_wins():
    monitoring = MonitoringService()
    monitoring.add_health_check(StaticCheck("database", HealthStatus.HEALTHY))
    monitoring.add_health_check(StaticCheck("cache", HealthStatus.DEGRADED))
    monitoring.add_health_check(BrokenCheck("tmdb"))

    result = asyncio.run(monitoring.check_health())

    assert result["status"] == "unhealthy"
    assert result["components"]["tmdb"]["error"] == "probe crashed"
    assert result["summary"] == {"total_checks": 3, "healthy_checks": 1, "degraded_checks": 1, "unhealthy_checks": 1}


def test_health_check_registration_replaces_by_name():
    monitoring = MonitoringService()
    monitoring.add_health_check(StaticCheck("cache", HealthStatus.UNHEALTHY))
    monitoring.add_health_check(StaticCheck("cache", HealthStatus.HEALTHY))

    result = asyncio.run(monitoring.check_health())

    assert result["status"] == "healthy"
    assert list(result["components"]) == ["cache"]


def test_histogram_percentiles():
    monitoring = MonitoringService()
    for value in range(1, 101):
        monitoring.record_histogram("latency", float(value), tags={"path": "/movies"})

    histogram = monitoring.get_all_metrics()["histograms"]["latency[path=/movies]"]

    assert histogram["count"] == 100
    assert histogram["average"] == 50.5


class HangingCheck(HealthCheck):
    async def check(self):
        await asyncio.sleep(10)


def test_slow_check_times_out():
    monitoring = MonitoringService(health_check_timeout=0.05)
    monitoring.add_health_check(HangingCheck("cache"))

    result = asyncio.run(monitoring.check_health())

    assert result["status"] == "unhealthy"
    assert "timed out" in result["components"]["cache"]["message"]


def test_prometheus_exposition():
    monitoring = MonitoringService()
    monitoring.increment_counter("sync_runs_total", tags={"job": "popular", "status": "completed"})
    monitoring.record_histogram("sync_duration_seconds", 0.2, tags={"job": "popular"})
    monitoring.record_histogram("sync_duration_seconds", 3.0, tags={"job": "popular"})

    body = monitoring.render_prometheus()

    assert "# TYPE sync_runs_total counter" in body
    assert 'sync_runs_total{job="popular",status="completed"} 1' in body
    assert 'sync_duration_seconds_bucket{job="popular",le="0.25"} 1' in body
    assert 'sync_duration_seconds_bucket{job="popular",le="+Inf"} 2' in body
    assert 'sync_duration_seconds_count{job="popular"} 2' in body


def test_metrics_endpoint_prometheus_format(client):
    client.get("/genres")

    response = client.get("/metrics", params={"format": "prometheus"})

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/plain")
    assert "http_requests_total{" in response.text
    assert client.get("/metrics", params={"format": "xml"}).status_code == 422


def test_wait_for_database_retries(monkeypatch):
    results = iter([False, False, True])
    sleeps = []
    monkeypatch.setattr(connection, "ping_database", lambda: next(results))

    assert connection.wait_for_database(max_retries=5, retry_interval=0.5, sleep=sleeps.append)
    assert sleeps == [0.5, 0.5]


def test_wait_for_database_gives_up(monkeypatch):
    sleeps = []
    monkeypatch.setattr(connection, "ping_database", lambda: False)

    assert not connection.wait_for_database(max_retries=3, retry_interval=1, sleep=sleeps.append)
    assert sleeps == [1, 1]
