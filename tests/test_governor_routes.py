"""Tests for the governor status routes."""

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from api_governor.api import create_governor_router
from api_governor.governor import Governor, GovernorConfig


@pytest.fixture
def governor(clock):
    config = GovernorConfig(
        max_requests_per_second=2,
        max_requests_per_minute=10,
        max_requests_per_hour=100,
        circuit_breaker_threshold=2,
        circuit_breaker_reset_ms=30000
    )
    return Governor(config, clock=clock)


@pytest.fixture
def client(governor):
    app = FastAPI()
    app.include_router(create_governor_router(governor))
    return TestClient(app)


class TestGovernorRoutes:
    """Test the metrics endpoints."""

    def test_metrics_on_fresh_governor(self, client):
        response = client.get("/governor/metrics")

        assert response.status_code == 200
        data = response.json()
        assert data["total_requests"] == 0
        assert data["circuit_breaker_open"] is False
        assert data["last_rate_limited_at"] is None
        assert data["recommended_delay_ms"] == 0
        assert data["windows"] == {
            "second": {"count": 0, "capacity": 2},
            "minute": {"count": 0, "capacity": 10},
            "hour": {"count": 0, "capacity": 100},
        }

    def test_metrics_reflect_activity(self, client, governor):
        assert governor.admit() is True
        governor.record_success(40)
        assert governor.admit() is True
        assert governor.admit() is False

        data = client.get("/governor/metrics").json()

        assert data["total_requests"] == 2
        assert data["successful_requests"] == 1
        assert data["rate_limited_requests"] == 1
        assert data["average_response_time_ms"] == 40
        assert data["last_rate_limited_at"] is not None
        assert data["recommended_delay_ms"] == 1000
        assert data["windows"]["second"]["count"] == 2

    def test_open_breaker_is_reported(self, client, governor):
        governor.record_failure(is_throttled=True)
        governor.record_failure(is_throttled=True)

        data = client.get("/governor/metrics").json()

        assert data["circuit_breaker_open"] is True
        assert data["recommended_delay_ms"] == 30000

    def test_reset_zeroes_counters(self, client, governor):
        governor.admit()
        governor.record_failure(is_throttled=True)

        response = client.post("/governor/metrics/reset")

        assert response.status_code == 200
        assert response.json() == {"status": "reset", "message": "Governor metrics reset"}
        assert governor.metrics_snapshot().total_requests == 0
        assert governor.consecutive_failures == 0
        # Window contents survive a metrics reset
        data = client.get("/governor/metrics").json()
        assert data["windows"]["second"]["count"] == 1
