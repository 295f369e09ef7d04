"""
Habit Stats API Tests
HTTP surface: success payloads, error mapping and health checks
"""

import pytest
from fastapi.testclient import TestClient

from habitstats.dependencies import get_stats_engine
from habitstats.engines.stats_engine import StatsEngine

from conftest import FailingStore, make_habit


SAMPLE_LOGS = {"2024-01-01": 1, "2024-01-02": 1, "2024-01-03": 1, "2024-01-05": 1}


@pytest.fixture
def seeded(habit_factory):
    habit_factory("habit-1", logs=SAMPLE_LOGS)
    habit_factory("habit-2", logs={"2024-01-05": 1})


class TestHealth:
    """Tests for health endpoints"""

    def test_root(self, client):
        """Should report the service as operational"""
        response = client.get("/")
        assert response.status_code == 200
        assert response.json() == {"service": "Habit Stats API", "status": "operational"}

    def test_health(self, client):
        """Should report healthy with the configured backend"""
        response = client.get("/health")
        data = response.json()
        assert response.status_code == 200
        assert data["status"] == "healthy"
        assert data["storage_backend"] == "memory"
        assert "version" in data

    def test_unknown_route(self, client):
        """Should return 404 for unknown routes"""
        assert client.get("/api/habits/nope").status_code == 404


class TestHabitStatsEndpoint:
    """Tests for GET /api/habits/habit-stats/{habit_id}"""

    def test_success(self, client, seeded):
        """Should return the camelCase report"""
        response = client.get("/api/habits/habit-stats/habit-1", params={"date": "2024-01-05"})
        assert response.status_code == 200

        body = response.json()
        assert body["status"] == "success"
        stats = body["data"]["stats"]
        assert stats["streak"] == 1
        assert stats["bestStreak"] == 3
        assert stats["success"] == 4
        assert stats["pending"] == 1
        assert stats["monthlyBreakdown"] == {"2024": {"1": 4}}

    def test_persian(self, client, seeded):
        """Should accept the persian calendar"""
        response = client.get(
            "/api/habits/habit-stats/habit-1",
            params={"date": "2024-01-05", "calendar": "persian"},
        )
        assert response.status_code == 200
        assert response.json()["data"]["stats"]["monthlyBreakdown"] == {"1402": {"10": 4}}

    def test_invalid_date(self, client, seeded):
        """Should map an invalid date to 400"""
        response = client.get("/api/habits/habit-stats/habit-1", params={"date": "2024-13-40"})
        assert response.status_code == 400
        assert response.json() == {"detail": "invalid_date"}

    def test_invalid_calendar(self, client, seeded):
        """Should map an unknown calendar to 400"""
        response = client.get("/api/habits/habit-stats/habit-1", params={"calendar": "julian"})
        assert response.status_code == 400
        assert response.json() == {"detail": "invalid_calendar"}

    def test_not_found(self, client):
        """Should map an unknown habit to 404"""
        response = client.get("/api/habits/habit-stats/missing")
        assert response.status_code == 404
        assert response.json() == {"detail": "habit_not_found"}

    def test_store_unavailable(self, app, clock):
        """Should map a store failure to 503"""
        store = FailingStore(failing=["count_qualifying"])
        store.add_habit(make_habit())
        app.dependency_overrides[get_stats_engine] = lambda: StatsEngine(store, store, clock=clock)

        with TestClient(app) as client:
            response = client.get("/api/habits/habit-stats/habit-1")

        assert response.status_code == 503
        assert response.json() == {"detail": "query_failed"}


class TestBatchEndpoint:
    """Tests for GET /api/habits/habit-stats-batch"""

    def test_partial_failure(self, client, seeded):
        """Should report each habit on its own"""
        response = client.get(
            "/api/habits/habit-stats-batch",
            params=[("ids", "habit-1"), ("ids", "missing"), ("ids", "habit-2"), ("date", "2024-01-05")],
        )
        assert response.status_code == 200

        data = response.json()["data"]
        assert data["habit-1"]["status"] == "success"
        assert data["habit-1"]["stats"]["bestStreak"] == 3
        assert data["habit-2"]["stats"]["streak"] == 1
        assert data["missing"] == {"status": "fail", "message": "habit_not_found"}

    def test_ids_required(self, client):
        """Should reject a request without ids"""
        assert client.get("/api/habits/habit-stats-batch").status_code == 422

    def test_invalid_date(self, client, seeded):
        """Should fail the whole batch on an invalid date"""
        response = client.get(
            "/api/habits/habit-stats-batch",
            params=[("ids", "habit-1"), ("date", "2024-02-30")],
        )
        assert response.status_code == 400


class TestTimesCompletedEndpoint:
    """Tests for GET /api/habits/habit-stats"""

    def test_counts(self, client, seeded):
        """Should count qualifying logs per habit in the period"""
        response = client.get(
            "/api/habits/habit-stats",
            params=[("ids", "habit-1"), ("ids", "habit-2"), ("start", "2024-01-02"), ("end", "2024-01-31")],
        )
        assert response.status_code == 200
        assert response.json() == {
            "status": "success",
            "data": {"stats": {"habit-1": 3, "habit-2": 1}},
        }

    def test_invalid_bounds(self, client, seeded):
        """Should reject invalid period bounds"""
        response = client.get(
            "/api/habits/habit-stats",
            params=[("ids", "habit-1"), ("start", "2024-01-02"), ("end", "not-a-date")],
        )
        assert response.status_code == 400
        assert response.json() == {"detail": "invalid_date"}

    def test_missing_bounds(self, client):
        """Should require start and end"""
        response = client.get("/api/habits/habit-stats", params={"ids": "habit-1"})
        assert response.status_code == 422
