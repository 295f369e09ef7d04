"""
Habit Stats Test Configuration
Shared fixtures: a fixed clock, an in-memory store and an app wired to it
"""

import os

# Settings are read once at import time of the app
os.environ.setdefault("STORAGE_BACKEND", "memory")
os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("LOG_LEVEL", "INFO")

import pytest
from datetime import date
from typing import Iterable, Optional
from fastapi.testclient import TestClient

from habitstats.engines.stats_engine import StatsEngine
from habitstats.errors import QueryFailed
from habitstats.memory_store import InMemoryStore
from habitstats.models import (
    BooleanGoal,
    DaysPerWeek,
    EveryDay,
    Habit,
    NumericGoal,
    SpecificWeekdays,
)


# Saturday
FIXED_TODAY = date(2024, 6, 15)


class FailingStore(InMemoryStore):
    """In-memory store whose chosen queries fail as if the backend were down"""

    def __init__(self, failing: Iterable[str] = (), failing_habits: Optional[Iterable[str]] = None, **kwargs):
        super().__init__(**kwargs)
        self.failing = set(failing)
        self.failing_habits = set(failing_habits) if failing_habits is not None else None

    def _record(self, query: str) -> None:
        super()._record(query)
        name, _, rest = query.partition(" ")
        habit_id = rest.split(" ")[0]
        if name in self.failing and (self.failing_habits is None or habit_id in self.failing_habits):
            raise QueryFailed(f"{name} unavailable")


# ==========================================
# Habit Builders
# ==========================================

def make_habit(
    habit_id: str = "habit-1",
    start: str = "2024-01-01",
    end: Optional[str] = None,
    goal=None,
    frequency=None,
) -> Habit:
    return Habit(
        id=habit_id,
        name=f"Habit {habit_id}",
        goal=goal or BooleanGoal(),
        frequency=frequency or EveryDay(),
        start_date=start,
        end_date=end,
    )


def numeric_goal(daily_goal: int, comparison: str = "at-least", unit: str = "glasses") -> NumericGoal:
    return NumericGoal(daily_goal=daily_goal, comparison=comparison, unit=unit)


def weekdays(*names: str) -> SpecificWeekdays:
    return SpecificWeekdays(weekdays=list(names))


def days_per_week(count: int) -> DaysPerWeek:
    return DaysPerWeek(days_per_week=count)


# ==========================================
# Store & Engine Fixtures
# ==========================================

@pytest.fixture
def clock():
    """Deterministic 'today'"""
    return lambda: FIXED_TODAY


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def engine(store, clock):
    return StatsEngine(store, store, clock=clock)


@pytest.fixture
def habit_factory(store):
    """Create a habit in the store and optionally seed its logs"""
    def factory(habit_id: str = "habit-1", logs: Optional[dict] = None, **kwargs) -> Habit:
        habit = store.add_habit(make_habit(habit_id, **kwargs))
        if logs:
            store.add_logs(habit_id, logs)
        return habit
    return factory


# ==========================================
# App Fixtures
# ==========================================

@pytest.fixture
def app(engine):
    """FastAPI app whose stats engine is bound to the test store"""
    from habitstats.dependencies import get_stats_engine
    from habitstats.main import create_app

    application = create_app()
    application.dependency_overrides[get_stats_engine] = lambda: engine
    yield application
    application.dependency_overrides.clear()


@pytest.fixture
def client(app):
    """Test client for API requests"""
    with TestClient(app) as test_client:
        yield test_client
