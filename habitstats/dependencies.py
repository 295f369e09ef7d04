"""
Habit Stats Dependencies
FastAPI providers wiring the stats engine to the configured log store
"""

from typing import Optional

from loguru import logger

from habitstats.config import get_settings
from habitstats.database import Database
from habitstats.engines.calendar_engine import resolve_calendar
from habitstats.engines.stats_engine import StatsEngine, create_stats_engine
from habitstats.memory_store import InMemoryStore

_memory_store: Optional[InMemoryStore] = None


def get_memory_store() -> InMemoryStore:
    """Process-wide in-memory store used when STORAGE_BACKEND=memory"""
    global _memory_store
    if _memory_store is None:
        _memory_store = InMemoryStore()
        logger.info("[DEPS] In-memory log store created")
    return _memory_store


def get_stats_engine() -> StatsEngine:
    """Build a stats engine over the configured storage backend"""
    settings = get_settings()
    default_calendar = resolve_calendar(settings.default_calendar)

    if settings.storage_backend == "memory":
        store = get_memory_store()
        return create_stats_engine(
            store, store,
            max_concurrency=settings.stats_max_concurrency,
            default_calendar=default_calendar
        )

    db = Database(use_admin=True)
    return create_stats_engine(
        db, db,
        max_concurrency=settings.stats_max_concurrency,
        default_calendar=default_calendar
    )
