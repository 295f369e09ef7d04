"""
Habit Stats Routes
Read-only endpoints exposing the stats engine
"""

from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, Query
from loguru import logger
import time

from habitstats.dependencies import get_stats_engine
from habitstats.engines.stats_engine import StatsEngine
from habitstats.errors import HabitStatsError


router = APIRouter()


def _raise_http(error: HabitStatsError) -> None:
    """Translate an engine error into the matching HTTP response"""
    logger.warning(f"[STATS] {error.code} ({error.status_code}): {error.message}")
    raise HTTPException(status_code=error.status_code, detail=error.code)


@router.get("/habit-stats")
async def get_times_completed_per_period(
    ids: List[str] = Query(...),
    start: str = Query(...),
    end: str = Query(...),
    engine: StatsEngine = Depends(get_stats_engine)
):
    """Qualifying log counts per habit between two Gregorian days"""
    start_time = time.time()
    logger.info(f"[STATS] === TIMES COMPLETED PER PERIOD === {len(ids)} habits, {start} to {end}")

    try:
        stats = await engine.get_times_completed_per_period(ids, start, end)
    except HabitStatsError as e:
        _raise_http(e)

    elapsed = (time.time() - start_time) * 1000
    logger.info(f"[STATS] Counted {len(stats)} habits in {elapsed:.2f}ms")
    return {
        "status": "success",
        "data": {"stats": stats}
    }


@router.get("/habit-stats-batch")
async def get_stats_for_habits(
    ids: List[str] = Query(...),
    calendar: Optional[str] = Query(None),
    date: Optional[str] = Query(None),
    engine: StatsEngine = Depends(get_stats_engine)
):
    """Stats for several habits; one habit's failure does not fail the others"""
    start_time = time.time()
    logger.info(f"[STATS] === BATCH STATS === {len(ids)} habits, calendar={calendar or 'default'}, date={date or 'today'}")

    try:
        results = await engine.get_stats_for_habits(ids, calendar, date)
    except HabitStatsError as e:
        _raise_http(e)

    elapsed = (time.time() - start_time) * 1000
    failed = sum(1 for result in results.values() if result.error)
    logger.info(f"[STATS] Batch complete: {len(results)} habits, {failed} failed ({elapsed:.2f}ms)")
    return {
        "status": "success",
        "data": {habit_id: result.to_response() for habit_id, result in results.items()}
    }


@router.get("/habit-stats/{habit_id}")
async def get_habit_stats(
    habit_id: str,
    calendar: Optional[str] = Query(None),
    date: Optional[str] = Query(None),
    engine: StatsEngine = Depends(get_stats_engine)
):
    """Full stats report for one habit"""
    start_time = time.time()
    logger.info(f"[STATS] === HABIT STATS === habit={habit_id}, calendar={calendar or 'default'}, date={date or 'today'}")

    try:
        report = await engine.get_habit_stats(habit_id, calendar, date)
    except HabitStatsError as e:
        _raise_http(e)

    elapsed = (time.time() - start_time) * 1000
    logger.info(f"[STATS] Stats for habit {habit_id} computed in {elapsed:.2f}ms")
    return {
        "status": "success",
        "data": {"stats": report.to_response()}
    }
