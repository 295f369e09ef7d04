"""
Habit Stats Engine
Computes a habit's statistics from its log history.
Provides: times completed per window, monthly breakdown, streaks,
success/fail/pending tallies and habit score.
"""

import asyncio
from datetime import date
from typing import Callable, Dict, List, Optional, Union

from loguru import logger

from habitstats.engines.calendar_engine import (
    CalendarDate,
    parse_date,
    resolve_calendar,
    today as calendar_today,
)
from habitstats.engines.daily_streak import DailyStreakEvaluator
from habitstats.engines.log_query import HabitProvider, LogQueryPort
from habitstats.engines.weekly_streak import WeeklyStreakEvaluator
from habitstats.engines.window_aggregator import WindowAggregator, gather_all_or_nothing
from habitstats.errors import HabitNotFound, HabitStatsError
from habitstats.models import (
    Calendar,
    Habit,
    HabitStatsResult,
    StatsReport,
    StatsType,
)


DEFAULT_MAX_CONCURRENCY = 8


class StatsEngine:
    """
    The Stats Engine is a read-only view over a habit's logs.
    It never writes; every number is derived from the log store on demand.
    """

    def __init__(
        self,
        log_store: LogQueryPort,
        habit_provider: HabitProvider,
        clock: Optional[Callable[[], date]] = None,
        max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
        default_calendar: Calendar = Calendar.GREGORIAN
    ):
        self.log_store = log_store
        self.default_calendar = default_calendar
        self.habit_provider = habit_provider
        self.clock = clock or date.today
        self.max_concurrency = max_concurrency
        self.windows = WindowAggregator(log_store)
        self.daily = DailyStreakEvaluator(log_store)
        self.weekly = WeeklyStreakEvaluator(log_store)

    async def get_habit_stats(
        self,
        habit_id: str,
        calendar: Union[str, Calendar, None] = None,
        as_of: Optional[str] = None
    ) -> StatsReport:
        """
        Compute the full stats report for one habit.

        Args:
            habit_id: Habit to report on
            calendar: "gregorian" or "persian" ("alternate" is accepted too)
            as_of: Optional Gregorian YYYY-MM-DD reference day, defaults to today

        Returns:
            StatsReport

        Raises:
            InvalidDate, InvalidCalendar: before any query is issued
            HabitNotFound: if the habit does not exist
            QueryFailed: if the log store fails
        """
        reference = self._resolve_as_of(as_of)
        resolved_calendar = resolve_calendar(calendar if calendar is not None else self.default_calendar)

        habit = await self.habit_provider.get_habit(habit_id)
        if habit is None:
            logger.warning(f"[STATS] Habit not found: {habit_id}")
            raise HabitNotFound(f"Habit not found: {habit_id}")

        return await self.compute_habit_stats(habit, resolved_calendar, reference)

    async def compute_habit_stats(
        self,
        habit: Habit,
        calendar: Calendar,
        as_of: Optional[CalendarDate] = None
    ) -> StatsReport:
        """Compute the report for an already loaded habit snapshot"""
        today = calendar_today(calendar, self.clock)
        as_of = (as_of or today).convert(calendar)
        logger.info(
            f"[STATS] Computing stats: habit={habit.id}, calendar={calendar.value}, "
            f"frequency={habit.frequency_type.value}, as_of={as_of}"
        )

        times = await self.windows.times_completed(habit, calendar, as_of)
        breakdown = await self.windows.monthly_breakdown(habit, calendar)

        report = StatsReport(
            type=StatsType.WEEKLY if habit.is_weekly else StatsType.DAILY,
            monthly_breakdown=breakdown,
            unit=habit.unit,
            **times.model_dump()
        )

        if habit.is_weekly:
            weekly = await self.weekly.evaluate(habit, calendar, as_of, today)
            merged = weekly.model_dump()
        else:
            daily = await self.daily.evaluate(habit, as_of)
            merged = daily.model_dump()

        return report.model_copy(update=merged)

    async def get_stats_for_habits(
        self,
        habit_ids: List[str],
        calendar: Union[str, Calendar, None] = None,
        as_of: Optional[str] = None,
        max_concurrency: Optional[int] = None
    ) -> Dict[str, HabitStatsResult]:
        """
        Compute reports for several habits concurrently.

        A failure for one habit is recorded in its own result and does not
        abort the others. Input errors still fail the whole call up front.

        Args:
            habit_ids: Habits to report on
            calendar: Calendar tag shared by all reports
            as_of: Optional Gregorian reference day
            max_concurrency: Upper bound on habits evaluated at once

        Returns:
            Mapping of habit id to HabitStatsResult, in input order
        """
        reference = self._resolve_as_of(as_of)
        resolved_calendar = resolve_calendar(calendar if calendar is not None else self.default_calendar)
        semaphore = asyncio.Semaphore(max_concurrency or self.max_concurrency)

        async def evaluate_one(habit_id: str) -> HabitStatsResult:
            async with semaphore:
                try:
                    habit = await self.habit_provider.get_habit(habit_id)
                    if habit is None:
                        raise HabitNotFound(f"Habit not found: {habit_id}")
                    report = await self.compute_habit_stats(habit, resolved_calendar, reference)
                    return HabitStatsResult(habit_id=habit_id, stats=report)
                except HabitStatsError as e:
                    logger.warning(f"[STATS] Stats failed for habit {habit_id}: {e.code} ({e})")
                    return HabitStatsResult(habit_id=habit_id, error=e.code)

        unique_ids = list(dict.fromkeys(habit_ids))
        logger.info(f"[STATS] Computing stats for {len(unique_ids)} habits")
        results = await asyncio.gather(*(evaluate_one(habit_id) for habit_id in unique_ids))
        return {result.habit_id: result for result in results}

    async def get_times_completed_per_period(
        self,
        habit_ids: List[str],
        start: str,
        end: str
    ) -> Dict[str, int]:
        """
        Qualifying log counts between two Gregorian days for each habit
        active at some point in that period. Unknown habits are skipped.
        """
        start_date = parse_date(start)
        end_date = parse_date(end)

        habits = await gather_all_or_nothing(
            *(self.habit_provider.get_habit(habit_id) for habit_id in dict.fromkeys(habit_ids))
        )
        active = [
            habit for habit in habits
            if habit is not None
            and habit.start_date <= end_date.to_date()
            and (habit.end_date is None or habit.end_date >= start_date.to_date())
        ]

        counts = await gather_all_or_nothing(
            *(self.windows.times_completed_in_range(habit, start_date, end_date) for habit in active)
        )
        return {habit.id: count for habit, count in zip(active, counts)}

    def _resolve_as_of(self, as_of: Optional[str]) -> Optional[CalendarDate]:
        if as_of is None:
            return None
        return parse_date(as_of)


def create_stats_engine(
    log_store: LogQueryPort,
    habit_provider: HabitProvider,
    clock: Optional[Callable[[], date]] = None,
    max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
    default_calendar: Calendar = Calendar.GREGORIAN
) -> StatsEngine:
    """Factory function to create a StatsEngine instance"""
    return StatsEngine(log_store, habit_provider, clock, max_concurrency, default_calendar)
