"""
Habit Stats Daily Streak Evaluator
Current/best streak and success/fail/pending tallies for habits that are
scheduled every day or on specific weekdays.

The streak walk is a fold over qualifying log dates, newest first, carried
in a StreakScan. scan_daily_streaks runs the fold over any iterable of
dates, so it can be exercised without a log store.
"""

from dataclasses import dataclass, replace
from typing import Callable, Iterable, Optional, Tuple

from loguru import logger

from habitstats.engines.calendar_engine import (
    CalendarDate,
    MIN_ORDINAL,
    days_between,
    weekdays_between,
)
from habitstats.engines.log_query import DateRange, LogQueryPort
from habitstats.models import (
    Calendar,
    DailyStats,
    FrequencyType,
    Habit,
    SortOrder,
)


DayPredicate = Callable[[CalendarDate], bool]
DayStep = Callable[[CalendarDate], CalendarDate]


@dataclass(frozen=True)
class StreakScan:
    """
    State of the backward walk.

    current: length of the streak ending at the scan start
    best: longest finished run so far
    run: length of the run being walked after the current streak broke
    cursor: the valid day the next log must fall on to extend the run
    counting_current: False once the current streak has broken
    """
    current: int = 0
    best: int = 0
    run: int = 0
    cursor: Optional[CalendarDate] = None
    counting_current: bool = True

    @property
    def best_streak(self) -> int:
        return max(self.best, self.run, self.current)


def valid_day_predicate(habit: Habit) -> DayPredicate:
    """Whether the habit is scheduled on a given day"""
    if habit.frequency_type == FrequencyType.SPECIFIC_WEEKDAYS:
        weekdays = habit.frequency.weekday_names
        return lambda day: day.weekday in weekdays
    return lambda day: True


def previous_valid_day(is_valid_day: DayPredicate) -> DayStep:
    """Step function returning the closest scheduled day strictly before a day"""
    def step(day: CalendarDate) -> CalendarDate:
        day = day.subtract_days(1)
        while not is_valid_day(day):
            day = day.subtract_days(1)
        return day
    return step


def advance_streak_scan(state: StreakScan, log_date: CalendarDate, previous_valid: DayStep) -> StreakScan:
    """Fold one qualifying log date (newest first) into the scan state"""
    if state.counting_current:
        if log_date == state.cursor:
            return replace(
                state,
                current=state.current + 1,
                cursor=previous_valid(state.cursor)
            )
        # First gap: the current streak is final and seeds the best streak
        state = replace(state, counting_current=False, best=state.current, run=0, cursor=log_date)

    if log_date != state.cursor:
        state = replace(state, best=max(state.best, state.run), run=0, cursor=log_date)

    return replace(state, run=state.run + 1, cursor=previous_valid(log_date))


def scan_daily_streaks(
    log_dates: Iterable[CalendarDate],
    scan_start: Optional[CalendarDate],
    previous_valid: DayStep,
    count_current: bool = True
) -> Tuple[int, int]:
    """
    Compute (current streak, best streak) from qualifying dates, newest first.

    Args:
        log_dates: Qualifying log dates in descending order
        scan_start: Most recent valid day the current streak may end on
        previous_valid: Step to the previous scheduled day
        count_current: False when the current streak is already known to be 0

    Returns:
        Tuple of (streak, best_streak)
    """
    state = StreakScan(cursor=scan_start, counting_current=count_current)
    for log_date in log_dates:
        state = advance_streak_scan(state, log_date, previous_valid)
    return state.current, state.best_streak


class DailyStreakEvaluator:
    """Streak stats for every-day and specific-weekday habits"""

    def __init__(self, log_store: LogQueryPort):
        self.log_store = log_store

    async def evaluate(self, habit: Habit, as_of: CalendarDate) -> DailyStats:
        """
        Compute daily stats for a habit as of a given day.

        Args:
            habit: Habit with an every-day or specific-days-of-week frequency
            as_of: Reference day ("today" unless the caller asked otherwise)

        Returns:
            DailyStats
        """
        as_of = as_of.convert(Calendar.GREGORIAN)
        start_date = CalendarDate.from_date(habit.start_date)
        end_date = as_of
        if habit.end_date is not None and as_of.to_date() > habit.end_date:
            end_date = CalendarDate.from_date(habit.end_date)

        if end_date < start_date:
            logger.debug(f"[STATS] Habit {habit.id} has not started by {end_date}")
            return DailyStats()

        is_valid_day = valid_day_predicate(habit)
        previous_valid = previous_valid_day(is_valid_day)

        scan_start = end_date
        count_current = True
        today_pending = False

        if as_of == end_date and is_valid_day(end_date):
            today_log = await self.log_store.find_one(habit, end_date)
            if today_log is None:
                # Today is not over yet, it cannot break the streak
                scan_start = end_date.subtract_days(1)
            elif not habit.qualifies(today_log.value):
                if habit.is_numeric:
                    today_pending = True
                    scan_start = end_date.subtract_days(1)
                else:
                    count_current = False

        if not is_valid_day(scan_start):
            scan_start = previous_valid(scan_start)

        state = StreakScan(cursor=scan_start, counting_current=count_current)
        success = 0
        async for log_date in self.log_store.list_qualifying(
            habit, Calendar.GREGORIAN, end_date, SortOrder.DESCENDING
        ):
            state = advance_streak_scan(state, log_date, previous_valid)
            success += 1

        fail = await self.log_store.count_failing(
            habit, DateRange(CalendarDate(MIN_ORDINAL), end_date)
        )
        if today_pending:
            fail -= 1

        if habit.frequency_type == FrequencyType.SPECIFIC_WEEKDAYS:
            total = weekdays_between(start_date, end_date, habit.frequency.weekday_names)
        else:
            total = days_between(start_date, end_date)

        stats = DailyStats(
            streak=state.current,
            best_streak=state.best_streak,
            success=success,
            fail=fail,
            pending=total - success - fail,
            total=total,
            habit_score=success * 100 // max(1, total)
        )
        logger.debug(
            f"[STATS] Daily stats for habit {habit.id} up to {end_date}: "
            f"streak={stats.streak}, best={stats.best_streak}, success={success}/{total}"
        )
        return stats


def create_daily_streak_evaluator(log_store: LogQueryPort) -> DailyStreakEvaluator:
    """Factory function to create a DailyStreakEvaluator instance"""
    return DailyStreakEvaluator(log_store)
