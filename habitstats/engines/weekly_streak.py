"""
Habit Stats Weekly Streak Evaluator
Week-level streaks and completion score for "N days per week" habits.

Qualifying logs are folded, oldest first, into calendar weeks. A week with
at least N qualifying logs is complete and is identified by its last day
(its anchor); streaks count consecutive complete weeks.
"""

from dataclasses import dataclass, replace
from typing import Iterable, Optional, Sequence, Tuple

from loguru import logger

from habitstats.engines.calendar_engine import CalendarDate, weeks_between
from habitstats.models import Calendar, Habit, SortOrder, WeeklyStats
from habitstats.engines.log_query import LogQueryPort


@dataclass(frozen=True)
class WeeklyScan:
    """
    State of the forward walk over qualifying log dates.

    week_end: last day of the week being filled (None before the first log)
    count: qualifying logs seen in that week
    accumulated: score of closed weeks, each capped at days_per_week
    anchors: last day of every complete week, oldest first
    """
    days_per_week: int
    week_end: Optional[CalendarDate] = None
    count: int = 0
    accumulated: int = 0
    anchors: Tuple[CalendarDate, ...] = ()

    def close_week(self) -> "WeeklyScan":
        if self.week_end is None:
            return self
        if self.count >= self.days_per_week:
            return replace(
                self,
                accumulated=self.accumulated + self.days_per_week,
                anchors=self.anchors + (self.week_end,),
                count=0
            )
        return replace(self, accumulated=self.accumulated + self.count, count=0)


def advance_weekly_scan(state: WeeklyScan, log_date: CalendarDate) -> WeeklyScan:
    """Fold one qualifying log date (oldest first) into the scan state"""
    if state.week_end is None or log_date > state.week_end:
        state = state.close_week()
        return replace(state, week_end=log_date.last_of_week(), count=1)
    return replace(state, count=state.count + 1)


def scan_weekly_logs(log_dates: Iterable[CalendarDate], days_per_week: int) -> WeeklyScan:
    """Partition ascending qualifying dates into weeks and close the last one"""
    state = WeeklyScan(days_per_week=days_per_week)
    for log_date in log_dates:
        state = advance_weekly_scan(state, log_date)
    return state.close_week()


def anchor_streaks(anchors: Sequence[CalendarDate]) -> Tuple[int, int]:
    """
    Runs of consecutive complete weeks.

    Returns:
        Tuple of (length of the run ending at the last anchor, longest run)
    """
    run = 0
    best = 0
    previous = None
    for anchor in anchors:
        if previous is not None and anchor.ordinal - previous.ordinal == 7:
            run += 1
        else:
            run = 1
        best = max(best, run)
        previous = anchor
    return run, best


def current_week_streak(
    anchors: Sequence[CalendarDate],
    trailing_run: int,
    end_date: CalendarDate,
    in_progress: bool
) -> int:
    """
    The trailing run counts if it reaches the week of end_date. While that
    week is still in progress, a run ending the week before also counts.
    """
    if not anchors:
        return 0
    final_week = end_date.last_of_week()
    last_anchor = anchors[-1]
    if last_anchor == final_week:
        return trailing_run
    if in_progress and last_anchor == final_week.subtract_days(7):
        return trailing_run
    return 0


class WeeklyStreakEvaluator:
    """Streak stats for days-per-week habits"""

    def __init__(self, log_store: LogQueryPort):
        self.log_store = log_store

    async def evaluate(
        self,
        habit: Habit,
        calendar: Calendar,
        as_of: CalendarDate,
        today: CalendarDate
    ) -> WeeklyStats:
        """
        Compute weekly stats for a habit.

        Args:
            habit: Habit with a days-per-week frequency
            calendar: Calendar whose weeks partition the logs
            as_of: Reference day requested by the caller
            today: Current day; the evaluation never looks past it

        Returns:
            WeeklyStats
        """
        days_per_week = habit.frequency.days_per_week
        as_of = as_of.convert(calendar)
        start_date = CalendarDate.from_date(habit.start_date, calendar)

        reference_end = min(as_of, today.convert(calendar))
        end_date = reference_end
        if habit.end_date is not None:
            end_date = min(end_date, CalendarDate.from_date(habit.end_date, calendar))

        if end_date < start_date:
            logger.debug(f"[STATS] Habit {habit.id} has not started by {end_date}")
            return WeeklyStats()

        state = WeeklyScan(days_per_week=days_per_week)
        async for log_date in self.log_store.list_qualifying(
            habit, calendar, end_date, SortOrder.ASCENDING
        ):
            state = advance_weekly_scan(state, log_date)
        state = state.close_week()

        anchors = state.anchors
        trailing_run, best_streak = anchor_streaks(anchors)
        # The final week is still open unless the habit ended before the reference day
        streak = current_week_streak(anchors, trailing_run, end_date, in_progress=end_date == reference_end)

        total_weeks = weeks_between(start_date, end_date)
        stats = WeeklyStats(
            streak=streak,
            best_streak=best_streak,
            complete_weeks=len(anchors),
            incomplete_weeks=total_weeks - len(anchors),
            total_weeks=total_weeks,
            habit_score=state.accumulated * 100 // (days_per_week * max(1, total_weeks)),
            complete_week_anchors=[anchor.format() for anchor in anchors]
        )
        logger.debug(
            f"[STATS] Weekly stats for habit {habit.id} up to {end_date}: "
            f"streak={stats.streak}, best={stats.best_streak}, "
            f"complete={stats.complete_weeks}/{total_weeks}"
        )
        return stats


def create_weekly_streak_evaluator(log_store: LogQueryPort) -> WeeklyStreakEvaluator:
    """Factory function to create a WeeklyStreakEvaluator instance"""
    return WeeklyStreakEvaluator(log_store)
