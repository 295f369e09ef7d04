"""
Habit Stats Window Aggregator
Completion counts for this week / month / year / lifetime and the
month-by-month completion histogram.
"""

import asyncio
from typing import Awaitable, Dict, List

from loguru import logger

from habitstats.engines.calendar_engine import CalendarDate, date_borders
from habitstats.engines.log_query import DateRange, LogQueryPort
from habitstats.models import Calendar, Habit, TimesCompleted


async def gather_all_or_nothing(*aws: Awaitable) -> List:
    """
    Run awaitables concurrently and return their results in order.

    If any of them fails (or the caller is cancelled) the others are
    cancelled and the first error propagates.
    """
    tasks = [asyncio.ensure_future(aw) for aw in aws]
    try:
        return await asyncio.gather(*tasks)
    except BaseException:
        for task in tasks:
            if not task.done():
                task.cancel()
        # Let cancelled siblings unwind before re-raising
        await asyncio.gather(*tasks, return_exceptions=True)
        raise


class WindowAggregator:
    """Fixed-window completion counts for a single habit"""

    def __init__(self, log_store: LogQueryPort):
        self.log_store = log_store

    async def times_completed(
        self,
        habit: Habit,
        calendar: Calendar,
        as_of: CalendarDate
    ) -> TimesCompleted:
        """
        Count qualifying logs in the week, month and year containing as_of,
        and over the habit's whole history.

        Args:
            habit: The habit to count for
            calendar: Calendar whose week/month/year boundaries apply
            as_of: Reference day (usually today)

        Returns:
            TimesCompleted with the four counts
        """
        reference = as_of.convert(calendar)
        borders = date_borders(reference)
        logger.debug(
            f"[STATS] times_completed: habit={habit.id}, calendar={calendar.value}, "
            f"as_of={reference}"
        )

        week, month, year, total = await gather_all_or_nothing(
            self.log_store.count_qualifying(
                habit, DateRange(borders["start_of_week"], borders["end_of_week"]), calendar
            ),
            self.log_store.count_qualifying(
                habit, DateRange(borders["start_of_month"], borders["end_of_month"]), calendar
            ),
            self.log_store.count_qualifying(
                habit, DateRange(borders["start_of_year"], borders["end_of_year"]), calendar
            ),
            self.log_store.count_qualifying(habit, None, calendar),
        )

        return TimesCompleted(this_week=week, this_month=month, this_year=year, all=total)

    async def times_completed_in_range(
        self,
        habit: Habit,
        start: CalendarDate,
        end: CalendarDate
    ) -> int:
        """Qualifying logs between start and end (Gregorian, inclusive)"""
        return await self.log_store.count_qualifying(
            habit, DateRange(start, end), Calendar.GREGORIAN
        )

    async def monthly_breakdown(
        self,
        habit: Habit,
        calendar: Calendar
    ) -> Dict[int, Dict[int, int]]:
        """Qualifying log counts per {year: {month: count}}; empty without logs"""
        histogram = await self.log_store.monthly_histogram(habit, calendar)
        if not histogram:
            return {}

        breakdown: Dict[int, Dict[int, int]] = {}
        for year in sorted(histogram):
            months = {month: count for month, count in sorted(histogram[year].items()) if count}
            if months:
                breakdown[year] = months
        return breakdown


def create_window_aggregator(log_store: LogQueryPort) -> WindowAggregator:
    """Factory function to create a WindowAggregator instance"""
    return WindowAggregator(log_store)
