"""
Habit Stats Log Query Port
Read-only contract the stats engine uses to reach the log store.
Implemented by the persistence layer (see habitstats.database and
habitstats.memory_store).
"""

from abc import ABC, abstractmethod
from typing import AsyncIterator, Dict, NamedTuple, Optional

from habitstats.engines.calendar_engine import CalendarDate
from habitstats.models import Calendar, Habit, LogEntry, SortOrder


class DateRange(NamedTuple):
    """Inclusive day range; both ends share one calendar"""
    start: CalendarDate
    end: CalendarDate

    def contains(self, value: CalendarDate) -> bool:
        return self.start <= value <= self.end


class LogQueryPort(ABC):
    """
    Queries over one habit's logs.

    Every method is a pure read. Storage failures must be raised as
    habitstats.errors.QueryFailed; implementations do not retry on behalf
    of the engine.
    """

    @abstractmethod
    async def count_qualifying(
        self,
        habit: Habit,
        date_range: Optional[DateRange],
        calendar: Calendar = Calendar.GREGORIAN
    ) -> int:
        """Count logs in the range (or all logs) that meet the habit's goal"""

    @abstractmethod
    async def count_failing(
        self,
        habit: Habit,
        date_range: Optional[DateRange]
    ) -> int:
        """Count logs in the range (or all logs) that miss the habit's goal"""

    @abstractmethod
    def list_qualifying(
        self,
        habit: Habit,
        calendar: Calendar,
        max_date: CalendarDate,
        order: SortOrder = SortOrder.DESCENDING
    ) -> AsyncIterator[CalendarDate]:
        """
        Yield the dates of qualifying logs up to max_date, sorted by date.

        Args:
            habit: Habit whose logs are read
            calendar: Calendar the yielded dates are rendered in
            max_date: Last day included
            order: Ascending (old to new) or descending (new to old)

        Returns:
            Async iterator of CalendarDate; calling again restarts the scan
        """

    @abstractmethod
    async def find_one(self, habit: Habit, day: CalendarDate) -> Optional[LogEntry]:
        """Get the habit's log for a specific day, if any"""

    @abstractmethod
    async def monthly_histogram(
        self,
        habit: Habit,
        calendar: Calendar = Calendar.GREGORIAN
    ) -> Dict[int, Dict[int, int]]:
        """Qualifying log counts grouped as {year: {month: count}}"""


class HabitProvider(ABC):
    """Source of habit snapshots"""

    @abstractmethod
    async def get_habit(self, habit_id: str) -> Optional[Habit]:
        """Get a habit by id, or None if it does not exist"""
