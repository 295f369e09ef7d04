"""
Habit Stats In-Memory Store
Log query port and habit provider backed by plain dictionaries.
Used for local runs (STORAGE_BACKEND=memory) and tests.
"""

from collections import defaultdict
from typing import AsyncIterator, Dict, Iterable, List, Optional

from loguru import logger

from habitstats.engines.calendar_engine import CalendarDate, parse_date
from habitstats.engines.log_query import DateRange, HabitProvider, LogQueryPort
from habitstats.models import Calendar, Habit, LogEntry, SortOrder


class InMemoryStore(LogQueryPort, HabitProvider):
    """Keeps habits and their logs in memory, one log per habit and day"""

    def __init__(self, habits: Iterable[Habit] = (), logs: Iterable[LogEntry] = ()):
        self.habits: Dict[str, Habit] = {}
        self.logs: Dict[str, Dict[str, LogEntry]] = defaultdict(dict)
        self.queries: List[str] = []
        for habit in habits:
            self.add_habit(habit)
        for log in logs:
            self.add_log(log)

    # ==========================================
    # Seeding
    # ==========================================

    def add_habit(self, habit: Habit) -> Habit:
        self.habits[habit.id] = habit
        return habit

    def add_log(self, log: LogEntry) -> LogEntry:
        """Insert or replace the habit's log for that day"""
        parse_date(log.date)
        self.logs[log.habit_id][log.date] = log
        return log

    def add_logs(self, habit_id: str, values: Dict[str, float]) -> None:
        for day, value in values.items():
            self.add_log(LogEntry(habit_id=habit_id, date=day, value=value))

    # ==========================================
    # Helpers
    # ==========================================

    def _entries(self, habit: Habit) -> List[tuple]:
        """(day, log) pairs of a habit, oldest first"""
        return sorted(
            ((parse_date(day), log) for day, log in self.logs.get(habit.id, {}).items()),
            key=lambda item: item[0].ordinal
        )

    def _record(self, query: str) -> None:
        self.queries.append(query)
        logger.debug(f"[MEMORY] {query}")

    # ==========================================
    # HabitProvider
    # ==========================================

    async def get_habit(self, habit_id: str) -> Optional[Habit]:
        self._record(f"get_habit {habit_id}")
        return self.habits.get(habit_id)

    # ==========================================
    # LogQueryPort
    # ==========================================

    async def count_qualifying(
        self,
        habit: Habit,
        date_range: Optional[DateRange],
        calendar: Calendar = Calendar.GREGORIAN
    ) -> int:
        self._record(f"count_qualifying {habit.id} {date_range and tuple(map(str, date_range))}")
        return sum(
            1 for day, log in self._entries(habit)
            if habit.qualifies(log.value)
            and (date_range is None or date_range.contains(day))
        )

    async def count_failing(self, habit: Habit, date_range: Optional[DateRange]) -> int:
        self._record(f"count_failing {habit.id}")
        return sum(
            1 for day, log in self._entries(habit)
            if not habit.qualifies(log.value)
            and (date_range is None or date_range.contains(day))
        )

    async def list_qualifying(
        self,
        habit: Habit,
        calendar: Calendar,
        max_date: CalendarDate,
        order: SortOrder = SortOrder.DESCENDING
    ) -> AsyncIterator[CalendarDate]:
        self._record(f"list_qualifying {habit.id} <= {max_date} {order.value}")
        entries = self._entries(habit)
        if order == SortOrder.DESCENDING:
            entries.reverse()
        for day, log in entries:
            if day <= max_date and habit.qualifies(log.value):
                yield day.convert(calendar)

    async def find_one(self, habit: Habit, day: CalendarDate) -> Optional[LogEntry]:
        self._record(f"find_one {habit.id} {day}")
        return self.logs.get(habit.id, {}).get(day.convert(Calendar.GREGORIAN).format())

    async def monthly_histogram(
        self,
        habit: Habit,
        calendar: Calendar = Calendar.GREGORIAN
    ) -> Dict[int, Dict[int, int]]:
        self._record(f"monthly_histogram {habit.id} {calendar.value}")
        histogram: Dict[int, Dict[int, int]] = defaultdict(lambda: defaultdict(int))
        for day, log in self._entries(habit):
            if habit.qualifies(log.value):
                local = day.convert(calendar)
                histogram[local.year][local.month] += 1
        return {year: dict(months) for year, months in histogram.items()}
