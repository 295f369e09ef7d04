"""
Habit Stats Database Module
Supabase client initialization and the read-only log/habit queries
the stats engine runs against the `habits` and `logs` tables.
"""

import asyncio
from collections import defaultdict
from typing import AsyncIterator, Dict, Optional
from supabase import create_client, Client
from loguru import logger

from habitstats.config import get_settings
from habitstats.engines.calendar_engine import CalendarDate, parse_date
from habitstats.engines.log_query import DateRange, HabitProvider, LogQueryPort
from habitstats.errors import InvalidDate, QueryFailed
from habitstats.models import (
    Calendar,
    GoalComparison,
    Habit,
    LogEntry,
    NumericGoal,
    SortOrder,
)

_supabase_client: Optional[Client] = None
_supabase_admin_client: Optional[Client] = None

# Column holding a log's date rendered in each calendar
DATE_COLUMNS = {
    Calendar.GREGORIAN: "date",
    Calendar.PERSIAN: "date_persian",
}


def init_supabase() -> None:
    """Initialize Supabase clients"""
    global _supabase_client, _supabase_admin_client

    settings = get_settings()

    # Regular client with anon key (respects RLS)
    _supabase_client = create_client(
        settings.supabase_url,
        settings.supabase_anon_key
    )

    # Admin client with service role key (bypasses RLS)
    _supabase_admin_client = create_client(
        settings.supabase_url,
        settings.supabase_service_key
    )

    logger.info("Supabase clients initialized successfully")


def get_supabase() -> Client:
    """Get the regular Supabase client (with RLS)"""
    if _supabase_client is None:
        init_supabase()
    return _supabase_client


def get_supabase_admin() -> Client:
    """Get the admin Supabase client (bypasses RLS)"""
    if _supabase_admin_client is None:
        init_supabase()
    return _supabase_admin_client


class Database(LogQueryPort, HabitProvider):
    """Read-only habit and log queries on Supabase"""

    def __init__(self, use_admin: bool = False, client: Optional[Client] = None, page_size: Optional[int] = None):
        if client is None:
            client = get_supabase_admin() if use_admin else get_supabase()
        self.client = client
        self.use_admin = use_admin
        self.page_size = page_size or get_settings().log_page_size
        logger.debug(f"[DB] Database instance created (admin: {use_admin})")

    # ==========================================
    # Query helpers
    # ==========================================

    async def _execute(self, query):
        """Run a blocking query in a worker thread so concurrent queries overlap"""
        return await asyncio.to_thread(query.execute)

    def _qualifying(self, query, habit: Habit, qualifying: bool = True):
        """Restrict a logs query to values that meet (or miss) the habit's goal"""
        goal = habit.goal
        if isinstance(goal, NumericGoal) and goal.comparison == GoalComparison.EXACTLY:
            return query.eq("value", goal.daily_goal) if qualifying else query.neq("value", goal.daily_goal)
        return query.gte("value", goal.daily_goal) if qualifying else query.lt("value", goal.daily_goal)

    def _in_range(self, query, date_range: Optional[DateRange], column: str):
        if date_range is None:
            return query
        return query.gte(column, date_range.start.format()).lte(column, date_range.end.format())

    def _row_date(self, row: Dict, column: str, calendar: Calendar, habit: Habit) -> CalendarDate:
        """Parse a stored log date; a missing or malformed value is a storage fault"""
        try:
            return parse_date(row[column], calendar)
        except (KeyError, InvalidDate) as e:
            logger.error(f"[DB] Malformed {column} on a log of habit {habit.id}: {row.get(column)!r}")
            raise QueryFailed(f"Malformed log row for habit {habit.id}") from e

    # ==========================================
    # Habits
    # ==========================================

    async def get_habit(self, habit_id: str) -> Optional[Habit]:
        """Get a habit snapshot by ID"""
        logger.debug(f"[DB] get_habit: {habit_id}")
        try:
            result = await self._execute(
                self.client.table("habits").select("*").eq("id", habit_id)
            )
        except Exception as e:
            logger.error(f"[DB] Error getting habit {habit_id}: {e}")
            raise QueryFailed(f"Error getting habit {habit_id}") from e
        if not result.data:
            logger.debug(f"[DB] No habit found for id: {habit_id}")
            return None

        try:
            return Habit.from_record(result.data[0])
        except (KeyError, TypeError, ValueError) as e:
            logger.error(f"[DB] Malformed habit row {habit_id}: {e}")
            raise QueryFailed(f"Malformed habit row {habit_id}") from e

    # ==========================================
    # Logs
    # ==========================================

    async def count_qualifying(
        self,
        habit: Habit,
        date_range: Optional[DateRange],
        calendar: Calendar = Calendar.GREGORIAN
    ) -> int:
        """Count logs meeting the goal, with dates read in the calendar's column"""
        column = DATE_COLUMNS[calendar]
        logger.debug(f"[DB] count_qualifying: habit_id={habit.id}, {column} in {date_range and tuple(map(str, date_range))}")
        try:
            query = self.client.table("logs").select("id", count="exact").eq("habit_id", habit.id)
            query = self._in_range(self._qualifying(query, habit), date_range, column)
            result = await self._execute(query)
        except Exception as e:
            logger.error(f"[DB] Error counting qualifying logs for {habit.id}: {e}")
            raise QueryFailed(f"Error counting logs of habit {habit.id}") from e
        return result.count or 0

    async def count_failing(self, habit: Habit, date_range: Optional[DateRange]) -> int:
        """Count logs missing the goal"""
        logger.debug(f"[DB] count_failing: habit_id={habit.id}")
        try:
            query = self.client.table("logs").select("id", count="exact").eq("habit_id", habit.id)
            query = self._in_range(self._qualifying(query, habit, qualifying=False), date_range, "date")
            result = await self._execute(query)
        except Exception as e:
            logger.error(f"[DB] Error counting failing logs for {habit.id}: {e}")
            raise QueryFailed(f"Error counting logs of habit {habit.id}") from e
        return result.count or 0

    async def list_qualifying(
        self,
        habit: Habit,
        calendar: Calendar,
        max_date: CalendarDate,
        order: SortOrder = SortOrder.DESCENDING
    ) -> AsyncIterator[CalendarDate]:
        """Page through qualifying log dates up to max_date"""
        column = DATE_COLUMNS[calendar]
        bound = max_date.convert(calendar).format()
        logger.debug(f"[DB] list_qualifying: habit_id={habit.id}, {column} <= {bound}, order={order.value}")

        offset = 0
        while True:
            try:
                query = self.client.table("logs").select(column).eq("habit_id", habit.id)
                query = (
                    self._qualifying(query, habit).lte(column, bound)
                    .order(column, desc=order == SortOrder.DESCENDING)
                    .range(offset, offset + self.page_size - 1)
                )
                result = await self._execute(query)
            except Exception as e:
                logger.error(f"[DB] Error listing logs for {habit.id} at offset {offset}: {e}")
                raise QueryFailed(f"Error listing logs of habit {habit.id}") from e

            rows = result.data or []
            for row in rows:
                yield self._row_date(row, column, calendar, habit)
            if len(rows) < self.page_size:
                break
            offset += self.page_size

    async def find_one(self, habit: Habit, day: CalendarDate) -> Optional[LogEntry]:
        """Get the habit's log for a specific day"""
        day_str = day.convert(Calendar.GREGORIAN).format()
        logger.debug(f"[DB] find_one: habit_id={habit.id}, date={day_str}")
        try:
            result = await self._execute(
                self.client.table("logs").select("habit_id,date,value").eq("habit_id", habit.id).eq("date", day_str)
            )
        except Exception as e:
            logger.error(f"[DB] Error getting log of {habit.id} on {day_str}: {e}")
            raise QueryFailed(f"Error getting log of habit {habit.id}") from e
        if not result.data:
            return None

        row = result.data[0]
        try:
            return LogEntry(habit_id=str(row["habit_id"]), date=row["date"], value=row["value"])
        except (KeyError, TypeError, ValueError) as e:
            logger.error(f"[DB] Malformed log row of {habit.id} on {day_str}: {e}")
            raise QueryFailed(f"Malformed log row for habit {habit.id}") from e

    async def monthly_histogram(
        self,
        habit: Habit,
        calendar: Calendar = Calendar.GREGORIAN
    ) -> Dict[int, Dict[int, int]]:
        """Group qualifying logs by year and month of the calendar's date column"""
        column = DATE_COLUMNS[calendar]
        logger.debug(f"[DB] monthly_histogram: habit_id={habit.id}, column={column}")
        histogram: Dict[int, Dict[int, int]] = defaultdict(lambda: defaultdict(int))

        offset = 0
        while True:
            try:
                query = self._qualifying(
                    self.client.table("logs").select(column).eq("habit_id", habit.id), habit
                )
                result = await self._execute(query.order(column).range(offset, offset + self.page_size - 1))
            except Exception as e:
                logger.error(f"[DB] Error building histogram for {habit.id}: {e}")
                raise QueryFailed(f"Error grouping logs of habit {habit.id}") from e

            rows = result.data or []
            for row in rows:
                day = self._row_date(row, column, calendar, habit)
                histogram[day.year][day.month] += 1
            if len(rows) < self.page_size:
                break
            offset += self.page_size

        logger.debug(f"[DB] Histogram covers {len(histogram)} years")
        return {year: dict(months) for year, months in histogram.items()}
