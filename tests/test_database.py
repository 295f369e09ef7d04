"""
Habit Stats Database Tests
Supabase-backed queries against a mocked client
"""

import asyncio
import threading
import time
import pytest
from unittest.mock import MagicMock

from habitstats.database import Database
from habitstats.engines.stats_engine import StatsEngine
from habitstats.engines.calendar_engine import parse_date
from habitstats.engines.log_query import DateRange
from habitstats.errors import QueryFailed
from habitstats.models import Calendar, SortOrder

from conftest import make_habit, numeric_goal


BUILDER_METHODS = ("select", "eq", "neq", "gte", "lte", "lt", "order", "range")


def mock_query(*results):
    """Chainable query builder whose execute() returns the given results in turn"""
    query = MagicMock()
    for name in BUILDER_METHODS:
        getattr(query, name).return_value = query
    query.execute.side_effect = list(results)
    client = MagicMock()
    client.table.return_value = query
    return client, query


def result(data=None, count=None):
    return MagicMock(data=data or [], count=count)


class TestHabits:
    """Tests for Database.get_habit"""

    async def test_found(self):
        """Should build a habit from the row"""
        client, query = mock_query(result([{
            "id": "h1", "type": "boolean", "frequency": "every-day", "start_date": "2024-01-01",
        }]))
        habit = await Database(client=client, page_size=10).get_habit("h1")

        client.table.assert_called_with("habits")
        query.eq.assert_called_with("id", "h1")
        assert habit.id == "h1"

    async def test_missing(self):
        """Should return None for an unknown habit"""
        client, _ = mock_query(result([]))
        assert await Database(client=client, page_size=10).get_habit("nope") is None


class TestCounts:
    """Tests for count queries"""

    async def test_count_qualifying_at_least(self):
        """Should filter with gte on value and the calendar's date column"""
        client, query = mock_query(result(count=3))
        habit = make_habit(goal=numeric_goal(8))
        date_range = DateRange(parse_date("1402-10-01", Calendar.PERSIAN), parse_date("1402-10-30", Calendar.PERSIAN))

        count = await Database(client=client, page_size=10).count_qualifying(habit, date_range, Calendar.PERSIAN)

        assert count == 3
        query.select.assert_called_with("id", count="exact")
        query.gte.assert_any_call("value", 8)
        query.gte.assert_any_call("date_persian", "1402-10-01")
        query.lte.assert_called_with("date_persian", "1402-10-30")

    async def test_count_qualifying_exact(self):
        """Should filter with eq on value for exact goals"""
        client, query = mock_query(result(count=0))
        habit = make_habit(goal=numeric_goal(5, comparison="exactly"))

        count = await Database(client=client, page_size=10).count_qualifying(habit, None)

        assert count == 0
        query.eq.assert_any_call("value", 5)
        query.lte.assert_not_called()

    async def test_count_failing(self):
        """Should filter with lt on value"""
        client, query = mock_query(result(count=2))
        habit = make_habit()

        count = await Database(client=client, page_size=10).count_failing(habit, None)

        assert count == 2
        query.lt.assert_called_with("value", 1)

    async def test_failure(self):
        """Should raise QueryFailed when the client errors"""
        client, query = mock_query()
        query.execute.side_effect = ConnectionError("unreachable")

        with pytest.raises(QueryFailed):
            await Database(client=client, page_size=10).count_qualifying(make_habit(), None)


class TestListing:
    """Tests for paged listing"""

    async def test_pages_until_short_page(self):
        """Should keep paging until a page comes back short"""
        client, query = mock_query(
            result([{"date": "2024-01-05"}, {"date": "2024-01-04"}]),
            result([{"date": "2024-01-02"}]),
        )
        database = Database(client=client, page_size=2)

        dates = [
            day.format() async for day in database.list_qualifying(
                make_habit(), Calendar.GREGORIAN, parse_date("2024-01-05"), SortOrder.DESCENDING
            )
        ]

        assert dates == ["2024-01-05", "2024-01-04", "2024-01-02"]
        query.range.assert_any_call(0, 1)
        query.range.assert_any_call(2, 3)
        query.order.assert_called_with("date", desc=True)

    async def test_persian_column(self):
        """Should read Persian dates from the Persian column"""
        client, query = mock_query(result([{"date_persian": "1402-10-11"}]))
        database = Database(client=client, page_size=10)

        dates = [
            day async for day in database.list_qualifying(
                make_habit(), Calendar.PERSIAN, parse_date("2024-01-05"), SortOrder.ASCENDING
            )
        ]

        assert dates == [parse_date("2024-01-01")]
        assert dates[0].calendar == Calendar.PERSIAN
        query.lte.assert_called_with("date_persian", "1402-10-15")

    async def test_histogram(self):
        """Should group rows by year and month"""
        client, _ = mock_query(result([{"date": "2023-12-30"}, {"date": "2024-01-02"}, {"date": "2024-01-03"}]))
        histogram = await Database(client=client, page_size=10).monthly_histogram(make_habit())
        assert histogram == {2023: {12: 1}, 2024: {1: 2}}

    async def test_find_one(self):
        """Should return the day's log"""
        client, query = mock_query(result([{"habit_id": "habit-1", "date": "2024-01-05", "value": 3}]))
        log = await Database(client=client, page_size=10).find_one(make_habit(), parse_date("2024-01-05"))

        query.eq.assert_called_with("date", "2024-01-05")
        assert log.value == 3


class RowsQuery:
    """Query builder answering habit lookups by id and empty log queries"""

    def __init__(self, rows):
        self.rows = rows
        self.filters = {}

    def select(self, *args, **kwargs):
        return self

    def eq(self, column, value):
        self.filters[column] = value
        return self

    def neq(self, *args):
        return self

    def gte(self, *args):
        return self

    def lte(self, *args):
        return self

    def lt(self, *args):
        return self

    def order(self, *args, **kwargs):
        return self

    def range(self, *args):
        return self

    def execute(self):
        if "id" in self.filters:
            row = self.rows.get(self.filters["id"])
            return result([row] if row else [])
        return result([], count=0)


class RowsClient:
    def __init__(self, habits):
        self.habits = habits

    def table(self, name):
        return RowsQuery(self.habits if name == "habits" else {})


class TestMalformedRows:
    """Tests for stored rows the models cannot read"""

    async def test_bad_habit_row(self):
        """Should report a habit row with invalid columns as a query failure"""
        client, _ = mock_query(result([{
            "id": "h1", "type": "boolean", "frequency": "days-per-week",
            "days_per_week": 7, "start_date": "2024-01-01",
        }]))

        with pytest.raises(QueryFailed):
            await Database(client=client, page_size=10).get_habit("h1")

    async def test_null_persian_date_in_listing(self):
        """Should report a log without a Persian date as a query failure"""
        client, _ = mock_query(result([{"date_persian": None}]))
        database = Database(client=client, page_size=10)

        with pytest.raises(QueryFailed):
            async for _ in database.list_qualifying(
                make_habit(), Calendar.PERSIAN, parse_date("2024-01-05"), SortOrder.DESCENDING
            ):
                pass

    async def test_null_date_in_histogram(self):
        """Should report a log without a date as a query failure"""
        client, _ = mock_query(result([{"date_persian": None}]))

        with pytest.raises(QueryFailed):
            await Database(client=client, page_size=10).monthly_histogram(make_habit(), Calendar.PERSIAN)

    async def test_bad_row_does_not_abort_batch(self, clock):
        """Should keep the other habits' stats when one stored habit is malformed"""
        database = Database(client=RowsClient({
            "a": {"id": "a", "type": "boolean", "frequency": "every-day", "start_date": "2024-01-01"},
            "b": {"id": "b", "type": "boolean", "frequency": "days-per-week",
                  "days_per_week": 7, "start_date": "2024-01-01"},
        }), page_size=10)
        engine = StatsEngine(database, database, clock=clock)

        results = await engine.get_stats_for_habits(["a", "b"], "gregorian", "2024-01-05")

        assert results["a"].error is None
        assert results["a"].stats.total == 5
        assert results["b"].error == "query_failed"


class TestConcurrency:
    """Tests for overlapping queries on the blocking client"""

    async def test_window_counts_overlap(self):
        """Should run concurrent counts in parallel instead of one after another"""
        lock = threading.Lock()
        state = {"active": 0, "peak": 0}

        def slow_execute():
            with lock:
                state["active"] += 1
                state["peak"] = max(state["peak"], state["active"])
            time.sleep(0.05)
            with lock:
                state["active"] -= 1
            return result(count=1)

        client, query = mock_query()
        query.execute.side_effect = slow_execute
        database = Database(client=client, page_size=10)
        habit = make_habit()

        counts = await asyncio.gather(*(database.count_qualifying(habit, None) for _ in range(4)))

        assert counts == [1, 1, 1, 1]
        assert state["peak"] > 1
