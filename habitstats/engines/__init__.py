"""Habit Stats Engines Module - calendar arithmetic, windows and streaks"""

from habitstats.engines.calendar_engine import CalendarDate, parse_date, resolve_calendar
from habitstats.engines.log_query import DateRange, HabitProvider, LogQueryPort
from habitstats.engines.window_aggregator import WindowAggregator, create_window_aggregator
from habitstats.engines.daily_streak import DailyStreakEvaluator, create_daily_streak_evaluator
from habitstats.engines.weekly_streak import WeeklyStreakEvaluator, create_weekly_streak_evaluator
from habitstats.engines.stats_engine import StatsEngine, create_stats_engine

__all__ = [
    "CalendarDate",
    "parse_date",
    "resolve_calendar",
    "DateRange",
    "HabitProvider",
    "LogQueryPort",
    "WindowAggregator",
    "create_window_aggregator",
    "DailyStreakEvaluator",
    "create_daily_streak_evaluator",
    "WeeklyStreakEvaluator",
    "create_weekly_streak_evaluator",
    "StatsEngine",
    "create_stats_engine"
]
