"""Habit Stats Routes Module"""

from habitstats.routes import stats

__all__ = ["stats"]
