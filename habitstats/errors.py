"""
Habit Stats Errors
Operational errors raised by the stats engine and mapped to HTTP by the routes
"""


class HabitStatsError(Exception):
    """Base class for operational errors surfaced to the caller"""

    code = "something_went_wrong"
    status_code = 500

    def __init__(self, message: str = None):
        super().__init__(message or self.code)
        self.message = message or self.code

    @property
    def status(self) -> str:
        return "fail" if str(self.status_code).startswith("4") else "error"


class InvalidDate(HabitStatsError):
    """Date string is malformed or does not denote a real calendar day"""

    code = "invalid_date"
    status_code = 400


class InvalidCalendar(HabitStatsError):
    """Calendar tag is not one of the supported calendars"""

    code = "invalid_calendar"
    status_code = 400


class HabitNotFound(HabitStatsError):
    code = "habit_not_found"
    status_code = 404


class QueryFailed(HabitStatsError):
    """The log store could not answer a query (unavailable, timeout, ...)"""

    code = "query_failed"
    status_code = 503
