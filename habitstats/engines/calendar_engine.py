"""
Habit Stats Calendar Engine
Date parsing, day arithmetic and week/month/year boundaries
for the Gregorian and Persian (Solar Hijri) calendars.

Every CalendarDate is an absolute day index (the proleptic Gregorian
ordinal) plus a calendar tag, so conversion between calendars never drifts.
"""

import calendar as gregorian_calendar
import re
from datetime import date
from functools import total_ordering
from typing import Callable, Dict, Iterable, Optional, Tuple, Union

from habitstats.errors import InvalidCalendar, InvalidDate
from habitstats.models import Calendar


DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")

# Sunday-first numbering: index == ordinal % 7
WEEKDAY_NAMES = ("Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat")

CALENDAR_ALIASES = {
    "gregorian": Calendar.GREGORIAN,
    "persian": Calendar.PERSIAN,
    "alternate": Calendar.PERSIAN,
}

MIN_ORDINAL = date.min.toordinal()
MAX_ORDINAL = date.max.toordinal()


class GregorianSystem:
    """Gregorian month/year rules, delegated to the datetime module"""

    name = Calendar.GREGORIAN
    week_start = 0  # Sunday

    def is_valid(self, year: int, month: int, day: int) -> bool:
        try:
            date(year, month, day)
        except ValueError:
            return False
        return True

    def month_length(self, year: int, month: int) -> int:
        return gregorian_calendar.monthrange(year, month)[1]

    def to_ordinal(self, year: int, month: int, day: int) -> int:
        return date(year, month, day).toordinal()

    def from_ordinal(self, ordinal: int) -> Tuple[int, int, int]:
        value = date.fromordinal(ordinal)
        return value.year, value.month, value.day


class PersianSystem:
    """
    Solar Hijri calendar using the 33-year arithmetic leap cycle.

    Months 1-6 have 31 days, months 7-11 have 30 days, month 12 has 29
    days (30 in leap years). A year is leap when its remainder mod 33 is
    one of LEAP_REMAINDERS. Anchored on 1 Farvardin 1403 == 2024-03-20.
    """

    name = Calendar.PERSIAN
    week_start = 0  # Sunday

    LEAP_REMAINDERS = (1, 5, 9, 13, 17, 22, 26, 30)
    CYCLE_YEARS = 33
    CYCLE_DAYS = 33 * 365 + 8

    def __init__(self):
        self.epoch = date(2024, 3, 20).toordinal() - self._days_before_year(1403)

    def is_leap(self, year: int) -> bool:
        return year % self.CYCLE_YEARS in self.LEAP_REMAINDERS

    def _days_before_year(self, year: int) -> int:
        full_cycles, remainder = divmod(year - 1, self.CYCLE_YEARS)
        leaps = full_cycles * len(self.LEAP_REMAINDERS)
        leaps += sum(1 for r in self.LEAP_REMAINDERS if r <= remainder)
        return 365 * (year - 1) + leaps

    def _days_before_month(self, month: int) -> int:
        if month <= 7:
            return 31 * (month - 1)
        return 186 + 30 * (month - 7)

    def month_length(self, year: int, month: int) -> int:
        if month <= 6:
            return 31
        if month <= 11:
            return 30
        return 30 if self.is_leap(year) else 29

    def is_valid(self, year: int, month: int, day: int) -> bool:
        if year < 1 or not 1 <= month <= 12:
            return False
        if not 1 <= day <= self.month_length(year, month):
            return False
        return MIN_ORDINAL <= self.to_ordinal(year, month, day) <= MAX_ORDINAL

    def to_ordinal(self, year: int, month: int, day: int) -> int:
        return (
            self.epoch
            + self._days_before_year(year)
            + self._days_before_month(month)
            + day - 1
        )

    def from_ordinal(self, ordinal: int) -> Tuple[int, int, int]:
        days = ordinal - self.epoch
        year = days * self.CYCLE_YEARS // self.CYCLE_DAYS + 1
        while days < self._days_before_year(year):
            year -= 1
        while days >= self._days_before_year(year + 1):
            year += 1

        day_of_year = days - self._days_before_year(year)
        if day_of_year < 186:
            return year, day_of_year // 31 + 1, day_of_year % 31 + 1
        day_of_year -= 186
        return year, day_of_year // 30 + 7, day_of_year % 30 + 1


CALENDAR_SYSTEMS = {
    Calendar.GREGORIAN: GregorianSystem(),
    Calendar.PERSIAN: PersianSystem(),
}


def resolve_calendar(tag: Union[str, Calendar, None]) -> Calendar:
    """
    Map a calendar tag to a supported Calendar.

    Raises:
        InvalidCalendar: if the tag is unknown
    """
    if isinstance(tag, Calendar):
        return tag
    if tag is None:
        return Calendar.GREGORIAN
    try:
        return CALENDAR_ALIASES[tag]
    except (KeyError, TypeError):
        raise InvalidCalendar(f"Unknown calendar: {tag!r}") from None


@total_ordering
class CalendarDate:
    """A single day, rendered in one calendar"""

    __slots__ = ("ordinal", "calendar", "year", "month", "day")

    def __init__(self, ordinal: int, calendar: Calendar = Calendar.GREGORIAN):
        if not MIN_ORDINAL <= ordinal <= MAX_ORDINAL:
            raise InvalidDate(f"Day index out of range: {ordinal}")
        self.ordinal = ordinal
        self.calendar = calendar
        self.year, self.month, self.day = CALENDAR_SYSTEMS[calendar].from_ordinal(ordinal)

    @classmethod
    def from_parts(cls, year: int, month: int, day: int,
                   calendar: Calendar = Calendar.GREGORIAN) -> "CalendarDate":
        return cls(CALENDAR_SYSTEMS[calendar].to_ordinal(year, month, day), calendar)

    @classmethod
    def from_date(cls, value: date, calendar: Calendar = Calendar.GREGORIAN) -> "CalendarDate":
        return cls(value.toordinal(), calendar)

    @property
    def system(self):
        return CALENDAR_SYSTEMS[self.calendar]

    @property
    def weekday_index(self) -> int:
        return self.ordinal % 7

    @property
    def weekday(self) -> str:
        return WEEKDAY_NAMES[self.weekday_index]

    # Arithmetic

    def add_days(self, days: int) -> "CalendarDate":
        return CalendarDate(self.ordinal + days, self.calendar)

    def subtract_days(self, days: int) -> "CalendarDate":
        return CalendarDate(self.ordinal - days, self.calendar)

    def first_of_week(self) -> "CalendarDate":
        offset = (self.weekday_index - self.system.week_start) % 7
        return self.subtract_days(offset)

    def last_of_week(self) -> "CalendarDate":
        return self.first_of_week().add_days(6)

    def first_of_month(self) -> "CalendarDate":
        return CalendarDate.from_parts(self.year, self.month, 1, self.calendar)

    def last_of_month(self) -> "CalendarDate":
        last_day = self.system.month_length(self.year, self.month)
        return CalendarDate.from_parts(self.year, self.month, last_day, self.calendar)

    def first_of_year(self) -> "CalendarDate":
        return CalendarDate.from_parts(self.year, 1, 1, self.calendar)

    def last_of_year(self) -> "CalendarDate":
        return CalendarDate.from_parts(
            self.year, 12, self.system.month_length(self.year, 12), self.calendar
        )

    # Conversion & rendering

    def convert(self, calendar: Calendar) -> "CalendarDate":
        if calendar == self.calendar:
            return self
        return CalendarDate(self.ordinal, calendar)

    def to_date(self) -> date:
        return date.fromordinal(self.ordinal)

    def format(self) -> str:
        return f"{self.year:04d}-{self.month:02d}-{self.day:02d}"

    def __str__(self) -> str:
        return self.format()

    def __repr__(self) -> str:
        return f"CalendarDate({self.format()!r}, {self.calendar.value})"

    # Ordering is by absolute day only

    def __eq__(self, other) -> bool:
        if not isinstance(other, CalendarDate):
            return NotImplemented
        return self.ordinal == other.ordinal

    def __lt__(self, other) -> bool:
        if not isinstance(other, CalendarDate):
            return NotImplemented
        return self.ordinal < other.ordinal

    def __hash__(self) -> int:
        return hash(self.ordinal)


# ==========================================
# Module-level helpers
# ==========================================

def is_valid_date(text: str, calendar: Calendar = Calendar.GREGORIAN) -> bool:
    """Check that text is YYYY-MM-DD and names a real day in the calendar"""
    if not isinstance(text, str) or not DATE_PATTERN.match(text):
        return False
    year, month, day = (int(part) for part in text.split("-"))
    return CALENDAR_SYSTEMS[calendar].is_valid(year, month, day)


def parse_date(text: str, calendar: Calendar = Calendar.GREGORIAN) -> CalendarDate:
    """
    Parse a YYYY-MM-DD string in the given calendar.

    Raises:
        InvalidDate: on a malformed string or a day that does not exist
    """
    if not is_valid_date(text, calendar):
        raise InvalidDate(f"Invalid {calendar.value} date: {text!r}")
    year, month, day = (int(part) for part in text.split("-"))
    return CalendarDate.from_parts(year, month, day, calendar)


def compare(a: CalendarDate, b: CalendarDate) -> int:
    """-1 if a is before b, 0 if the same day, 1 if after"""
    if a.ordinal < b.ordinal:
        return -1
    if a.ordinal > b.ordinal:
        return 1
    return 0


def weekday_of(value: CalendarDate) -> str:
    return value.weekday


def convert(value: CalendarDate, calendar: Union[str, Calendar]) -> CalendarDate:
    return value.convert(resolve_calendar(calendar))


def today(calendar: Calendar = Calendar.GREGORIAN,
          clock: Optional[Callable[[], date]] = None) -> CalendarDate:
    """Current day in the given calendar; clock defaults to date.today"""
    return CalendarDate.from_date((clock or date.today)(), calendar)


def date_borders(value: CalendarDate) -> Dict[str, CalendarDate]:
    """Start and end of the week, month and year containing value"""
    return {
        "start_of_week": value.first_of_week(),
        "end_of_week": value.last_of_week(),
        "start_of_month": value.first_of_month(),
        "end_of_month": value.last_of_month(),
        "start_of_year": value.first_of_year(),
        "end_of_year": value.last_of_year(),
    }


def days_between(start: CalendarDate, end: CalendarDate) -> int:
    """Number of days from start to end, both included (0 if end < start)"""
    return max(0, end.ordinal - start.ordinal + 1)


def weekdays_between(start: CalendarDate, end: CalendarDate, weekdays: Iterable[str]) -> int:
    """
    Count the days from start to end (inclusive) falling on the given weekdays.

    Args:
        start: First day of the range
        end: Last day of the range
        weekdays: Short weekday names, e.g. ["Sun", "Wed"]

    Returns:
        Number of matching days
    """
    targets = {WEEKDAY_NAMES.index(day) for day in weekdays}
    total_days = days_between(start, end)

    full_weeks, remaining_days = divmod(total_days, 7)
    count = full_weeks * len(targets)

    first_index = start.weekday_index
    for i in range(remaining_days):
        if (first_index + i) % 7 in targets:
            count += 1

    return count


def weeks_between(start: CalendarDate, end: CalendarDate) -> int:
    """Calendar weeks from the week containing start to the week containing end"""
    if end < start:
        return 0
    first = start.first_of_week()
    last = end.last_of_week()
    return (last.ordinal - first.ordinal + 1) // 7
