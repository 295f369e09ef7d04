"""
Habit Stats Pydantic Models
Habit snapshots, log entries and the stats report returned to callers
"""

from datetime import date
from enum import Enum
from typing import Optional, List, Dict, Any, Union, Literal, Annotated
from pydantic import BaseModel, Field, validator
from pydantic.alias_generators import to_camel


# ==========================================
# ENUMS
# ==========================================

class Calendar(str, Enum):
    GREGORIAN = "gregorian"
    PERSIAN = "persian"


class GoalType(str, Enum):
    BOOLEAN = "boolean"
    NUMERIC = "numeric"


class GoalComparison(str, Enum):
    AT_LEAST = "at-least"
    EXACTLY = "exactly"


class FrequencyType(str, Enum):
    EVERY_DAY = "every-day"
    DAYS_PER_WEEK = "days-per-week"
    SPECIFIC_WEEKDAYS = "specific-days-of-week"


class Weekday(str, Enum):
    SUN = "Sun"
    MON = "Mon"
    TUE = "Tue"
    WED = "Wed"
    THU = "Thu"
    FRI = "Fri"
    SAT = "Sat"


class SortOrder(str, Enum):
    ASCENDING = "asc"
    DESCENDING = "desc"


class StatsType(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"


# ==========================================
# GOAL MODELS
# ==========================================

class BooleanGoal(BaseModel):
    """Done / not done. A log qualifies with any value of at least 1"""
    type: Literal["boolean"] = "boolean"

    @property
    def daily_goal(self) -> int:
        return 1

    def qualifies(self, value: float) -> bool:
        return value >= 1


class NumericGoal(BaseModel):
    """Daily quantity goal, e.g. 8 glasses of water"""
    type: Literal["numeric"] = "numeric"
    daily_goal: int = Field(ge=1)
    comparison: GoalComparison = GoalComparison.AT_LEAST
    unit: str = ""

    def qualifies(self, value: float) -> bool:
        if self.comparison == GoalComparison.EXACTLY:
            return value == self.daily_goal
        return value >= self.daily_goal


Goal = Annotated[Union[BooleanGoal, NumericGoal], Field(discriminator="type")]


# ==========================================
# FREQUENCY MODELS
# ==========================================

class EveryDay(BaseModel):
    kind: Literal["every-day"] = "every-day"


class DaysPerWeek(BaseModel):
    kind: Literal["days-per-week"] = "days-per-week"
    days_per_week: int = Field(ge=1, le=6)


class SpecificWeekdays(BaseModel):
    kind: Literal["specific-days-of-week"] = "specific-days-of-week"
    weekdays: List[Weekday] = Field(min_length=1, max_length=6)

    @validator('weekdays')
    def validate_unique_weekdays(cls, v):
        if len(set(v)) != len(v):
            raise ValueError('weekdays has duplicate values')
        return v

    @property
    def weekday_names(self) -> frozenset:
        return frozenset(day.value for day in self.weekdays)


Frequency = Annotated[
    Union[EveryDay, DaysPerWeek, SpecificWeekdays],
    Field(discriminator="kind")
]


# ==========================================
# HABIT & LOG MODELS
# ==========================================

class Habit(BaseModel):
    """Read-only habit snapshot consumed by the stats engine"""
    id: str
    name: Optional[str] = None
    goal: Goal = Field(default_factory=BooleanGoal)
    frequency: Frequency = Field(default_factory=EveryDay)
    start_date: date
    end_date: Optional[date] = None

    @validator('end_date')
    def validate_date_range(cls, v, values):
        if v is not None and 'start_date' in values and v < values['start_date']:
            raise ValueError('end_date must not be before start_date')
        return v

    @property
    def goal_type(self) -> GoalType:
        return GoalType(self.goal.type)

    @property
    def is_numeric(self) -> bool:
        return self.goal_type == GoalType.NUMERIC

    @property
    def unit(self) -> Optional[str]:
        return self.goal.unit if self.is_numeric else None

    @property
    def frequency_type(self) -> FrequencyType:
        return FrequencyType(self.frequency.kind)

    @property
    def is_weekly(self) -> bool:
        return self.frequency_type == FrequencyType.DAYS_PER_WEEK

    def qualifies(self, value: float) -> bool:
        """Whether a log value meets this habit's daily goal"""
        return self.goal.qualifies(value)

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "Habit":
        """
        Build a habit from a flat storage row.

        Rows keep every goal and frequency column side by side; only the
        columns matching `type` and `frequency` are read.
        """
        if record.get("type") == GoalType.NUMERIC.value:
            goal = NumericGoal(
                daily_goal=record["goal_number"],
                comparison=record.get("goal_measure") or GoalComparison.AT_LEAST,
                unit=record.get("goal_unit") or ""
            )
        else:
            goal = BooleanGoal()

        kind = record.get("frequency", FrequencyType.EVERY_DAY.value)
        if kind == FrequencyType.DAYS_PER_WEEK.value:
            frequency = DaysPerWeek(days_per_week=record["days_per_week"])
        elif kind == FrequencyType.SPECIFIC_WEEKDAYS.value:
            frequency = SpecificWeekdays(weekdays=record["days_of_week"])
        else:
            frequency = EveryDay()

        return cls(
            id=str(record["id"]),
            name=record.get("name"),
            goal=goal,
            frequency=frequency,
            start_date=record["start_date"],
            end_date=record.get("end_date")
        )


class LogEntry(BaseModel):
    """One day's recorded value for a habit"""
    habit_id: str
    date: str
    value: float = Field(ge=0)


# ==========================================
# STATS MODELS
# ==========================================

class TimesCompleted(BaseModel):
    """Qualifying log counts over fixed calendar windows"""
    this_week: int = 0
    this_month: int = 0
    this_year: int = 0
    all: int = 0


class DailyStats(BaseModel):
    streak: int = 0
    best_streak: int = 0
    success: int = 0
    fail: int = 0
    pending: int = 0
    total: int = 0
    habit_score: int = 0


class WeeklyStats(BaseModel):
    streak: int = 0
    best_streak: int = 0
    complete_weeks: int = 0
    incomplete_weeks: int = 0
    total_weeks: int = 0
    habit_score: int = 0
    # Last day of every complete week, oldest first
    complete_week_anchors: List[str] = Field(default_factory=list, exclude=True)


class StatsReport(BaseModel):
    """Combined stats for one habit in one calendar"""
    type: StatsType
    this_week: int = 0
    this_month: int = 0
    this_year: int = 0
    all: int = 0
    monthly_breakdown: Dict[int, Dict[int, int]] = Field(default_factory=dict)
    unit: Optional[str] = None

    streak: int = 0
    best_streak: int = 0
    habit_score: int = 0

    # Daily frequencies
    success: Optional[int] = None
    fail: Optional[int] = None
    pending: Optional[int] = None
    total: Optional[int] = None

    # Days-per-week frequency
    complete_weeks: Optional[int] = None
    incomplete_weeks: Optional[int] = None
    total_weeks: Optional[int] = None

    class Config:
        alias_generator = to_camel
        populate_by_name = True

    def to_response(self) -> Dict[str, Any]:
        """Serialize with camelCase keys, dropping fields of the other frequency model"""
        return self.model_dump(by_alias=True, exclude_none=True)


class HabitStatsResult(BaseModel):
    """Outcome of one habit's evaluation within a multi-habit request"""
    habit_id: str
    stats: Optional[StatsReport] = None
    error: Optional[str] = None

    def to_response(self) -> Dict[str, Any]:
        if self.stats is not None:
            return {"status": "success", "stats": self.stats.to_response()}
        return {"status": "fail", "message": self.error}
