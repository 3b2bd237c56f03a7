from typing import Any, Optional
from datetime import datetime
from uuid import UUID

from pydantic import Field, field_validator, model_validator

from .base import BaseSchema
from .enums import FrequencyType

TIME_PATTERN = r"^([01]\d|2[0-3]):[0-5]\d(:[0-5]\d)?$"


def check_day_sets(
    frequency_type: str,
    weekly_days: Optional[list[int]],
    monthly_days: Optional[list[int]],
) -> tuple[Optional[list[int]], Optional[list[int]]]:
    """Enforce that day sets only accompany their own frequency.

    Returns the normalized ``(weekly_days, monthly_days)`` pair, sorted and
    de-duplicated, with the set that does not apply to ``frequency_type``
    dropped. Raises ``ValueError`` when the applicable set is empty or out of
    range.
    """
    if frequency_type == FrequencyType.WEEKLY:
        if not weekly_days:
            raise ValueError("weekly routines need at least one day in weekly_days")
        if any(day < 0 or day > 6 for day in weekly_days):
            raise ValueError("weekly_days must be between 0 (Sunday) and 6 (Saturday)")
        return sorted(set(weekly_days)), None
    if frequency_type == FrequencyType.MONTHLY:
        if not monthly_days:
            raise ValueError("monthly routines need at least one day in monthly_days")
        if any(day < 1 or day > 31 for day in monthly_days):
            raise ValueError("monthly_days must be between 1 and 31")
        return None, sorted(set(monthly_days))
    return None, None


class RoutineBase(BaseSchema):
    """Fields shared by routine requests."""
    title: str = Field(min_length=1)
    description: Optional[str] = None
    category: str = Field(min_length=1)
    frequency_type: FrequencyType
    start_time: str = Field(pattern=TIME_PATTERN)
    duration_hours: float = Field(default=1.0, gt=0)
    weekly_days: Optional[list[int]] = None
    monthly_days: Optional[list[int]] = None
    skip_weekends: bool = False
    is_active: bool = True


class RoutineCreate(RoutineBase):
    """Schema for creating a routine."""

    @model_validator(mode="after")
    def check_frequency_days(self) -> "RoutineCreate":
        self.weekly_days, self.monthly_days = check_day_sets(
            self.frequency_type, self.weekly_days, self.monthly_days
        )
        if self.frequency_type != FrequencyType.DAILY:
            self.skip_weekends = False
        return self


class RoutineUpdate(BaseSchema):
    """Schema for updating a routine. Only the fields sent are changed."""
    title: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    category: Optional[str] = Field(default=None, min_length=1)
    frequency_type: Optional[FrequencyType] = None
    start_time: Optional[str] = Field(default=None, pattern=TIME_PATTERN)
    duration_hours: Optional[float] = Field(default=None, gt=0)
    weekly_days: Optional[list[int]] = None
    monthly_days: Optional[list[int]] = None
    skip_weekends: Optional[bool] = None
    is_active: Optional[bool] = None

    @field_validator("title", "category", "frequency_type", "duration_hours", "skip_weekends", "is_active")
    @classmethod
    def reject_null(cls, v: Any) -> Any:
        # Omit a field to keep it; only description, start_time and the day sets can be cleared
        if v is None:
            raise ValueError("may not be null")
        return v


class Routine(BaseSchema):
    """Routine as read back from storage.

    ``frequency_type`` stays a plain string and malformed day lists are
    dropped, so odd rows degrade to "never due" instead of failing here.
    """
    id: UUID
    user_id: str
    title: str
    description: Optional[str] = None
    category: Optional[str] = None
    frequency_type: str
    start_time: Optional[str] = None
    duration_hours: Optional[float] = None
    weekly_days: Optional[list[int]] = None
    monthly_days: Optional[list[int]] = None
    skip_weekends: bool = False
    is_active: bool = True
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator("weekly_days", "monthly_days", mode="before")
    @classmethod
    def keep_integer_days(cls, v: Any) -> Optional[list[int]]:
        if not isinstance(v, (list, tuple)):
            return None
        days = []
        for day in v:
            if isinstance(day, bool):
                continue
            if isinstance(day, int):
                days.append(day)
            elif isinstance(day, str) and day.strip().isdigit():
                days.append(int(day))
        return days

    @field_validator("skip_weekends", "is_active", mode="before")
    @classmethod
    def null_as_false(cls, v: Any) -> bool:
        return bool(v)
