"""
Recurrence resolver: which routines are due on a given calendar date.

Pure functions over already-loaded routines. Callers pass only the active
routines of a single user; activity and ownership are not re-checked here.
"""
from dataclasses import dataclass
from datetime import date
from typing import Any, Iterable, Protocol, TypeVar

from dayboard.schemas.enums import FrequencyType

WEEKEND_DAYS = frozenset({0, 6})  # Sunday, Saturday


class RecurringRoutine(Protocol):
    frequency_type: Any
    weekly_days: Any
    monthly_days: Any
    skip_weekends: Any


R = TypeVar("R", bound=RecurringRoutine)


@dataclass(frozen=True)
class DateContext:
    """A calendar date as the recurrence rules see it."""
    day_of_week: int  # 0 = Sunday ... 6 = Saturday
    day_of_month: int

    @property
    def is_weekend(self) -> bool:
        return self.day_of_week in WEEKEND_DAYS

    @classmethod
    def from_date(cls, value: date) -> "DateContext":
        # date.weekday() counts from Monday = 0
        return cls(day_of_week=(value.weekday() + 1) % 7, day_of_month=value.day)


def _contains(days: Any, day: int) -> bool:
    if not isinstance(days, (list, tuple, set, frozenset)):
        return False
    return day in days


def is_routine_due(routine: RecurringRoutine, ctx: DateContext) -> bool:
    """Evaluate the frequency rule of one routine for one date.

    Unknown frequencies and malformed day sets are never due.
    """
    frequency = getattr(routine, "frequency_type", None)

    if frequency == FrequencyType.DAILY:
        return not (getattr(routine, "skip_weekends", False) and ctx.is_weekend)

    if frequency == FrequencyType.WEEKLY:
        return _contains(getattr(routine, "weekly_days", None), ctx.day_of_week)

    # A day that does not exist this month (e.g. 31 in April) simply never matches.
    if frequency == FrequencyType.MONTHLY:
        return _contains(getattr(routine, "monthly_days", None), ctx.day_of_month)

    return False


def resolve_due_routines(routines: Iterable[R], on: date) -> list[R]:
    """Return the routines due on ``on``, keeping their input order."""
    ctx = DateContext.from_date(on)
    return [routine for routine in routines if is_routine_due(routine, ctx)]
