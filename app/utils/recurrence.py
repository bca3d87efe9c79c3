# app/utils/recurrence.py
"""
Date arithmetic for recurring expenses.

Two entry points:

* ``initial_next_date`` picks the first occurrence when a definition is
  created. For weekly schedules "today" never qualifies; for monthly schedules
  the current month still qualifies while the anchor day has not passed.
* ``advance_next_date`` moves an existing definition to its following
  occurrence after it produced an expense (or after its schedule was edited).
  A monthly schedule always moves to the next month here.

Weekday anchors are Sunday based (0 = Sunday .. 6 = Saturday). Month and year
steps use ``relativedelta``, which clamps to the end of shorter months
(Jan 31 + 1 month = Feb 28). All values are naive datetimes from a single
process-wide clock.
"""
import calendar
from datetime import datetime, timedelta
from typing import Optional, Union

from dateutil.relativedelta import relativedelta

from app.core.exceptions import RecurringExpenseValidationError
from app.models.recurring_expense import RecurringExpense, RecurringExpenseType

ONE_DAY = timedelta(days=1)
ONE_WEEK = timedelta(days=7)
ONE_MONTH = relativedelta(months=1)
ONE_YEAR = relativedelta(years=1)


# ────────────────────────────────────────────────────────────────────────────────
# HELPERS
# ────────────────────────────────────────────────────────────────────────────────
def sunday_weekday(moment: datetime) -> int:
    """Weekday of ``moment`` with 0 = Sunday .. 6 = Saturday."""
    return moment.isoweekday() % 7


def _days_until_weekday(moment: datetime, day_of_week: int) -> int:
    days = (day_of_week - sunday_weekday(moment)) % 7
    # Same weekday means the following week, never "today"
    return days or 7


def _anchored_day(year: int, month: int, day_of_month: int) -> datetime:
    """Midnight of ``day_of_month`` in the given month, clamped to its last day."""
    last_day = calendar.monthrange(year, month)[1]
    return datetime(year, month, min(day_of_month, last_day))


def _coerce_type(type_: Union[RecurringExpenseType, str, None]) -> Optional[RecurringExpenseType]:
    if isinstance(type_, RecurringExpenseType):
        return type_
    try:
        return RecurringExpenseType(type_)
    except ValueError:
        return None


# ────────────────────────────────────────────────────────────────────────────────
# VALIDATION
# ────────────────────────────────────────────────────────────────────────────────
def validate_schedule(
    type_: Union[RecurringExpenseType, str, None],
    day_of_week: Optional[int],
    day_of_month: Optional[int],
) -> RecurringExpenseType:
    """Check the anchor rules for a schedule kind and return the parsed kind."""
    kind = _coerce_type(type_)
    if kind is None:
        raise RecurringExpenseValidationError(f"Unsupported recurrence type: {type_!r}")

    if kind == RecurringExpenseType.weekly:
        if day_of_week is None:
            raise RecurringExpenseValidationError("day_of_week is required for weekly recurring expenses")
        validate_day_of_week(day_of_week)
    elif kind == RecurringExpenseType.monthly:
        if day_of_month is None:
            raise RecurringExpenseValidationError("day_of_month is required for monthly recurring expenses")
        validate_day_of_month(day_of_month)
    return kind


def validate_day_of_week(day_of_week: int) -> None:
    if not 0 <= day_of_week <= 6:
        raise RecurringExpenseValidationError("day_of_week must be between 0 (Sunday) and 6 (Saturday)")


def validate_day_of_month(day_of_month: int) -> None:
    if not 1 <= day_of_month <= 31:
        raise RecurringExpenseValidationError("day_of_month must be between 1 and 31")


# ────────────────────────────────────────────────────────────────────────────────
# SCHEDULING
# ────────────────────────────────────────────────────────────────────────────────
def initial_next_date(
    type_: Union[RecurringExpenseType, str],
    day_of_week: Optional[int],
    day_of_month: Optional[int],
    now: datetime,
) -> datetime:
    """First occurrence for a definition created at ``now``."""
    kind = _coerce_type(type_)

    if kind == RecurringExpenseType.weekly:
        if day_of_week is not None:
            return now + timedelta(days=_days_until_weekday(now, day_of_week))
        return now + ONE_WEEK

    if kind == RecurringExpenseType.monthly:
        if day_of_month is not None:
            if day_of_month < now.day:
                target = now + ONE_MONTH
                return _anchored_day(target.year, target.month, day_of_month)
            return _anchored_day(now.year, now.month, day_of_month)
        return now + ONE_MONTH

    if kind == RecurringExpenseType.yearly:
        return now + ONE_YEAR

    return now + ONE_DAY


def step_from(
    type_: Union[RecurringExpenseType, str],
    day_of_week: Optional[int],
    day_of_month: Optional[int],
    base: datetime,
) -> datetime:
    """One recurrence step after ``base``. Unknown kinds step like daily."""
    kind = _coerce_type(type_)

    if kind == RecurringExpenseType.weekly:
        if day_of_week is not None:
            return base + timedelta(days=_days_until_weekday(base, day_of_week))
        return base + ONE_WEEK

    if kind == RecurringExpenseType.monthly:
        target = base + ONE_MONTH
        if day_of_month is not None:
            return _anchored_day(target.year, target.month, day_of_month)
        return target

    if kind == RecurringExpenseType.yearly:
        return base + ONE_YEAR

    return base + ONE_DAY


def advance_next_date(recurring_expense: RecurringExpense, now: datetime) -> datetime:
    """
    Following occurrence for ``recurring_expense`` as seen at ``now``.

    The step is taken from the stored ``next_date``. When that base is stale
    enough that one step would still land at or before ``now``, the step is
    taken from ``now`` instead, so a delayed sweep never schedules into the
    past.
    """
    args = (recurring_expense.type, recurring_expense.day_of_week, recurring_expense.day_of_month)
    base = recurring_expense.next_date
    candidate = step_from(*args, base)
    if base < now and candidate <= now:
        candidate = step_from(*args, now)
    return candidate
