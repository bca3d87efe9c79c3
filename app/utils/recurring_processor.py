# app/utils/recurring_processor.py
"""
Lifecycle of recurring expense definitions and the due sweep.

User-facing operations (create, update, activate, ...) run on the request's
session and raise domain errors from ``app.core.exceptions``. The sweep opens
its own sessions from a session factory: one to fetch the due definitions and
one per definition, so a failure on one item never touches the others.

Delivery is at-least-once. If writing the expense fails the definition keeps
its ``next_date`` and is picked up again by the next sweep. If the expense is
written but saving the advanced ``next_date`` fails, the next sweep produces
the same occurrence a second time; ``single_transaction=True`` commits both
writes together and closes that gap.
"""
import asyncio
import enum
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.db_utils import with_db_retry
from app.core.exceptions import RecurringExpenseNotFound, RecurringExpenseValidationError
from app.crud.expense import create_expense
from app.crud.recurring_expense import (
    create_recurring_expense,
    delete_recurring_expense,
    get_active_recurring_expenses_for_user,
    get_due_active_recurring_expenses,
    get_recurring_expense_by_id,
    get_recurring_expenses_for_user,
    save_recurring_expense,
)
from app.models.expense import Expense
from app.models.recurring_expense import RecurringExpense
from app.schemas.recurring_expense import RecurringExpenseCreate, RecurringExpenseUpdate
from app.utils.recurrence import (
    advance_next_date,
    initial_next_date,
    validate_day_of_month,
    validate_day_of_week,
    validate_schedule,
)

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


class AttemptOutcome(str, enum.Enum):
    materialized = "materialized"
    skipped_error = "skipped_error"
    not_due = "not_due"


@dataclass
class SweepResult:
    due: int = 0
    materialized: int = 0
    skipped_error: int = 0
    not_due: int = 0

    def record(self, outcome: AttemptOutcome) -> None:
        setattr(self, outcome.value, getattr(self, outcome.value) + 1)


# ────────────────────────────────────────────────────────────────────────────────
# VALIDATION
# ────────────────────────────────────────────────────────────────────────────────
def validate_recurring_expense_create(req: RecurringExpenseCreate) -> None:
    if req.amount <= 0:
        raise RecurringExpenseValidationError("amount must be greater than zero")
    validate_schedule(req.type, req.day_of_week, req.day_of_month)


def apply_recurring_expense_update(recurring_expense: RecurringExpense, req: RecurringExpenseUpdate) -> bool:
    """
    Copy the supplied fields onto ``recurring_expense``.

    Returns True when the schedule (type or an anchor) was part of the request.
    """
    changes = req.model_dump(exclude_none=True)

    if "amount" in changes and changes["amount"] <= 0:
        raise RecurringExpenseValidationError("amount must be greater than zero")
    if "day_of_week" in changes:
        validate_day_of_week(changes["day_of_week"])
    if "day_of_month" in changes:
        validate_day_of_month(changes["day_of_month"])

    for field, value in changes.items():
        setattr(recurring_expense, field, value)

    schedule_changed = bool({"type", "day_of_week", "day_of_month"} & changes.keys())
    if schedule_changed:
        # The resulting combination must still be a valid schedule
        validate_schedule(
            recurring_expense.type,
            recurring_expense.day_of_week,
            recurring_expense.day_of_month,
        )
    return schedule_changed


# ────────────────────────────────────────────────────────────────────────────────
# USER-FACING OPERATIONS
# ────────────────────────────────────────────────────────────────────────────────
async def create_recurring_expense_for_user(
    user_id: uuid.UUID,
    req: RecurringExpenseCreate,
    db: AsyncSession,
    now: Optional[datetime] = None,
) -> RecurringExpense:
    try:
        validate_recurring_expense_create(req)
    except RecurringExpenseValidationError as e:
        logger.warning(
            f"recurring expense create validation failed: {e}",
            extra={"op": "create_recurring_expense", "user_id": user_id},
        )
        raise

    now = now or datetime.now()
    recurring_expense = RecurringExpense(
        user_id=user_id,
        category_id=req.category_id,
        amount=req.amount,
        description=req.description,
        type=req.type,
        day_of_week=req.day_of_week,
        day_of_month=req.day_of_month,
        is_active=True,
        next_date=initial_next_date(req.type, req.day_of_week, req.day_of_month, now),
    )
    recurring_expense = await create_recurring_expense(recurring_expense, db)

    logger.info(
        "recurring expense created",
        extra={
            "op": "create_recurring_expense",
            "user_id": user_id,
            "recurring_expense_id": recurring_expense.id,
            "next_date": recurring_expense.next_date,
        },
    )
    return recurring_expense


async def get_recurring_expense(
    recurring_expense_id: uuid.UUID,
    db: AsyncSession,
    user_id: Optional[uuid.UUID] = None,
) -> RecurringExpense:
    recurring_expense = await get_recurring_expense_by_id(recurring_expense_id, db, user_id=user_id)
    if recurring_expense is None:
        logger.warning(
            "recurring expense not found",
            extra={"recurring_expense_id": recurring_expense_id, "user_id": user_id},
        )
        raise RecurringExpenseNotFound(recurring_expense_id)
    return recurring_expense


async def list_recurring_expenses(user_id: uuid.UUID, db: AsyncSession) -> List[RecurringExpense]:
    return await get_recurring_expenses_for_user(user_id, db)


async def list_active_recurring_expenses(user_id: uuid.UUID, db: AsyncSession) -> List[RecurringExpense]:
    return await get_active_recurring_expenses_for_user(user_id, db)


async def update_recurring_expense_for_user(
    recurring_expense_id: uuid.UUID,
    req: RecurringExpenseUpdate,
    db: AsyncSession,
    now: Optional[datetime] = None,
    user_id: Optional[uuid.UUID] = None,
) -> RecurringExpense:
    """
    Apply a partial update.

    When the type or an anchor is supplied, ``next_date`` is advanced from the
    definition's current ``next_date`` rather than recomputed from scratch.
    """
    recurring_expense = await get_recurring_expense(recurring_expense_id, db, user_id=user_id)

    try:
        schedule_changed = apply_recurring_expense_update(recurring_expense, req)
    except RecurringExpenseValidationError as e:
        # Drop the half-applied changes held by the session
        await db.rollback()
        logger.warning(
            f"recurring expense update validation failed: {e}",
            extra={"op": "update_recurring_expense", "recurring_expense_id": recurring_expense_id},
        )
        raise

    if schedule_changed:
        recurring_expense.next_date = advance_next_date(recurring_expense, now or datetime.now())

    recurring_expense = await save_recurring_expense(recurring_expense, db)
    await db.refresh(recurring_expense)

    logger.info(
        "recurring expense updated",
        extra={
            "op": "update_recurring_expense",
            "recurring_expense_id": recurring_expense_id,
            "next_date": recurring_expense.next_date,
        },
    )
    return recurring_expense


async def delete_recurring_expense_for_user(
    recurring_expense_id: uuid.UUID,
    db: AsyncSession,
    user_id: Optional[uuid.UUID] = None,
) -> None:
    recurring_expense = await get_recurring_expense(recurring_expense_id, db, user_id=user_id)
    await delete_recurring_expense(recurring_expense, db)
    logger.info(
        "recurring expense deleted",
        extra={"op": "delete_recurring_expense", "recurring_expense_id": recurring_expense_id},
    )


async def _set_active(
    recurring_expense_id: uuid.UUID,
    is_active: bool,
    db: AsyncSession,
    user_id: Optional[uuid.UUID],
) -> RecurringExpense:
    recurring_expense = await get_recurring_expense(recurring_expense_id, db, user_id=user_id)
    recurring_expense.is_active = is_active
    recurring_expense = await save_recurring_expense(recurring_expense, db)
    await db.refresh(recurring_expense)
    logger.info(
        "recurring expense activated" if is_active else "recurring expense deactivated",
        extra={"recurring_expense_id": recurring_expense_id},
    )
    return recurring_expense


async def activate_recurring_expense(
    recurring_expense_id: uuid.UUID,
    db: AsyncSession,
    user_id: Optional[uuid.UUID] = None,
) -> RecurringExpense:
    return await _set_active(recurring_expense_id, True, db, user_id)


async def deactivate_recurring_expense(
    recurring_expense_id: uuid.UUID,
    db: AsyncSession,
    user_id: Optional[uuid.UUID] = None,
) -> RecurringExpense:
    return await _set_active(recurring_expense_id, False, db, user_id)


# ────────────────────────────────────────────────────────────────────────────────
# DUE SWEEP
# ────────────────────────────────────────────────────────────────────────────────
def build_expense(recurring_expense: RecurringExpense) -> Expense:
    """The expense for the occurrence ``recurring_expense`` is currently due for."""
    return Expense(
        user_id=recurring_expense.user_id,
        category_id=recurring_expense.category_id,
        amount=recurring_expense.amount,
        description=recurring_expense.description,
        date=recurring_expense.next_date,
        recurring_expense_id=recurring_expense.id,
    )


@with_db_retry()
async def fetch_due_recurring_expenses(
    session_factory: async_sessionmaker,
    as_of: datetime,
) -> List[RecurringExpense]:
    async with session_factory() as db:
        return await get_due_active_recurring_expenses(as_of, db)


async def attempt_recurring_expense(
    recurring_expense: RecurringExpense,
    now: datetime,
    session_factory: async_sessionmaker,
    single_transaction: bool = False,
) -> AttemptOutcome:
    """
    Materialize one occurrence of ``recurring_expense`` if it is due at ``now``.

    ``not_due``       inactive, or next_date is still in the future; nothing written.
    ``skipped_error`` the expense could not be written; next_date is unchanged
                      so the occurrence is retried on the next sweep.
    ``materialized``  the expense was written. The reschedule is attempted
                      afterwards; its failure is logged only.
    """
    if not recurring_expense.is_active or recurring_expense.next_date > now:
        return AttemptOutcome.not_due

    log_extra = {
        "op": "process_recurring_expenses",
        "recurring_expense_id": recurring_expense.id,
        "user_id": recurring_expense.user_id,
    }
    occurrence = recurring_expense.next_date

    async with session_factory() as db:
        try:
            expense = await create_expense(build_expense(recurring_expense), db, commit=not single_transaction)
        except Exception:
            await db.rollback()
            logger.exception("failed to create expense from recurring expense", extra=log_extra)
            return AttemptOutcome.skipped_error

        recurring_expense.next_date = advance_next_date(recurring_expense, now)
        try:
            await save_recurring_expense(recurring_expense, db)
        except Exception:
            await db.rollback()
            if single_transaction:
                # The expense insert was rolled back together with the reschedule
                recurring_expense.next_date = occurrence
                logger.exception("failed to materialize recurring expense", extra=log_extra)
                return AttemptOutcome.skipped_error
            logger.exception(
                "failed to update next date for recurring expense",
                extra={**log_extra, "expense_id": expense.id},
            )
            return AttemptOutcome.materialized

    logger.info(
        "processed recurring expense",
        extra={**log_extra, "expense_id": expense.id, "next_date": recurring_expense.next_date},
    )
    return AttemptOutcome.materialized


async def process_recurring_expenses(
    session_factory: async_sessionmaker,
    clock: Clock = datetime.now,
    concurrency: int = 1,
    single_transaction: bool = False,
) -> SweepResult:
    """
    Materialize every definition that is due now.

    Raises only when the due definitions cannot be fetched. Per-item failures
    are logged and counted in the returned ``SweepResult``.
    """
    now = clock()
    try:
        due = await fetch_due_recurring_expenses(session_factory, now)
    except Exception:
        logger.exception("failed to get due recurring expenses", extra={"op": "process_recurring_expenses"})
        raise

    result = SweepResult(due=len(due))

    if concurrency <= 1:
        for recurring_expense in due:
            result.record(
                await attempt_recurring_expense(recurring_expense, now, session_factory, single_transaction)
            )
    else:
        semaphore = asyncio.Semaphore(concurrency)

        async def _bounded(recurring_expense: RecurringExpense) -> AttemptOutcome:
            async with semaphore:
                return await attempt_recurring_expense(recurring_expense, now, session_factory, single_transaction)

        for outcome in await asyncio.gather(*(_bounded(r) for r in due)):
            result.record(outcome)

    logger.info(
        f"recurring expense sweep finished: due={result.due} materialized={result.materialized} "
        f"skipped={result.skipped_error} not_due={result.not_due}",
        extra={"op": "process_recurring_expenses"},
    )
    return result
