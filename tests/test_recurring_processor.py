import asyncio
import uuid
from datetime import datetime, timedelta
from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy import select
from sqlalchemy.exc import OperationalError, SQLAlchemyError

from app.core.exceptions import RecurringExpenseNotFound, RecurringExpenseValidationError
from app.crud import expense as expense_crud
from app.crud.recurring_expense import get_due_active_recurring_expenses
from app.models.expense import Expense
from app.models.recurring_expense import RecurringExpense, RecurringExpenseType
from app.schemas.recurring_expense import RecurringExpenseCreate, RecurringExpenseUpdate
from app.utils.recurring_processor import (
    AttemptOutcome,
    activate_recurring_expense,
    attempt_recurring_expense,
    create_recurring_expense_for_user,
    deactivate_recurring_expense,
    delete_recurring_expense_for_user,
    get_recurring_expense,
    list_active_recurring_expenses,
    list_recurring_expenses,
    process_recurring_expenses,
    update_recurring_expense_for_user,
)

# Monday
NOW = datetime(2024, 1, 15, 10, 30)


def fixed_clock():
    return NOW


async def make_recurring(db, user, category, **overrides):
    values = dict(
        user_id=user.id,
        category_id=category.id,
        amount=42.0,
        description="Gym membership",
        type=RecurringExpenseType.daily,
        next_date=NOW - timedelta(hours=1),
        is_active=True,
    )
    values.update(overrides)
    recurring_expense = RecurringExpense(**values)
    db.add(recurring_expense)
    await db.commit()
    return recurring_expense


async def reload(session_factory, recurring_expense_id):
    async with session_factory() as session:
        return await session.get(RecurringExpense, recurring_expense_id)


async def expenses_for(session_factory, recurring_expense_id):
    async with session_factory() as session:
        return await expense_crud.get_expenses_for_recurring_expense(recurring_expense_id, session)


# ── create / update / lifecycle ─────────────────────────────────────────────────
async def test_create_computes_initial_next_date(db, user, category):
    req = RecurringExpenseCreate(
        category_id=category.id, amount=950.0, description="Rent", type="monthly", day_of_month=20
    )
    recurring_expense = await create_recurring_expense_for_user(user.id, req, db, now=NOW)

    assert recurring_expense.id is not None
    assert recurring_expense.is_active is True
    assert recurring_expense.next_date == datetime(2024, 1, 20)
    assert recurring_expense.user_id == user.id


async def test_create_weekly_on_target_weekday_starts_next_week(db, user, category):
    req = RecurringExpenseCreate(category_id=category.id, amount=12.5, type="weekly", day_of_week=1)
    recurring_expense = await create_recurring_expense_for_user(user.id, req, db, now=NOW)
    assert recurring_expense.next_date == NOW + timedelta(days=7)


@pytest.mark.parametrize(
    "fields",
    [
        {"amount": 0, "type": "daily"},
        {"amount": -3, "type": "daily"},
        {"amount": 10, "type": "weekly"},
        {"amount": 10, "type": "weekly", "day_of_week": 7},
        {"amount": 10, "type": "monthly"},
        {"amount": 10, "type": "monthly", "day_of_month": 32},
    ],
)
async def test_create_rejects_invalid_request(db, user, category, session_factory, fields):
    req = RecurringExpenseCreate(category_id=category.id, **fields)
    with pytest.raises(RecurringExpenseValidationError):
        await create_recurring_expense_for_user(user.id, req, db, now=NOW)

    async with session_factory() as session:
        result = await session.execute(select(RecurringExpense))
        assert result.scalars().all() == []


async def test_update_schedule_advances_from_current_next_date(db, user, category, session_factory):
    # Saturday
    recurring_expense = await make_recurring(db, user, category, next_date=datetime(2024, 1, 20))

    updated = await update_recurring_expense_for_user(
        recurring_expense.id,
        RecurringExpenseUpdate(type="weekly", day_of_week=3),
        db,
        now=NOW,
    )

    # Following Wednesday after Jan 20, not the one after "now"
    assert updated.next_date == datetime(2024, 1, 24)
    assert updated.type == RecurringExpenseType.weekly
    stored = await reload(session_factory, recurring_expense.id)
    assert stored.next_date == datetime(2024, 1, 24)
    assert stored.day_of_week == 3


async def test_update_without_schedule_change_keeps_next_date(db, user, category):
    recurring_expense = await make_recurring(db, user, category, next_date=datetime(2024, 1, 20))

    updated = await update_recurring_expense_for_user(
        recurring_expense.id,
        RecurringExpenseUpdate(amount=55.0, description="Gym (new price)"),
        db,
        now=NOW,
    )

    assert updated.amount == 55.0
    assert updated.description == "Gym (new price)"
    assert updated.next_date == datetime(2024, 1, 20)


async def test_update_rejects_out_of_range_anchor(db, user, category, session_factory):
    recurring_expense = await make_recurring(
        db, user, category, type=RecurringExpenseType.monthly, day_of_month=5, next_date=datetime(2024, 2, 5)
    )

    with pytest.raises(RecurringExpenseValidationError):
        await update_recurring_expense_for_user(
            recurring_expense.id, RecurringExpenseUpdate(day_of_month=40), db, now=NOW
        )

    stored = await reload(session_factory, recurring_expense.id)
    assert stored.day_of_month == 5
    assert stored.next_date == datetime(2024, 2, 5)


async def test_update_rejects_weekly_without_anchor(db, user, category, session_factory):
    recurring_expense = await make_recurring(db, user, category)

    with pytest.raises(RecurringExpenseValidationError):
        await update_recurring_expense_for_user(
            recurring_expense.id, RecurringExpenseUpdate(type="weekly"), db, now=NOW
        )

    stored = await reload(session_factory, recurring_expense.id)
    assert stored.type == RecurringExpenseType.daily


async def test_update_missing_or_foreign_definition_is_not_found(db, user, category, other_user):
    recurring_expense = await make_recurring(db, user, category)

    with pytest.raises(RecurringExpenseNotFound):
        await update_recurring_expense_for_user(uuid.uuid4(), RecurringExpenseUpdate(amount=1.0), db)
    with pytest.raises(RecurringExpenseNotFound):
        await update_recurring_expense_for_user(
            recurring_expense.id, RecurringExpenseUpdate(amount=1.0), db, user_id=other_user.id
        )


async def test_deactivate_and_activate_leave_schedule_alone(db, user, category, session_factory):
    recurring_expense = await make_recurring(db, user, category, next_date=datetime(2024, 1, 20))

    deactivated = await deactivate_recurring_expense(recurring_expense.id, db, user_id=user.id)
    assert deactivated.is_active is False
    assert deactivated.next_date == datetime(2024, 1, 20)
    assert await list_active_recurring_expenses(user.id, db) == []

    activated = await activate_recurring_expense(recurring_expense.id, db, user_id=user.id)
    assert activated.is_active is True
    assert activated.next_date == datetime(2024, 1, 20)
    assert (await reload(session_factory, recurring_expense.id)).is_active is True


async def test_list_orders_by_next_date(db, user, category, other_user, other_category):
    later = await make_recurring(db, user, category, next_date=datetime(2024, 3, 1))
    sooner = await make_recurring(db, user, category, next_date=datetime(2024, 2, 1))
    await make_recurring(db, other_user, other_category)

    listed = await list_recurring_expenses(user.id, db)
    assert [r.id for r in listed] == [sooner.id, later.id]


async def test_delete(db, user, category):
    recurring_expense = await make_recurring(db, user, category)
    await delete_recurring_expense_for_user(recurring_expense.id, db, user_id=user.id)

    with pytest.raises(RecurringExpenseNotFound):
        await get_recurring_expense(recurring_expense.id, db)


async def test_inactive_overdue_definition_is_never_due(db, user, category):
    await make_recurring(db, user, category, is_active=False, next_date=datetime(2000, 1, 1))
    active = await make_recurring(db, user, category)

    due = await get_due_active_recurring_expenses(NOW, db)
    assert [r.id for r in due] == [active.id]


# ── attempt ─────────────────────────────────────────────────────────────────────
async def test_attempt_not_due(db, user, category, session_factory):
    future = await make_recurring(db, user, category, next_date=NOW + timedelta(minutes=1))
    inactive = await make_recurring(db, user, category, is_active=False)

    assert await attempt_recurring_expense(future, NOW, session_factory) == AttemptOutcome.not_due
    assert await attempt_recurring_expense(inactive, NOW, session_factory) == AttemptOutcome.not_due
    assert await expenses_for(session_factory, future.id) == []
    assert await expenses_for(session_factory, inactive.id) == []


# ── sweep ───────────────────────────────────────────────────────────────────────
async def test_sweep_materializes_due_definitions(db, user, category, session_factory):
    occurrence = datetime(2024, 1, 15)
    weekly = await make_recurring(
        db, user, category, type=RecurringExpenseType.weekly, day_of_week=1, next_date=occurrence, amount=20.0
    )
    daily = await make_recurring(db, user, category, next_date=NOW)
    future = await make_recurring(db, user, category, next_date=NOW + timedelta(days=2))
    await make_recurring(db, user, category, is_active=False, next_date=datetime(2023, 6, 1))

    result = await process_recurring_expenses(session_factory, clock=fixed_clock)

    assert result.due == 2
    assert result.materialized == 2
    assert result.skipped_error == 0

    [expense] = await expenses_for(session_factory, weekly.id)
    assert expense.date == occurrence
    assert expense.amount == 20.0
    assert expense.category_id == category.id
    assert expense.user_id == user.id
    assert expense.description == "Gym membership"
    assert (await reload(session_factory, weekly.id)).next_date == datetime(2024, 1, 22)

    assert (await reload(session_factory, daily.id)).next_date == NOW + timedelta(days=1)
    assert (await reload(session_factory, future.id)).next_date == NOW + timedelta(days=2)
    assert await expenses_for(session_factory, future.id) == []


async def test_sweep_twice_at_same_instant_is_idempotent(db, user, category, session_factory):
    recurring_expense = await make_recurring(db, user, category)

    first = await process_recurring_expenses(session_factory, clock=fixed_clock)
    second = await process_recurring_expenses(session_factory, clock=fixed_clock)

    assert first.materialized == 1
    assert second.due == 0
    assert second.materialized == 0
    assert len(await expenses_for(session_factory, recurring_expense.id)) == 1


async def test_sweep_month_end_scenario(db, user, category, session_factory):
    recurring_expense = await make_recurring(
        db, user, category, type=RecurringExpenseType.monthly, day_of_month=31, next_date=datetime(2023, 1, 31)
    )

    await process_recurring_expenses(session_factory, clock=lambda: datetime(2023, 2, 1, 3, 0))

    [expense] = await expenses_for(session_factory, recurring_expense.id)
    assert expense.date == datetime(2023, 1, 31)
    assert (await reload(session_factory, recurring_expense.id)).next_date == datetime(2023, 2, 28)


async def test_failed_expense_write_leaves_definition_due(db, user, category, session_factory):
    recurring_expense = await make_recurring(db, user, category)
    original = recurring_expense.next_date

    with patch(
        "app.utils.recurring_processor.create_expense",
        AsyncMock(side_effect=SQLAlchemyError("insert failed")),
    ):
        result = await process_recurring_expenses(session_factory, clock=fixed_clock)

    assert result.skipped_error == 1
    assert result.materialized == 0
    assert (await reload(session_factory, recurring_expense.id)).next_date == original
    async with session_factory() as session:
        due = await get_due_active_recurring_expenses(NOW, session)
    assert [r.id for r in due] == [recurring_expense.id]

    # Picked up again on the next sweep
    retry = await process_recurring_expenses(session_factory, clock=fixed_clock)
    assert retry.materialized == 1
    assert len(await expenses_for(session_factory, recurring_expense.id)) == 1


async def test_one_failing_item_does_not_block_others(db, user, category, session_factory):
    broken = await make_recurring(db, user, category, description="broken")
    healthy = await make_recurring(db, user, category, description="healthy")
    real_create_expense = expense_crud.create_expense

    async def flaky_create_expense(expense, session, commit=True):
        if expense.recurring_expense_id == broken.id:
            raise SQLAlchemyError("insert failed")
        return await real_create_expense(expense, session, commit=commit)

    with patch("app.utils.recurring_processor.create_expense", flaky_create_expense):
        result = await process_recurring_expenses(session_factory, clock=fixed_clock)

    assert result.due == 2
    assert result.materialized == 1
    assert result.skipped_error == 1
    assert len(await expenses_for(session_factory, healthy.id)) == 1
    assert await expenses_for(session_factory, broken.id) == []


async def test_failed_reschedule_materializes_twice_by_default(db, user, category, session_factory):
    recurring_expense = await make_recurring(db, user, category)
    original = recurring_expense.next_date

    with patch(
        "app.utils.recurring_processor.save_recurring_expense",
        AsyncMock(side_effect=SQLAlchemyError("update failed")),
    ):
        result = await process_recurring_expenses(session_factory, clock=fixed_clock)

    assert result.materialized == 1
    assert (await reload(session_factory, recurring_expense.id)).next_date == original

    await process_recurring_expenses(session_factory, clock=fixed_clock)

    expenses = await expenses_for(session_factory, recurring_expense.id)
    assert len(expenses) == 2
    assert {e.date for e in expenses} == {original}


async def test_single_transaction_rolls_back_expense_on_failed_reschedule(db, user, category, session_factory):
    recurring_expense = await make_recurring(db, user, category)
    original = recurring_expense.next_date

    with patch(
        "app.utils.recurring_processor.save_recurring_expense",
        AsyncMock(side_effect=SQLAlchemyError("update failed")),
    ):
        result = await process_recurring_expenses(session_factory, clock=fixed_clock, single_transaction=True)

    assert result.skipped_error == 1
    assert result.materialized == 0
    assert await expenses_for(session_factory, recurring_expense.id) == []
    assert (await reload(session_factory, recurring_expense.id)).next_date == original


async def test_single_transaction_success(db, user, category, session_factory):
    recurring_expense = await make_recurring(db, user, category)

    result = await process_recurring_expenses(session_factory, clock=fixed_clock, single_transaction=True)

    assert result.materialized == 1
    assert len(await expenses_for(session_factory, recurring_expense.id)) == 1
    assert (await reload(session_factory, recurring_expense.id)).next_date == NOW + timedelta(days=1)


async def test_fetch_failure_aborts_sweep(session_factory):
    fetch = AsyncMock(side_effect=ValueError("bad query"))
    with patch("app.utils.recurring_processor.get_due_active_recurring_expenses", fetch):
        with pytest.raises(ValueError):
            await process_recurring_expenses(session_factory, clock=fixed_clock)
    # Not a connection problem, so no retry
    assert fetch.await_count == 1


async def test_fetch_retries_on_connection_error(session_factory):
    fetch = AsyncMock(side_effect=[OperationalError("SELECT", {}, Exception("connection lost")), []])
    with patch("app.utils.recurring_processor.get_due_active_recurring_expenses", fetch):
        result = await process_recurring_expenses(session_factory, clock=fixed_clock)

    assert fetch.await_count == 2
    assert result.due == 0


async def test_concurrent_sweep_is_bounded(db, user, category, session_factory):
    for _ in range(5):
        await make_recurring(db, user, category)

    in_flight = 0
    peak = 0

    async def fake_attempt(recurring_expense, now, factory, single_transaction):
        nonlocal in_flight, peak
        in_flight += 1
        peak = max(peak, in_flight)
        await asyncio.sleep(0.01)
        in_flight -= 1
        return AttemptOutcome.materialized

    with patch("app.utils.recurring_processor.attempt_recurring_expense", fake_attempt):
        result = await process_recurring_expenses(session_factory, clock=fixed_clock, concurrency=2)

    assert peak == 2
    assert result.due == 5
    assert result.materialized == 5


async def test_materialized_expense_is_listed_for_owner(db, user, category, session_factory):
    await make_recurring(db, user, category, amount=9.99)
    await process_recurring_expenses(session_factory, clock=fixed_clock)

    async with session_factory() as session:
        expenses = await expense_crud.get_expenses_for_user(user.id, session)
    assert len(expenses) == 1
    assert isinstance(expenses[0], Expense)
    assert expenses[0].amount == 9.99
