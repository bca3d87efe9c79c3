# app/crud/recurring_expense.py
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from sqlalchemy import func
from app.models.recurring_expense import RecurringExpense
from datetime import datetime
from typing import List, Optional
import uuid
import logging

logger = logging.getLogger(__name__)

async def get_recurring_expenses_for_user(user_id: uuid.UUID, db: AsyncSession) -> List[RecurringExpense]:
    result = await db.execute(
        select(RecurringExpense)
        .where(RecurringExpense.user_id == user_id)
        .order_by(RecurringExpense.next_date.asc())
    )
    return result.scalars().all()

async def get_active_recurring_expenses_for_user(user_id: uuid.UUID, db: AsyncSession) -> List[RecurringExpense]:
    result = await db.execute(
        select(RecurringExpense)
        .where(RecurringExpense.user_id == user_id, RecurringExpense.is_active.is_(True))
        .order_by(RecurringExpense.next_date.asc())
    )
    return result.scalars().all()

async def get_recurring_expense_by_id(
    recurring_expense_id: uuid.UUID,
    db: AsyncSession,
    user_id: Optional[uuid.UUID] = None,
) -> Optional[RecurringExpense]:
    """Look up a definition, optionally restricted to one owner."""
    query = select(RecurringExpense).where(RecurringExpense.id == recurring_expense_id)
    if user_id is not None:
        query = query.where(RecurringExpense.user_id == user_id)
    result = await db.execute(query)
    return result.scalar_one_or_none()

async def get_due_active_recurring_expenses(as_of: datetime, db: AsyncSession) -> List[RecurringExpense]:
    """Every active definition, across all users, whose next_date is at or before ``as_of``."""
    logger.debug("fetching due recurring expenses", extra={"op": "get_due_active_recurring_expenses"})
    result = await db.execute(
        select(RecurringExpense).where(
            RecurringExpense.is_active.is_(True),
            RecurringExpense.next_date <= as_of,
        )
    )
    return result.scalars().all()

async def create_recurring_expense(recurring_expense: RecurringExpense, db: AsyncSession) -> RecurringExpense:
    db.add(recurring_expense)
    await db.commit()
    await db.refresh(recurring_expense)
    return recurring_expense

async def save_recurring_expense(
    recurring_expense: RecurringExpense,
    db: AsyncSession,
    commit: bool = True,
) -> RecurringExpense:
    """
    Write every column of ``recurring_expense`` back (last write wins).

    Accepts instances loaded by another session; they are merged into ``db``.
    """
    merged = await db.merge(recurring_expense)
    if commit:
        await db.commit()
    else:
        await db.flush()
    return merged

async def delete_recurring_expense(recurring_expense: RecurringExpense, db: AsyncSession) -> None:
    await db.delete(recurring_expense)
    await db.commit()

async def count_recurring_expenses_for_category(category_id: uuid.UUID, db: AsyncSession) -> int:
    """Active and inactive definitions alike."""
    result = await db.execute(
        select(func.count()).select_from(RecurringExpense).where(RecurringExpense.category_id == category_id)
    )
    return result.scalar_one()
