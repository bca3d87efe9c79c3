# app/crud/expense.py
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from sqlalchemy import desc
from app.models.expense import Expense
from typing import List, Optional
import uuid
from app.schemas.expense import ExpenseCreate, ExpenseFilter, ExpenseUpdate

async def get_expenses_for_user(
    user_id: uuid.UUID,
    db: AsyncSession,
    filters: Optional[ExpenseFilter] = None,
) -> List[Expense]:
    query = select(Expense).where(Expense.user_id == user_id)
    if filters is not None:
        if filters.category_id is not None:
            query = query.where(Expense.category_id == filters.category_id)
        if filters.start_date is not None:
            query = query.where(Expense.date >= filters.start_date)
        if filters.end_date is not None:
            query = query.where(Expense.date <= filters.end_date)
        if filters.min_amount is not None:
            query = query.where(Expense.amount >= filters.min_amount)
        if filters.max_amount is not None:
            query = query.where(Expense.amount <= filters.max_amount)
        if filters.limit is not None:
            query = query.limit(filters.limit)
    result = await db.execute(query.order_by(desc(Expense.date)))
    return result.scalars().all()

async def get_expense_by_id(expense_id: uuid.UUID, user_id: uuid.UUID, db: AsyncSession) -> Optional[Expense]:
    result = await db.execute(
        select(Expense).where(Expense.id == expense_id, Expense.user_id == user_id)
    )
    return result.scalar_one_or_none()

async def get_expenses_for_recurring_expense(recurring_expense_id: uuid.UUID, db: AsyncSession) -> List[Expense]:
    result = await db.execute(
        select(Expense)
        .where(Expense.recurring_expense_id == recurring_expense_id)
        .order_by(Expense.date)
    )
    return result.scalars().all()

async def create_expense(expense: Expense, db: AsyncSession, commit: bool = True) -> Expense:
    """Persist an already-built expense. With ``commit=False`` the row is only flushed."""
    db.add(expense)
    if commit:
        await db.commit()
        await db.refresh(expense)
    else:
        await db.flush()
    return expense

async def create_expense_for_user(user_id: uuid.UUID, ex_in: ExpenseCreate, db: AsyncSession) -> Expense:
    return await create_expense(Expense(**ex_in.model_dump(), user_id=user_id), db)

async def update_expense(expense: Expense, ex_in: ExpenseUpdate, db: AsyncSession) -> Expense:
    for field, value in ex_in.model_dump(exclude_none=True).items():
        setattr(expense, field, value)
    db.add(expense)
    await db.commit()
    await db.refresh(expense)
    return expense

async def delete_expense(expense: Expense, db: AsyncSession) -> None:
    await db.delete(expense)
    await db.commit()
