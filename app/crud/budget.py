# app/crud/budget.py
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from app.models.budget import Budget
from typing import List, Optional
import uuid
from app.schemas.budget import BudgetCreate, BudgetUpdate

async def get_budgets_for_user(user_id: uuid.UUID, db: AsyncSession) -> List[Budget]:
    """Most recent month first."""
    result = await db.execute(
        select(Budget)
        .where(Budget.user_id == user_id)
        .order_by(Budget.year.desc(), Budget.month.desc())
    )
    return result.scalars().all()

async def get_budget_by_id(budget_id: uuid.UUID, user_id: uuid.UUID, db: AsyncSession) -> Optional[Budget]:
    result = await db.execute(
        select(Budget).where(Budget.id == budget_id, Budget.user_id == user_id)
    )
    return result.scalar_one_or_none()

async def get_budget_for_month(user_id: uuid.UUID, month: int, year: int, db: AsyncSession) -> Optional[Budget]:
    result = await db.execute(
        select(Budget).where(Budget.user_id == user_id, Budget.month == month, Budget.year == year)
    )
    return result.scalar_one_or_none()

async def create_budget_for_user(user_id: uuid.UUID, budget_in: BudgetCreate, db: AsyncSession) -> Budget:
    budget = Budget(**budget_in.model_dump(), user_id=user_id)
    db.add(budget)
    await db.commit()
    await db.refresh(budget)
    return budget

async def update_budget(budget: Budget, budget_in: BudgetUpdate, db: AsyncSession) -> Budget:
    for field, value in budget_in.model_dump(exclude_none=True).items():
        setattr(budget, field, value)
    db.add(budget)
    await db.commit()
    await db.refresh(budget)
    return budget

async def delete_budget(budget: Budget, db: AsyncSession) -> None:
    await db.delete(budget)
    await db.commit()
