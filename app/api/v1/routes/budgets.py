# app/api/v1/routes/budgets.py
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List
import logging
import uuid

from app.schemas.budget import BudgetCreate, BudgetRead, BudgetUpdate
from app.crud.budget import (
    create_budget_for_user,
    delete_budget,
    get_budget_by_id,
    get_budget_for_month,
    get_budgets_for_user,
    update_budget,
)
from app.core.database import get_async_session
from app.models.user import User
from app.api.deps import get_current_user

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/budgets", tags=["budgets"])

async def _get_owned_budget(budget_id: uuid.UUID, user: User, db: AsyncSession):
    budget = await get_budget_by_id(budget_id, user.id, db)
    if not budget:
        raise HTTPException(status.HTTP_404_NOT_FOUND, detail="Budget not found")
    return budget

@router.get("", response_model=List[BudgetRead])
async def read_budgets(
    db: AsyncSession = Depends(get_async_session),
    user: User = Depends(get_current_user),
):
    return await get_budgets_for_user(user.id, db)

@router.post("", response_model=BudgetRead, status_code=status.HTTP_201_CREATED)
async def create_budget(
    budget_in: BudgetCreate,
    db: AsyncSession = Depends(get_async_session),
    user: User = Depends(get_current_user),
):
    """Set the spending limit for a month. Only one budget per month is allowed."""
    if await get_budget_for_month(user.id, budget_in.month, budget_in.year, db):
        logger.warning(
            f"budget for {budget_in.year}-{budget_in.month:02d} already exists",
            extra={"op": "create_budget", "user_id": user.id},
        )
        raise HTTPException(status.HTTP_400_BAD_REQUEST, detail="Budget for this month already exists")
    return await create_budget_for_user(user.id, budget_in, db)

@router.get("/by-month", response_model=BudgetRead)
async def read_budget_for_month(
    month: int = Query(..., ge=1, le=12),
    year: int = Query(..., ge=2000, le=2100),
    db: AsyncSession = Depends(get_async_session),
    user: User = Depends(get_current_user),
):
    budget = await get_budget_for_month(user.id, month, year, db)
    if not budget:
        raise HTTPException(status.HTTP_404_NOT_FOUND, detail="Budget not found")
    return budget

@router.get("/{budget_id}", response_model=BudgetRead)
async def read_budget(
    budget_id: uuid.UUID,
    db: AsyncSession = Depends(get_async_session),
    user: User = Depends(get_current_user),
):
    return await _get_owned_budget(budget_id, user, db)

@router.patch("/{budget_id}", response_model=BudgetRead)
async def update_budget_endpoint(
    budget_id: uuid.UUID,
    budget_in: BudgetUpdate,
    db: AsyncSession = Depends(get_async_session),
    user: User = Depends(get_current_user),
):
    budget = await _get_owned_budget(budget_id, user, db)

    # Moving a budget onto a month that already has one
    month = budget_in.month if budget_in.month is not None else budget.month
    year = budget_in.year if budget_in.year is not None else budget.year
    existing = await get_budget_for_month(user.id, month, year, db)
    if existing is not None and existing.id != budget.id:
        raise HTTPException(status.HTTP_400_BAD_REQUEST, detail="Budget for this month already exists")

    return await update_budget(budget, budget_in, db)

@router.delete("/{budget_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_budget_endpoint(
    budget_id: uuid.UUID,
    db: AsyncSession = Depends(get_async_session),
    user: User = Depends(get_current_user),
):
    budget = await _get_owned_budget(budget_id, user, db)
    await delete_budget(budget, db)
    return None
