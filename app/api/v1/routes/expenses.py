# app/api/v1/routes/expenses.py
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List
import uuid

from app.schemas.expense import ExpenseCreate, ExpenseFilter, ExpenseRead, ExpenseUpdate
from app.crud.expense import (
    create_expense_for_user,
    delete_expense,
    get_expense_by_id,
    get_expenses_for_user,
    update_expense,
)
from app.crud.category import get_category_by_id
from app.core.database import get_async_session
from app.models.user import User
from app.api.deps import get_current_user

router = APIRouter(prefix="/expenses", tags=["expenses"])

@router.get("", response_model=List[ExpenseRead])
async def read_expenses(
    filters: ExpenseFilter = Depends(),
    db: AsyncSession = Depends(get_async_session),
    user: User = Depends(get_current_user),
):
    """
    List the user's expenses, newest first.

    Optional filters: `category_id`, `start_date`, `end_date`, `min_amount`,
    `max_amount` and `limit`.
    """
    return await get_expenses_for_user(user.id, db, filters=filters)

@router.post("", response_model=ExpenseRead, status_code=status.HTTP_201_CREATED)
async def create_expense(
    ex_in: ExpenseCreate,
    db: AsyncSession = Depends(get_async_session),
    user: User = Depends(get_current_user),
):
    if not await get_category_by_id(ex_in.category_id, user.id, db):
        raise HTTPException(status.HTTP_400_BAD_REQUEST, detail="Category not found")
    return await create_expense_for_user(user.id, ex_in, db)

@router.get("/{expense_id}", response_model=ExpenseRead)
async def read_expense(
    expense_id: uuid.UUID,
    db: AsyncSession = Depends(get_async_session),
    user: User = Depends(get_current_user),
):
    expense = await get_expense_by_id(expense_id, user.id, db)
    if not expense:
        raise HTTPException(status.HTTP_404_NOT_FOUND, detail="Expense not found")
    return expense

@router.patch("/{expense_id}", response_model=ExpenseRead)
async def update_expense_endpoint(
    expense_id: uuid.UUID,
    ex_in: ExpenseUpdate,
    db: AsyncSession = Depends(get_async_session),
    user: User = Depends(get_current_user),
):
    expense = await get_expense_by_id(expense_id, user.id, db)
    if not expense:
        raise HTTPException(status.HTTP_404_NOT_FOUND, detail="Expense not found")
    if ex_in.category_id is not None and not await get_category_by_id(ex_in.category_id, user.id, db):
        raise HTTPException(status.HTTP_400_BAD_REQUEST, detail="Category not found")
    return await update_expense(expense, ex_in, db)

@router.delete("/{expense_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_expense_endpoint(
    expense_id: uuid.UUID,
    db: AsyncSession = Depends(get_async_session),
    user: User = Depends(get_current_user),
):
    expense = await get_expense_by_id(expense_id, user.id, db)
    if not expense:
        raise HTTPException(status.HTTP_404_NOT_FOUND, detail="Expense not found")
    await delete_expense(expense, db)
    return None
