# app/api/v1/routes/recurring_expenses.py
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List
import uuid

from app.schemas.recurring_expense import (
    RecurringExpenseCreate,
    RecurringExpenseRead,
    RecurringExpenseUpdate,
)
from app.utils.recurring_processor import (
    activate_recurring_expense,
    create_recurring_expense_for_user,
    deactivate_recurring_expense,
    delete_recurring_expense_for_user,
    get_recurring_expense,
    list_active_recurring_expenses,
    list_recurring_expenses,
    update_recurring_expense_for_user,
)
from app.crud.category import get_category_by_id
from app.core.database import get_async_session
from app.core.exceptions import RecurringExpenseNotFound, RecurringExpenseValidationError
from app.models.user import User
from app.api.deps import get_current_user

router = APIRouter(prefix="/recurring-expenses", tags=["recurring expenses"])

async def _ensure_category(category_id: uuid.UUID, user_id: uuid.UUID, db: AsyncSession) -> None:
    if not await get_category_by_id(category_id, user_id, db):
        raise HTTPException(status.HTTP_400_BAD_REQUEST, detail="Category not found")

@router.get("", response_model=List[RecurringExpenseRead])
async def read_recurring_expenses(
    db: AsyncSession = Depends(get_async_session),
    user: User = Depends(get_current_user),
):
    """All of the user's recurring expenses, soonest next occurrence first."""
    return await list_recurring_expenses(user.id, db)

@router.post("", response_model=RecurringExpenseRead, status_code=status.HTTP_201_CREATED)
async def create_recurring_expense(
    re_in: RecurringExpenseCreate,
    db: AsyncSession = Depends(get_async_session),
    user: User = Depends(get_current_user),
):
    """
    Create a recurring expense.

    - **weekly** requires `day_of_week` (0 = Sunday .. 6 = Saturday)
    - **monthly** requires `day_of_month` (1..31, clamped to short months)
    - **daily** and **yearly** take no anchor
    """
    await _ensure_category(re_in.category_id, user.id, db)
    try:
        return await create_recurring_expense_for_user(user.id, re_in, db)
    except RecurringExpenseValidationError as e:
        raise HTTPException(status.HTTP_400_BAD_REQUEST, detail=str(e))

@router.get("/active", response_model=List[RecurringExpenseRead])
async def read_active_recurring_expenses(
    db: AsyncSession = Depends(get_async_session),
    user: User = Depends(get_current_user),
):
    return await list_active_recurring_expenses(user.id, db)

@router.get("/{recurring_expense_id}", response_model=RecurringExpenseRead)
async def read_recurring_expense(
    recurring_expense_id: uuid.UUID,
    db: AsyncSession = Depends(get_async_session),
    user: User = Depends(get_current_user),
):
    try:
        return await get_recurring_expense(recurring_expense_id, db, user_id=user.id)
    except RecurringExpenseNotFound:
        raise HTTPException(status.HTTP_404_NOT_FOUND, detail="Recurring expense not found")

@router.patch("/{recurring_expense_id}", response_model=RecurringExpenseRead)
async def update_recurring_expense_endpoint(
    recurring_expense_id: uuid.UUID,
    re_in: RecurringExpenseUpdate,
    db: AsyncSession = Depends(get_async_session),
    user: User = Depends(get_current_user),
):
    """
    Partially update a recurring expense. Changing `type`, `day_of_week` or
    `day_of_month` reschedules from the current `next_date`.
    """
    if re_in.category_id is not None:
        await _ensure_category(re_in.category_id, user.id, db)
    try:
        return await update_recurring_expense_for_user(recurring_expense_id, re_in, db, user_id=user.id)
    except RecurringExpenseNotFound:
        raise HTTPException(status.HTTP_404_NOT_FOUND, detail="Recurring expense not found")
    except RecurringExpenseValidationError as e:
        raise HTTPException(status.HTTP_400_BAD_REQUEST, detail=str(e))

@router.delete("/{recurring_expense_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_recurring_expense_endpoint(
    recurring_expense_id: uuid.UUID,
    db: AsyncSession = Depends(get_async_session),
    user: User = Depends(get_current_user),
):
    try:
        await delete_recurring_expense_for_user(recurring_expense_id, db, user_id=user.id)
    except RecurringExpenseNotFound:
        raise HTTPException(status.HTTP_404_NOT_FOUND, detail="Recurring expense not found")
    return None

@router.post("/{recurring_expense_id}/activate", response_model=RecurringExpenseRead)
async def activate_recurring_expense_endpoint(
    recurring_expense_id: uuid.UUID,
    db: AsyncSession = Depends(get_async_session),
    user: User = Depends(get_current_user),
):
    try:
        return await activate_recurring_expense(recurring_expense_id, db, user_id=user.id)
    except RecurringExpenseNotFound:
        raise HTTPException(status.HTTP_404_NOT_FOUND, detail="Recurring expense not found")

@router.post("/{recurring_expense_id}/deactivate", response_model=RecurringExpenseRead)
async def deactivate_recurring_expense_endpoint(
    recurring_expense_id: uuid.UUID,
    db: AsyncSession = Depends(get_async_session),
    user: User = Depends(get_current_user),
):
    try:
        return await deactivate_recurring_expense(recurring_expense_id, db, user_id=user.id)
    except RecurringExpenseNotFound:
        raise HTTPException(status.HTTP_404_NOT_FOUND, detail="Recurring expense not found")
