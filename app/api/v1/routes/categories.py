# app/api/v1/routes/categories.py
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List
import logging
import uuid

from app.schemas.category import CategoryCreate, CategoryRead, CategoryUpdate
from app.crud.category import (
    create_category_for_user,
    get_categories_for_user,
    get_category_by_id,
    update_category,
    delete_category,
)
from app.crud.recurring_expense import count_recurring_expenses_for_category
from app.core.database import get_async_session
from app.models.category import Category
from app.models.user import User
from app.api.deps import get_current_user

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/categories", tags=["categories"])

async def _get_owned_category(category_id: uuid.UUID, user: User, db: AsyncSession) -> Category:
    category = await get_category_by_id(category_id, user.id, db)
    if not category:
        raise HTTPException(status.HTTP_404_NOT_FOUND, detail="Category not found")
    return category

@router.get("", response_model=List[CategoryRead])
async def read_categories(
    db: AsyncSession = Depends(get_async_session),
    user: User = Depends(get_current_user),
):
    return await get_categories_for_user(user.id, db)

@router.post("", response_model=CategoryRead, status_code=status.HTTP_201_CREATED)
async def create_category(
    cat_in: CategoryCreate,
    db: AsyncSession = Depends(get_async_session),
    user: User = Depends(get_current_user),
):
    return await create_category_for_user(user.id, cat_in, db)

@router.get("/{category_id}", response_model=CategoryRead)
async def read_category(
    category_id: uuid.UUID,
    db: AsyncSession = Depends(get_async_session),
    user: User = Depends(get_current_user),
):
    return await _get_owned_category(category_id, user, db)

@router.patch("/{category_id}", response_model=CategoryRead)
async def update_category_endpoint(
    category_id: uuid.UUID,
    cat_in: CategoryUpdate,
    db: AsyncSession = Depends(get_async_session),
    user: User = Depends(get_current_user),
):
    category = await _get_owned_category(category_id, user, db)
    return await update_category(category, cat_in, db)

@router.delete("/{category_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_category_endpoint(
    category_id: uuid.UUID,
    db: AsyncSession = Depends(get_async_session),
    user: User = Depends(get_current_user),
):
    """
    Delete a category. Refused while recurring expenses still use it; its
    one-off expenses are kept without a category.
    """
    category = await _get_owned_category(category_id, user, db)
    in_use = await count_recurring_expenses_for_category(category.id, db)
    if in_use:
        logger.warning(
            f"category still referenced by {in_use} recurring expense(s)",
            extra={"op": "delete_category", "user_id": user.id},
        )
        raise HTTPException(
            status.HTTP_400_BAD_REQUEST,
            detail="Category is used by recurring expenses; delete or move them first",
        )
    await delete_category(category, db)
    return None
