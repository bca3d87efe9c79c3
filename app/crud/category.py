# app/crud/category.py
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from app.models.category import Category
from typing import List, Optional
import uuid
from app.schemas.category import CategoryCreate, CategoryUpdate

def _owned_by(user_id: uuid.UUID):
    return select(Category).where(Category.user_id == user_id)

async def get_categories_for_user(user_id: uuid.UUID, db: AsyncSession) -> List[Category]:
    """Built-in categories first, then alphabetical."""
    result = await db.execute(
        _owned_by(user_id).order_by(Category.is_default.desc(), Category.name)
    )
    return result.scalars().all()

async def get_category_by_id(category_id: uuid.UUID, user_id: uuid.UUID, db: AsyncSession) -> Optional[Category]:
    result = await db.execute(_owned_by(user_id).where(Category.id == category_id))
    return result.scalar_one_or_none()

async def _save(category: Category, db: AsyncSession) -> Category:
    db.add(category)
    await db.commit()
    await db.refresh(category)
    return category

async def create_category_for_user(user_id: uuid.UUID, cat_in: CategoryCreate, db: AsyncSession) -> Category:
    return await _save(Category(user_id=user_id, **cat_in.model_dump()), db)

async def update_category(category: Category, cat_in: CategoryUpdate, db: AsyncSession) -> Category:
    changes = cat_in.model_dump(exclude_none=True)
    for field in changes:
        setattr(category, field, changes[field])
    return await _save(category, db)

async def delete_category(category: Category, db: AsyncSession) -> None:
    """Expenses in the category keep existing with ``category_id`` cleared."""
    await db.delete(category)
    await db.commit()
