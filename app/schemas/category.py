# app/schemas/category.py
from typing import Optional
from pydantic import BaseModel
import uuid

class CategoryBase(BaseModel):
    name: str
    color: str = "#3B82F6"
    icon: Optional[str] = None

class CategoryCreate(CategoryBase):
    pass

class CategoryUpdate(BaseModel):
    name: Optional[str] = None
    color: Optional[str] = None
    icon: Optional[str] = None

class CategoryRead(CategoryBase):
    id: uuid.UUID
    user_id: uuid.UUID
    is_default: bool = False

    class Config:
        from_attributes = True
