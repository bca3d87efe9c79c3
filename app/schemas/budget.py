# app/schemas/budget.py
from typing import Optional
from pydantic import BaseModel, Field
from datetime import datetime
import uuid

class BudgetBase(BaseModel):
    amount: float = Field(..., gt=0, description="Spending limit for the month, must be positive")
    month: int = Field(..., ge=1, le=12, description="1 = January .. 12 = December")
    year: int = Field(..., ge=2000, le=2100)

class BudgetCreate(BudgetBase):
    pass

class BudgetUpdate(BaseModel):
    amount: Optional[float] = Field(None, gt=0)
    month: Optional[int] = Field(None, ge=1, le=12)
    year: Optional[int] = Field(None, ge=2000, le=2100)

class BudgetRead(BudgetBase):
    id: uuid.UUID
    user_id: uuid.UUID
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True
