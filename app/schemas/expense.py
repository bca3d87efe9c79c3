# app/schemas/expense.py
from typing import Optional
from pydantic import BaseModel, Field
from datetime import datetime
import uuid

class ExpenseBase(BaseModel):
    category_id: uuid.UUID
    amount: float = Field(..., gt=0, description="Amount spent, must be positive")
    description: str = Field("", description="E.g. Groceries at the corner shop")
    date: datetime = Field(..., description="ISO 8601 date/time of the expense")

class ExpenseCreate(ExpenseBase):
    pass

class ExpenseUpdate(BaseModel):
    category_id: Optional[uuid.UUID] = None
    amount: Optional[float] = Field(None, gt=0)
    description: Optional[str] = None
    date: Optional[datetime] = None

class ExpenseFilter(BaseModel):
    category_id: Optional[uuid.UUID] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    min_amount: Optional[float] = None
    max_amount: Optional[float] = None
    limit: Optional[int] = Field(None, gt=0, le=1000)

class ExpenseRead(BaseModel):
    id: uuid.UUID
    user_id: uuid.UUID
    category_id: Optional[uuid.UUID] = None
    amount: float
    description: str
    date: datetime
    recurring_expense_id: Optional[uuid.UUID] = None

    class Config:
        from_attributes = True
