# app/schemas/recurring_expense.py
from typing import Optional
from pydantic import BaseModel, Field
from datetime import datetime
import uuid
from app.models.recurring_expense import RecurringExpenseType

class RecurringExpenseCreate(BaseModel):
    category_id: uuid.UUID
    amount: float = Field(..., description="Amount per occurrence, must be positive")
    description: str = ""
    type: RecurringExpenseType = Field(..., description="daily, weekly, monthly or yearly")
    day_of_week: Optional[int] = Field(None, description="0 = Sunday .. 6 = Saturday, required for weekly")
    day_of_month: Optional[int] = Field(None, description="1..31, required for monthly")

# Absent and null fields are both left untouched
class RecurringExpenseUpdate(BaseModel):
    category_id: Optional[uuid.UUID] = None
    amount: Optional[float] = None
    description: Optional[str] = None
    type: Optional[RecurringExpenseType] = None
    day_of_week: Optional[int] = None
    day_of_month: Optional[int] = None
    is_active: Optional[bool] = None

class RecurringExpenseRead(BaseModel):
    id: uuid.UUID
    user_id: uuid.UUID
    category_id: uuid.UUID
    amount: float
    description: str
    type: RecurringExpenseType
    day_of_week: Optional[int] = None
    day_of_month: Optional[int] = None
    is_active: bool
    next_date: datetime
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True
