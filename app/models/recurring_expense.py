# app/models/recurring_expense.py
import uuid
from datetime import datetime
from sqlalchemy import Column, String, ForeignKey, Float, Boolean, Enum, DateTime, Integer, Uuid
from app.core.database import Base
import enum

class RecurringExpenseType(str, enum.Enum):
    daily = "daily"
    weekly = "weekly"
    monthly = "monthly"
    yearly = "yearly"

class RecurringExpense(Base):
    __tablename__ = "recurring_expenses"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    # A category cannot be deleted while definitions still reference it
    category_id = Column(Uuid(as_uuid=True), ForeignKey("categories.id", ondelete="RESTRICT"), nullable=False, index=True)
    amount = Column(Float, nullable=False)
    description = Column(String(length=255), nullable=False, default="")
    type = Column(Enum(RecurringExpenseType), nullable=False)
    # 0 = Sunday .. 6 = Saturday, weekly only
    day_of_week = Column(Integer, nullable=True)
    # 1..31, monthly only; clamped to the month's last day when scheduling
    day_of_month = Column(Integer, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    # The single scheduling cursor: when the next expense is due
    next_date = Column(DateTime, nullable=False, index=True)

    created_at = Column(DateTime, default=datetime.now)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)

    def __repr__(self):
        return f"<RecurringExpense type={self.type} amount={self.amount} next_date={self.next_date} user_id={self.user_id}>"
