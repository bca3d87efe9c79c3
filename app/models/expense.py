# app/models/expense.py
import uuid
from datetime import datetime
from sqlalchemy import Column, String, ForeignKey, Float, DateTime, Uuid
from app.core.database import Base

class Expense(Base):
    __tablename__ = "expenses"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    category_id = Column(Uuid(as_uuid=True), ForeignKey("categories.id", ondelete="SET NULL"), nullable=True, index=True)
    amount = Column(Float, nullable=False)
    description = Column(String(length=255), nullable=False, default="")
    # For materialized expenses this is the occurrence being fulfilled, not the sweep time
    date = Column(DateTime, nullable=False, index=True)
    # Set when the recurring processor produced this row
    recurring_expense_id = Column(
        Uuid(as_uuid=True), ForeignKey("recurring_expenses.id", ondelete="SET NULL"), nullable=True
    )

    created_at = Column(DateTime, default=datetime.now)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)

    def __repr__(self):
        return f"<Expense amount={self.amount} date={self.date} user_id={self.user_id}>"
