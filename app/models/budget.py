# app/models/budget.py
import uuid
from datetime import datetime
from sqlalchemy import Column, ForeignKey, Float, Integer, DateTime, Uuid, UniqueConstraint, CheckConstraint
from app.core.database import Base

class Budget(Base):
    """Spending limit a user sets for one calendar month."""
    __tablename__ = "budgets"
    __table_args__ = (
        UniqueConstraint("user_id", "year", "month", name="uq_budgets_user_month"),
        CheckConstraint("month >= 1 AND month <= 12", name="ck_budgets_month"),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    amount = Column(Float, nullable=False)
    month = Column(Integer, nullable=False)
    year = Column(Integer, nullable=False)

    created_at = Column(DateTime, default=datetime.now)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)

    def __repr__(self):
        return f"<Budget {self.year}-{self.month:02d} amount={self.amount} user_id={self.user_id}>"
