# app/models/category.py
import uuid
from datetime import datetime
from sqlalchemy import Column, String, ForeignKey, Boolean, DateTime, Uuid
from app.core.database import Base

class Category(Base):
    __tablename__ = "categories"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(length=100), nullable=False)
    color = Column(String(length=16), nullable=False, default="#3B82F6")
    icon = Column(String(length=64), nullable=True)
    is_default = Column(Boolean(), default=False)  # True for built-in categories seeded at signup

    created_at = Column(DateTime, default=datetime.now)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)

    def __repr__(self):
        return f"<Category name={self.name} user_id={self.user_id}>"
