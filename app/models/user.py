# app/models/user.py
import uuid
from datetime import datetime
from sqlalchemy import Column, String, Boolean, DateTime, Uuid
from app.core.database import Base

# Accounts are provisioned by the auth service; this API only resolves them
# from bearer tokens and scopes data by user_id.
class User(Base):
    __tablename__ = "users"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    email = Column(String, unique=True, index=True, nullable=False)
    full_name = Column(String, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime, default=datetime.now)

    def __repr__(self):
        return f"<User email={self.email}>"
