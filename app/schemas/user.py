# app/schemas/user.py
from typing import Optional
import uuid
from pydantic import BaseModel

# Public fields returned on GET /users/me
class UserRead(BaseModel):
    id: uuid.UUID
    email: str
    full_name: Optional[str] = None
    is_active: bool

    class Config:
        from_attributes = True

class UserUpdate(BaseModel):
    full_name: Optional[str] = None
