# app/api/deps.py
from typing import Optional
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession
import uuid

from app.core.database import get_async_session
from app.core.security import decode_access_token
from app.crud.user import get_user_by_id
from app.models.user import User

# Security schemes
optional_security = HTTPBearer(auto_error=False)

def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )

async def get_current_user(
    request: Request,
    db: AsyncSession = Depends(get_async_session),
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(optional_security)
) -> User:
    """
    Resolve the current user from a bearer token found in:
    - the Authorization header
    - the access_token cookie
    """
    token = credentials.credentials if credentials and credentials.credentials else None

    if not token:
        token = request.cookies.get("access_token")
        # Remove "Bearer " prefix if present in cookie
        if token and token.startswith("Bearer "):
            token = token[7:]

    if not token:
        raise _unauthorized("Not authenticated")

    subject = decode_access_token(token)
    if not subject:
        raise _unauthorized("Invalid token")

    try:
        user_id = uuid.UUID(subject)
    except ValueError:
        raise _unauthorized("Invalid user ID format in token")

    user = await get_user_by_id(user_id, db)
    if not user:
        raise _unauthorized("User not found")
    if not user.is_active:
        raise _unauthorized("Inactive user")

    return user
