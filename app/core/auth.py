from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer
from jose import JWTError, jwt
from pydantic import BaseModel

from app.core.config import settings
from app.db.mongo import get_db
from app.repositories.profile_repo import ProfileRepository

security = HTTPBearer()


class CurrentUser(BaseModel):
    """Identity carried by the bearer token."""
    id: str
    email: Optional[str] = None


def create_access_token(user_id: str, email: Optional[str] = None, expires_delta: timedelta | None = None) -> str:
    """Create JWT access token (tooling and tests; production tokens come from the auth provider)."""
    if expires_delta is None:
        expires_delta = timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)

    now = datetime.now(timezone.utc)
    expire = now + expires_delta

    payload = {
        "sub": user_id,
        "exp": int(expire.timestamp()),
        "iat": int(now.timestamp())
    }
    if email:
        payload["email"] = email

    return jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_access_token(token: str) -> CurrentUser:
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token"
        )

    user_id = payload.get("sub")
    if user_id is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token"
        )
    return CurrentUser(id=str(user_id), email=payload.get("email"))


async def get_current_user(
    credentials = Depends(security),
    db = Depends(get_db)
) -> CurrentUser:
    """Get current user from JWT token; first sight creates their profile."""
    user = decode_access_token(credentials.credentials)
    await ProfileRepository(db).ensure_profile(user.id, user.email)
    return user
