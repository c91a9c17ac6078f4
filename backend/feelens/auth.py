"""
FeeLens - Authentication Utilities
JWT tokens and auth dependencies

Accounts and sign-in live in a separate identity service; this module only
verifies the bearer token it issues and loads the user row that carries the
role and the provider a user represents.
"""
import os
from datetime import datetime, timedelta
from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import JWTError, jwt
from sqlalchemy.orm import Session

from .database import get_db
from .errors import AuthRequiredError, ForbiddenError
from .models.db_models import UserDB
from .models.domain import Actor

# Configuration
SECRET_KEY = os.getenv("JWT_SECRET_KEY", "feelens-secret-key-change-in-production")
ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_HOURS = int(os.getenv("ACCESS_TOKEN_EXPIRE_HOURS", "24"))

# Bearer token security; missing credentials are mapped to AUTH_REQUIRED below
security = HTTPBearer(auto_error=False)


def create_access_token(user_id: str, email: str, role: str = "user") -> str:
    """Create a JWT access token with role claim."""
    expire = datetime.utcnow() + timedelta(hours=ACCESS_TOKEN_EXPIRE_HOURS)
    to_encode = {
        "sub": user_id,
        "email": email,
        "role": role,
        "exp": expire
    }
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)


def decode_token(token: str) -> Optional[dict]:
    """Decode and validate a JWT token. Expired tokens fail here."""
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
        return payload
    except JWTError:
        return None


def actor_for(user: UserDB) -> Actor:
    return Actor(user_id=user.id, role=user.role, provider_id=user.provider_id)


def _user_from_credentials(
    credentials: Optional[HTTPAuthorizationCredentials],
    db: Session,
) -> Optional[UserDB]:
    if credentials is None:
        return None

    payload = decode_token(credentials.credentials)
    if payload is None:
        raise AuthRequiredError("Could not validate credentials")

    user_id = payload.get("sub")
    if user_id is None:
        raise AuthRequiredError("Could not validate credentials")

    user = db.query(UserDB).filter(UserDB.id == user_id).first()
    if user is None:
        raise AuthRequiredError("Could not validate credentials")
    return user


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db)
) -> UserDB:
    """
    Dependency to get the current authenticated user.
    Validates JWT token and fetches user from database.
    """
    user = _user_from_credentials(credentials, db)
    if user is None:
        raise AuthRequiredError()
    return user


async def get_current_actor(current_user: UserDB = Depends(get_current_user)) -> Actor:
    return actor_for(current_user)


async def get_optional_actor(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db)
) -> Optional[Actor]:
    """Anonymous access allowed; a bad token is still rejected."""
    user = _user_from_credentials(credentials, db)
    return actor_for(user) if user else None


async def require_moderator(actor: Actor = Depends(get_current_actor)) -> Actor:
    """
    Dependency to require moderator or admin role.
    Use this on moderation routes.
    """
    if not actor.is_moderator:
        raise ForbiddenError("Moderator access required")
    return actor


async def require_admin(actor: Actor = Depends(get_current_actor)) -> Actor:
    """
    Dependency to require admin role.
    Use this on admin-only routes.
    """
    if not actor.is_admin:
        raise ForbiddenError("Admin access required")
    return actor
