"""
Caller identity resolution.

Tokens only prove who the caller is. Role and blocked state are always
read back from the user record, so a demoted or blocked account loses
access on its next request rather than when its token expires.
"""
import logging
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Optional

import jwt
from fastapi import Depends, Header, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from passlib.context import CryptContext
from pydantic import BaseModel

from config import get_settings
from database import get_document_by_id

logger = logging.getLogger(__name__)

settings = get_settings()

pwd_context = CryptContext(
    schemes=["bcrypt"],
    deprecated="auto",
    bcrypt__rounds=settings.password_hash_rounds,
)

bearer_scheme = HTTPBearer(auto_error=False)


class Role(str, Enum):
    USER = "user"
    ADMIN = "admin"


class CallerIdentity(BaseModel):
    id: str
    email: str
    role: Role = Role.USER
    blocked: bool = False

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN

    @classmethod
    def from_user(cls, user: dict) -> "CallerIdentity":
        return cls(
            id=user["_id"],
            email=user["email"],
            role=Role.ADMIN if user.get("is_admin") else Role.USER,
            blocked=user.get("is_blocked", False),
        )


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    return pwd_context.verify(password, password_hash)


def create_access_token(user: dict) -> str:
    expires = datetime.now(timezone.utc) + timedelta(days=settings.token_expire_days)
    claims = {
        "id": user["_id"],
        "email": user["email"],
        "isAdmin": user.get("is_admin", False),
        "exp": expires,
    }
    return jwt.encode(claims, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def token_response(user: dict) -> dict:
    return {
        "id": user["_id"],
        "email": user["email"],
        "name": user.get("name", ""),
        "address": user.get("address", ""),
        "is_admin": user.get("is_admin", False),
        "token": create_access_token(user),
    }


def _unauthorized() -> HTTPException:
    return HTTPException(status_code=401, detail="Unauthorized", headers={"WWW-Authenticate": "Bearer"})


def get_current_caller(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    access_token: Optional[str] = Header(None, convert_underscores=False),
) -> CallerIdentity:
    """FastAPI dependency: resolve the caller from the request token."""
    token = credentials.credentials if credentials else access_token
    if not token:
        raise _unauthorized()
    try:
        claims = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except jwt.PyJWTError as e:
        logger.debug(f"Rejected token: {e}")
        raise _unauthorized()

    user = get_document_by_id("user", claims.get("id", ""))
    if not user:
        raise _unauthorized()
    caller = CallerIdentity.from_user(user)
    if caller.blocked:
        logger.info(f"Blocked user {caller.id} refused")
        raise _unauthorized()
    return caller


def require_admin(caller: CallerIdentity = Depends(get_current_caller)) -> CallerIdentity:
    if not caller.is_admin:
        raise _unauthorized()
    return caller
