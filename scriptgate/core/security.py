"""JWT authentication and RBAC authorization helpers."""

import bcrypt
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import JWTError, jwt
from sqlalchemy.orm import Session

from scriptgate.core.config import settings
from scriptgate.db.session import get_db
from scriptgate.models.role import Role
from scriptgate.schemas.schemas import Identity

# JWT bearer scheme
security_scheme = HTTPBearer(auto_error=False)


def hash_password(password: str) -> str:
    """Hash a password using bcrypt."""
    pwd_bytes = password.encode("utf-8")
    salt = bcrypt.gensalt()
    hashed = bcrypt.hashpw(pwd_bytes, salt)
    return hashed.decode("utf-8")


def verify_password(plain_password: str, hashed_password: Optional[str]) -> bool:
    """Verify a password against its hash. Accounts without a hash never match."""
    if not hashed_password:
        return False
    return bcrypt.checkpw(plain_password.encode("utf-8"), hashed_password.encode("utf-8"))


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """Create a JWT access token."""
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.JWT_EXPIRY_MINUTES)
    )
    to_encode.update({"exp": expire, "type": "access"})
    return jwt.encode(to_encode, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def decode_token(token: str) -> dict:
    """Decode and validate a JWT token."""
    try:
        return jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
    except JWTError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )


def get_current_identity(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security_scheme),
) -> Identity:
    """Extract the caller identity from the JWT Bearer token."""
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    payload = decode_token(credentials.credentials)
    try:
        return Identity(
            user_id=int(payload["sub"]),
            username=payload["username"],
            role=payload["role"],
        )
    except (KeyError, TypeError, ValueError):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token payload",
        )


class RequireRole:
    """Dependency that checks the caller's role is at least as privileged as ``min_role``.

    Levels are read from the database on every request, so a level change
    takes effect without reissuing tokens.
    """

    def __init__(self, min_role: str):
        self.min_role = min_role

    def __call__(
        self,
        identity: Identity = Depends(get_current_identity),
        db: Session = Depends(get_db),
    ) -> Identity:
        required = db.query(Role).filter(Role.name == self.min_role).first()
        actual = db.query(Role).filter(Role.name == identity.role).first()
        if required is None or actual is None or actual.level > required.level:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Role '{identity.role}' insufficient. Requires '{self.min_role}'.",
            )
        return identity


# Convenience dependency
require_admin = RequireRole("admin")
