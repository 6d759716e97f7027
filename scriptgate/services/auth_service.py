"""Auth service: identity adapters, JWT login, user management."""

import logging
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Dict, Any, Optional, Type

from sqlalchemy.orm import Session

from scriptgate.core.config import settings
from scriptgate.core.exceptions import (
    AuthenticationError, ResourceConflictError, ResourceNotFoundError,
)
from scriptgate.core.security import create_access_token, hash_password, verify_password
from scriptgate.models.role import DEFAULT_ROLE, Role
from scriptgate.models.user import User

logger = logging.getLogger("scriptgate.auth")


class AuthAdapter(ABC):
    """Identity source. ``authenticate`` returns the matching user or ``None``."""

    source = "base"

    @abstractmethod
    def authenticate(self, db: Session, username: str, password: str) -> Optional[User]:
        ...


class LocalAuthAdapter(AuthAdapter):
    """Users with bcrypt password hashes stored in the users table."""

    source = "local"

    def authenticate(self, db: Session, username: str, password: str) -> Optional[User]:
        user = (
            db.query(User)
            .filter(User.username == username, User.auth_source == self.source)
            .first()
        )
        if not user or not verify_password(password, user.hashed_password):
            return None
        return user


AUTH_ADAPTERS: Dict[str, Type[AuthAdapter]] = {
    "local": LocalAuthAdapter,
}


def get_auth_adapter(mode: str) -> AuthAdapter:
    """Instantiate the adapter registered for ``mode``."""
    try:
        return AUTH_ADAPTERS[mode]()
    except KeyError:
        raise ValueError(
            f"Unknown AUTH_MODE {mode!r}; expected one of: {', '.join(sorted(AUTH_ADAPTERS))}"
        )


class AuthService:
    """Handles authentication and user management."""

    def __init__(self, adapter: AuthAdapter):
        self.adapter = adapter

    def authenticate(self, db: Session, username: str, password: str) -> Dict[str, Any]:
        """Authenticate a user and return a JWT access token.

        Raises:
            AuthenticationError: If credentials are invalid.
        """
        user = self.adapter.authenticate(db, username, password)
        if not user:
            logger.warning("Failed login for %s", username)
            raise AuthenticationError("Invalid username or password")

        if not user.is_active:
            logger.warning("Login attempt for deactivated account %s", username)
            raise AuthenticationError("Account is deactivated")

        role_name = user.role.name if user.role else DEFAULT_ROLE
        access_token = create_access_token({
            "sub": str(user.id),
            "username": user.username,
            "role": role_name,
        })

        user.last_login_at = datetime.now(timezone.utc)
        db.commit()
        logger.info("User %s logged in with role %s", user.username, role_name)

        return {
            "access_token": access_token,
            "token_type": "bearer",
            "user": {
                "id": user.id,
                "username": user.username,
                "full_name": user.full_name,
                "role": role_name,
            },
        }

    @staticmethod
    def _get_role(db: Session, role_name: str) -> Role:
        role = db.query(Role).filter(Role.name == role_name).first()
        if not role:
            raise ResourceNotFoundError(f"Role '{role_name}' not found")
        return role

    @staticmethod
    def create_user(
        db: Session,
        username: str,
        password: str,
        full_name: str,
        role_name: str = DEFAULT_ROLE,
        email: Optional[str] = None,
    ) -> User:
        """Create a new local user."""
        if db.query(User).filter(User.username == username).first():
            raise ResourceConflictError(f"User {username} already exists")

        role = AuthService._get_role(db, role_name)
        user = User(
            username=username,
            hashed_password=hash_password(password),
            full_name=full_name,
            email=email,
            auth_source="local",
            role_id=role.id,
            is_active=True,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        logger.info("User created: %s (%s)", username, role_name)
        return user

    @staticmethod
    def get_user(db: Session, user_id: int) -> User:
        """Get a user by id."""
        user = db.query(User).filter(User.id == user_id).first()
        if not user:
            raise ResourceNotFoundError(f"User {user_id} not found")
        return user

    @staticmethod
    def update_user(
        db: Session,
        user_id: int,
        full_name: Optional[str] = None,
        email: Optional[str] = None,
        role_name: Optional[str] = None,
        is_active: Optional[bool] = None,
        password: Optional[str] = None,
    ) -> User:
        user = AuthService.get_user(db, user_id)
        if role_name is not None:
            user.role_id = AuthService._get_role(db, role_name).id
        if full_name is not None:
            user.full_name = full_name
        if email is not None:
            user.email = email
        if is_active is not None:
            user.is_active = is_active
        if password is not None:
            user.hashed_password = hash_password(password)
        db.commit()
        db.refresh(user)
        return user

    @staticmethod
    def list_users(db: Session, page: int = 1, page_size: int = 20):
        """List all users with pagination."""
        total = db.query(User).count()
        users = (
            db.query(User)
            .order_by(User.username)
            .offset((page - 1) * page_size)
            .limit(page_size)
            .all()
        )
        return {"users": users, "total": total, "page": page}


auth_service = AuthService(get_auth_adapter(settings.AUTH_MODE))
