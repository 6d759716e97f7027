"""Seed the administrator account from env vars."""

from sqlalchemy.orm import Session
from scriptgate.models.user import User
from scriptgate.models.role import ADMIN_ROLE, Role
from scriptgate.core.security import hash_password
from scriptgate.core.config import settings


def seed_admin(db: Session) -> None:
    """Create the administrator user if not already present."""
    admin_role = db.query(Role).filter(Role.name == ADMIN_ROLE).first()
    if not admin_role:
        print("⚠️  admin role not found. Run seed_roles first.")
        return

    existing = db.query(User).filter(User.username == settings.ADMIN_USERNAME).first()
    if existing:
        print(f"ℹ️  Admin '{settings.ADMIN_USERNAME}' already exists, skipping.")
        return

    admin = User(
        username=settings.ADMIN_USERNAME,
        hashed_password=hash_password(settings.ADMIN_PASSWORD),
        full_name="Administrator",
        auth_source="local",
        is_active=True,
        role_id=admin_role.id,
    )
    db.add(admin)
    db.commit()
    print(f"✅ Created admin: {settings.ADMIN_USERNAME}")
