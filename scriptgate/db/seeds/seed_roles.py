"""Seed the built-in roles and their default module grants."""

from sqlalchemy.orm import Session
from scriptgate.models.role import Role, RolePermission

ROLES_DATA = [
    {
        "name": "admin",
        "level": 0,
        "description": "Administrator with full access",
        "modules": ["system_info", "user_list", "disk_usage"],
    },
    {
        "name": "manager",
        "level": 5,
        "description": "Manager with elevated access",
        "modules": [],
    },
    {
        "name": "user",
        "level": 10,
        "description": "Standard user",
        "modules": ["system_info", "disk_usage"],
    },
]


def seed_roles(db: Session) -> None:
    """Insert the built-in roles if they don't already exist.

    Existing roles keep their grants; missing default grants are added.
    """
    for role_data in ROLES_DATA:
        role = db.query(Role).filter(Role.name == role_data["name"]).first()
        if role:
            print(f"ℹ️  Role '{role.name}' already exists, skipping.")
        else:
            role = Role(
                name=role_data["name"],
                level=role_data["level"],
                description=role_data["description"],
            )
            db.add(role)
            print(f"✅ Created role: {role.name} (level {role.level})")

        granted = {p.module_id for p in role.permissions}
        for module_id in role_data["modules"]:
            if module_id not in granted:
                role.permissions.append(
                    RolePermission(module_id=module_id, description=f"Access to {module_id}")
                )

    db.commit()
