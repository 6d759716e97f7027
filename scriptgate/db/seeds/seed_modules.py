"""Seed the default module catalog."""

from sqlalchemy.orm import Session
from scriptgate.models.module import Module
from scriptgate.schemas.schemas import ModuleCreate
from scriptgate.services.module_service import module_service

MODULES_DATA = [
    {
        "module_id": "system_info",
        "name": "System Information",
        "description": "Display system information including CPU, memory, and disk usage",
        "tooltip": "View detailed system information",
        "icon": "server",
        "script_name": "system-info.sh",
        "parameters": [
            {
                "name": "format",
                "description": "Output format",
                "type": "string",
                "default_value": "text",
                "validation_pattern": "^(text|json|csv)$",
                "validation_message": "Format must be one of: text, json, csv",
            },
            {
                "name": "detail",
                "description": "Detail level",
                "type": "string",
                "default_value": "normal",
                "validation_pattern": "^(minimal|normal|detailed)$",
                "validation_message": "Detail must be one of: minimal, normal, detailed",
            },
        ],
    },
    {
        "module_id": "user_list",
        "name": "User List",
        "description": "List all system users",
        "tooltip": "View all system users",
        "icon": "users",
        "script_name": "user-list.sh",
        "parameters": [
            {
                "name": "sortBy",
                "description": "Sort by field",
                "type": "string",
                "default_value": "name",
                "validation_pattern": "^(name|uid|gid)$",
                "validation_message": "Sort field must be one of: name, uid, gid",
            },
        ],
    },
    {
        "module_id": "disk_usage",
        "name": "Disk Usage",
        "description": "Show disk usage of directories",
        "tooltip": "View disk usage information",
        "icon": "hdd",
        "script_name": "disk-usage.sh",
        "parameters": [
            {
                "name": "path",
                "description": "Directory path",
                "type": "string",
                "default_value": ".",
            },
            {
                "name": "min-size",
                "description": "Minimum size in MB",
                "type": "number",
                "default_value": 0,
            },
            {
                "name": "format",
                "description": "Output format",
                "type": "string",
                "default_value": "text",
                "validation_pattern": "^(text|json)$",
                "validation_message": "Format must be one of: text, json",
            },
        ],
    },
]


def seed_modules(db: Session) -> None:
    """Insert the default modules if they don't already exist."""
    for module_data in MODULES_DATA:
        existing = db.query(Module).filter(Module.module_id == module_data["module_id"]).first()
        if existing:
            print(f"ℹ️  Module '{existing.module_id}' already exists, skipping.")
            continue
        module = module_service.create_module(db, ModuleCreate.model_validate(module_data))
        print(f"✅ Created module: {module.module_id} -> {module.script_name}")
