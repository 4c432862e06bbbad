"""
Registered entity resources, their relations and the permission catalogue
derived from them (used by the dashboard menu and the seed script).
"""
from __future__ import annotations

from app.schoolpanel.modules.groups import admin as groups_admin
from app.schoolpanel.modules.subjects import admin as subjects_admin
from app.schoolpanel.modules.users import admin as users_admin
from app.schoolpanel.resources import OPERATIONS

MODULES = (users_admin, subjects_admin, groups_admin)

RESOURCES = tuple(m.resource for m in MODULES)

# Area permissions granted per role by the seed script.
AREA_PERMISSIONS = ("admin_access", "student_access", "teacher_access", "parent_access")


def permission_catalogue() -> list[tuple[str, str]]:
    """(key, display name) for every permission the panel checks."""
    perms: list[tuple[str, str]] = []
    seen: set[str] = set()

    def add(key: str, name: str) -> None:
        if key not in seen:
            seen.add(key)
            perms.append((key, name))

    for key in AREA_PERMISSIONS:
        add(key, key.replace("_", " ").capitalize())
    for module in MODULES:
        resource = module.resource
        for op in OPERATIONS:
            add(resource.permission(op), f"{resource.name.capitalize()}: {op}")
        for rel in module.relations.values():
            add(rel.permission, f"{resource.name.capitalize()}: assign {rel.name}")
    return perms
