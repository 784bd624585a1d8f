"""Static role -> capability map. superadmin and admin bypass the map entirely (see rbac.check_permission)."""

from typing import Dict, List

from app.core.enums import UserRole

READ = {"read": True}
CRUD = {"create": True, "read": True, "update": True, "delete": True}

ROLE_PERMISSIONS: Dict[str, Dict[str, Dict[str, bool]]] = {
    UserRole.ACCOUNTANT.value: {
        "sessions": READ,
        "classes": READ,
        "sections": READ,
        "students": READ,
        "fee_setup": READ,
        "fees": CRUD,
        "dashboard": READ,
    },
    UserRole.TEACHER.value: {
        "sessions": READ,
        "classes": READ,
        "sections": READ,
        "students": READ,
        "fees": READ,
        "dashboard": READ,
    },
    UserRole.STUDENT.value: {
        "sessions": READ,
        "dashboard": READ,
    },
}

ALL_MODULES = ("users", "sessions", "classes", "sections", "students", "fee_setup", "fees", "dashboard")

ADMIN_ROLES = (UserRole.SUPERADMIN.value, UserRole.ADMIN.value)


def permissions_for_role(role: str) -> Dict[str, Dict[str, bool]]:
    if role in ADMIN_ROLES:
        return {module: dict(CRUD) for module in ALL_MODULES}
    return {module: dict(actions) for module, actions in ROLE_PERMISSIONS.get(role, {}).items()}


def flatten_permissions(permissions: Dict[str, Dict[str, bool]]) -> List[str]:
    return sorted(
        f"{module}.{action}"
        for module, actions in permissions.items()
        for action, allowed in actions.items()
        if allowed
    )
