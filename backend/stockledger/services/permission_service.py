# Overview: Service-layer operations for permission; encapsulates business logic and database work.

"""
Permission Checking

WHY: Enforce role-based access control. A user holds exactly one role and
the role's permission set is the user's permission set.

DESIGN PRINCIPLES:
- Fail closed: Deny by default, require explicit permission grant
- Inactive users hold no permissions
"""

from ..extensions import db
from ..models import User, Role, RolePermission, Permission
from ..permissions import PERMISSION_DEFINITIONS, DEFAULT_ROLES, DEFAULT_ROLE_PERMISSIONS


def get_user_permissions(user_id: int) -> set[str]:
    """
    Get all permission names for a user.

    Returns set of permission names (e.g., {"read_item", "create_sale_transaction"}).
    """
    user = db.session.get(User, user_id)
    if not user or not user.is_active:
        return set()

    rows = (
        db.session.query(Permission.name)
        .join(RolePermission, RolePermission.permission_id == Permission.id)
        .filter(RolePermission.role_id == user.role_id)
        .all()
    )
    return {name for (name,) in rows}


def user_has_permission(user_id: int, permission_name: str) -> bool:
    """
    Check if user has a specific permission.

    Requests use the set cached on g; this is for one-off checks (CLI, scripts).
    """
    return permission_name in get_user_permissions(user_id)


def initialize_permissions() -> int:
    """
    Initialize all permission definitions in database.

    Idempotent: Safe to run multiple times.
    Returns the number of permissions created.
    """
    created_count = 0

    for name, description, _category in PERMISSION_DEFINITIONS:
        existing = db.session.query(Permission).filter_by(name=name).first()

        if not existing:
            db.session.add(Permission(name=name, description=description))
            created_count += 1

    db.session.commit()
    return created_count


def create_default_roles() -> int:
    """
    Create the default roles and link them to their default permissions.

    Idempotent: existing roles and grants are left alone.
    Run initialize_permissions() first; unknown permission names are skipped.
    """
    created_count = 0

    for role_name, description in DEFAULT_ROLES:
        role = db.session.query(Role).filter_by(name=role_name).first()
        if not role:
            role = Role(name=role_name, description=description)
            db.session.add(role)
            db.session.flush()

        for permission_name in DEFAULT_ROLE_PERMISSIONS.get(role_name, []):
            permission = db.session.query(Permission).filter_by(name=permission_name).first()
            if not permission:
                continue

            existing = db.session.query(RolePermission).filter_by(
                role_id=role.id,
                permission_id=permission.id
            ).first()

            if not existing:
                db.session.add(RolePermission(role_id=role.id, permission_id=permission.id))
                created_count += 1

    db.session.commit()
    return created_count


def get_role_by_name(role_name: str) -> Role:
    role = db.session.query(Role).filter_by(name=role_name).first()
    if not role:
        raise ValueError(f"Role '{role_name}' not found")
    return role
