"""Matrix service — role and grant administration.

Every mutation invalidates the grant cache so enforcement picks up the
change on the next request instead of after the cache TTL.
"""

import logging
from typing import Optional, Iterable

from fastapi import Request
from sqlalchemy.orm import Session

from routeguard.core.access import Principal, RoleClass, resolve_role_class, validate_actions
from routeguard.core.exceptions import (
    ResourceConflictError, ResourceNotFoundError, ValidationError,
)
from routeguard.models.permission import Permission, RolePermissionGrant
from routeguard.models.role import Role
from routeguard.services.audit_service import audit_service
from routeguard.services.grant_service import GrantService, grant_service

logger = logging.getLogger("routeguard")


class MatrixService:
    """CRUD over roles and role/permission grants."""

    def __init__(self, grants: Optional[GrantService] = None):
        self.grants = grants or grant_service

    # ---- Reads ----
    @staticmethod
    def list_permissions(db: Session) -> list[Permission]:
        return db.query(Permission).order_by(Permission.page_group, Permission.module_key).all()

    @staticmethod
    def list_roles(db: Session, department_id: Optional[int] = None) -> list[Role]:
        query = db.query(Role)
        if department_id is not None:
            query = query.filter(Role.department_id == department_id)
        return query.order_by(Role.role_name).all()

    @staticmethod
    def get_role(db: Session, role_id: int) -> Role:
        role = db.query(Role).filter(Role.role_id == role_id).first()
        if not role:
            raise ResourceNotFoundError(f"Role {role_id} not found")
        return role

    @staticmethod
    def get_matrix(db: Session) -> list[dict]:
        """Every grant row as ``{role_id, permission_id, module_key, granted_actions}``."""
        rows = (
            db.query(RolePermissionGrant)
            .join(Permission, Permission.permission_id == RolePermissionGrant.permission_id)
            .order_by(RolePermissionGrant.role_id, Permission.module_key)
            .all()
        )
        return [
            {
                "role_id": r.role_id,
                "permission_id": r.permission_id,
                "module_key": r.permission.module_key,
                "granted_actions": r.granted_actions,
            }
            for r in rows
        ]

    # ---- Grants ----
    def set_grant(
        self,
        db: Session,
        role_id: int,
        permission_id: int,
        actions: Iterable[str],
        actor: Optional[Principal] = None,
        request: Optional[Request] = None,
    ) -> Optional[RolePermissionGrant]:
        """Replace a role's actions on one permission; an empty list revokes it."""
        actions = list(dict.fromkeys(actions))
        unknown = validate_actions(actions)
        if unknown:
            raise ValidationError(f"Invalid actions: {', '.join(unknown)}")

        role = self.get_role(db, role_id)
        permission = db.query(Permission).filter(Permission.permission_id == permission_id).first()
        if not permission:
            raise ResourceNotFoundError(f"Permission {permission_id} not found")
        unavailable = [a for a in actions if a not in permission.available_actions]
        if unavailable:
            raise ValidationError(
                f"Actions not available on '{permission.module_key}': {', '.join(unavailable)}"
            )

        grant = (
            db.query(RolePermissionGrant)
            .filter(
                RolePermissionGrant.role_id == role.role_id,
                RolePermissionGrant.permission_id == permission.permission_id,
            )
            .first()
        )
        old = grant.granted_actions if grant else []
        if not actions:
            if grant:
                db.delete(grant)
            grant = None
        else:
            if grant is None:
                grant = RolePermissionGrant(role_id=role.role_id, permission_id=permission.permission_id)
                db.add(grant)
            grant.granted_actions = actions

        audit_service.log(
            db, actor, "grant.updated", "grant",
            resource_id=f"{role.role_id}:{permission.module_key}",
            old_value=old, new_value=grant.granted_actions if grant else [],
            request=request, commit=False,
        )
        db.commit()
        self.grants.invalidate_role(role.role_id)
        logger.info("Grant updated: role=%s module=%s actions=%s", role.role_name, permission.module_key, actions)
        return grant

    # ---- Roles ----
    def _ensure_unique_name(self, db: Session, role_name: str, exclude_id: Optional[int] = None) -> str:
        role_name = (role_name or "").strip()
        if not role_name:
            raise ValidationError("Role name is required")
        # Bypass role names belong to the seeded system roles
        if resolve_role_class(role_name) is RoleClass.BYPASS:
            raise ResourceConflictError(f"Role name '{role_name}' is reserved")
        query = db.query(Role).filter(Role.role_name == role_name)
        if exclude_id is not None:
            query = query.filter(Role.role_id != exclude_id)
        if query.first():
            raise ResourceConflictError("A role with this name already exists")
        return role_name

    def create_role(
        self,
        db: Session,
        role_name: str,
        description: Optional[str] = None,
        department_id: Optional[int] = None,
        landing_page: Optional[str] = None,
        actor: Optional[Principal] = None,
        request: Optional[Request] = None,
    ) -> Role:
        role = Role(
            role_name=self._ensure_unique_name(db, role_name),
            description=description,
            department_id=department_id,
            landing_page=landing_page or "/dashboard",
            is_active=True,
        )
        db.add(role)
        db.flush()
        audit_service.log(db, actor, "role.created", "role", role.role_id,
                          new_value=role.to_dict(), request=request, commit=False)
        db.commit()
        db.refresh(role)
        logger.info("Role created: %s", role.role_name)
        return role

    def update_role(
        self,
        db: Session,
        role_id: int,
        changes: dict,
        actor: Optional[Principal] = None,
        request: Optional[Request] = None,
    ) -> Role:
        role = self.get_role(db, role_id)
        old = role.to_dict()
        new_name = changes.get("role_name")
        if new_name is not None and new_name.strip() != role.role_name:
            if role.is_system_role:
                raise ResourceConflictError("Cannot rename system roles")
            role.role_name = self._ensure_unique_name(db, new_name, exclude_id=role.role_id)
        for attr in ("description", "department_id", "landing_page", "is_active"):
            if attr in changes and changes[attr] is not None:
                setattr(role, attr, changes[attr])
        audit_service.log(db, actor, "role.updated", "role", role.role_id,
                          old_value=old, new_value=role.to_dict(), request=request, commit=False)
        db.commit()
        db.refresh(role)
        self.grants.invalidate_role(role.role_id)
        return role

    def delete_role(
        self,
        db: Session,
        role_id: int,
        actor: Optional[Principal] = None,
        request: Optional[Request] = None,
    ) -> None:
        role = self.get_role(db, role_id)
        if role.is_system_role:
            raise ResourceConflictError("Cannot delete system roles")
        old = role.to_dict()
        db.delete(role)
        audit_service.log(db, actor, "role.deleted", "role", role_id,
                          old_value=old, request=request, commit=False)
        db.commit()
        self.grants.invalidate_role(role_id)
        logger.info("Role deleted: %s", old["role_name"])

    def duplicate_role(
        self,
        db: Session,
        source_role_id: int,
        new_role_name: str,
        description: Optional[str] = None,
        actor: Optional[Principal] = None,
        request: Optional[Request] = None,
    ) -> tuple[Role, int]:
        """Copy a role and all of its non-empty grants under a new name."""
        source = self.get_role(db, source_role_id)
        role = Role(
            role_name=self._ensure_unique_name(db, new_role_name),
            description=description or f"Copy of {source.role_name}",
            department_id=source.department_id,
            landing_page=source.landing_page or "/dashboard",
            is_active=True,
        )
        db.add(role)
        db.flush()

        copied = 0
        for grant in source.grants:
            if not grant.granted_actions:
                continue
            clone = RolePermissionGrant(role_id=role.role_id, permission_id=grant.permission_id)
            clone.granted_actions = grant.granted_actions
            db.add(clone)
            copied += 1

        audit_service.log(
            db, actor, "role.duplicated", "role", role.role_id,
            old_value={"source_role_id": source.role_id},
            new_value={"role_name": role.role_name, "grants_copied": copied},
            request=request, commit=False,
        )
        db.commit()
        db.refresh(role)
        logger.info("Role %s duplicated as %s with %d grants", source.role_name, role.role_name, copied)
        return role, copied


matrix_service = MatrixService()
