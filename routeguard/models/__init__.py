"""Models package — import all models so metadata.create_all can discover them."""

from routeguard.models.role import Role, Department
from routeguard.models.permission import Permission, RolePermissionGrant
from routeguard.models.employee import Employee, RefreshToken
from routeguard.models.audit_log import AuditLog

__all__ = [
    "Role", "Department", "Permission", "RolePermissionGrant",
    "Employee", "RefreshToken", "AuditLog",
]
