"""Permission matrix API router — roles, permissions and grants."""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.orm import Session

from routeguard.core.access import Principal
from routeguard.core.enforcement import require_permission
from routeguard.db.session import get_db
from routeguard.schemas.schemas import (
    DataResponse, MessageResponse, PermissionOut, RoleOut, RoleCreate, RoleUpdate,
    RoleDuplicateRequest, GrantUpdateRequest, MatrixEntryOut,
)
from routeguard.services.audit_service import audit_service
from routeguard.services.matrix_service import matrix_service

router = APIRouter(prefix="/auth", tags=["permissions"])


@router.get("/roles", response_model=DataResponse)
async def list_roles(
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_permission("GET:/auth/roles")),
):
    roles = matrix_service.list_roles(db)
    return DataResponse(data=[RoleOut(**r.to_dict()) for r in roles])


@router.get("/roles/by-department/{department_id}", response_model=DataResponse)
async def list_roles_by_department(
    department_id: int,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_permission("GET:/auth/roles/by-department/:id")),
):
    roles = matrix_service.list_roles(db, department_id=department_id)
    return DataResponse(data=[RoleOut(**r.to_dict()) for r in roles])


@router.post("/roles", response_model=DataResponse, status_code=status.HTTP_201_CREATED)
async def create_role(
    body: RoleCreate,
    request: Request,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_permission("POST:/auth/roles")),
):
    role = matrix_service.create_role(
        db, body.role_name, body.description, body.department_id, body.landing_page,
        actor=principal, request=request,
    )
    return DataResponse(data=RoleOut(**role.to_dict()), message="Role created successfully")


@router.put("/roles/{role_id}", response_model=DataResponse)
async def update_role(
    role_id: int,
    body: RoleUpdate,
    request: Request,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_permission("PUT:/auth/roles/:id")),
):
    role = matrix_service.update_role(
        db, role_id, body.model_dump(exclude_unset=True), actor=principal, request=request,
    )
    return DataResponse(data=RoleOut(**role.to_dict()), message="Role updated successfully")


@router.delete("/roles/{role_id}", response_model=MessageResponse)
async def delete_role(
    role_id: int,
    request: Request,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_permission("DELETE:/auth/roles/:id")),
):
    matrix_service.delete_role(db, role_id, actor=principal, request=request)
    return MessageResponse(message="Role deleted successfully")


@router.post("/roles/{role_id}/duplicate", response_model=DataResponse, status_code=status.HTTP_201_CREATED)
async def duplicate_role(
    role_id: int,
    body: RoleDuplicateRequest,
    request: Request,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_permission("POST:/auth/roles/:id/duplicate")),
):
    """Copy a role's entire grant set under a new name."""
    role, copied = matrix_service.duplicate_role(
        db, role_id, body.new_role_name, body.description, actor=principal, request=request,
    )
    return DataResponse(
        data=RoleOut(**role.to_dict()),
        message=f'Role "{role.role_name}" created with {copied} permissions copied',
    )


@router.get("/permissions", response_model=DataResponse)
async def list_permissions(
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_permission("GET:/auth/permissions")),
):
    permissions = matrix_service.list_permissions(db)
    return DataResponse(data=[PermissionOut(**p.to_dict()) for p in permissions])


@router.get("/matrix", response_model=DataResponse)
async def get_matrix(
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_permission("GET:/auth/matrix")),
):
    """Full role x permission grant matrix."""
    return DataResponse(data=[MatrixEntryOut(**row) for row in matrix_service.get_matrix(db)])


@router.post("/permission", response_model=DataResponse)
async def update_role_permission(
    body: GrantUpdateRequest,
    request: Request,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_permission("POST:/auth/permission")),
):
    """Set one role's granted actions on one permission."""
    grant = matrix_service.set_grant(
        db, body.role_id, body.permission_id, body.granted_actions,
        actor=principal, request=request,
    )
    data = None
    if grant is not None:
        data = {
            "role_id": grant.role_id,
            "permission_id": grant.permission_id,
            "granted_actions": grant.granted_actions,
        }
    return DataResponse(data=data, message="Permission updated")


@router.get("/audit", response_model=DataResponse)
async def get_audit_logs(
    action: Optional[str] = Query(None),
    resource_type: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=200),
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_permission("GET:/auth/audit")),
):
    """Query the matrix change trail."""
    result = audit_service.query_logs(db, action, resource_type, page, page_size)
    return DataResponse(data={
        "logs": [
            {
                "id": log.id,
                "actor_username": log.actor_username,
                "action": log.action,
                "resource_type": log.resource_type,
                "resource_id": log.resource_id,
                "old_value": log.old_value_json,
                "new_value": log.new_value_json,
                "created_at": log.created_at,
            }
            for log in result["logs"]
        ],
        "total": result["total"],
        "page": result["page"],
    })
