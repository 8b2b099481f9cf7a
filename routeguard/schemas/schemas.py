"""Pydantic schemas for API request/response serialization."""

from pydantic import BaseModel, Field
from typing import Optional, List, Dict, Any


# ---- Auth ----
class LoginRequest(BaseModel):
    username: str = Field(..., min_length=1)
    password: str = Field(..., min_length=4)

class RefreshRequest(BaseModel):
    refresh_token: str

class GrantSnapshotOut(BaseModel):
    employee_id: int
    username: str
    full_name: Optional[str] = None
    role: Optional[str] = None
    role_class: str = "standard"
    landing_page: Optional[str] = None
    grants: Dict[str, List[str]] = {}

class TokenResponse(BaseModel):
    success: bool = True
    access_token: str
    refresh_token: Optional[str] = None
    token_type: str = "bearer"
    user: Optional[GrantSnapshotOut] = None


# ---- Permission matrix ----
class PermissionOut(BaseModel):
    permission_id: int
    module_key: str
    label: str
    page_path: Optional[str] = None
    page_group: Optional[str] = None
    available_actions: List[str]

class RoleOut(BaseModel):
    role_id: int
    role_name: str
    description: Optional[str] = None
    department_id: Optional[int] = None
    landing_page: Optional[str] = None
    is_system_role: bool = False
    is_active: bool = True

class RoleCreate(BaseModel):
    role_name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None
    department_id: Optional[int] = None
    landing_page: Optional[str] = None

class RoleUpdate(BaseModel):
    role_name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = None
    department_id: Optional[int] = None
    landing_page: Optional[str] = None
    is_active: Optional[bool] = None

class RoleDuplicateRequest(BaseModel):
    new_role_name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None

class GrantUpdateRequest(BaseModel):
    role_id: int
    permission_id: int
    granted_actions: List[str]

class MatrixEntryOut(BaseModel):
    role_id: int
    permission_id: int
    module_key: str
    granted_actions: List[str]


# ---- Envelope ----
class DataResponse(BaseModel):
    success: bool = True
    data: Any = None
    message: Optional[str] = None

class MessageResponse(BaseModel):
    success: bool = True
    message: str
