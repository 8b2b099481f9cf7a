"""Auth service — login, refresh, logout and the signed-in grant snapshot."""

from datetime import datetime, timezone
from typing import Dict, Any
import hashlib

from sqlalchemy.orm import Session

from routeguard.core.access import Principal, RoleClass, resolve_role_class
from routeguard.core.config import settings
from routeguard.core.exceptions import (
    AuthenticationError, ResourceConflictError, ResourceNotFoundError,
)
from routeguard.core.security import (
    hash_password, verify_password,
    create_access_token, create_refresh_token, decode_token,
    principal_claims,
)
from routeguard.models.employee import Employee, RefreshToken
from routeguard.models.role import Role
from routeguard.services.grant_service import GrantService


def _token_hash(token: str) -> str:
    return hashlib.sha256(token.encode()).hexdigest()


class AuthService:
    """Handles authentication and the client's grant snapshot."""

    @staticmethod
    def build_principal(employee: Employee) -> Principal:
        """Resolve the role class once, at authentication time."""
        role = employee.role
        return Principal(
            employee_id=employee.employee_id,
            username=employee.username,
            role_id=role.role_id if role else None,
            role_name=role.role_name if role else None,
            role_class=resolve_role_class(role.role_name if role else None),
            landing_page=(role.landing_page if role else None) or settings.DEFAULT_LANDING_PAGE,
        )

    @staticmethod
    def snapshot(db: Session, employee: Employee) -> Dict[str, Any]:
        """The payload the client guard caches for the session."""
        principal = AuthService.build_principal(employee)
        if principal.role_class is RoleClass.BYPASS:
            grants = {}
        else:
            # Straight from the matrix so a fresh login never sees a stale cache
            grants = GrantService.load_from_db(db, principal.role_id).to_json() if principal.role_id else {}
        return {
            "employee_id": employee.employee_id,
            "username": employee.username,
            "full_name": employee.full_name,
            "role": principal.role_name,
            "role_class": principal.role_class.value,
            "landing_page": principal.landing_page,
            "grants": grants,
        }

    @staticmethod
    def authenticate(db: Session, username: str, password: str) -> Dict[str, Any]:
        """Authenticate an employee and return JWT tokens plus the snapshot.

        Raises:
            AuthenticationError: If credentials are invalid.
        """
        employee = db.query(Employee).filter(Employee.username == username).first()
        if not employee or not verify_password(password, employee.hashed_password):
            raise AuthenticationError("Invalid credentials")
        if not employee.is_active:
            raise AuthenticationError("Account is inactive")

        claims = principal_claims(AuthService.build_principal(employee))
        access_token = create_access_token(claims)
        refresh_token_str = create_refresh_token(claims)

        db.add(RefreshToken(
            employee_id=employee.employee_id,
            token_hash=_token_hash(refresh_token_str),
            expires_at=datetime.fromtimestamp(
                decode_token(refresh_token_str, "refresh")["exp"], tz=timezone.utc
            ),
        ))
        employee.last_login_at = datetime.now(timezone.utc)
        db.commit()

        return {
            "success": True,
            "access_token": access_token,
            "refresh_token": refresh_token_str,
            "token_type": "bearer",
            "user": AuthService.snapshot(db, employee),
        }

    @staticmethod
    def refresh_access_token(db: Session, refresh_token: str) -> Dict[str, Any]:
        """Issue a new access token; role and grants are re-read from the matrix."""
        payload = decode_token(refresh_token, "refresh")
        stored = db.query(RefreshToken).filter(
            RefreshToken.token_hash == _token_hash(refresh_token),
            RefreshToken.revoked_at.is_(None),
        ).first()
        if not stored:
            raise AuthenticationError("Invalid refresh token")

        employee = db.query(Employee).filter(Employee.employee_id == int(payload["sub"])).first()
        if not employee or not employee.is_active:
            raise AuthenticationError("Employee not found or inactive")

        return {
            "success": True,
            "access_token": create_access_token(principal_claims(AuthService.build_principal(employee))),
            "token_type": "bearer",
            "user": AuthService.snapshot(db, employee),
        }

    @staticmethod
    def logout(db: Session, employee_id: int) -> None:
        """Revoke all refresh tokens for an employee."""
        db.query(RefreshToken).filter(
            RefreshToken.employee_id == employee_id,
            RefreshToken.revoked_at.is_(None),
        ).update({"revoked_at": datetime.now(timezone.utc)})
        db.commit()

    @staticmethod
    def get_employee(db: Session, employee_id: int) -> Employee:
        employee = db.query(Employee).filter(Employee.employee_id == employee_id).first()
        if not employee:
            raise ResourceNotFoundError(f"Employee {employee_id} not found")
        return employee

    @staticmethod
    def create_employee(
        db: Session,
        username: str,
        password: str,
        full_name: str,
        role_name: str,
    ) -> Employee:
        if db.query(Employee).filter(Employee.username == username).first():
            raise ResourceConflictError(f"Employee '{username}' already exists")
        role = db.query(Role).filter(Role.role_name == role_name).first()
        if not role:
            raise ResourceNotFoundError(f"Role '{role_name}' not found")

        employee = Employee(
            username=username,
            hashed_password=hash_password(password),
            full_name=full_name,
            role_id=role.role_id,
            is_active=True,
        )
        db.add(employee)
        db.commit()
        db.refresh(employee)
        return employee


auth_service = AuthService()
