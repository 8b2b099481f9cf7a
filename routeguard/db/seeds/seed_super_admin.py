"""Seed the super-admin employee from env vars."""

from sqlalchemy.orm import Session
from routeguard.models.employee import Employee
from routeguard.models.role import Role
from routeguard.services.auth_service import auth_service
from routeguard.core.config import settings


def seed_super_admin(db: Session) -> None:
    """Create the super-admin employee if not already present."""
    super_admin_role = db.query(Role).filter(Role.role_name == "SuperAdmin").first()
    if not super_admin_role:
        print("⚠️  SuperAdmin role not found. Run seed_roles first.")
        return

    existing = db.query(Employee).filter(Employee.username == settings.SUPER_ADMIN_USERNAME).first()
    if existing:
        print(f"ℹ️  Super admin '{settings.SUPER_ADMIN_USERNAME}' already exists, skipping.")
        return

    auth_service.create_employee(
        db,
        username=settings.SUPER_ADMIN_USERNAME,
        password=settings.SUPER_ADMIN_PASSWORD,
        full_name="Super Admin",
        role_name=super_admin_role.role_name,
    )
    print(f"✅ Created super admin: {settings.SUPER_ADMIN_USERNAME}")
