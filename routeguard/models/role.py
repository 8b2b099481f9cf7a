"""Role and Department models for the permission matrix."""

from sqlalchemy import Column, Integer, String, Text, Boolean, DateTime, ForeignKey, func
from sqlalchemy.orm import relationship
from routeguard.db.base import Base


class Department(Base):
    """Organisational department a role belongs to."""
    __tablename__ = "departments"

    department_id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), unique=True, nullable=False, index=True)


class Role(Base):
    """Administrator-managed role. Bypass status is derived from the name, never stored."""
    __tablename__ = "roles"

    role_id = Column(Integer, primary_key=True, autoincrement=True)
    role_name = Column(String(100), unique=True, nullable=False, index=True)
    description = Column(Text, nullable=True)
    department_id = Column(
        Integer, ForeignKey("departments.department_id", ondelete="SET NULL"), nullable=True
    )
    landing_page = Column(String(255), nullable=True, default="/dashboard")
    is_system_role = Column(Boolean, default=False, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, server_default=func.now(), nullable=False)

    department = relationship("Department", lazy="joined")
    grants = relationship(
        "RolePermissionGrant",
        back_populates="role",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    def to_dict(self) -> dict:
        return {
            "role_id": self.role_id,
            "role_name": self.role_name,
            "description": self.description,
            "department_id": self.department_id,
            "landing_page": self.landing_page,
            "is_system_role": self.is_system_role,
            "is_active": self.is_active,
        }
