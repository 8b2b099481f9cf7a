"""Permission catalog and role grant models."""

import json

from sqlalchemy import (
    Column, Integer, String, Text, DateTime, ForeignKey, UniqueConstraint, func,
)
from sqlalchemy.orm import relationship
from routeguard.db.base import Base
from routeguard.core.access import ACTIONS


def _default_actions() -> str:
    return json.dumps(list(ACTIONS))


class Permission(Base):
    """One row per module referenced by the route registry.

    Rows are created or relabelled by the permission sync and are never
    deleted, so historical grants are never orphaned.
    """
    __tablename__ = "permissions"

    permission_id = Column(Integer, primary_key=True, autoincrement=True)
    module_key = Column(String(150), unique=True, nullable=False, index=True)
    label = Column(String(150), nullable=False)
    page_path = Column(String(255), nullable=True)
    page_group = Column(String(50), nullable=True)
    available_actions_json = Column(Text, nullable=False, default=_default_actions)
    created_at = Column(DateTime, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now(), nullable=False)

    @property
    def available_actions(self) -> list[str]:
        return json.loads(self.available_actions_json) if self.available_actions_json else list(ACTIONS)

    def to_dict(self) -> dict:
        return {
            "permission_id": self.permission_id,
            "module_key": self.module_key,
            "label": self.label,
            "page_path": self.page_path,
            "page_group": self.page_group,
            "available_actions": self.available_actions,
        }


class RolePermissionGrant(Base):
    """Actions a role may perform on one module."""
    __tablename__ = "role_permissions"
    __table_args__ = (
        UniqueConstraint("role_id", "permission_id", name="uq_role_permission"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    role_id = Column(Integer, ForeignKey("roles.role_id", ondelete="CASCADE"), nullable=False, index=True)
    permission_id = Column(Integer, ForeignKey("permissions.permission_id"), nullable=False)
    granted_actions_json = Column(Text, nullable=False, default="[]")

    role = relationship("Role", back_populates="grants")
    permission = relationship("Permission", lazy="joined")

    @property
    def granted_actions(self) -> list[str]:
        return json.loads(self.granted_actions_json) if self.granted_actions_json else []

    @granted_actions.setter
    def granted_actions(self, actions) -> None:
        # Stored in vocabulary order so identical grants serialize identically
        wanted = set(actions)
        self.granted_actions_json = json.dumps([a for a in ACTIONS if a in wanted])
