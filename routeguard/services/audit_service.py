"""Audit service — append-only trail for permission-matrix mutations."""

import json
from typing import Optional, Any
from sqlalchemy.orm import Session
from fastapi import Request

from routeguard.core.access import Principal
from routeguard.models.audit_log import AuditLog


class AuditService:
    """Records immutable audit log entries for matrix changes."""

    @staticmethod
    def log(
        db: Session,
        actor: Optional[Principal],
        action: str,
        resource_type: str,
        resource_id: Optional[Any] = None,
        old_value: Optional[Any] = None,
        new_value: Optional[Any] = None,
        request: Optional[Request] = None,
        commit: bool = True,
    ) -> AuditLog:
        """Write a single audit log record.

        Args:
            action: e.g. "role.created", "grant.updated", "role.duplicated"
            resource_type: role, grant, permission
        """
        ip = ua = None
        if request is not None:
            ip = request.client.host if request.client else None
            ua = request.headers.get("user-agent", "")[:500]

        entry = AuditLog(
            actor_id=actor.employee_id if actor else None,
            actor_username=actor.username if actor else None,
            action=action,
            resource_type=resource_type,
            resource_id=str(resource_id) if resource_id is not None else None,
            old_value_json=json.dumps(old_value, default=str) if old_value is not None else None,
            new_value_json=json.dumps(new_value, default=str) if new_value is not None else None,
            ip_address=ip,
            user_agent=ua,
        )
        db.add(entry)
        if commit:
            db.commit()
        return entry

    @staticmethod
    def query_logs(
        db: Session,
        action: Optional[str] = None,
        resource_type: Optional[str] = None,
        page: int = 1,
        page_size: int = 50,
    ):
        """Query audit logs with filters and pagination."""
        query = db.query(AuditLog)
        if action:
            query = query.filter(AuditLog.action.ilike(f"%{action}%"))
        if resource_type:
            query = query.filter(AuditLog.resource_type == resource_type)

        total = query.count()
        logs = (
            query.order_by(AuditLog.id.desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
            .all()
        )
        return {"logs": logs, "total": total, "page": page, "page_size": page_size}


audit_service = AuditService()
