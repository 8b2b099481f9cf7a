"""Server-side permission enforcement (authoritative).

``require_permission("METHOD:/path/:id")`` returns a FastAPI dependency that
lets the request through or raises ``PermissionDeniedError`` (HTTP 403).
What a route key requires comes from the static API permission table, kept
next to the route registry; the registry only decides which modules exist
and supplies inherited page permissions for ``page`` entries.
"""

import json
import logging
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Optional, Union

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from routeguard.core.access import (
    ACTIONS, Principal, RoleClass, normalize_route_key,
)
from routeguard.core.config import settings
from routeguard.core.exceptions import PermissionDeniedError, ValidationError
from routeguard.core.security import get_current_principal
from routeguard.db.session import get_db
from routeguard.services.grant_service import GrantService, grant_service
from routeguard.services.route_tree import RouteTree

logger = logging.getLogger("routeguard")


@dataclass(frozen=True)
class TableEntry:
    """What one route key needs. ``module is None`` means any signed-in caller."""

    route_key: str
    module: Optional[str]
    action: str


class RoutePermissionTable:
    """Static ``METHOD:pattern -> (module, action)`` lookup."""

    def __init__(self, entries: dict[str, TableEntry]):
        self._entries = entries

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, route_key: str) -> bool:
        return self.lookup(route_key) is not None

    def lookup(self, route_key: str) -> Optional[TableEntry]:
        return self._entries.get(normalize_route_key(route_key))

    @classmethod
    def from_mapping(cls, mapping: dict, route_tree: Optional[RouteTree] = None) -> "RoutePermissionTable":
        """Build the table; ``page`` entries resolve through the route tree.

        Raises:
            ValidationError: on unknown actions, unknown pages, or entries
                naming neither a module nor a page.
        """
        entries: dict[str, TableEntry] = {}
        for route_key, spec in mapping.items():
            try:
                key = normalize_route_key(route_key)
            except ValueError as e:
                raise ValidationError(str(e))
            action = spec.get("action", "view")
            if action not in ACTIONS:
                raise ValidationError(f"{route_key}: unknown action '{action}'")

            if "module" in spec:
                module = spec["module"]
            elif "page" in spec:
                if route_tree is None:
                    raise ValidationError(f"{route_key}: page entries need the route tree")
                page = route_tree.entry_for_path(spec["page"])
                if page is None:
                    raise ValidationError(f"{route_key}: page '{spec['page']}' is not in the route registry")
                inherited = page.effective_permission
                module = inherited.module if inherited else None
            else:
                raise ValidationError(f"{route_key}: entry needs 'module' or 'page'")

            if key in entries and entries[key] != TableEntry(route_key, module, action):
                raise ValidationError(f"{route_key}: conflicts with an existing entry")
            entries[key] = TableEntry(route_key=route_key, module=module, action=action)
        return cls(entries)

    @classmethod
    def load(cls, path: Union[str, Path], route_tree: Optional[RouteTree] = None) -> "RoutePermissionTable":
        with open(path, encoding="utf-8") as fh:
            mapping = json.load(fh)
        return cls.from_mapping(mapping, route_tree)


@lru_cache
def get_permission_table() -> RoutePermissionTable:
    """Process-wide table, loaded once from ``API_PERMISSIONS_PATH``."""
    from routeguard.services.extraction_service import load_route_tree

    table = RoutePermissionTable.load(
        settings.API_PERMISSIONS_PATH, load_route_tree(settings.ROUTE_REGISTRY_PATH)
    )
    logger.info("Loaded %d API permission entries", len(table))
    return table


def get_grant_service() -> GrantService:
    return grant_service


def authorize(
    principal: Principal,
    entry: Optional[TableEntry],
    db: Session,
    grants: GrantService,
) -> None:
    """Allow or raise ``PermissionDeniedError``; never mutates grants."""
    if principal.role_class is RoleClass.BYPASS:
        return
    elif principal.role_class is RoleClass.STANDARD:
        if entry is None:
            raise PermissionDeniedError(None)
        if entry.module is None:
            return
        if grants.grants_for_role(db, principal.role_id).allows(entry.module, entry.action):
            return
        raise PermissionDeniedError(entry.module)
    else:
        raise AssertionError(f"Unhandled role class {principal.role_class!r}")


class RequirePermission:
    """Dependency gating a route on ``(module, action)`` from the permission table."""

    def __init__(self, route_key: str):
        normalize_route_key(route_key)  # reject malformed keys at import time
        self.route_key = route_key

    async def __call__(
        self,
        request: Request,
        principal: Principal = Depends(get_current_principal),
        db: Session = Depends(get_db),
        table: RoutePermissionTable = Depends(get_permission_table),
        grants: GrantService = Depends(get_grant_service),
    ) -> Principal:
        entry = table.lookup(self.route_key)
        if entry is None and principal.role_class is RoleClass.STANDARD:
            logger.error("No permission mapping for %s; denying", self.route_key)
        try:
            authorize(principal, entry, db, grants)
        except PermissionDeniedError:
            logger.warning(
                "Permission denied: employee=%s role=%s route=%s module=%s",
                principal.employee_id,
                principal.role_name,
                self.route_key,
                entry.module if entry else None,
            )
            raise

        request.state.permission_context = {
            "route_key": self.route_key,
            "granted": True,
            "bypass": principal.role_class is RoleClass.BYPASS,
        }
        return principal


def require_permission(route_key: str) -> RequirePermission:
    """Factory for ``Depends(require_permission("GET:/orders/:id"))``."""
    return RequirePermission(route_key)
