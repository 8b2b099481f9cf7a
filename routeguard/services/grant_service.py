"""Grant lookup — materialized ``module -> actions`` per role, cached.

Staleness: a grant revoked by an administrator stays effective in other
workers for at most ``GRANT_CACHE_TTL_SECONDS``. Matrix mutations call
``invalidate_role``/``invalidate_all``, which clears the shared cache
immediately; the TTL only bounds the window when that invalidation is
missed (e.g. Redis briefly unreachable).
"""

import json
import logging
from typing import Optional

from sqlalchemy.orm import Session

from routeguard.core.access import GrantSet
from routeguard.core.config import settings
from routeguard.models.permission import Permission, RolePermissionGrant
from routeguard.services.cache_service import CacheService, cache_service

logger = logging.getLogger("routeguard")


class GrantService:
    """Loads role grants from the matrix, through the cache when enabled."""

    def __init__(
        self,
        cache: Optional[CacheService] = None,
        ttl_seconds: Optional[int] = None,
        enabled: Optional[bool] = None,
    ):
        self.cache = cache or cache_service
        self.ttl_seconds = ttl_seconds if ttl_seconds is not None else settings.GRANT_CACHE_TTL_SECONDS
        self.enabled = settings.GRANT_CACHE_ENABLED if enabled is None else enabled

    @staticmethod
    def _cache_key(role_id: int) -> str:
        return f"grants:role:{role_id}"

    @staticmethod
    def load_from_db(db: Session, role_id: int) -> GrantSet:
        """Read the role's grants straight from the matrix tables."""
        rows = (
            db.query(Permission.module_key, RolePermissionGrant.granted_actions_json)
            .join(RolePermissionGrant, RolePermissionGrant.permission_id == Permission.permission_id)
            .filter(RolePermissionGrant.role_id == role_id)
            .all()
        )
        grants = {}
        for module_key, actions_json in rows:
            actions = frozenset(json.loads(actions_json or "[]"))
            if actions:
                grants[module_key] = actions
        return GrantSet(grants)

    def grants_for_role(self, db: Session, role_id: Optional[int]) -> GrantSet:
        """Materialized grants for a role; a missing role has none."""
        if role_id is None:
            return GrantSet()
        if not self.enabled:
            return self.load_from_db(db, role_id)

        cached = self.cache.get_json(self._cache_key(role_id))
        if cached is not None:
            return GrantSet.from_json(cached)

        grant_set = self.load_from_db(db, role_id)
        self.cache.set_json(self._cache_key(role_id), grant_set.to_json(), self.ttl_seconds)
        return grant_set

    def invalidate_role(self, role_id: int) -> None:
        if self.enabled:
            self.cache.delete(self._cache_key(role_id))
        logger.info("Grant cache invalidated for role %s", role_id)

    def invalidate_all(self) -> None:
        if self.enabled:
            self.cache.invalidate_pattern("grants:role:*")
        logger.info("Grant cache invalidated for all roles")


grant_service = GrantService()
