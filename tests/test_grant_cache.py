"""Tests for the grant cache: materialization, TTL bound, explicit invalidation."""

from unittest.mock import patch

from routeguard.models.permission import RolePermissionGrant
from routeguard.services.grant_service import GrantService
from routeguard.services.matrix_service import MatrixService


class TestLoadFromDb:
    """Grants are read straight from the matrix tables."""

    def test_materializes_module_actions(self, db, seeded):
        grants = GrantService.load_from_db(db, seeded.roles["Order Clerk"].role_id)
        assert grants.grants == {
            "orders": frozenset({"view", "modify"}),
            "roles": frozenset({"view"}),
        }

    def test_empty_grant_rows_ignored(self, db, seeded):
        role = seeded.roles["Trainee"]
        row = RolePermissionGrant(role_id=role.role_id, permission_id=seeded.permissions["orders"].permission_id)
        row.granted_actions = []
        db.add(row)
        db.commit()
        assert GrantService.load_from_db(db, role.role_id).grants == {}

    def test_no_role(self, db, seeded):
        service = GrantService(enabled=False)
        assert service.grants_for_role(db, None).grants == {}


class TestCachedGrants:
    """Redis-backed path, exercised with a dict fake."""

    def test_second_lookup_served_from_cache(self, db, seeded, fake_cache):
        service = GrantService(cache=fake_cache, ttl_seconds=60, enabled=True)
        role_id = seeded.roles["Order Clerk"].role_id

        first = service.grants_for_role(db, role_id)
        with patch.object(GrantService, "load_from_db") as load:
            second = service.grants_for_role(db, role_id)
            load.assert_not_called()

        assert first == second
        assert fake_cache.ttls[f"grants:role:{role_id}"] == 60

    def test_disabled_cache_untouched(self, db, seeded, fake_cache):
        service = GrantService(cache=fake_cache, enabled=False)
        service.grants_for_role(db, seeded.roles["Order Clerk"].role_id)
        assert fake_cache.store == {}

    def test_stale_until_invalidated(self, db, seeded, fake_cache):
        """A direct DB edit without invalidation stays invisible until the TTL expires."""
        service = GrantService(cache=fake_cache, ttl_seconds=60, enabled=True)
        role_id = seeded.roles["Order Clerk"].role_id
        assert service.grants_for_role(db, role_id).allows("orders", "modify")

        db.query(RolePermissionGrant).filter(RolePermissionGrant.role_id == role_id).delete()
        db.commit()
        assert service.grants_for_role(db, role_id).allows("orders", "modify")

        service.invalidate_role(role_id)
        assert not service.grants_for_role(db, role_id).allows("orders", "modify")

    def test_matrix_change_invalidates(self, db, seeded, fake_cache):
        service = GrantService(cache=fake_cache, ttl_seconds=60, enabled=True)
        matrix = MatrixService(grants=service)
        role_id = seeded.roles["Order Clerk"].role_id
        assert service.grants_for_role(db, role_id).allows("orders", "modify")

        matrix.set_grant(db, role_id, seeded.permissions["orders"].permission_id, ["view"])

        assert f"grants:role:{role_id}" not in fake_cache.store
        grants = service.grants_for_role(db, role_id)
        assert grants.allows("orders", "view")
        assert not grants.allows("orders", "modify")

    def test_invalidate_all(self, db, seeded, fake_cache):
        service = GrantService(cache=fake_cache, enabled=True)
        service.grants_for_role(db, seeded.roles["Order Clerk"].role_id)
        service.grants_for_role(db, seeded.roles["Trainee"].role_id)
        fake_cache.store["other:key"] = 1

        service.invalidate_all()

        assert fake_cache.store == {"other:key": 1}
