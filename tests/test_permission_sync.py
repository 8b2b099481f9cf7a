"""Tests for seeding the Permission catalog from the route registry."""

import json

import pytest

from routeguard.core.exceptions import ExtractionShapeError
from routeguard.db.seeds.seed_sample_data import seed_sample_data
from routeguard.models.permission import Permission, RolePermissionGrant
from routeguard.services.extraction_service import ExtractionService
from routeguard.services.permission_sync_service import PermissionSyncService, infer_group
from routeguard.services.route_tree import RouteTree


class TestSync:
    """Insert-if-missing, relabel, never delete."""

    def test_every_module_has_a_row(self, db, seeded, route_tree):
        keys = {p.module_key for p in db.query(Permission).all()}
        assert set(route_tree.modules()) <= keys
        assert "roles" in keys

    def test_second_run_is_unchanged(self, db, seeded, route_tree):
        report = PermissionSyncService().sync(db, route_tree)
        assert report.created == []
        assert report.updated == []
        assert report.retained == []
        assert report.changed is False
        assert set(report.unchanged) == set(route_tree.modules())

    def test_relabels_changed_rows(self, db, seeded, route_tree):
        row = db.query(Permission).filter(Permission.module_key == "orders").one()
        row.label = "Old Orders"
        db.commit()

        report = PermissionSyncService().sync(db, route_tree)

        assert report.updated == ["orders"]
        db.refresh(row)
        assert row.label == "Create & Manage Orders"

    def test_removed_module_retained_with_grants(self, db, seeded):
        """Dropping a module from the registry never deletes its row or grants."""
        tree = RouteTree.from_records([
            {"path": "/operations/create-order", "label": "Orders", "permission": {"module": "orders"}},
        ])
        clerk = seeded.roles["Order Clerk"]
        before = db.query(RolePermissionGrant).filter(RolePermissionGrant.role_id == clerk.role_id).count()

        report = PermissionSyncService().sync(db, tree)

        assert "reports" in report.retained
        assert "orders" not in report.retained
        assert db.query(Permission).filter(Permission.module_key == "reports").count() == 1
        after = db.query(RolePermissionGrant).filter(RolePermissionGrant.role_id == clerk.role_id).count()
        assert after == before

    def test_roles_module_always_ensured(self, db):
        tree = RouteTree.from_records([{"path": "/a", "label": "A", "permission": {"module": "alpha"}}])
        report = PermissionSyncService().sync(db, tree)
        assert report.created == ["alpha", "roles"]
        roles = db.query(Permission).filter(Permission.module_key == "roles").one()
        assert roles.page_path == "/settings/roles"


class TestRepresentativeNode:
    """Label and page come from the best node declaring the module."""

    def test_hidden_only_module(self, route_tree):
        desired = PermissionSyncService.desired_permissions(route_tree)
        assert desired["dashboard"]["page_path"] == "/dashboard/:role"

    def test_visible_preferred_over_shorter_hidden(self):
        tree = RouteTree.from_records([
            {"path": "/o", "label": "Hidden", "showInSidebar": False, "permission": {"module": "orders"}},
            {"path": "/orders/manage", "label": "Manage", "permission": {"module": "orders"}},
        ])
        assert PermissionSyncService.desired_permissions(tree)["orders"]["label"] == "Manage"

    def test_shortest_path_then_first_seen(self):
        tree = RouteTree.from_records([
            {"path": "/orders/long", "label": "Long", "permission": {"module": "orders"}},
            {"path": "/ord", "label": "Short", "permission": {"module": "orders"}},
            {"path": "/ore", "label": "Later", "permission": {"module": "orders"}},
        ])
        assert PermissionSyncService.desired_permissions(tree)["orders"]["label"] == "Short"

    def test_group_from_nearest_ancestor(self, route_tree):
        desired = PermissionSyncService.desired_permissions(route_tree)
        assert desired["orders"]["page_group"] == "Main"
        assert desired["permissions"]["page_group"] == "System"

    def test_group_inferred_from_path(self):
        assert infer_group("/masters/units") == "Masters"
        assert infer_group("/elsewhere") == "Other"


class TestSyncFromArtifact:
    """The CLI path reads the extraction artifact."""

    def test_missing_artifact(self, db, tmp_path):
        with pytest.raises(ExtractionShapeError, match="run extract first"):
            PermissionSyncService().sync_from_artifact(db, tmp_path / "missing.json")

    def test_non_utf8_artifact(self, db, tmp_path):
        artifact = tmp_path / "route_permissions.json"
        artifact.write_bytes(b"\xff\xfe[]")
        with pytest.raises(ExtractionShapeError, match="unreadable"):
            PermissionSyncService().sync_from_artifact(db, artifact)

    def test_reads_artifact(self, db, tmp_path):
        artifact = tmp_path / "route_permissions.json"
        records = ExtractionService.compile_routes([
            {"path": "/inward", "label": "Material Inward", "permission": {"module": "inward"}},
        ])
        artifact.write_text(json.dumps(records), encoding="utf-8")

        report = PermissionSyncService().sync_from_artifact(db, artifact)

        assert report.created == ["inward", "roles"]


class TestStarterGrants:
    """Seeding grants fills gaps only."""

    def test_does_not_overwrite_existing(self, db, seeded):
        sales = seeded.roles["Sales Executive"]
        orders = seeded.permissions["orders"]
        row = RolePermissionGrant(role_id=sales.role_id, permission_id=orders.permission_id)
        row.granted_actions = ["view"]
        db.add(row)
        db.commit()

        seed_sample_data(db)
        seed_sample_data(db)

        db.refresh(row)
        assert row.granted_actions == ["view"]
        customers = (
            db.query(RolePermissionGrant)
            .filter(
                RolePermissionGrant.role_id == sales.role_id,
                RolePermissionGrant.permission_id == seeded.permissions["customers"].permission_id,
            )
            .one()
        )
        assert customers.granted_actions == ["view", "create"]
