"""Tests for the route tree arena: inheritance, matching and validation."""

import pytest

from routeguard.core.exceptions import ExtractionShapeError
from routeguard.services.route_tree import RouteTree


class TestInheritance:
    """Effective permission is the node's own, else the nearest ancestor's."""

    def test_child_without_permission_inherits_parent(self, route_tree):
        """Order details declares nothing and needs the orders module."""
        permission = route_tree.effective_permission("/operations/orders/:id")
        assert permission.module == "orders"
        assert permission.actions == ("view",)

    def test_report_children_inherit_reports(self, route_tree):
        assert route_tree.effective_permission("/reports/stock").module == "reports"
        assert route_tree.effective_permission("/reports/low-stock").module == "reports"

    def test_own_permission_overrides_ancestor(self, route_tree):
        assert route_tree.effective_permission("/reports/profit-loss").module == "reports-finance"

    def test_root_without_permission_is_public(self, route_tree):
        assert route_tree.effective_permission("/profile") is None
        assert route_tree.effective_permission("/masters") is None

    def test_own_permission_is_kept_separately(self, route_tree):
        entry = route_tree.entry_for_path("/operations/orders/:id")
        assert entry.permission is None
        assert entry.effective_permission is not None

    def test_grandchild_inherits_through_unprotected_parent(self):
        tree = RouteTree.from_records([
            {"path": "/a", "permission": {"module": "alpha"}, "children": [
                {"path": "/a/b", "children": [{"path": "/a/b/c"}]},
            ]},
        ])
        assert tree.effective_permission("/a/b/c").module == "alpha"


class TestArena:
    """Flattened pre-order storage with explicit parent links."""

    def test_entries_are_preorder(self, route_tree):
        paths = [e.path for e in route_tree][:4]
        assert paths == ["/dashboard/admin", "/dashboard/:role", "/masters", "/masters/departments"]

    def test_parent_and_children_links(self, route_tree):
        masters = route_tree.entry_for_path("/masters")
        children = route_tree.children_of(masters)
        assert [c.label for c in children] == ["Department", "Employee Master", "Unit Master", "Customer Master"]
        assert all(route_tree.parent_of(c) is masters for c in children)
        assert route_tree.parent_of(masters) is None

    def test_roots_keep_declared_order(self, route_tree):
        assert [r.path for r in route_tree.roots()] == [
            "/dashboard/admin", "/dashboard/:role", "/masters", "/operations",
            "/reports", "/settings", "/profile",
        ]

    def test_modules_first_seen_order(self, route_tree):
        modules = route_tree.modules()
        assert modules[:4] == ["admin-dashboard", "dashboard", "departments", "employees"]
        assert len(modules) == len(set(modules))
        assert "reports-finance" in modules

    def test_hidden_flag_parsed(self, route_tree):
        assert route_tree.entry_for_path("/dashboard/:role").show_in_sidebar is False
        assert route_tree.entry_for_path("/dashboard/admin").show_in_sidebar is True


class TestMatch:
    """Concrete URLs resolve to declared patterns."""

    def test_param_segment_matches(self, route_tree):
        assert route_tree.match("/operations/orders/42").path == "/operations/orders/:id"

    def test_literal_beats_param(self, route_tree):
        assert route_tree.match("/dashboard/admin").route_id == "admin-dashboard"
        assert route_tree.match("/dashboard/store-keeper").route_id == "dynamic-dashboard"

    def test_query_string_ignored(self, route_tree):
        assert route_tree.match("/operations/orders/7?tab=items").path == "/operations/orders/:id"

    def test_unknown_url(self, route_tree):
        assert route_tree.match("/nowhere/at/all") is None


class TestValidation:
    """Malformed registries are rejected with ExtractionShapeError."""

    def test_duplicate_sibling_paths(self):
        with pytest.raises(ExtractionShapeError, match="Duplicate sibling path"):
            RouteTree.from_records([{"path": "/a"}, {"path": "/a"}])

    def test_same_path_under_different_parents_allowed(self):
        tree = RouteTree.from_records([
            {"path": "/x", "children": [{"path": "/shared"}]},
            {"path": "/y", "children": [{"path": "/shared"}]},
        ])
        # First declaration wins for path lookups
        assert tree.parent_of(tree.entry_for_path("/shared")).path == "/x"

    def test_unknown_action(self):
        with pytest.raises(ExtractionShapeError, match="unknown actions"):
            RouteTree.from_records([{"path": "/a", "permission": {"module": "m", "actions": ["delete"]}}])

    def test_missing_path(self):
        with pytest.raises(ExtractionShapeError):
            RouteTree.from_records([{"label": "No path"}])

    def test_non_record_node(self):
        with pytest.raises(ExtractionShapeError, match="not a record"):
            RouteTree.from_records(["/a"])

    def test_invalid_api_dependency(self):
        with pytest.raises(ExtractionShapeError, match="API dependency"):
            RouteTree.from_records([{"path": "/a", "apiDependencies": ["orders"]}])

    def test_actions_default_to_view(self):
        tree = RouteTree.from_records([{"path": "/a", "permission": {"module": "m"}}])
        assert tree.effective_permission("/a").actions == ("view",)
