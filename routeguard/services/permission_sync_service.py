"""Permission sync — seeds the Permission catalog from the route artifact.

Insert-if-missing by ``module_key`` and relabel when the registry changed.
Rows for modules that disappeared from the registry are *retained*, together
with any grants referencing them; nothing is ever deleted here.
"""

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Union

from sqlalchemy.orm import Session

from routeguard.core.exceptions import ExtractionShapeError
from routeguard.models.permission import Permission
from routeguard.services.route_tree import RouteEntry, RouteTree

logger = logging.getLogger("routeguard")

# Role administration has no page of its own in the registry
SETTINGS_MODULES = {
    "roles": {"label": "Roles", "page_path": "/settings/roles", "page_group": "Settings"},
}

_GROUP_PREFIXES = (
    ("/dashboard", "Main"),
    ("/sales", "Sales"),
    ("/inventory", "Inventory"),
    ("/operations", "Operations"),
    ("/masters", "Masters"),
    ("/reports", "Reports"),
    ("/settings", "Settings"),
)


@dataclass
class SyncReport:
    created: list[str] = field(default_factory=list)
    updated: list[str] = field(default_factory=list)
    unchanged: list[str] = field(default_factory=list)
    retained: list[str] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return bool(self.created or self.updated)


def infer_group(path: str) -> str:
    for prefix, group in _GROUP_PREFIXES:
        if path.startswith(prefix):
            return group
    return "Other"


def _group_of(tree: RouteTree, entry: RouteEntry) -> str:
    node: Optional[RouteEntry] = entry
    while node is not None:
        if node.group:
            return node.group
        node = tree.parent_of(node)
    return infer_group(entry.path)


def _representative(entries: list[RouteEntry]) -> RouteEntry:
    """Visible before hidden, then shortest path, then first declared."""
    return min(entries, key=lambda e: (not e.show_in_sidebar, len(e.path), e.index))


class PermissionSyncService:
    """Keeps the Permission catalog in step with the route registry."""

    @staticmethod
    def desired_permissions(tree: RouteTree) -> dict[str, dict]:
        desired: dict[str, dict] = {}
        for module in tree.modules():
            best = _representative(tree.entries_for_module(module))
            desired[module] = {
                "label": best.label or module,
                "page_path": best.path,
                "page_group": _group_of(tree, best),
            }
        for module, meta in SETTINGS_MODULES.items():
            desired.setdefault(module, dict(meta))
        return desired

    def sync(self, db: Session, tree: RouteTree) -> SyncReport:
        """Upsert one Permission row per module in ``tree``."""
        report = SyncReport()
        desired = self.desired_permissions(tree)
        existing = {p.module_key: p for p in db.query(Permission).all()}

        for module, meta in desired.items():
            row = existing.get(module)
            if row is None:
                db.add(Permission(module_key=module, **meta))
                report.created.append(module)
                continue
            changed = False
            for attr, value in meta.items():
                if getattr(row, attr) != value:
                    setattr(row, attr, value)
                    changed = True
            (report.updated if changed else report.unchanged).append(module)

        report.retained = sorted(set(existing) - set(desired))
        if report.changed:
            db.commit()

        for module in report.retained:
            logger.warning("Module '%s' is no longer in the route registry; keeping its permission row", module)
        logger.info(
            "Permission sync: %d created, %d updated, %d unchanged, %d retained",
            len(report.created), len(report.updated), len(report.unchanged), len(report.retained),
        )
        return report

    def sync_from_artifact(self, db: Session, artifact_path: Union[str, Path]) -> SyncReport:
        """Read the extraction artifact and sync it.

        Raises:
            ExtractionShapeError: if the artifact is missing or malformed.
        """
        artifact_path = Path(artifact_path)
        try:
            records = json.loads(artifact_path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            raise ExtractionShapeError(f"Permission artifact not found at {artifact_path}; run extract first")
        except json.JSONDecodeError as e:
            raise ExtractionShapeError(f"Permission artifact is not valid JSON: {e}")
        except (OSError, UnicodeDecodeError) as e:
            raise ExtractionShapeError(f"Permission artifact at {artifact_path} is unreadable: {e}")
        return self.sync(db, RouteTree.from_records(records))


permission_sync_service = PermissionSyncService()
