"""Seed the Permission catalog from the route registry."""

from sqlalchemy.orm import Session
from routeguard.core.config import settings
from routeguard.services.extraction_service import extraction_service
from routeguard.services.permission_sync_service import permission_sync_service


def seed_permissions(db: Session) -> None:
    """Regenerate the artifact if the registry changed, then sync it."""
    extraction_service.extract(settings.ROUTE_REGISTRY_PATH, settings.PERMISSION_ARTIFACT_PATH)
    report = permission_sync_service.sync_from_artifact(db, settings.PERMISSION_ARTIFACT_PATH)
    print(
        f"✅ Permissions: {len(report.created)} created, {len(report.updated)} updated, "
        f"{len(report.unchanged)} unchanged"
    )
    if report.retained:
        print(f"ℹ️  Kept modules no longer in the registry: {', '.join(report.retained)}")
