"""Seed starter grants for the standard roles.

Only fills in grants that are missing, so re-running never overwrites what
an administrator has changed since.
"""

from sqlalchemy.orm import Session
from routeguard.models.permission import Permission, RolePermissionGrant
from routeguard.models.role import Role

DEFAULT_GRANTS = {
    "Sales Executive": {
        "dashboard": ["view"],
        "orders": ["view", "create", "modify"],
        "customers": ["view", "create"],
    },
    "Production Manager": {
        "dashboard": ["view"],
        "production": ["view", "create", "modify", "lock"],
        "orders": ["view"],
        "reports": ["view"],
    },
    "Store Keeper": {
        "dashboard": ["view"],
        "inward": ["view", "create"],
        "discard": ["view", "create", "modify"],
        "reports": ["view"],
    },
}


def seed_sample_data(db: Session) -> None:
    """Insert starter grants; requires roles and permissions to be seeded."""
    permissions = {p.module_key: p for p in db.query(Permission).all()}
    added = 0
    for role_name, grants in DEFAULT_GRANTS.items():
        role = db.query(Role).filter(Role.role_name == role_name).first()
        if not role:
            print(f"⚠️  Role '{role_name}' not found, skipping its grants.")
            continue
        existing = {g.permission_id for g in role.grants}
        for module, actions in grants.items():
            permission = permissions.get(module)
            if permission is None or permission.permission_id in existing:
                continue
            grant = RolePermissionGrant(role_id=role.role_id, permission_id=permission.permission_id)
            grant.granted_actions = actions
            db.add(grant)
            added += 1

    db.commit()
    print(f"✅ Seeded {added} starter grants")
