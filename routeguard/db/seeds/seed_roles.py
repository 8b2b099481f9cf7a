"""Seed default departments and roles into the database."""

from sqlalchemy.orm import Session
from routeguard.models.role import Department, Role

DEPARTMENTS = ["Administration", "Sales", "Production", "Stores"]

ROLES = [
    {
        "role_name": "SuperAdmin",
        "description": "Full system access; bypasses the permission matrix",
        "department": "Administration",
        "landing_page": "/dashboard/admin",
        "is_system_role": True,
    },
    {
        "role_name": "Admin",
        "description": "Administrator; bypasses the permission matrix",
        "department": "Administration",
        "landing_page": "/dashboard/admin",
        "is_system_role": True,
    },
    {
        "role_name": "Sales Executive",
        "description": "Creates and manages customer orders",
        "department": "Sales",
        "landing_page": "/operations/create-order",
    },
    {
        "role_name": "Production Manager",
        "description": "Plans production batches and reviews stock",
        "department": "Production",
        "landing_page": "/operations/batches",
    },
    {
        "role_name": "Store Keeper",
        "description": "Records material inward and discard",
        "department": "Stores",
        "landing_page": "/operations/inward",
    },
]


def seed_roles(db: Session) -> None:
    """Insert default departments and roles if they don't already exist."""
    departments = {d.name: d for d in db.query(Department).all()}
    for name in DEPARTMENTS:
        if name not in departments:
            departments[name] = Department(name=name)
            db.add(departments[name])
    db.flush()

    created = 0
    for role_data in ROLES:
        data = dict(role_data)
        department = departments[data.pop("department")]
        if not db.query(Role).filter(Role.role_name == data["role_name"]).first():
            db.add(Role(department_id=department.department_id, **data))
            created += 1

    db.commit()
    print(f"✅ Seeded {created} roles ({len(ROLES) - created} already present)")
