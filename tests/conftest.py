"""Shared fixtures: in-memory database, seeded matrix, API client, fake cache."""

import fnmatch
import json
import os
from types import SimpleNamespace

# Settings are read at import time
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["GRANT_CACHE_ENABLED"] = "false"
os.environ["JWT_SECRET"] = "test-secret"
os.environ["DEBUG"] = "true"

import pytest
from fastapi import APIRouter, Depends
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import routeguard.models  # noqa: F401
from routeguard.core.access import Principal
from routeguard.core.config import settings
from routeguard.core.enforcement import require_permission
from routeguard.core.security import create_access_token, hash_password, principal_claims
from routeguard.db.base import Base
from routeguard.db.seeds.seed_roles import seed_roles
from routeguard.db.session import get_db
from routeguard.main import app
from routeguard.models.employee import Employee
from routeguard.models.permission import Permission, RolePermissionGrant
from routeguard.models.role import Role
from routeguard.services.auth_service import auth_service
from routeguard.services.extraction_service import load_route_tree
from routeguard.services.permission_sync_service import permission_sync_service

PASSWORD = "secret123"


# Business endpoints gated the same way a real service would gate them
business_router = APIRouter(tags=["business"])


@business_router.get("/orders")
async def list_orders(principal: Principal = Depends(require_permission("GET:/orders"))):
    return {"success": True, "data": []}


@business_router.get("/orders/{order_id}")
async def get_order(order_id: int, principal: Principal = Depends(require_permission("GET:/orders/:id"))):
    return {"success": True, "data": {"id": order_id}}


@business_router.put("/orders/{order_id}")
async def update_order(order_id: int, principal: Principal = Depends(require_permission("PUT:/orders/:id"))):
    return {"success": True, "data": {"id": order_id}}


@business_router.post("/orders/{order_id}/lock")
async def lock_order(order_id: int, principal: Principal = Depends(require_permission("POST:/orders/:id/lock"))):
    return {"success": True, "data": {"id": order_id, "locked": True}}


@business_router.get("/reports/stock")
async def stock_report(principal: Principal = Depends(require_permission("GET:/reports/stock"))):
    return {"success": True, "data": []}


@business_router.get("/reports/low-stock")
async def low_stock_report(principal: Principal = Depends(require_permission("GET:/reports/low-stock"))):
    return {"success": True, "data": []}


@business_router.get("/reports/profit-loss")
async def profit_loss(principal: Principal = Depends(require_permission("GET:/reports/profit-loss"))):
    return {"success": True, "data": []}


@business_router.get("/profile")
async def profile(principal: Principal = Depends(require_permission("GET:/profile"))):
    return {"success": True, "data": {"username": principal.username}}


@business_router.get("/unmapped")
async def unmapped(principal: Principal = Depends(require_permission("GET:/unmapped"))):
    return {"success": True}


app.include_router(business_router, prefix="/api")


class FakeCache:
    """Dict-backed stand-in for CacheService."""

    def __init__(self):
        self.store = {}
        self.ttls = {}

    def get_json(self, key):
        return self.store.get(key)

    def set_json(self, key, value, ttl_seconds):
        self.store[key] = json.loads(json.dumps(value))
        self.ttls[key] = ttl_seconds

    def delete(self, key):
        self.store.pop(key, None)

    def invalidate_pattern(self, pattern):
        for key in [k for k in self.store if fnmatch.fnmatch(k, pattern)]:
            del self.store[key]

    def health_check(self):
        return True


def grant(db, role, permission, actions):
    row = RolePermissionGrant(role_id=role.role_id, permission_id=permission.permission_id)
    row.granted_actions = actions
    db.add(row)
    db.commit()
    return row


def token_for(employee) -> str:
    return create_access_token(principal_claims(auth_service.build_principal(employee)))


def auth_headers(employee) -> dict:
    return {"Authorization": f"Bearer {token_for(employee)}"}


@pytest.fixture(scope="session")
def password_hash():
    return hash_password(PASSWORD)


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def route_tree():
    return load_route_tree(settings.ROUTE_REGISTRY_PATH)


@pytest.fixture
def fake_cache():
    return FakeCache()


@pytest.fixture
def seeded(db, route_tree, password_hash):
    """Default roles and permission catalog, plus employees for each role class.

    ``clerk`` holds orders:{view, modify} and roles:{view}; ``trainee`` has a
    role with no grants at all; ``superadmin`` and ``admin`` have no grant
    rows either and rely on bypass.
    """
    seed_roles(db)
    permission_sync_service.sync(db, route_tree)

    clerk_role = Role(role_name="Order Clerk", landing_page="/operations/create-order")
    trainee_role = Role(role_name="Trainee")
    db.add_all([clerk_role, trainee_role])
    db.commit()

    permissions = {p.module_key: p for p in db.query(Permission).all()}
    grant(db, clerk_role, permissions["orders"], ["view", "modify"])
    grant(db, clerk_role, permissions["roles"], ["view"])

    roles = {r.role_name: r for r in db.query(Role).all()}
    employees = {}
    for username, role_name in (
        ("superadmin", "SuperAdmin"),
        ("admin", "Admin"),
        ("clerk", "Order Clerk"),
        ("trainee", "Trainee"),
    ):
        employee = Employee(
            username=username,
            hashed_password=password_hash,
            full_name=username.title(),
            role_id=roles[role_name].role_id,
            is_active=True,
        )
        db.add(employee)
        employees[username] = employee
    db.commit()

    return SimpleNamespace(roles=roles, permissions=permissions, employees=employees)


@pytest.fixture
def client(session_factory):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
