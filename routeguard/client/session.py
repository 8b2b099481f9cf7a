"""API session — signs in and holds the caller's grant snapshot.

The snapshot is fetched at login (and on explicit refresh) and then left
alone for the rest of the session; a role change on the server reaches this
client only on its next refresh.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional

import httpx

from routeguard.core.access import RoleClass
from routeguard.core.config import settings
from routeguard.core.exceptions import AuthenticationError

logger = logging.getLogger("routeguard")


@dataclass(frozen=True)
class GrantSnapshot:
    """Client-side copy of the signed-in principal's grants."""

    employee_id: int
    username: str
    role_name: Optional[str]
    role_class: RoleClass
    landing_page: Optional[str]
    grants: Mapping[str, frozenset] = field(default_factory=dict)

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "GrantSnapshot":
        return cls(
            employee_id=payload["employee_id"],
            username=payload.get("username", ""),
            role_name=payload.get("role"),
            role_class=RoleClass(payload.get("role_class", RoleClass.STANDARD.value)),
            landing_page=payload.get("landing_page"),
            grants={m: frozenset(a) for m, a in (payload.get("grants") or {}).items()},
        )


class ApiSession:
    """Thin httpx wrapper over the auth endpoints."""

    def __init__(self, base_url: Optional[str] = None, client: Optional[httpx.Client] = None):
        self.base_url = (base_url if base_url is not None else settings.API_BASE_URL).rstrip("/")
        self.client = client or httpx.Client(timeout=30)
        self.access_token: Optional[str] = None
        self.refresh_token: Optional[str] = None
        self.snapshot: Optional[GrantSnapshot] = None

    def _url(self, path: str) -> str:
        return f"{self.base_url}{path}"

    def _headers(self) -> dict:
        return {"Authorization": f"Bearer {self.access_token}"} if self.access_token else {}

    def login(self, username: str, password: str) -> GrantSnapshot:
        resp = self.client.post(self._url("/auth/login"), json={"username": username, "password": password})
        if resp.status_code == 401:
            raise AuthenticationError(resp.json().get("message", "Invalid credentials"))
        resp.raise_for_status()
        data = resp.json()
        self.access_token = data["access_token"]
        self.refresh_token = data.get("refresh_token")
        self.snapshot = GrantSnapshot.from_payload(data["user"])
        logger.info("Signed in as %s (%s)", self.snapshot.username, self.snapshot.role_name)
        return self.snapshot

    def refresh(self) -> GrantSnapshot:
        """Trade the refresh token for a new access token and a fresh snapshot."""
        if not self.refresh_token:
            raise AuthenticationError("No refresh token; sign in first")
        resp = self.client.post(self._url("/auth/refresh"), json={"refresh_token": self.refresh_token})
        if resp.status_code == 401:
            self.logout(local_only=True)
            raise AuthenticationError("Session expired")
        resp.raise_for_status()
        data = resp.json()
        self.access_token = data["access_token"]
        self.snapshot = GrantSnapshot.from_payload(data["user"])
        return self.snapshot

    def fetch_me(self) -> GrantSnapshot:
        resp = self.client.get(self._url("/auth/me"), headers=self._headers())
        if resp.status_code == 401:
            raise AuthenticationError("Not authenticated")
        resp.raise_for_status()
        self.snapshot = GrantSnapshot.from_payload(resp.json()["data"])
        return self.snapshot

    def logout(self, local_only: bool = False) -> None:
        if not local_only and self.access_token:
            self.client.post(self._url("/auth/logout"), headers=self._headers())
        self.access_token = self.refresh_token = None
        self.snapshot = None
