"""Access vocabulary shared by the server and the client guard.

Holds the fixed action set, the role class a principal is resolved to at
authentication time, and route-key normalisation. Decisions themselves live
in ``routeguard.core.enforcement`` (server) and ``routeguard.client.guard``
(client); they consume the same data but are evaluated independently.
"""

import enum
import re
from dataclasses import dataclass, field
from typing import Iterable, Mapping, Optional

ACTIONS: tuple[str, ...] = ("view", "create", "modify", "lock")

HTTP_METHODS = ("GET", "POST", "PUT", "PATCH", "DELETE")

_PARAM_SEGMENT = re.compile(r"/:\w+")


class RoleClass(str, enum.Enum):
    """How a role is treated by access checks."""

    STANDARD = "standard"
    BYPASS = "bypass"


def resolve_role_class(role_name: Optional[str], bypass_roles: Optional[Iterable[str]] = None) -> RoleClass:
    """Classify a role name against the closed set of bypass roles."""
    if bypass_roles is None:
        from routeguard.core.config import settings
        bypass_roles = settings.BYPASS_ROLES
    if role_name and role_name in set(bypass_roles):
        return RoleClass.BYPASS
    return RoleClass.STANDARD


@dataclass(frozen=True)
class Principal:
    """The authenticated caller as seen by a single request."""

    employee_id: int
    username: str
    role_id: Optional[int]
    role_name: Optional[str]
    role_class: RoleClass = RoleClass.STANDARD
    landing_page: Optional[str] = None


@dataclass(frozen=True)
class RequiredPermission:
    """A module plus the actions needed on it."""

    module: str
    actions: tuple[str, ...] = ("view",)

    @classmethod
    def from_dict(cls, data: Mapping) -> "RequiredPermission":
        actions = data.get("actions") or ["view"]
        return cls(module=data["module"], actions=tuple(actions))


@dataclass
class GrantSet:
    """Materialized ``module -> actions`` view for one role."""

    grants: dict[str, frozenset[str]] = field(default_factory=dict)

    def allows(self, module: str, action: str) -> bool:
        return action in self.grants.get(module, frozenset())

    def to_json(self) -> dict[str, list[str]]:
        return {m: [a for a in ACTIONS if a in acts] for m, acts in self.grants.items()}

    @classmethod
    def from_json(cls, data: Mapping[str, Iterable[str]]) -> "GrantSet":
        return cls({m: frozenset(acts) for m, acts in data.items()})


def validate_actions(actions: Iterable[str]) -> list[str]:
    """Return the unknown entries of ``actions`` (empty when all are valid)."""
    return [a for a in actions if a not in ACTIONS]


def split_route_key(route_key: str) -> tuple[str, str]:
    """Split ``"METHOD:/path"`` into its method and path pattern."""
    method, sep, path = route_key.partition(":")
    method = method.strip().upper()
    if not sep or method not in HTTP_METHODS or not path.startswith("/"):
        raise ValueError(f"Invalid route key '{route_key}', expected METHOD:/path")
    return method, path


def normalize_route_key(route_key: str) -> str:
    """Canonical lookup key: upper-case method, parameter names collapsed.

    ``GET:/orders/:id`` and ``get:/orders/:orderId`` both map to
    ``GET:/orders/:param``.
    """
    method, path = split_route_key(route_key)
    path = _PARAM_SEGMENT.sub("/:param", path).rstrip("/") or "/"
    return f"{method}:{path.lower()}"
