"""Client guard — advisory page/control gating from a cached grant snapshot.

Nothing here secures anything: the server re-checks every request. The
guard only keeps unauthorized pages and controls from being shown. It
applies the same rules as the server and never anything looser (module
names are matched exactly), so it can be stricter than the server when
its snapshot is stale but never more permissive.
"""

import enum
import re
from dataclasses import dataclass, field
from typing import Iterator, Optional

from routeguard.client.session import GrantSnapshot
from routeguard.core.access import RequiredPermission, RoleClass
from routeguard.core.config import settings
from routeguard.services.route_tree import RouteEntry, RouteTree


class PageOutcome(str, enum.Enum):
    RENDER = "render"
    LOGIN = "login"
    DENIED = "denied"


@dataclass(frozen=True)
class PageDecision:
    outcome: PageOutcome
    required_module: Optional[str] = None
    redirect_to: Optional[str] = None
    countdown: int = 0

    @property
    def allowed(self) -> bool:
        return self.outcome is PageOutcome.RENDER


class AccessDeniedCountdown:
    """Ticks ``countdown`` down to 1, then yields the redirect target.

    >>> list(AccessDeniedCountdown("/dashboard", 3))
    [3, 2, 1, '/dashboard']
    """

    def __init__(self, redirect_to: str, ticks: int):
        self.redirect_to = redirect_to
        self.ticks = ticks

    def __iter__(self) -> Iterator:
        for remaining in range(self.ticks, 0, -1):
            yield remaining
        yield self.redirect_to


@dataclass
class NavItem:
    route_id: Optional[str]
    label: str
    path: str
    group: str
    children: list["NavItem"] = field(default_factory=list)


def _slug(value: str) -> str:
    return re.sub(r"\s+", "-", value.strip().lower())


class ClientGuard:
    """Evaluates pages, controls and sidebar entries for one snapshot."""

    def __init__(self, snapshot: Optional[GrantSnapshot], route_tree: RouteTree):
        self.snapshot = snapshot
        self.route_tree = route_tree

    def can(self, module: str, action: str = "view") -> bool:
        snapshot = self.snapshot
        if snapshot is None:
            return False
        if snapshot.role_class is RoleClass.BYPASS:
            return True
        elif snapshot.role_class is RoleClass.STANDARD:
            return action in snapshot.grants.get(module, frozenset())
        raise AssertionError(f"Unhandled role class {snapshot.role_class!r}")

    def satisfies(self, permission: Optional[RequiredPermission]) -> bool:
        if permission is None:
            return self.snapshot is not None
        return all(self.can(permission.module, action) for action in permission.actions)

    @property
    def landing_page(self) -> str:
        snapshot = self.snapshot
        if snapshot and snapshot.landing_page:
            return snapshot.landing_page
        role = snapshot.role_name if snapshot and snapshot.role_name else "admin"
        return f"/dashboard/{_slug(role)}"

    def guard_page(self, url: str) -> PageDecision:
        """Decide whether a full page renders, or where the user is sent instead."""
        if self.snapshot is None:
            return PageDecision(PageOutcome.LOGIN, redirect_to="/login")

        entry = self.route_tree.match(url)
        permission = entry.effective_permission if entry else None
        if self.satisfies(permission):
            return PageDecision(PageOutcome.RENDER)
        return PageDecision(
            PageOutcome.DENIED,
            required_module=permission.module,
            redirect_to=self.landing_page,
            countdown=settings.ACCESS_DENIED_COUNTDOWN,
        )

    def countdown(self, decision: PageDecision) -> AccessDeniedCountdown:
        return AccessDeniedCountdown(decision.redirect_to or self.landing_page, decision.countdown)

    def guard_control(self, module: str, action: str) -> bool:
        """True to render the control; False means render nothing at all."""
        return self.can(module, action)

    def sidebar(self) -> list[NavItem]:
        """Navigation entries this snapshot may see, in registry order."""
        return self._nav_items(self.route_tree.roots())

    def grouped_sidebar(self) -> dict[str, list[NavItem]]:
        groups: dict[str, list[NavItem]] = {}
        for item in self.sidebar():
            groups.setdefault(item.group, []).append(item)
        return groups

    def _nav_items(self, entries: list[RouteEntry]) -> list[NavItem]:
        items = []
        for entry in entries:
            item = self._nav_item(entry)
            if item is not None:
                items.append(item)
        return items

    def _nav_item(self, entry: RouteEntry) -> Optional[NavItem]:
        if not entry.show_in_sidebar or not entry.label:
            return None

        children = self._nav_items(self.route_tree.children_of(entry))
        item = NavItem(entry.route_id, entry.label, entry.path, entry.group or "Main", children)
        if children:
            # A parent with any reachable child stays, whatever its own permission
            return item
        if any(c.show_in_sidebar and c.label for c in self.route_tree.children_of(entry)):
            # Section whose visible children are all unreachable
            return None
        return item if self.satisfies(entry.effective_permission) else None
