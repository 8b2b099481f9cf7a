"""Advisory client-side access checks driven by a cached grant snapshot."""

from routeguard.client.guard import AccessDeniedCountdown, ClientGuard, NavItem, PageDecision, PageOutcome
from routeguard.client.session import ApiSession, GrantSnapshot

__all__ = [
    "AccessDeniedCountdown", "ApiSession", "ClientGuard", "GrantSnapshot",
    "NavItem", "PageDecision", "PageOutcome",
]
