"""
Access decisions for the auth and role gates.

Both guards are pure functions of the session identity. The Flask decorators
in `ellarises.utils.decorators` turn a decision into a flash + redirect.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import FrozenSet, Iterable, Optional

from ellarises.services.auth_models import ALLOWED_ROLES, MANAGER


class GuardDecision(Enum):
    PROCEED = "proceed"
    LOGIN = "login"  # no identity, send to the login form
    HOME = "home"    # identity present, role not permitted


@dataclass(frozen=True)
class RoleRequirement:
    roles: FrozenSet[str]

    @classmethod
    def of(cls, *roles: str) -> 'RoleRequirement':
        unknown = set(roles) - ALLOWED_ROLES
        if unknown:
            raise ValueError(f"Unknown roles: {sorted(unknown)}")
        return cls(frozenset(roles))

    def satisfied_by(self, role: Optional[str]) -> bool:
        return role in self.roles


MANAGER_ONLY = RoleRequirement.of(MANAGER)


def _identity_present(identity) -> bool:
    return identity is not None and bool(getattr(identity, 'is_authenticated', False))


def auth_guard(identity) -> GuardDecision:
    """Proceed when an identity is present, for every HTTP method."""
    return GuardDecision.PROCEED if _identity_present(identity) else GuardDecision.LOGIN


def role_guard(identity, requirement: RoleRequirement) -> GuardDecision:
    """Check a role requirement.

    Normally runs after auth_guard, so the LOGIN branch only fires when a route
    was registered without one. A wrong role never goes back to login.
    """
    if not _identity_present(identity):
        return GuardDecision.LOGIN
    if requirement.satisfied_by(getattr(identity, 'role', None)):
        return GuardDecision.PROCEED
    return GuardDecision.HOME


def listing_guard(identity, resource: str, public_listings: Iterable[str]) -> GuardDecision:
    """List pages are gated unless the deployment opened them to the public."""
    if resource in set(public_listings):
        return GuardDecision.PROCEED
    return auth_guard(identity)
