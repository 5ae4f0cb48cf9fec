# SPDX-License-Identifier: Apache-2.0

"""
Authorization domain logic for capability-based access control.

AccessGuard answers whether a principal holds a capability. It never raises
and never mutates state while answering; callers turn a denial into an
AuthorizationError. Granting and revoking only edit the backing store.
"""

from typing import Dict, List, Optional, Set, Iterable
from dataclasses import dataclass, field
from models.entities import Role
from models.enums import Capability, RoleName


DEFAULT_ROLES: Dict[str, Role] = {
    RoleName.ADMIN.value: Role(
        name=RoleName.ADMIN.value,
        description="Manages capability assignments",
        capabilities=[Capability.MANAGE_ROLES]
    ),
    RoleName.TOURISM_OFFICER.value: Role(
        name=RoleName.TOURISM_OFFICER.value,
        description="Registers and checks out tourists",
        capabilities=[Capability.REGISTER_TOURIST]
    ),
    RoleName.POLICE_OFFICER.value: Role(
        name=RoleName.POLICE_OFFICER.value,
        description="Reports tourists as missing",
        capabilities=[Capability.MARK_MISSING]
    ),
    RoleName.EMERGENCY_RESPONDER.value: Role(
        name=RoleName.EMERGENCY_RESPONDER.value,
        description="Resolves emergency alerts",
        capabilities=[Capability.RESOLVE_ALERT]
    ),
}


@dataclass
class AuthorizationResult:
    """Result of an authorization check."""
    allowed: bool
    reason: Optional[str] = None
    missing_capabilities: List[str] = field(default_factory=list)


class AccessGuard:
    """In-memory capability store keyed by principal."""

    def __init__(self, admin_principal: Optional[str] = None, roles: Optional[Dict[str, Role]] = None):
        self._grants: Dict[str, Set[str]] = {}
        self._roles = dict(roles or DEFAULT_ROLES)

        if admin_principal:
            self.grant_role(admin_principal, RoleName.ADMIN)

    def authorized(self, principal: Optional[str], capability: Capability) -> bool:
        """Return True if the principal holds the capability."""
        if not principal:
            return False
        return Capability(capability).value in self._grants.get(principal, ())

    def capabilities_of(self, principal: str) -> List[str]:
        """Sorted capabilities currently held by a principal."""
        return sorted(self._grants.get(principal, ()))

    def grant(self, principal: str, capability: Capability) -> bool:
        """Grant a capability. Returns False if it was already held."""
        held = self._grants.setdefault(principal, set())
        value = Capability(capability).value
        if value in held:
            return False
        held.add(value)
        return True

    def revoke(self, principal: str, capability: Capability) -> bool:
        """Revoke a capability. Returns False if it was not held."""
        held = self._grants.get(principal)
        value = Capability(capability).value
        if not held or value not in held:
            return False
        held.discard(value)
        if not held:
            del self._grants[principal]
        return True

    def role(self, role_name: RoleName) -> Role:
        """Look up a role definition by name."""
        try:
            return self._roles[RoleName(role_name).value]
        except (KeyError, ValueError):
            raise KeyError(f"Unknown role: {role_name}")

    def grant_role(self, principal: str, role_name: RoleName) -> List[str]:
        """Grant every capability bundled in a role. Returns the newly granted ones."""
        return [
            capability for capability in self.role(role_name).capabilities
            if self.grant(principal, capability)
        ]

    def revoke_role(self, principal: str, role_name: RoleName) -> List[str]:
        """Revoke every capability bundled in a role. Returns the ones actually revoked."""
        return [
            capability for capability in self.role(role_name).capabilities
            if self.revoke(principal, capability)
        ]


def check_capability(guard: AccessGuard, principal: Optional[str], capability: Capability) -> AuthorizationResult:
    """
    Check if a principal holds a capability.

    Args:
        guard: Capability store to consult
        principal: Caller identity
        capability: Capability to check

    Returns:
        AuthorizationResult indicating if the capability is held
    """
    if guard.authorized(principal, capability):
        return AuthorizationResult(allowed=True)

    value = Capability(capability).value
    return AuthorizationResult(
        allowed=False,
        reason=f"Missing required capability: {value}",
        missing_capabilities=[value]
    )


def check_capabilities(guard: AccessGuard, principal: Optional[str],
                       capabilities: Iterable[Capability], require_all: bool = True) -> AuthorizationResult:
    """
    Check a set of capabilities at once.

    Args:
        guard: Capability store to consult
        principal: Caller identity
        capabilities: Capabilities to check
        require_all: If True, every capability is required. If False, any one is sufficient.

    Returns:
        AuthorizationResult indicating if the check passed
    """
    required = sorted({Capability(c).value for c in capabilities})
    held = [c for c in required if guard.authorized(principal, Capability(c))]
    missing = [c for c in required if c not in held]

    if require_all and not missing:
        return AuthorizationResult(allowed=True)
    if not require_all and held:
        return AuthorizationResult(allowed=True)

    joiner = "" if require_all else "any of "
    return AuthorizationResult(
        allowed=False,
        reason=f"Missing {joiner}required capabilities: {', '.join(missing)}",
        missing_capabilities=missing
    )


def get_capability_description(capability: str) -> str:
    """Human-readable description for a capability."""
    capability_descriptions = {
        Capability.REGISTER_TOURIST.value: "Register and check out tourists",
        Capability.MARK_MISSING.value: "Report tourists as missing",
        Capability.RESOLVE_ALERT.value: "Resolve emergency alerts",
        Capability.MANAGE_ROLES.value: "Grant and revoke capabilities",
    }

    return capability_descriptions.get(capability, f"Capability: {capability}")
