"""
Authorization -- Set-backed capability checks.

Responsibility:
    Reference ``Authorizer`` holding explicit allow-lists for pool owners,
    operators and orchestrators, plus a guard helper that raises
    UnauthorizedCallerError. Membership is a set check, never inheritance.

Architecture position:
    Kernel > Domain -- pure, zero I/O.
"""

from __future__ import annotations

from collections.abc import Iterable
from enum import Enum

from liquidity_kernel.domain.protocols import Authorizer
from liquidity_kernel.exceptions import UnauthorizedCallerError, ZeroAddressError


class PoolRole(str, Enum):
    POOL_OWNER = "pool_owner"
    OPERATOR = "operator"
    ORCHESTRATOR = "orchestrator"


class RoleRegistry:
    """
    Allow-list authorizer.

    Contract:
        Implements the ``Authorizer`` protocol. Role grants are additive;
        ``revoke`` removes a single grant.

    Non-goals:
        No persistence. Durable role administration belongs to the host
        application.
    """

    def __init__(
        self,
        *,
        pool_owners: Iterable[str] = (),
        operators: Iterable[str] = (),
        orchestrators: Iterable[str] = (),
    ):
        self._members: dict[PoolRole, set[str]] = {
            PoolRole.POOL_OWNER: set(pool_owners),
            PoolRole.OPERATOR: set(operators),
            PoolRole.ORCHESTRATOR: set(orchestrators),
        }

    def grant(self, role: PoolRole, actor: str) -> None:
        if not actor:
            raise ZeroAddressError("actor")
        self._members[role].add(actor)

    def revoke(self, role: PoolRole, actor: str) -> None:
        self._members[role].discard(actor)

    def has_role(self, role: PoolRole, actor: str) -> bool:
        return actor in self._members[role]

    def is_pool_owner(self, actor: str) -> bool:
        return self.has_role(PoolRole.POOL_OWNER, actor)

    def is_operator(self, actor: str) -> bool:
        return self.has_role(PoolRole.OPERATOR, actor)

    def is_orchestrator(self, actor: str) -> bool:
        return self.has_role(PoolRole.ORCHESTRATOR, actor)


_CHECKS = {
    PoolRole.POOL_OWNER: "is_pool_owner",
    PoolRole.OPERATOR: "is_operator",
    PoolRole.ORCHESTRATOR: "is_orchestrator",
}


def require_role(authorizer: Authorizer, role: PoolRole, actor: str) -> None:
    """Raise UnauthorizedCallerError unless ``actor`` holds ``role``."""
    if not actor:
        raise ZeroAddressError("actor")
    if not getattr(authorizer, _CHECKS[role])(actor):
        raise UnauthorizedCallerError(actor, role.value)


def require_any_role(authorizer: Authorizer, roles: Iterable[PoolRole], actor: str) -> None:
    roles = tuple(roles)
    if not actor:
        raise ZeroAddressError("actor")
    if not any(getattr(authorizer, _CHECKS[r])(actor) for r in roles):
        raise UnauthorizedCallerError(actor, " | ".join(r.value for r in roles))
