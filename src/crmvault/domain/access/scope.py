"""Access scope resolution.

Turns an actor into the concrete set of client ids it may see, and answers
``resource.action`` permission checks. Nothing here touches ciphertext; the
scope is intersected with search candidates before anything is decrypted.
"""

from __future__ import annotations

import enum
from collections.abc import Iterable
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from crmvault.config import get_settings
from crmvault.domain.access.ports import (
    AssignmentLookupPort,
    HierarchyPort,
    RoleLookupPort,
    RoleView,
    UserLookupPort,
)
from crmvault.shared.logging import get_logger

logger = get_logger(__name__)


class Unrestricted(enum.Enum):
    """Scope of actors that see every client."""

    ALL = "all"

    def __repr__(self) -> str:
        return "UNRESTRICTED"


UNRESTRICTED = Unrestricted.ALL

AccessScope = frozenset[UUID] | Unrestricted


def restrict(candidate_ids: Iterable[UUID], scope: AccessScope) -> set[UUID]:
    """Keep only the candidates that fall inside ``scope``."""
    if scope is UNRESTRICTED:
        return set(candidate_ids)
    return set(candidate_ids) & scope


def in_scope(client_id: UUID, scope: AccessScope) -> bool:
    return scope is UNRESTRICTED or client_id in scope


class AccessScopeResolver:
    """Resolve what an actor may see and do.

    Roles are global (no client scoping) when flagged ``is_global`` or named
    in ``global_role_names``; superuser likewise via ``is_superuser`` or
    ``superuser_role_names``.
    """

    def __init__(
        self,
        users: UserLookupPort,
        roles: RoleLookupPort,
        role_hierarchy: HierarchyPort,
        user_hierarchy: HierarchyPort,
        assignments: AssignmentLookupPort,
        *,
        global_role_names: frozenset[str] = frozenset(),
        superuser_role_names: frozenset[str] = frozenset(),
    ) -> None:
        self.users = users
        self.roles = roles
        self.role_hierarchy = role_hierarchy
        self.user_hierarchy = user_hierarchy
        self.assignments = assignments
        self.global_role_names = global_role_names
        self.superuser_role_names = superuser_role_names

    @classmethod
    def for_session(cls, session: AsyncSession) -> AccessScopeResolver:
        """Wire the resolver to the SQL repositories and configured role names."""
        from crmvault.infrastructure.database.repositories import (
            RoleHierarchyRepository,
            RoleRepository,
            UserClientRepository,
            UserHierarchyRepository,
            UserRepository,
        )

        settings = get_settings()
        return cls(
            UserRepository(session),
            RoleRepository(session),
            RoleHierarchyRepository(session),
            UserHierarchyRepository(session),
            UserClientRepository(session),
            global_role_names=settings.global_role_names,
            superuser_role_names=settings.superuser_role_names,
        )

    def _is_global(self, role: RoleView) -> bool:
        return role.is_global or role.name in self.global_role_names

    def _is_superuser(self, role: RoleView) -> bool:
        return role.is_superuser or role.name in self.superuser_role_names

    async def _role_of(self, user_id: UUID) -> RoleView | None:
        user = await self.users.get_by_id(user_id)
        if user is None or user.role_id is None:
            return None
        return await self.roles.get_by_id(user.role_id)

    async def can_access(self, user_id: UUID, resource: str, action: str) -> bool:
        """Whether the user holds ``resource.action``.

        A role inherits the permissions of every role below it in the role
        hierarchy. Superuser roles pass every check.
        """
        allowed = await self._check(user_id, {f"{resource}.{action}"}, require_all=True)
        if not allowed:
            logger.debug(
                "permission_denied",
                user_id=str(user_id),
                permission=f"{resource}.{action}",
            )
        return allowed

    async def permission_names(self, user_id: UUID) -> frozenset[str]:
        """Every ``resource.action`` granted to the user's role and the roles below it.

        Superuser roles pass checks without holding names, so they are not
        expanded here.
        """
        role = await self._role_of(user_id)
        if role is None:
            return frozenset()
        return await self._role_permissions(role)

    async def has_any_permission(self, user_id: UUID, names: Iterable[str]) -> bool:
        return await self._check(user_id, set(names), require_all=False)

    async def has_all_permissions(self, user_id: UUID, names: Iterable[str]) -> bool:
        return await self._check(user_id, set(names), require_all=True)

    async def _check(self, user_id: UUID, wanted: set[str], *, require_all: bool) -> bool:
        role = await self._role_of(user_id)
        if role is None:
            return False
        if self._is_superuser(role):
            return True
        held = await self._role_permissions(role)
        return wanted <= held if require_all else not wanted.isdisjoint(held)

    async def _role_permissions(self, role: RoleView) -> frozenset[str]:
        role_ids = {role.id} | await self.role_hierarchy.descendants(role.id)
        return frozenset(await self.roles.permission_names_for_roles(role_ids))

    async def accessible_client_ids(self, user_id: UUID) -> AccessScope:
        """Clients the user may see.

        Unknown users get an empty scope. Global roles get ``UNRESTRICTED``.
        Everyone else sees their own clients plus those of every user below
        them in the reporting hierarchy.
        """
        user = await self.users.get_by_id(user_id)
        if user is None:
            return frozenset()
        if user.role_id is not None:
            role = await self.roles.get_by_id(user.role_id)
            if role is not None and self._is_global(role):
                return UNRESTRICTED

        user_ids = {user_id} | await self.user_hierarchy.descendants(user_id)
        client_ids = await self.assignments.client_ids_for_users(user_ids)
        return frozenset(client_ids)
