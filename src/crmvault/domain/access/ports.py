"""Ports for access scope resolution."""

from __future__ import annotations

from collections.abc import Iterable
from typing import Protocol
from uuid import UUID


class RoleView(Protocol):
    """The parts of a role the resolver reads."""

    id: UUID
    name: str
    is_global: bool
    is_superuser: bool


class UserView(Protocol):
    """The parts of a user the resolver reads."""

    id: UUID
    role_id: UUID | None


class UserLookupPort(Protocol):
    async def get_by_id(self, id: UUID) -> UserView | None:
        """Get user by ID."""


class RoleLookupPort(Protocol):
    async def get_by_id(self, id: UUID) -> RoleView | None:
        """Get role by ID."""

    async def permission_names_for_roles(self, role_ids: Iterable[UUID]) -> set[str]:
        """Union of permission names granted to ``role_ids``."""


class HierarchyPort(Protocol):
    async def descendants(self, node: UUID) -> set[UUID]:
        """Every node below ``node``."""


class AssignmentLookupPort(Protocol):
    async def client_ids_for_users(self, user_ids: Iterable[UUID]) -> set[UUID]:
        """Clients directly assigned to any of ``user_ids``."""
