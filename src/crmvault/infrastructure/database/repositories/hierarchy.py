"""Role and user hierarchy repositories.

Writes follow one protocol: take the graph lock, load the current edge set,
validate the proposed change in memory, then write. The lock serializes
concurrent writers so two edges that each pass the cycle check cannot
jointly commit a cycle. Reads take no lock.
"""

import zlib
from collections.abc import Iterable, Sequence
from typing import Any, cast
from uuid import UUID

from sqlalchemy import delete, insert, or_, select, text
from sqlalchemy.ext.asyncio import AsyncSession

from crmvault.domain.hierarchy.graph import (
    CycleRejected,
    ancestors,
    build_adjacency,
    check_edge,
    descendants,
    find_cycle_edge,
)
from crmvault.infrastructure.database.models.role import RoleHierarchy
from crmvault.infrastructure.database.models.user import UserHierarchy
from crmvault.shared.logging import get_logger

logger = get_logger(__name__)

Edge = tuple[UUID, UUID]


class HierarchyRepository:
    """Acyclic ``parent -> child`` edge set stored in one table."""

    model_class: type[Any]
    parent_column: str
    child_column: str

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    # ----- Columns -----

    @property
    def _parent(self) -> Any:
        return getattr(self.model_class, self.parent_column)

    @property
    def _child(self) -> Any:
        return getattr(self.model_class, self.child_column)

    def _row(self, parent: UUID, child: UUID) -> dict[str, UUID]:
        return {self.parent_column: parent, self.child_column: child}

    # ----- Locking -----

    async def _lock_graph(self) -> None:
        """Serialize writers of this hierarchy until the transaction ends.

        PostgreSQL gets a transaction-scoped advisory lock keyed by table
        name. SQLite allows a single writer per database already.
        """
        if self.session.get_bind().dialect.name != "postgresql":
            return
        key = zlib.crc32(cast(Any, self.model_class).__tablename__.encode("utf-8"))
        await self.session.execute(
            text("SELECT pg_advisory_xact_lock(:key)"),
            {"key": key},
        )

    # ----- Reads -----

    async def edges(self) -> list[Edge]:
        """Every edge as ``(parent, child)``."""
        result = await self.session.execute(select(self._parent, self._child))
        return [(row[0], row[1]) for row in result.all()]

    async def direct_children(self, node: UUID) -> set[UUID]:
        result = await self.session.execute(select(self._child).where(self._parent == node))
        return set(result.scalars().all())

    async def direct_parents(self, node: UUID) -> set[UUID]:
        result = await self.session.execute(select(self._parent).where(self._child == node))
        return set(result.scalars().all())

    async def descendants(self, node: UUID) -> set[UUID]:
        """Every node below ``node``."""
        return descendants(await self.edges(), node)

    async def ancestors(self, node: UUID) -> set[UUID]:
        """Every node above ``node``."""
        return ancestors(await self.edges(), node)

    async def has_descendant(self, parent: UUID, child: UUID) -> bool:
        return child in await self.descendants(parent)

    # ----- Writes -----

    async def add_edge(self, parent: UUID, child: UUID) -> CycleRejected[UUID] | None:
        """Add ``parent -> child`` unless it is a self-loop or closes a cycle.

        Adding an existing edge is a no-op. On rejection nothing is written.
        """
        if parent == child:
            return CycleRejected(parent=parent, child=child, reason="self_loop")

        await self._lock_graph()
        existing = await self.edges()
        if (parent, child) in existing:
            return None

        rejected = check_edge(build_adjacency(existing), parent, child)
        if rejected is not None:
            logger.info(
                "hierarchy_edge_rejected",
                table=self.model_class.__tablename__,
                parent=str(parent),
                child=str(child),
                reason=rejected.reason,
            )
            return rejected

        await self.session.execute(insert(self.model_class), [self._row(parent, child)])
        return None

    async def remove_edge(self, parent: UUID, child: UUID) -> None:
        await self.session.execute(
            delete(self.model_class).where(self._parent == parent, self._child == child)
        )

    async def remove_all_edges_from(self, node: UUID) -> None:
        """Detach every direct child of ``node``."""
        await self.session.execute(delete(self.model_class).where(self._parent == node))

    async def remove_node(self, node: UUID) -> None:
        """Drop every edge touching ``node`` (used when the node is deleted)."""
        await self.session.execute(
            delete(self.model_class).where(or_(self._parent == node, self._child == node))
        )

    async def _replace_edges(
        self,
        *,
        remove: Sequence[Edge],
        add: Sequence[Edge],
        existing: Sequence[Edge],
    ) -> CycleRejected[UUID] | None:
        """Swap one set of edges for another after validating the result."""
        remaining = [edge for edge in existing if edge not in set(remove)]
        rejected = find_cycle_edge([*remaining, *add])
        if rejected is not None:
            return rejected

        for parent, child in remove:
            await self.remove_edge(parent, child)
        if add:
            await self.session.execute(
                insert(self.model_class),
                [self._row(parent, child) for parent, child in add],
            )
        return None


class RoleHierarchyRepository(HierarchyRepository):
    """``parent_role -> child_role``: the parent sees the child's data."""

    model_class = RoleHierarchy
    parent_column = "parent_role_id"
    child_column = "child_role_id"

    async def set_parents(
        self,
        role_id: UUID,
        parent_ids: Iterable[UUID],
    ) -> CycleRejected[UUID] | None:
        """Replace every parent of ``role_id``.

        A parent id equal to ``role_id`` is skipped, not rejected. If the new
        edge set would contain a cycle nothing changes.
        """
        parents = self._without_self(role_id, parent_ids, direction="parent")
        await self._lock_graph()
        existing = await self.edges()
        rejected = await self._replace_edges(
            remove=[edge for edge in existing if edge[1] == role_id],
            add=[(parent, role_id) for parent in parents],
            existing=existing,
        )
        self._log_rejection(rejected)
        return rejected

    async def set_children(
        self,
        role_id: UUID,
        child_ids: Iterable[UUID],
    ) -> CycleRejected[UUID] | None:
        """Replace every child of ``role_id``; same rules as ``set_parents``."""
        children = self._without_self(role_id, child_ids, direction="child")
        await self._lock_graph()
        existing = await self.edges()
        rejected = await self._replace_edges(
            remove=[edge for edge in existing if edge[0] == role_id],
            add=[(role_id, child) for child in children],
            existing=existing,
        )
        self._log_rejection(rejected)
        return rejected

    def _without_self(self, role_id: UUID, ids: Iterable[UUID], *, direction: str) -> list[UUID]:
        unique = list(dict.fromkeys(ids))
        if role_id in unique:
            logger.warning(
                "role_hierarchy_self_reference_skipped",
                role_id=str(role_id),
                direction=direction,
            )
        return [node for node in unique if node != role_id]

    def _log_rejection(self, rejected: CycleRejected[UUID] | None) -> None:
        if rejected is not None:
            logger.info(
                "hierarchy_edge_rejected",
                table=RoleHierarchy.__tablename__,
                parent=str(rejected.parent),
                child=str(rejected.child),
                reason=rejected.reason,
            )


class UserHierarchyRepository(HierarchyRepository):
    """Reporting lines ``manager -> report``."""

    model_class = UserHierarchy
    parent_column = "parent_user_id"
    child_column = "child_user_id"
