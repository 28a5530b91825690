"""Base repository."""

from collections.abc import AsyncIterator, Iterable, Sequence
from contextlib import asynccontextmanager
from typing import Any, Generic, TypeVar, cast
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession


T = TypeVar("T")


class BaseRepository(Generic[T]):
    """Base repository for entities with a UUID primary key.

    Repositories never commit; the caller owns the unit of work (see
    ``crmvault.infrastructure.database.connection.session_scope``).
    """

    model_class: type[T]

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    def _base_query(self) -> Any:
        """Create a base query. All queries should start from this method."""
        return select(cast(Any, self.model_class))

    @property
    def dialect_name(self) -> str:
        return self.session.get_bind().dialect.name

    @asynccontextmanager
    async def begin_nested(self) -> AsyncIterator[None]:
        """Begin a nested transaction scope for multi-step updates."""
        async with self.session.begin_nested():
            yield

    async def get_by_id(self, id: UUID) -> T | None:
        """Get entity by ID."""
        model = cast(Any, self.model_class)
        query = self._base_query().where(model.id == id)
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def get_by_ids(self, ids: Iterable[UUID]) -> Sequence[T]:
        """Get every entity whose ID is in ``ids``; unknown IDs are ignored."""
        id_list = list(ids)
        if not id_list:
            return []
        model = cast(Any, self.model_class)
        query = self._base_query().where(model.id.in_(id_list)).order_by(model.created_at.desc())
        result = await self.session.execute(query)
        return result.scalars().all()

    async def get_all(
        self,
        *,
        limit: int = 100,
        offset: int = 0,
    ) -> Sequence[T]:
        """Get all entities, newest first."""
        model = cast(Any, self.model_class)
        query = (
            self._base_query()
            .order_by(model.created_at.desc())
            .limit(limit)
            .offset(offset)
        )
        result = await self.session.execute(query)
        return result.scalars().all()

    async def iter_batches(self, batch_size: int) -> AsyncIterator[Sequence[T]]:
        """Yield every entity in primary-key order, ``batch_size`` at a time."""
        model = cast(Any, self.model_class)
        last_id: UUID | None = None
        while True:
            query = self._base_query().order_by(model.id.asc()).limit(batch_size)
            if last_id is not None:
                query = query.where(model.id > last_id)
            result = await self.session.execute(query)
            batch = result.scalars().all()
            if not batch:
                return
            yield batch
            last_id = cast(Any, batch[-1]).id

    async def count(self) -> int:
        """Count entities."""
        query = select(func.count()).select_from(self._base_query().subquery())
        result = await self.session.execute(query)
        return result.scalar_one()

    async def create(self, entity: T) -> T:
        """Persist a new entity and load server defaults."""
        self.session.add(entity)
        await self.session.flush()
        await self.session.refresh(entity)
        return entity

    async def update(self, entity: T) -> T:
        """Update an existing entity."""
        await self.session.flush()
        await self.session.refresh(entity)
        return entity

    async def delete(self, entity: T) -> None:
        """Hard delete an entity."""
        await self.session.delete(entity)
        await self.session.flush()
