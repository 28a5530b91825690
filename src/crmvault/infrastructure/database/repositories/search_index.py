"""Blind-index store.

This is the only place raw index values are compared. It never sees
plaintext: callers hand in values produced by ``BlindIndexHasher``.
"""

from collections.abc import Iterable
from typing import Any, Generic, TypeVar, cast
from uuid import UUID

from sqlalchemy import delete, insert, select
from sqlalchemy.ext.asyncio import AsyncSession

from crmvault.infrastructure.database.models.search_index import (
    ClientSearchIndex,
    EnquirySearchIndex,
    SearchIndexMixin,
    UserSearchIndex,
)


T = TypeVar("T", bound=SearchIndexMixin)


class SearchIndexRepository(Generic[T]):
    """Replace and query ``(entity_id, field_name, index_value)`` rows."""

    model_class: type[T]

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def replace(
        self,
        entity_id: UUID,
        field_name: str,
        index_values: Iterable[str],
    ) -> None:
        """Replace every index row of one entity field.

        Delete and insert run inside one savepoint, so a concurrent reader
        sees either the old or the new row set, never an empty or doubled
        one. An empty ``index_values`` just clears the field.
        """
        model = cast(Any, self.model_class)
        values = list(dict.fromkeys(index_values))

        async with self.session.begin_nested():
            await self.session.execute(
                delete(model).where(
                    model.entity_id == entity_id,
                    model.field_name == field_name,
                )
            )
            if not values:
                return
            await self.session.execute(
                insert(model),
                [
                    {
                        "entity_id": entity_id,
                        "field_name": field_name,
                        "index_value": value,
                    }
                    for value in values
                ],
            )

    async def find_entity_ids(
        self,
        field_name: str,
        index_values: Iterable[str],
        limit: int | None = None,
    ) -> set[UUID]:
        """Entities with at least one row matching any of ``index_values``.

        OR semantics: a multi-token query widens the candidate set. Results
        are candidates only and must be confirmed after decryption when an
        exact match matters.
        """
        values = list(dict.fromkeys(index_values))
        if not values:
            return set()

        model = cast(Any, self.model_class)
        query = (
            select(model.entity_id)
            .where(
                model.field_name == field_name,
                model.index_value.in_(values),
            )
            .distinct()
        )
        if limit is not None:
            query = query.limit(limit)
        result = await self.session.execute(query)
        return set(result.scalars().all())

    async def index_values(self, entity_id: UUID, field_name: str) -> set[str]:
        """Stored index values for one entity field."""
        model = cast(Any, self.model_class)
        result = await self.session.execute(
            select(model.index_value).where(
                model.entity_id == entity_id,
                model.field_name == field_name,
            )
        )
        return set(result.scalars().all())

    async def delete_entity(self, entity_id: UUID) -> None:
        """Drop every index row of an entity."""
        model = cast(Any, self.model_class)
        await self.session.execute(delete(model).where(model.entity_id == entity_id))


class UserSearchIndexRepository(SearchIndexRepository[UserSearchIndex]):
    model_class = UserSearchIndex


class ClientSearchIndexRepository(SearchIndexRepository[ClientSearchIndex]):
    model_class = ClientSearchIndex


class EnquirySearchIndexRepository(SearchIndexRepository[EnquirySearchIndex]):
    model_class = EnquirySearchIndex
