"""User-client assignment repository."""

from collections.abc import Iterable
from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession

from crmvault.infrastructure.database.models.client import UserClient


class UserClientRepository:
    """Direct ``user -> client`` assignments (one row per pair)."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def assign_user_to_client(self, user_id: UUID, client_id: UUID) -> bool:
        """Assign a client to a user.

        Idempotent: returns False when the pair already existed.
        """
        dialect = self.session.get_bind().dialect.name
        values = {"user_id": user_id, "client_id": client_id}
        if dialect == "postgresql":
            stmt = postgresql.insert(UserClient).values(**values).on_conflict_do_nothing()
        elif dialect == "sqlite":
            stmt = sqlite.insert(UserClient).values(**values).on_conflict_do_nothing()
        else:
            if await self.has_access(user_id, client_id):
                return False
            self.session.add(UserClient(**values))
            await self.session.flush()
            return True
        result = await self.session.execute(stmt)
        return bool(result.rowcount)

    async def remove_user_from_client(self, user_id: UUID, client_id: UUID) -> None:
        await self.session.execute(
            delete(UserClient).where(
                UserClient.user_id == user_id,
                UserClient.client_id == client_id,
            )
        )

    async def has_access(self, user_id: UUID, client_id: UUID) -> bool:
        """Whether the pair is directly assigned (hierarchy not considered)."""
        result = await self.session.execute(
            select(UserClient.user_id).where(
                UserClient.user_id == user_id,
                UserClient.client_id == client_id,
            )
        )
        return result.first() is not None

    async def client_ids_for_user(self, user_id: UUID) -> set[UUID]:
        result = await self.session.execute(
            select(UserClient.client_id).where(UserClient.user_id == user_id)
        )
        return set(result.scalars().all())

    async def client_ids_for_users(self, user_ids: Iterable[UUID]) -> set[UUID]:
        ids = list(user_ids)
        if not ids:
            return set()
        result = await self.session.execute(
            select(UserClient.client_id).where(UserClient.user_id.in_(ids)).distinct()
        )
        return set(result.scalars().all())

    async def user_ids_for_client(self, client_id: UUID) -> set[UUID]:
        result = await self.session.execute(
            select(UserClient.user_id).where(UserClient.client_id == client_id)
        )
        return set(result.scalars().all())

    async def remove_all_for_user(self, user_id: UUID) -> None:
        await self.session.execute(delete(UserClient).where(UserClient.user_id == user_id))

    async def remove_all_for_client(self, client_id: UUID) -> None:
        await self.session.execute(delete(UserClient).where(UserClient.client_id == client_id))
