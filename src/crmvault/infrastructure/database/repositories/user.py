"""User repository."""

from collections.abc import Sequence
from uuid import UUID

from sqlalchemy import select

from crmvault.infrastructure.database.models.user import User
from crmvault.infrastructure.database.repositories.base import BaseRepository


class UserRepository(BaseRepository[User]):
    """Repository for users. The role is joined eagerly."""

    model_class = User

    async def get_role_id(self, user_id: UUID) -> UUID | None:
        result = await self.session.execute(select(User.role_id).where(User.id == user_id))
        return result.scalar_one_or_none()

    async def get_by_role(self, role_id: UUID) -> Sequence[User]:
        result = await self.session.execute(self._base_query().where(User.role_id == role_id))
        return result.unique().scalars().all()
