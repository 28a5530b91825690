"""User directory: registration and lookup by encrypted email."""

from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from crmvault.domain.access.scope import AccessScopeResolver
from crmvault.domain.directory.base import EncryptedDirectoryService
from crmvault.domain.directory.indexing import USERS, prefix_query_values
from crmvault.domain.directory.records import UserRecord
from crmvault.infrastructure.database.models import User
from crmvault.infrastructure.database.repositories import (
    UserClientRepository,
    UserHierarchyRepository,
    UserRepository,
    UserSearchIndexRepository,
)
from crmvault.shared.crypto import EncryptionContext
from crmvault.shared.exceptions import ConflictError, DecryptionError, NotFoundError
from crmvault.shared.logging import get_logger

logger = get_logger(__name__)

EMAIL_FIELD = "email"


def _same_email(a: str, b: str) -> bool:
    return a.strip().casefold() == b.strip().casefold()


class UserService(EncryptedDirectoryService):
    """Users with an encrypted, searchable email."""

    def __init__(
        self,
        session: AsyncSession,
        context: EncryptionContext | None = None,
        *,
        resolver: AccessScopeResolver | None = None,
    ) -> None:
        super().__init__(session, context, resolver=resolver)
        self.users = UserRepository(session)
        self.search_index = UserSearchIndexRepository(session)
        self.hierarchy = UserHierarchyRepository(session)
        self.assignments = UserClientRepository(session)

    async def register(
        self,
        email: str,
        password_hash: str,
        role_id: UUID | None = None,
        *,
        is_approved: bool = False,
    ) -> UserRecord:
        """Create a user.

        Raises:
            ConflictError: If a user with this email already exists.
        """
        email = email.strip()
        if await self._find_user(email) is not None:
            raise ConflictError("A user with this email already exists")

        envelopes = self._seal(USERS, {"email": email})
        user = await self.users.create(
            User(
                email_encrypted=envelopes["email"],
                password_hash=password_hash,
                role_id=role_id,
                is_approved=is_approved,
            )
        )
        await self.session.refresh(user, attribute_names=["role"])
        await USERS.write_index(self.search_index, self.hasher, user.id, {"email": email})

        logger.info("user_registered", user_id=str(user.id))
        return self._record(user, email)

    async def find_by_email(self, email: str) -> UserRecord | None:
        """Look a user up by email (case-insensitive exact match).

        Index hits are only candidates; each one is decrypted and compared.
        """
        found = await self._find_user(email.strip())
        if found is None:
            return None
        user, stored = found
        return self._record(user, stored)

    async def get_user(self, user_id: UUID) -> UserRecord:
        user = await self.users.get_by_id(user_id)
        if user is None:
            raise NotFoundError("User", str(user_id))
        return self._record(user, self.cipher.decrypt(user.email_encrypted))

    async def delete_user(self, user_id: UUID) -> None:
        """Delete a user with its reporting lines, assignments and index rows."""
        user = await self.users.get_by_id(user_id)
        if user is None:
            raise NotFoundError("User", str(user_id))
        await self.hierarchy.remove_node(user_id)
        await self.assignments.remove_all_for_user(user_id)
        await self.search_index.delete_entity(user_id)
        await self.users.delete(user)
        logger.info("user_deleted", user_id=str(user_id))

    async def _find_user(self, email: str) -> tuple[User, str] | None:
        values = prefix_query_values(self.hasher, email)
        if values:
            ids = await self.search_index.find_entity_ids(EMAIL_FIELD, values)
            candidates = list(await self.users.get_by_ids(ids))
        else:
            # Too short to carry an n-gram, so it was never indexed
            candidates = [user async for batch in self.users.iter_batches(500) for user in batch]

        for user in candidates:
            try:
                stored = self.cipher.decrypt(user.email_encrypted)
            except DecryptionError as e:
                logger.warning(
                    "user_email_decrypt_failed",
                    user_id=str(user.id),
                    error=type(e).__name__,
                )
                continue
            if _same_email(stored, email):
                return user, stored
        return None

    @staticmethod
    def _record(user: User, email: str) -> UserRecord:
        return UserRecord(
            id=user.id,
            email=email,
            role_id=user.role_id,
            role_name=user.role_name,
            is_approved=user.is_approved,
        )
