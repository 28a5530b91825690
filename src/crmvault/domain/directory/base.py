"""Shared plumbing for services that read and write encrypted records."""

from typing import Any
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from crmvault.config import get_encryption_context, get_settings
from crmvault.domain.access.scope import AccessScope, AccessScopeResolver
from crmvault.domain.directory.indexing import EncryptedEntity
from crmvault.shared.blind_index import BlindIndexHasher
from crmvault.shared.context import get_actor_context
from crmvault.shared.crypto import EncryptionContext, EnvelopeCipher


class EncryptedDirectoryService:
    """Base for services over encrypted entities.

    Holds the cipher, the hasher and the access resolver for one session.
    ``context`` defaults to the process-wide encryption context.
    """

    def __init__(
        self,
        session: AsyncSession,
        context: EncryptionContext | None = None,
        *,
        resolver: AccessScopeResolver | None = None,
    ) -> None:
        context = context or get_encryption_context()
        self.session = session
        self.cipher = EnvelopeCipher(context)
        self.hasher = BlindIndexHasher(context)
        self.resolver = resolver or AccessScopeResolver.for_session(session)
        self.result_limit = get_settings().search_result_limit

    @staticmethod
    def _actor_id(actor_id: UUID | None) -> UUID:
        return actor_id if actor_id is not None else get_actor_context().user_id

    async def _scope(self, actor_id: UUID | None) -> AccessScope:
        return await self.resolver.accessible_client_ids(self._actor_id(actor_id))

    def _seal(self, entity: EncryptedEntity, plaintext: dict[str, str | None]) -> dict[str, str | None]:
        """Encrypt every field; ``None`` stays ``None``."""
        return {
            field: None if value is None else self.cipher.encrypt(value)
            for field, value in plaintext.items()
            if field in entity.fields
        }

    def _open(self, entity: EncryptedEntity, row: Any) -> dict[str, str | None]:
        """Decrypt every field of a row. Raises ``DecryptionError``."""
        return {
            field: self.cipher.decrypt_optional(envelope)
            for field, envelope in entity.read_envelopes(row).items()
        }
