"""Aggregates over encrypted client data."""

from collections import Counter
from dataclasses import dataclass, field
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from crmvault.domain.access.scope import AccessScopeResolver
from crmvault.domain.directory.base import EncryptedDirectoryService
from crmvault.infrastructure.database.repositories import ClientRepository
from crmvault.shared.crypto import EncryptionContext
from crmvault.shared.logging import get_logger

logger = get_logger(__name__)


@dataclass
class PackageDistribution:
    """Client count per package. ``skipped`` counts undecryptable rows."""

    counts: dict[str, int] = field(default_factory=dict)
    total: int = 0
    skipped: int = 0


class AnalyticsService(EncryptedDirectoryService):
    def __init__(
        self,
        session: AsyncSession,
        context: EncryptionContext | None = None,
        *,
        resolver: AccessScopeResolver | None = None,
        batch_size: int = 500,
    ) -> None:
        super().__init__(session, context, resolver=resolver)
        self.clients = ClientRepository(session)
        self.batch_size = batch_size

    async def package_distribution(self, actor_id: UUID | None = None) -> PackageDistribution:
        """Count clients per package within the actor's scope.

        Packages are encrypted, so every row in scope is decrypted; rows
        that fail are skipped and counted.
        """
        scope = await self._scope(actor_id)
        envelopes: dict[UUID, str] = {}
        if isinstance(scope, frozenset):
            for client in await self.clients.get_by_ids(scope):
                envelopes[client.id] = client.package_encrypted
        else:
            async for batch in self.clients.iter_batches(self.batch_size):
                for client in batch:
                    envelopes[client.id] = client.package_encrypted

        packages = self.cipher.decrypt_many(envelopes)
        counter = Counter(package.strip() or "unknown" for package in packages.values())
        result = PackageDistribution(
            counts=dict(counter.most_common()),
            total=len(packages),
            skipped=len(envelopes) - len(packages),
        )
        logger.info(
            "package_distribution_computed",
            total=result.total,
            skipped=result.skipped,
            packages=len(result.counts),
        )
        return result
