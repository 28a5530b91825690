"""Client directory: encrypted client records scoped per actor."""

from collections.abc import Iterable
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from crmvault.domain.access.scope import AccessScopeResolver, in_scope, restrict
from crmvault.domain.directory.base import EncryptedDirectoryService
from crmvault.domain.directory.indexing import (
    CLIENTS,
    decode_domains,
    domain_query_values,
    encode_domains,
    matches_domain_prefix,
    matches_prefix,
    prefix_query_values,
)
from crmvault.domain.directory.records import ClientRecord
from crmvault.infrastructure.database.models import Client
from crmvault.infrastructure.database.repositories import (
    ClientRepository,
    ClientSearchIndexRepository,
    UserClientRepository,
)
from crmvault.shared.crypto import EncryptionContext
from crmvault.shared.exceptions import AccessDeniedError, DecryptionError, NotFoundError
from crmvault.shared.logging import get_logger

logger = get_logger(__name__)

NAME_FIELD = "client_name"
DOMAIN_FIELD = "domain"


class ClientService(EncryptedDirectoryService):
    """Create, read and search clients.

    Reads are always restricted to the actor's access scope, and the scope is
    applied to candidate ids before anything is decrypted.
    """

    def __init__(
        self,
        session: AsyncSession,
        context: EncryptionContext | None = None,
        *,
        resolver: AccessScopeResolver | None = None,
    ) -> None:
        super().__init__(session, context, resolver=resolver)
        self.clients = ClientRepository(session)
        self.search_index = ClientSearchIndexRepository(session)
        self.assignments = UserClientRepository(session)

    # ----- Writes -----

    async def create_client(
        self,
        *,
        package: str,
        client_name: str,
        person_name: str,
        address: str,
        phone: str,
        email: str,
        domains: Iterable[str],
        city: str | None = None,
        state: str | None = None,
        pincode: str | None = None,
        assign_to: UUID | None = None,
    ) -> ClientRecord:
        """Encrypt and store a client, then index its name and domains.

        ``assign_to`` directly assigns the new client to that user.
        """
        plaintext: dict[str, str | None] = {
            "package": package,
            "client_name": client_name,
            "person_name": person_name,
            "address": address,
            "phone": phone,
            "email": email,
            "domains": encode_domains(list(domains)),
        }
        client = Client(city=city, state=state, pincode=pincode)
        CLIENTS.write_envelopes(client, self._seal(CLIENTS, plaintext))
        client = await self.clients.create(client)
        await CLIENTS.write_index(self.search_index, self.hasher, client.id, plaintext)

        if assign_to is not None:
            await self.assignments.assign_user_to_client(assign_to, client.id)

        logger.info("client_created", client_id=str(client.id))
        return self._record(client, plaintext)

    async def update_domains(self, client_id: UUID, domains: Iterable[str]) -> ClientRecord:
        """Replace the domain list and rebuild the domain index."""
        client = await self._load(client_id)
        plaintext = self._open(CLIENTS, client)
        domains_json = encode_domains(list(domains))
        plaintext["domains"] = domains_json

        client.domains_encrypted = self.cipher.encrypt(domains_json)
        client = await self.clients.update(client)
        await CLIENTS.write_index(self.search_index, self.hasher, client.id, plaintext)

        logger.info("client_domains_updated", client_id=str(client_id))
        return self._record(client, plaintext)

    async def delete_client(self, client_id: UUID) -> None:
        client = await self._load(client_id)
        await self.assignments.remove_all_for_client(client_id)
        await self.search_index.delete_entity(client_id)
        await self.clients.delete(client)
        logger.info("client_deleted", client_id=str(client_id))

    # ----- Reads -----

    async def get_client(self, client_id: UUID, actor_id: UUID | None = None) -> ClientRecord:
        """Get one client if the actor may see it.

        Raises:
            NotFoundError: If the client does not exist.
            AccessDeniedError: If it is outside the actor's scope.
        """
        client = await self._load(client_id)
        if not in_scope(client_id, await self._scope(actor_id)):
            raise AccessDeniedError("client", str(client_id))
        return self._record(client, self._open(CLIENTS, client))

    async def list_clients(self, actor_id: UUID | None = None) -> list[ClientRecord]:
        """Every client the actor may see, undecryptable rows skipped."""
        scope = await self._scope(actor_id)
        if isinstance(scope, frozenset):
            rows = await self.clients.get_by_ids(scope)
        else:
            rows = await self.clients.get_all(limit=self.result_limit)
        return self._open_many(rows)

    async def search_by_domain(self, query: str, actor_id: UUID | None = None) -> list[ClientRecord]:
        """Clients with a domain starting with ``query`` (scheme and www ignored)."""
        values = domain_query_values(self.hasher, query)
        records = await self._search(DOMAIN_FIELD, values, actor_id)
        return [r for r in records if matches_domain_prefix(list(r.domains), query)]

    async def search_by_name(self, query: str, actor_id: UUID | None = None) -> list[ClientRecord]:
        """Clients whose name starts with ``query``."""
        values = prefix_query_values(self.hasher, query)
        records = await self._search(NAME_FIELD, values, actor_id)
        return [r for r in records if matches_prefix(r.client_name, query)]

    async def _search(
        self,
        field_name: str,
        values: list[str],
        actor_id: UUID | None,
    ) -> list[ClientRecord]:
        if not values:
            return []
        candidates = await self.search_index.find_entity_ids(field_name, values)
        ids = restrict(candidates, await self._scope(actor_id))
        rows = await self.clients.get_by_ids(ids)
        return self._open_many(rows)[: self.result_limit]

    async def _load(self, client_id: UUID) -> Client:
        client = await self.clients.get_by_id(client_id)
        if client is None:
            raise NotFoundError("Client", str(client_id))
        return client

    def _open_many(self, rows: Iterable[Client]) -> list[ClientRecord]:
        records = []
        for row in rows:
            try:
                records.append(self._record(row, self._open(CLIENTS, row)))
            except DecryptionError as e:
                logger.warning(
                    "client_decrypt_skipped",
                    client_id=str(row.id),
                    error=type(e).__name__,
                )
        return records

    @staticmethod
    def _record(client: Client, plaintext: dict[str, str | None]) -> ClientRecord:
        return ClientRecord(
            id=client.id,
            package=plaintext["package"] or "",
            client_name=plaintext["client_name"] or "",
            person_name=plaintext["person_name"] or "",
            address=plaintext["address"] or "",
            phone=plaintext["phone"] or "",
            email=plaintext["email"] or "",
            domains=tuple(decode_domains(plaintext["domains"])),
            city=client.city,
            state=client.state,
            pincode=client.pincode,
        )
