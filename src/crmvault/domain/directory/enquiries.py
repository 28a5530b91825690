"""Enquiry intake and scoped enquiry search.

Enquiries are not assigned to users. A restricted actor sees an enquiry when
its domain equals a domain of one of the clients in the actor's scope.
"""

from collections.abc import Iterable
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from crmvault.domain.access.scope import UNRESTRICTED, AccessScope, AccessScopeResolver
from crmvault.domain.directory.base import EncryptedDirectoryService
from crmvault.domain.directory.indexing import (
    ENQUIRIES,
    decode_domains,
    domain_key,
    domain_query_values,
    matches_domain_prefix,
    matches_prefix,
    prefix_query_values,
)
from crmvault.domain.directory.records import EnquiryRecord
from crmvault.infrastructure.database.models import Enquiry
from crmvault.infrastructure.database.repositories import (
    ClientRepository,
    EnquiryRepository,
    EnquirySearchIndexRepository,
)
from crmvault.shared.crypto import EncryptionContext
from crmvault.shared.exceptions import DecryptionError
from crmvault.shared.logging import get_logger

logger = get_logger(__name__)

COMPANY_NAME_FIELD = "company_name"
DOMAIN_FIELD = "domain"


class EnquiryService(EncryptedDirectoryService):
    """Store enquiries and answer scoped enquiry queries."""

    def __init__(
        self,
        session: AsyncSession,
        context: EncryptionContext | None = None,
        *,
        resolver: AccessScopeResolver | None = None,
    ) -> None:
        super().__init__(session, context, resolver=resolver)
        self.enquiries = EnquiryRepository(session)
        self.clients = ClientRepository(session)
        self.search_index = EnquirySearchIndexRepository(session)

    async def submit(
        self,
        *,
        company_name: str,
        full_name: str,
        email: str,
        mobile: str,
        address: str,
        enquiry_details: str,
        domain: str,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> EnquiryRecord:
        """Encrypt and store an enquiry, then index its searchable fields."""
        plaintext: dict[str, str | None] = {
            "company_name": company_name.strip(),
            "full_name": full_name.strip(),
            "email": email.strip(),
            "mobile": mobile.strip(),
            "address": address.strip(),
            "enquiry_details": enquiry_details.strip(),
            "domain": domain.strip(),
            "ip_address": ip_address,
        }
        enquiry = Enquiry(user_agent=user_agent)
        ENQUIRIES.write_envelopes(enquiry, self._seal(ENQUIRIES, plaintext))
        enquiry = await self.enquiries.create(enquiry)
        await ENQUIRIES.write_index(self.search_index, self.hasher, enquiry.id, plaintext)

        logger.info("enquiry_submitted", enquiry_id=str(enquiry.id))
        return self._record(enquiry, plaintext)

    async def list_for_actor(self, actor_id: UUID | None = None) -> list[EnquiryRecord]:
        """Enquiries visible to the actor, newest first."""
        scope = await self._scope(actor_id)
        if scope is UNRESTRICTED:
            rows = await self.enquiries.list_recent(limit=self.result_limit)
            return self._open_many(rows)

        domains = await self._scope_domains(scope)
        candidates = await self._ids_for_domains(domains)
        records = self._open_many(await self.enquiries.get_by_ids(candidates))
        return self._newest_first(r for r in records if domain_key(r.domain) in domains)

    async def search_by_domain(self, query: str, actor_id: UUID | None = None) -> list[EnquiryRecord]:
        """Enquiries whose domain starts with ``query``."""
        records = await self._search(DOMAIN_FIELD, domain_query_values(self.hasher, query), actor_id)
        return [r for r in records if matches_domain_prefix([r.domain], query)]

    async def search_by_company_name(
        self,
        query: str,
        actor_id: UUID | None = None,
    ) -> list[EnquiryRecord]:
        """Enquiries whose company name starts with ``query``."""
        records = await self._search(
            COMPANY_NAME_FIELD,
            prefix_query_values(self.hasher, query),
            actor_id,
        )
        return [r for r in records if matches_prefix(r.company_name, query)]

    async def _search(
        self,
        field_name: str,
        values: list[str],
        actor_id: UUID | None,
    ) -> list[EnquiryRecord]:
        if not values:
            return []
        scope = await self._scope(actor_id)
        candidates = await self.search_index.find_entity_ids(field_name, values)
        if scope is UNRESTRICTED:
            return self._newest_first(self._open_many(await self.enquiries.get_by_ids(candidates)))

        # Narrow by domain token first so out-of-scope enquiries are never opened
        domains = await self._scope_domains(scope)
        candidates &= await self._ids_for_domains(domains)
        records = self._open_many(await self.enquiries.get_by_ids(candidates))
        return self._newest_first(r for r in records if domain_key(r.domain) in domains)

    async def _ids_for_domains(self, domains: set[str]) -> set[UUID]:
        """Enquiries whose domain index carries the token of one of ``domains``."""
        values: list[str] = []
        for domain in sorted(domains):
            values.extend(domain_query_values(self.hasher, domain))
        return await self.search_index.find_entity_ids(DOMAIN_FIELD, values)

    async def _scope_domains(self, scope: AccessScope) -> set[str]:
        """Bare domains of every client in a restricted scope."""
        if scope is UNRESTRICTED:
            raise ValueError("unrestricted scope has no domain list")
        domains: set[str] = set()
        for client in await self.clients.get_by_ids(scope):
            try:
                decoded = decode_domains(self.cipher.decrypt(client.domains_encrypted))
            except DecryptionError as e:
                logger.warning(
                    "client_decrypt_skipped",
                    client_id=str(client.id),
                    error=type(e).__name__,
                )
                continue
            domains.update(domain_key(d) for d in decoded)
        domains.discard("")
        return domains

    def _newest_first(self, records: Iterable[EnquiryRecord]) -> list[EnquiryRecord]:
        ordered = sorted(records, key=lambda r: r.submitted_at, reverse=True)
        return ordered[: self.result_limit]

    def _open_many(self, rows: Iterable[Enquiry]) -> list[EnquiryRecord]:
        records = []
        for row in rows:
            try:
                records.append(self._record(row, self._open(ENQUIRIES, row)))
            except DecryptionError as e:
                logger.warning(
                    "enquiry_decrypt_skipped",
                    enquiry_id=str(row.id),
                    error=type(e).__name__,
                )
        return records

    @staticmethod
    def _record(enquiry: Enquiry, plaintext: dict[str, str | None]) -> EnquiryRecord:
        return EnquiryRecord(
            id=enquiry.id,
            company_name=plaintext["company_name"] or "",
            full_name=plaintext["full_name"] or "",
            email=plaintext["email"] or "",
            mobile=plaintext["mobile"] or "",
            address=plaintext["address"] or "",
            enquiry_details=plaintext["enquiry_details"] or "",
            domain=plaintext["domain"] or "",
            ip_address=plaintext["ip_address"],
            user_agent=enquiry.user_agent,
            submitted_at=enquiry.submitted_at,
        )
