"""Which fields are encrypted and which are searchable, per entity type.

Services, key rotation and the rebuild script all derive index rows from
here, so a field is indexed the same way no matter who writes it.
"""

from __future__ import annotations

import json
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any
from uuid import UUID

from crmvault.infrastructure.database.repositories.base import BaseRepository
from crmvault.infrastructure.database.repositories.client import ClientRepository
from crmvault.infrastructure.database.repositories.enquiry import EnquiryRepository
from crmvault.infrastructure.database.repositories.search_index import (
    ClientSearchIndexRepository,
    EnquirySearchIndexRepository,
    SearchIndexRepository,
    UserSearchIndexRepository,
)
from crmvault.infrastructure.database.repositories.user import UserRepository
from crmvault.shared.blind_index import BlindIndexHasher
from crmvault.shared.tokenizer import edge_ngrams, normalize, strip_domain

IndexBuilder = Callable[[BlindIndexHasher, Mapping[str, str | None]], dict[str, list[str]]]


def encode_domains(domains: list[str]) -> str:
    """Serialize a domain list for encryption."""
    return json.dumps([d.strip() for d in domains if d and d.strip()])


def decode_domains(value: str | None) -> list[str]:
    if not value:
        return []
    decoded = json.loads(value)
    if not isinstance(decoded, list):
        return [str(decoded)]
    return [str(item) for item in decoded]


def domain_key(value: str) -> str:
    """Comparable form of a domain: bare host, lowercase."""
    return strip_domain(value).strip().lower()


def prefix_query_values(hasher: BlindIndexHasher, query: str) -> list[str]:
    """Index value of the most selective n-gram of ``query``.

    Every true prefix match carries the longest n-gram of the query, so
    looking up only that one gives the smallest candidate set.
    """
    return hasher.hash_tokens(edge_ngrams(query)[-1:])


def domain_query_values(hasher: BlindIndexHasher, query: str) -> list[str]:
    return prefix_query_values(hasher, strip_domain(query))


def matches_prefix(value: str | None, query: str) -> bool:
    if not value:
        return False
    return normalize(value).startswith(normalize(query))


def matches_domain_prefix(domains: list[str], query: str) -> bool:
    wanted = normalize(strip_domain(query))
    return any(normalize(strip_domain(domain)).startswith(wanted) for domain in domains)


# ----- Per entity type -----


def _user_index(hasher: BlindIndexHasher, fields: Mapping[str, str | None]) -> dict[str, list[str]]:
    return {"email": hasher.index_values_for_text(fields["email"])}


def _client_index(hasher: BlindIndexHasher, fields: Mapping[str, str | None]) -> dict[str, list[str]]:
    return {
        "client_name": hasher.index_values_for_text(fields["client_name"]),
        "domain": hasher.index_values_for_domains(decode_domains(fields["domains"])),
    }


def _enquiry_index(hasher: BlindIndexHasher, fields: Mapping[str, str | None]) -> dict[str, list[str]]:
    domain = fields["domain"]
    return {
        "company_name": hasher.index_values_for_text(fields["company_name"]),
        "full_name": hasher.index_values_for_text(fields["full_name"]),
        "email": hasher.index_values_for_text(fields["email"]),
        "domain": hasher.index_values_for_domains([domain] if domain else []),
    }


@dataclass(frozen=True)
class EncryptedEntity:
    """Encryption layout of one entity type.

    ``fields`` name the plaintext fields; each is stored on the model as
    ``<field>_encrypted``.
    """

    name: str
    repository: type[BaseRepository[Any]]
    fields: tuple[str, ...]
    search_index: type[SearchIndexRepository[Any]]
    build_index: IndexBuilder

    def read_envelopes(self, entity: Any) -> dict[str, str | None]:
        return {field: getattr(entity, f"{field}_encrypted") for field in self.fields}

    def write_envelopes(self, entity: Any, envelopes: Mapping[str, str | None]) -> None:
        for field, envelope in envelopes.items():
            setattr(entity, f"{field}_encrypted", envelope)

    async def write_index(
        self,
        search_index: SearchIndexRepository[Any],
        hasher: BlindIndexHasher,
        entity_id: UUID,
        plaintext: Mapping[str, str | None],
    ) -> None:
        """Replace every index field of one entity."""
        for field_name, values in self.build_index(hasher, plaintext).items():
            await search_index.replace(entity_id, field_name, values)


USERS = EncryptedEntity(
    name="users",
    repository=UserRepository,
    fields=("email",),
    search_index=UserSearchIndexRepository,
    build_index=_user_index,
)

CLIENTS = EncryptedEntity(
    name="clients",
    repository=ClientRepository,
    fields=(
        "package",
        "client_name",
        "person_name",
        "address",
        "phone",
        "email",
        "domains",
    ),
    search_index=ClientSearchIndexRepository,
    build_index=_client_index,
)

ENQUIRIES = EncryptedEntity(
    name="enquiries",
    repository=EnquiryRepository,
    fields=(
        "company_name",
        "full_name",
        "email",
        "mobile",
        "address",
        "enquiry_details",
        "domain",
        "ip_address",
    ),
    search_index=EnquirySearchIndexRepository,
    build_index=_enquiry_index,
)

ENCRYPTED_ENTITIES = (USERS, CLIENTS, ENQUIRIES)
