"""Repository pattern implementations for database access."""

from crmvault.infrastructure.database.repositories.base import BaseRepository
from crmvault.infrastructure.database.repositories.client import ClientRepository
from crmvault.infrastructure.database.repositories.enquiry import EnquiryRepository
from crmvault.infrastructure.database.repositories.hierarchy import (
    HierarchyRepository,
    RoleHierarchyRepository,
    UserHierarchyRepository,
)
from crmvault.infrastructure.database.repositories.role import RoleRepository
from crmvault.infrastructure.database.repositories.search_index import (
    ClientSearchIndexRepository,
    EnquirySearchIndexRepository,
    SearchIndexRepository,
    UserSearchIndexRepository,
)
from crmvault.infrastructure.database.repositories.user import UserRepository
from crmvault.infrastructure.database.repositories.user_client import UserClientRepository

__all__ = [
    "BaseRepository",
    "ClientRepository",
    "EnquiryRepository",
    "HierarchyRepository",
    "RoleHierarchyRepository",
    "UserHierarchyRepository",
    "RoleRepository",
    "SearchIndexRepository",
    "UserSearchIndexRepository",
    "ClientSearchIndexRepository",
    "EnquirySearchIndexRepository",
    "UserRepository",
    "UserClientRepository",
]
