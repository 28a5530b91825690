"""SQLAlchemy ORM models."""

from crmvault.infrastructure.database.models.base import Base, TimestampMixin, UUIDPrimaryKeyMixin
from crmvault.infrastructure.database.models.client import Client, UserClient
from crmvault.infrastructure.database.models.enquiry import Enquiry
from crmvault.infrastructure.database.models.role import (
    Permission,
    Role,
    RoleHierarchy,
    RolePermission,
)
from crmvault.infrastructure.database.models.search_index import (
    ClientSearchIndex,
    EnquirySearchIndex,
    SearchIndexMixin,
    UserSearchIndex,
)
from crmvault.infrastructure.database.models.user import User, UserHierarchy

__all__ = [
    "Base",
    "TimestampMixin",
    "UUIDPrimaryKeyMixin",
    "Role",
    "Permission",
    "RolePermission",
    "RoleHierarchy",
    "User",
    "UserHierarchy",
    "Client",
    "UserClient",
    "Enquiry",
    "SearchIndexMixin",
    "UserSearchIndex",
    "ClientSearchIndex",
    "EnquirySearchIndex",
]
