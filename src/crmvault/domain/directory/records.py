"""Decrypted views of directory entities.

These never get persisted; they exist only for the lifetime of a request.
"""

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID


@dataclass(frozen=True)
class UserRecord:
    id: UUID
    email: str
    role_id: UUID | None
    role_name: str | None
    is_approved: bool


@dataclass(frozen=True)
class ClientRecord:
    id: UUID
    package: str
    client_name: str
    person_name: str
    address: str
    phone: str
    email: str
    domains: tuple[str, ...]
    city: str | None
    state: str | None
    pincode: str | None


@dataclass(frozen=True)
class EnquiryRecord:
    id: UUID
    company_name: str
    full_name: str
    email: str
    mobile: str
    address: str
    enquiry_details: str
    domain: str
    ip_address: str | None
    user_agent: str | None
    submitted_at: datetime
