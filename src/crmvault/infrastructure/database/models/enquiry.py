"""Enquiry model."""

from datetime import UTC, datetime

from sqlalchemy import DateTime, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from crmvault.infrastructure.database.models.base import (
    Base,
    TimestampMixin,
    UUIDPrimaryKeyMixin,
)


def _utcnow() -> datetime:
    return datetime.now(UTC)


class Enquiry(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """Inbound enquiry submitted through the public form.

    Every contact field is an envelope. ``company_name``, ``full_name``,
    ``email`` and ``domain`` are searchable via ``enquiry_search_index``.
    """

    __tablename__ = "enquiries"

    company_name_encrypted: Mapped[str] = mapped_column("company_name", Text, nullable=False)
    full_name_encrypted: Mapped[str] = mapped_column("full_name", Text, nullable=False)
    email_encrypted: Mapped[str] = mapped_column("email", Text, nullable=False)
    mobile_encrypted: Mapped[str] = mapped_column("mobile", Text, nullable=False)
    address_encrypted: Mapped[str] = mapped_column("address", Text, nullable=False)
    enquiry_details_encrypted: Mapped[str] = mapped_column("enquiry_details", Text, nullable=False)
    domain_encrypted: Mapped[str] = mapped_column("domain", Text, nullable=False)
    ip_address_encrypted: Mapped[str | None] = mapped_column("ip_address", Text, nullable=True)

    user_agent: Mapped[str | None] = mapped_column(String(500), nullable=True)
    submitted_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=_utcnow,
        nullable=False,
        index=True,
    )

    def __repr__(self) -> str:
        return f"<Enquiry {self.id}>"
