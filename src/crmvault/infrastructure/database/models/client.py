"""Client and user-client assignment models."""

from datetime import datetime
from uuid import UUID

from sqlalchemy import DateTime, ForeignKey, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from crmvault.infrastructure.database.models.base import (
    Base,
    TimestampMixin,
    UUIDPrimaryKeyMixin,
)


class Client(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """Client record.

    PII columns and the package are envelopes. ``domains`` is an envelope
    around a JSON list of URLs/domains; the searchable form lives in
    ``client_search_index``. Location columns stay plaintext for filtering.
    """

    __tablename__ = "clients"

    package_encrypted: Mapped[str] = mapped_column("package", Text, nullable=False)
    client_name_encrypted: Mapped[str] = mapped_column("client_name", Text, nullable=False)
    person_name_encrypted: Mapped[str] = mapped_column("person_name", Text, nullable=False)
    address_encrypted: Mapped[str] = mapped_column("address", Text, nullable=False)
    phone_encrypted: Mapped[str] = mapped_column("phone", Text, nullable=False)
    email_encrypted: Mapped[str] = mapped_column("email", Text, nullable=False)
    domains_encrypted: Mapped[str] = mapped_column("domains", Text, nullable=False)

    city: Mapped[str | None] = mapped_column(String(100), nullable=True)
    state: Mapped[str | None] = mapped_column(String(100), nullable=True)
    pincode: Mapped[str | None] = mapped_column(String(20), nullable=True)

    def __repr__(self) -> str:
        return f"<Client {self.id}>"


class UserClient(Base):
    """Direct assignment of a client to a user. One row per pair."""

    __tablename__ = "user_clients"

    user_id: Mapped[UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        primary_key=True,
    )
    client_id: Mapped[UUID] = mapped_column(
        ForeignKey("clients.id", ondelete="CASCADE"),
        primary_key=True,
        index=True,
    )
    assigned_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
