"""User and user hierarchy models."""

from datetime import datetime
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import Boolean, CheckConstraint, DateTime, ForeignKey, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from crmvault.infrastructure.database.models.base import (
    Base,
    TimestampMixin,
    UUIDPrimaryKeyMixin,
)

if TYPE_CHECKING:
    from crmvault.infrastructure.database.models.role import Role


class User(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """User model.

    The email is stored as an envelope; lookups go through
    ``user_search_index``. The role is referenced by id only, its display
    name comes from the joined ``Role`` row.
    """

    __tablename__ = "users"

    email_encrypted: Mapped[str] = mapped_column("email", Text, nullable=False)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    role_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("roles.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    is_approved: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    role: Mapped["Role | None"] = relationship("Role", lazy="joined")

    def __repr__(self) -> str:
        return f"<User {self.id}>"

    @property
    def role_name(self) -> str | None:
        return self.role.name if self.role is not None else None


class UserHierarchy(Base):
    """Reporting-line edge ``parent_user -> child_user``."""

    __tablename__ = "user_hierarchy"
    __table_args__ = (
        CheckConstraint("parent_user_id <> child_user_id", name="ck_user_hierarchy_no_self_loop"),
    )

    parent_user_id: Mapped[UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        primary_key=True,
    )
    child_user_id: Mapped[UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        primary_key=True,
        index=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
