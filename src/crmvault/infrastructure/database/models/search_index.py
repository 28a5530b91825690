"""Blind-index tables for encrypted fields.

Primary access pattern:
- field_name + index_value -> entity_ids

Rows for one (entity, field) pair are always replaced as a whole.
"""

from __future__ import annotations

from typing import ClassVar
from uuid import UUID

from sqlalchemy import ForeignKey, Index, String
from sqlalchemy.orm import Mapped, declared_attr, mapped_column

from crmvault.infrastructure.database.models.base import Base

# 16 bytes as unpadded URL-safe base64
INDEX_VALUE_LENGTH = 22


class SearchIndexMixin:
    """Columns shared by every ``*_search_index`` table.

    Subclasses set ``entity_table`` to the table holding the envelopes.
    """

    entity_table: ClassVar[str]

    @declared_attr
    def entity_id(cls) -> Mapped[UUID]:
        return mapped_column(
            ForeignKey(f"{cls.entity_table}.id", ondelete="CASCADE"),
            primary_key=True,
        )

    field_name: Mapped[str] = mapped_column(String(64), primary_key=True)
    index_value: Mapped[str] = mapped_column(String(INDEX_VALUE_LENGTH), primary_key=True)

    @declared_attr.directive
    def __table_args__(cls) -> tuple[Index, ...]:
        return (
            Index(f"ix_{cls.__tablename__}_field_value", "field_name", "index_value"),
        )


class UserSearchIndex(SearchIndexMixin, Base):
    __tablename__ = "user_search_index"
    entity_table = "users"


class ClientSearchIndex(SearchIndexMixin, Base):
    __tablename__ = "client_search_index"
    entity_table = "clients"


class EnquirySearchIndex(SearchIndexMixin, Base):
    __tablename__ = "enquiry_search_index"
    entity_table = "enquiries"
