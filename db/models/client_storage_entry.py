"""
db/models/client_storage_entry.py

Key/value rows backing the database analysis cache.
"""

from __future__ import annotations

from sqlalchemy import String, Text
from sqlalchemy.orm import Mapped, mapped_column

from db.base import Base, TimestampMixin


class ClientStorageEntry(Base, TimestampMixin):
    __tablename__ = "client_storage_entries"

    key: Mapped[str] = mapped_column(
        String(255),
        primary_key=True,
        comment="Storage key, e.g. competitive_analyses",
    )
    value: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        comment="Serialized JSON document stored under the key",
    )
