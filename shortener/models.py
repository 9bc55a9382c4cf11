"""SQLAlchemy ORM models for the URL shortener.

This module defines the database schema using SQLAlchemy declarative models
with proper indexing and timestamp management for URL mappings and clicks.

Data Model Layout
=================
::
    urls table
    ├─ id (SERIAL PRIMARY KEY)
    ├─ short_code (VARCHAR(20) UNIQUE, INDEXED)
    ├─ original_url (TEXT NOT NULL)
    ├─ created_at (TIMESTAMPTZ, DEFAULT NOW(), INDEXED)
    ├─ click_count (INTEGER DEFAULT 0)
    └─ last_accessed (TIMESTAMPTZ NULL)

    clicks table
    ├─ id (SERIAL PRIMARY KEY)
    ├─ short_code (VARCHAR(20) REFERENCES urls(short_code) ON DELETE CASCADE, INDEXED)
    ├─ clicked_at (TIMESTAMPTZ, DEFAULT NOW(), INDEXED)
    ├─ ip_address (VARCHAR(45) NULL)
    ├─ user_agent (TEXT NULL)
    └─ referrer (TEXT NULL)

How to Use
===========
**Step 1: Import**::
    from shortener.models import ClickEvent, UrlMapping

**Step 2: Query mappings**::
    result = await db.execute(select(UrlMapping).where(UrlMapping.short_code == "abc123"))
    mapping = result.scalar_one_or_none()

Key Behaviours
===============
- short_code is unique and indexed for fast lookups during redirects.
- original_url is not unique; deduplication is best effort.
- click_count is authoritative; the cache counter is only a hint.
- Deleting a mapping cascades to its clicks inside the database.

Classes:
    UrlMapping:  A shortened URL with its authoritative click counter.
    ClickEvent:  One append-only click record.
"""

import datetime

from sqlalchemy import DateTime, ForeignKey, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from shortener.database import Base

__all__ = ["UrlMapping", "ClickEvent"]


class UrlMapping(Base):
    __tablename__ = "urls"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    short_code: Mapped[str] = mapped_column(String(20), unique=True, index=True, nullable=False)
    original_url: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), index=True, nullable=False
    )
    click_count: Mapped[int] = mapped_column(Integer, default=0, server_default="0", nullable=False)
    last_accessed: Mapped[datetime.datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    def __repr__(self) -> str:
        return f"<UrlMapping(id={self.id}, short_code='{self.short_code}', click_count={self.click_count})>"


class ClickEvent(Base):
    __tablename__ = "clicks"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    short_code: Mapped[str] = mapped_column(
        String(20),
        ForeignKey("urls.short_code", ondelete="CASCADE"),
        index=True,
        nullable=False,
    )
    clicked_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), index=True, nullable=False
    )
    ip_address: Mapped[str | None] = mapped_column(String(45), nullable=True)
    user_agent: Mapped[str | None] = mapped_column(Text, nullable=True)
    referrer: Mapped[str | None] = mapped_column(Text, nullable=True)

    def __repr__(self) -> str:
        return f"<ClickEvent(id={self.id}, short_code='{self.short_code}')>"
