"""
Site ORM model.

A site is the published, user-facing access point of an app. It is keyed
by `site_id`, which is derived from the remote access code.
"""

from datetime import datetime
from typing import Any

from sqlalchemy import Boolean, DateTime, String, Text, text
from sqlalchemy.orm import Mapped, mapped_column

from src.models.orm.base import Base, JSONType, utcnow


class Site(Base):
    """Publication metadata for one app."""

    __tablename__ = "console_sites"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    site_id: Mapped[str] = mapped_column(String(255), unique=True)
    title: Mapped[str] = mapped_column(String(255), default="")
    description: Mapped[str | None] = mapped_column(Text, default=None)
    site_url: Mapped[str | None] = mapped_column(String(500), default=None)
    is_enabled: Mapped[bool] = mapped_column(Boolean, default=False)
    default_language: Mapped[str | None] = mapped_column(String(20), default=None)
    theme: Mapped[str | None] = mapped_column(String(50), default=None)
    copyright: Mapped[str | None] = mapped_column(String(255), default=None)
    privacy_policy: Mapped[str | None] = mapped_column(Text, default=None)
    disclaimer: Mapped[str | None] = mapped_column(Text, default=None)
    custom_domain: Mapped[dict[str, Any] | None] = mapped_column(JSONType, default=None)
    custom_config: Mapped[dict[str, Any] | None] = mapped_column(JSONType, default=None)
    published_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), default=None)
    last_synced_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), default=None)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=text("CURRENT_TIMESTAMP")
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
        onupdate=utcnow,
    )

    def __repr__(self) -> str:
        return f"<Site id={self.id} site_id={self.site_id!r}>"
