"""
AppDslVersion ORM model.

Append-only DSL history per app. Version numbers start at 1 and grow by
one; a row is only written when the content hash differs from the app's
latest version.
"""

from datetime import datetime
from typing import Any

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.models.orm.apps import App
from src.models.orm.base import Base, JSONType, utcnow


class AppDslVersion(Base):
    """One immutable DSL snapshot."""

    __tablename__ = "app_dsl_versions"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    app_id: Mapped[int] = mapped_column(ForeignKey("console_apps.id", ondelete="CASCADE"))
    version: Mapped[int] = mapped_column(Integer)
    dsl_content: Mapped[dict[str, Any]] = mapped_column(JSONType)
    dsl_raw_content: Mapped[str] = mapped_column(Text)
    dsl_hash: Mapped[str] = mapped_column(String(64))
    include_secret: Mapped[bool] = mapped_column(Boolean, default=False)
    synced_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    app: Mapped[App] = relationship(lazy="raise")

    __table_args__ = (
        UniqueConstraint("app_id", "version", name="uq_app_dsl_versions_app_version"),
        Index("ix_app_dsl_versions_dsl_hash", "dsl_hash"),
        Index("ix_app_dsl_versions_synced_at", "synced_at"),
    )

    def __repr__(self) -> str:
        return f"<AppDslVersion app_id={self.app_id} version={self.version} hash={self.dsl_hash[:12]}>"
