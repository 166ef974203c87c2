"""
ConsoleInstance and ConsoleAccount ORM models.

An instance is one remote console deployment; accounts hold the
credentials (and the cached bearer token) used to read it.
"""

from datetime import datetime, timezone

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, String, Text, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.models.orm.base import Base, utcnow


class ConsoleInstance(Base):
    """A remote console deployment to sync against."""

    __tablename__ = "console_instances"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(100))
    base_url: Mapped[str] = mapped_column(String(255))
    description: Mapped[str | None] = mapped_column(String(500), default=None)
    is_enabled: Mapped[bool] = mapped_column(Boolean, default=True)
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
        return f"<ConsoleInstance id={self.id} name={self.name!r} base_url={self.base_url!r}>"


class ConsoleAccount(Base):
    """
    Credentials for one instance.

    access_token/token_expires_at/last_login_at are written only by the
    authentication processor.
    """

    __tablename__ = "console_accounts"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    instance_id: Mapped[int] = mapped_column(
        ForeignKey("console_instances.id", ondelete="CASCADE")
    )
    email: Mapped[str] = mapped_column(String(255))
    password: Mapped[str] = mapped_column(String(255))
    nickname: Mapped[str | None] = mapped_column(String(100), default=None)
    access_token: Mapped[str | None] = mapped_column(Text, default=None)
    token_expires_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), default=None)
    is_enabled: Mapped[bool] = mapped_column(Boolean, default=True)
    last_login_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), default=None)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=text("CURRENT_TIMESTAMP")
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
        onupdate=utcnow,
    )

    instance: Mapped[ConsoleInstance] = relationship(lazy="joined")

    __table_args__ = (
        Index("ix_console_accounts_instance_email", "instance_id", "email", unique=True),
    )

    def is_token_expired(self, now: datetime | None = None) -> bool:
        """Token is expired when missing, without expiry, or now >= expiry."""
        if not self.access_token or self.token_expires_at is None:
            return True
        expires_at = self.token_expires_at
        if expires_at.tzinfo is None:
            # Some drivers (SQLite) hand back naive values
            expires_at = expires_at.replace(tzinfo=timezone.utc)
        return (now or utcnow()) >= expires_at

    def __repr__(self) -> str:
        return f"<ConsoleAccount id={self.id} email={self.email!r}>"
