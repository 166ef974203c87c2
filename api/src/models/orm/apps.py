"""
App ORM models.

Single-table hierarchy over `console_apps`. The `app_type` column is the
discriminant (see AppVariant); each variant adds its own nullable
configuration columns.

Identity: (instance_id, remote_app_id) is unique. The owning account is
deliberately not part of the key so ownership can move between accounts
while the remote identity stays the same.
"""

from datetime import datetime
from typing import Any, ClassVar

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, String, Text, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.models.enums import AppVariant
from src.models.orm.base import Base, JSONType, utcnow
from src.models.orm.instances import ConsoleAccount, ConsoleInstance
from src.models.orm.sites import Site


class App(Base):
    """Common record for every synced app."""

    __tablename__ = "console_apps"

    variant: ClassVar[AppVariant]

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    app_type: Mapped[str] = mapped_column(String(32))
    instance_id: Mapped[int] = mapped_column(
        ForeignKey("console_instances.id", ondelete="CASCADE")
    )
    account_id: Mapped[int] = mapped_column(
        ForeignKey("console_accounts.id", ondelete="CASCADE")
    )
    remote_app_id: Mapped[str] = mapped_column(String(100))
    name: Mapped[str] = mapped_column(String(200), default="")
    description: Mapped[str | None] = mapped_column(Text, default=None)
    icon: Mapped[str | None] = mapped_column(String(255), default=None)
    is_public: Mapped[bool] = mapped_column(Boolean, default=False)
    created_by_remote_user: Mapped[str | None] = mapped_column(String(100), default=None)
    remote_created_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), default=None)
    remote_updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), default=None)
    last_synced_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), default=None)
    site_id: Mapped[int | None] = mapped_column(
        ForeignKey("console_sites.id", ondelete="SET NULL"), default=None
    )
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
    account: Mapped[ConsoleAccount] = relationship(lazy="joined")
    site: Mapped[Site | None] = relationship(lazy="joined")

    __mapper_args__ = {
        "polymorphic_on": "app_type",
    }

    __table_args__ = (
        Index("ix_console_apps_instance_remote_id", "instance_id", "remote_app_id", unique=True),
        Index("ix_console_apps_account_id", "account_id"),
    )

    def __repr__(self) -> str:
        return f"<{type(self).__name__} id={self.id} remote_app_id={self.remote_app_id!r}>"


class ChatAssistantApp(App):
    """Chat, agent-chat, advanced-chat and completion apps."""

    variant = AppVariant.CHAT_ASSISTANT

    assistant_config: Mapped[dict[str, Any] | None] = mapped_column(JSONType, default=None, nullable=True)
    prompt_template: Mapped[str | None] = mapped_column(Text, default=None, nullable=True)
    knowledge_base: Mapped[dict[str, Any] | None] = mapped_column(JSONType, default=None, nullable=True)

    __mapper_args__ = {"polymorphic_identity": AppVariant.CHAT_ASSISTANT.value}


class ChatflowApp(App):
    """Chatflow apps."""

    variant = AppVariant.CHATFLOW

    chatflow_config: Mapped[dict[str, Any] | None] = mapped_column(JSONType, default=None, nullable=True)
    model_config: Mapped[dict[str, Any] | None] = mapped_column(JSONType, default=None, nullable=True)
    conversation_config: Mapped[dict[str, Any] | None] = mapped_column(JSONType, default=None, nullable=True)

    __mapper_args__ = {"polymorphic_identity": AppVariant.CHATFLOW.value}


class WorkflowApp(App):
    """Workflow apps."""

    variant = AppVariant.WORKFLOW

    workflow_config: Mapped[dict[str, Any] | None] = mapped_column(JSONType, default=None, nullable=True)
    input_schema: Mapped[dict[str, Any] | None] = mapped_column(JSONType, default=None, nullable=True)
    output_schema: Mapped[dict[str, Any] | None] = mapped_column(JSONType, default=None, nullable=True)

    __mapper_args__ = {"polymorphic_identity": AppVariant.WORKFLOW.value}
