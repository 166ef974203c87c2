"""
App Field Mapper

Copies remote app JSON onto local app records. Wrong JSON types degrade
to safe defaults instead of failing the sync.
"""

import logging
from datetime import datetime, timezone
from typing import Any

from src.core.exceptions import SyncValidationError
from src.models.enums import AppVariant
from src.models.orm import App, ChatAssistantApp, ChatflowApp, ConsoleInstance, WorkflowApp

logger = logging.getLogger(__name__)

DEFAULT_PROMPT_TEMPLATE = "Default prompt template"


def _from_unix(seconds: int) -> datetime:
    try:
        return datetime.fromtimestamp(seconds, tz=timezone.utc)
    except (OverflowError, OSError) as e:
        raise ValueError(f"Unix timestamp out of range: {seconds}") from e


def parse_remote_timestamp(value: Any, allow_unix: bool = False) -> datetime:
    """
    Parse a remote timestamp into an aware datetime.

    ISO-8601 strings are always accepted; Unix seconds (int or numeric
    string) only when allow_unix is set. Naive values are taken as UTC.

    Raises:
        ValueError: the value cannot be parsed
    """
    if allow_unix and not isinstance(value, bool):
        if isinstance(value, int):
            return _from_unix(value)
        if isinstance(value, str) and value.strip().lstrip("-").isdigit():
            return _from_unix(int(value))

    if not isinstance(value, str):
        raise ValueError(f"unsupported timestamp type: {type(value).__name__}")

    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def string_keyed(value: Any) -> dict[str, Any]:
    """Mapping restricted to string keys; anything else becomes {}."""
    if not isinstance(value, dict):
        return {}
    return {k: v for k, v in value.items() if isinstance(k, str)}


def _optional_text(value: Any) -> str | None:
    if value is None:
        return None
    return value if isinstance(value, str) else ""


class AppFieldMapper:
    """Maps remote app payloads onto App records."""

    def update_basic_fields(self, app: App, instance: ConsoleInstance, data: dict[str, Any]) -> None:
        """
        Copy identity, display fields, flags and timestamps.

        Raises:
            SyncValidationError: `id` is missing or not a string
        """
        remote_id = data.get("id")
        if not isinstance(remote_id, str) or not remote_id:
            raise SyncValidationError("App id is missing or not a string", field="id")

        app.remote_app_id = remote_id
        app.instance = instance
        app.instance_id = instance.id
        app.last_synced_at = datetime.now(timezone.utc)

        name = data.get("name")
        app.name = name if isinstance(name, str) else ""
        app.description = _optional_text(data.get("description"))
        app.icon = _optional_text(data.get("icon"))
        app.created_by_remote_user = _optional_text(data.get("created_by"))

        is_public = data.get("is_public", False)
        app.is_public = is_public if isinstance(is_public, bool) else False

        self._set_timestamp(app, "remote_created_at", data, "created_at")
        self._set_timestamp(app, "remote_updated_at", data, "updated_at")

    def _set_timestamp(self, app: App, attr: str, data: dict[str, Any], key: str) -> None:
        value = data.get(key)
        if value is None:
            return
        try:
            setattr(app, attr, parse_remote_timestamp(value, allow_unix=True))
        except ValueError as e:
            logger.warning(
                f"Could not parse remote timestamp {key}={value!r} for app {data.get('id')}: {e}",
                extra={"app_id": data.get("id"), "field": key},
            )

    def apply_variant_fields(self, app: App, data: dict[str, Any]) -> None:
        """Copy the configuration blocks belonging to the app's variant."""
        variant = app.variant
        if variant is AppVariant.CHAT_ASSISTANT:
            self._apply_chat_assistant(app, data)  # type: ignore[arg-type]
        elif variant is AppVariant.CHATFLOW:
            self._apply_chatflow(app, data)  # type: ignore[arg-type]
        elif variant is AppVariant.WORKFLOW:
            self._apply_workflow(app, data)  # type: ignore[arg-type]

    def _apply_chat_assistant(self, app: ChatAssistantApp, data: dict[str, Any]) -> None:
        prompt = data.get("prompt_template")
        if prompt is None:
            prompt = data.get("description")
        app.prompt_template = prompt if isinstance(prompt, str) else DEFAULT_PROMPT_TEMPLATE
        app.assistant_config = string_keyed(data.get("model_config"))
        app.knowledge_base = string_keyed(data.get("retrieval_setting"))

    def _apply_chatflow(self, app: ChatflowApp, data: dict[str, Any]) -> None:
        app.chatflow_config = string_keyed(data.get("workflow_config"))
        app.model_config = string_keyed(data.get("model_config"))
        app.conversation_config = string_keyed(data.get("conversation_config"))

    def _apply_workflow(self, app: WorkflowApp, data: dict[str, Any]) -> None:
        app.workflow_config = string_keyed(data.get("workflow_config"))
        app.input_schema = string_keyed(data.get("input_schema"))
        app.output_schema = string_keyed(data.get("output_schema"))
