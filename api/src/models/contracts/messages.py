"""
Queue Message Contracts

Message carried on the app sync queue.
"""

import hashlib
import json
from typing import Any

from pydantic import BaseModel, Field


class SyncAppsMessage(BaseModel):
    """
    Request to run an app sync over an optional scope.

    Message format:
    {
        "instance_id": 1 (optional),
        "account_id": 2 (optional),
        "app_type": "workflow" (optional),
        "metadata": {"request_id": "..."}
    }
    """

    instance_id: int | None = None
    account_id: int | None = None
    app_type: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)

    @property
    def message_id(self) -> str:
        """Stable identity of the filters plus the caller's request id."""
        key = json.dumps(
            [self.instance_id, self.account_id, self.app_type, self.metadata.get("request_id")]
        )
        return hashlib.md5(key.encode()).hexdigest()

    @property
    def priority(self) -> int:
        """10 when any filter is set, else 5."""
        if self.instance_id is not None or self.account_id is not None or self.app_type:
            return 10
        return 5

    @property
    def scope_description(self) -> str:
        parts = []
        if self.instance_id is not None:
            parts.append(f"instance={self.instance_id}")
        if self.account_id is not None:
            parts.append(f"account={self.account_id}")
        if self.app_type:
            parts.append(f"app_type={self.app_type}")
        return ", ".join(parts) if parts else "all instances"

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump()
