"""
Console API Contracts

Typed results produced from raw console HTTP responses.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field


class AppListQuery(BaseModel):
    """Query parameters for the paginated app list endpoint."""

    page: int = Field(default=1, ge=1)
    limit: int = Field(default=30, ge=1, le=100)
    name: str | None = None
    is_created_by_me: bool | None = None
    mode: str | None = Field(default=None, description="Remote app type filter, e.g. 'workflow'")

    def to_params(self) -> dict[str, Any]:
        """Query string parameters, omitting unset filters."""
        params: dict[str, Any] = {"page": self.page, "limit": self.limit}
        if self.name:
            params["name"] = self.name
        if self.is_created_by_me is not None:
            params["is_created_by_me"] = str(self.is_created_by_me).lower()
        if self.mode:
            params["mode"] = self.mode
        return params


class AppListResult(BaseModel):
    """One page of remote apps."""

    data: list[dict[str, Any] | str] = Field(default_factory=list)
    total: int = 0
    page: int = 1
    limit: int = 0
    has_more: bool = False


class AuthenticationResult(BaseModel):
    """Outcome of a login / token refresh."""

    success: bool
    access_token: str | None = None
    expires_at: datetime | None = None
    error_message: str | None = None


class AppDslExportResult(BaseModel):
    """
    Outcome of a DSL export.

    Export problems are reported here (success=False) instead of raising.
    raw_content is the YAML text exactly as stored and hashed.
    """

    success: bool
    content: dict[str, Any] | None = None
    raw_content: str | None = None
    error_message: str | None = None
