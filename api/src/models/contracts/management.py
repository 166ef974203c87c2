"""
Management Contracts

Input models for creating and updating console instances and accounts.
"""

from pydantic import BaseModel, Field, field_validator


def _normalize_base_url(v: str) -> str:
    v = v.strip()
    if not v.startswith(("http://", "https://")):
        raise ValueError("base_url must start with http:// or https://")
    return v.rstrip("/")


class InstanceCreate(BaseModel):
    """Input for registering a console instance."""

    name: str = Field(min_length=1, max_length=100)
    base_url: str = Field(min_length=1, max_length=255)
    description: str | None = Field(default=None, max_length=500)
    is_enabled: bool = True

    @field_validator("base_url")
    @classmethod
    def validate_base_url(cls, v: str) -> str:
        return _normalize_base_url(v)


class InstanceUpdate(BaseModel):
    """Partial update of a console instance."""

    name: str | None = Field(default=None, min_length=1, max_length=100)
    base_url: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = None
    is_enabled: bool | None = None

    @field_validator("base_url")
    @classmethod
    def validate_base_url(cls, v: str | None) -> str | None:
        if v is None:
            return v
        return _normalize_base_url(v)


class AccountCreate(BaseModel):
    """Input for adding an account to an instance."""

    instance_id: int
    email: str = Field(min_length=3, max_length=255)
    password: str = Field(min_length=1, max_length=255)
    nickname: str | None = Field(default=None, max_length=100)
    is_enabled: bool = True


class AccountUpdate(BaseModel):
    """Partial update of an account. Changing the password drops the cached token."""

    email: str | None = Field(default=None, min_length=3, max_length=255)
    password: str | None = Field(default=None, min_length=1, max_length=255)
    nickname: str | None = None
    is_enabled: bool | None = None
