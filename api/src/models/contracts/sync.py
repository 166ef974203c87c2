"""
Sync Contracts

Statistics accumulator and validation outcome for sync runs.
"""

from pydantic import BaseModel, ConfigDict, Field


class SyncStats(BaseModel):
    """
    Per-run statistics.

    Immutable: aggregation helpers in src.services.app_sync.statistics
    return new instances. model_dump() is the batch result shape returned
    to every caller.
    """

    model_config = ConfigDict(frozen=True)

    processed_instances: int = 0
    processed_accounts: int = 0
    synced_apps: int = 0
    created_apps: int = 0
    updated_apps: int = 0
    synced_sites: int = 0
    created_sites: int = 0
    updated_sites: int = 0
    synced_dsl_versions: int = 0
    errors: int = 0
    app_types: dict[str, int] = Field(default_factory=dict)
    error_details: list[str] = Field(default_factory=list)

    @property
    def has_errors(self) -> bool:
        return self.errors > 0


class ValidationOutcome(BaseModel):
    """Result of checking one remote payload before it is synced."""

    is_valid: bool = True
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
