"""
Pydantic contracts (results, messages and management inputs).
"""

from src.models.contracts.console import (
    AppDslExportResult,
    AppListQuery,
    AppListResult,
    AuthenticationResult,
)
from src.models.contracts.management import (
    AccountCreate,
    AccountUpdate,
    InstanceCreate,
    InstanceUpdate,
)
from src.models.contracts.messages import SyncAppsMessage
from src.models.contracts.sync import SyncStats, ValidationOutcome

__all__ = [
    # Console
    "AppListQuery",
    "AppListResult",
    "AppDslExportResult",
    "AuthenticationResult",
    # Management
    "InstanceCreate",
    "InstanceUpdate",
    "AccountCreate",
    "AccountUpdate",
    # Messages
    "SyncAppsMessage",
    # Sync
    "SyncStats",
    "ValidationOutcome",
]
