"""
Console Sync Models

ORM models (database tables):
    from src.models import ConsoleInstance, App, Site
    from src.models.orm.apps import WorkflowApp  # Granular access

Pydantic contracts:
    from src.models import SyncStats, AppListQuery
    from src.models.contracts.sync import SyncStats  # Granular access

Enums:
    from src.models import AppVariant
    from src.models.enums import AppVariant
"""

# ORM models (database tables)
from src.models.orm import (
    App,
    AppDslVersion,
    Base,
    ChatAssistantApp,
    ChatflowApp,
    ConsoleAccount,
    ConsoleInstance,
    Site,
    WorkflowApp,
)

# Pydantic contracts - re-export everything
from src.models.contracts import *  # noqa: F401, F403
from src.models.contracts import __all__ as _contracts_all

from src.models.enums import AppVariant

__all__ = [
    # ORM
    "Base",
    "ConsoleInstance",
    "ConsoleAccount",
    "App",
    "ChatAssistantApp",
    "ChatflowApp",
    "WorkflowApp",
    "Site",
    "AppDslVersion",
    # Enums
    "AppVariant",
] + list(_contracts_all)
