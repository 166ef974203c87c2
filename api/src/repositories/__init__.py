# Data access layer - SQLAlchemy repositories
from src.repositories.apps import (
    AnyAppRepository,
    AppRepository,
    ChatAssistantAppRepository,
    ChatflowAppRepository,
    WorkflowAppRepository,
    get_app_repository,
)
from src.repositories.base import BaseRepository
from src.repositories.dsl_versions import AppDslVersionRepository
from src.repositories.instances import AccountRepository, InstanceRepository
from src.repositories.sites import SiteRepository

__all__ = [
    "BaseRepository",
    "InstanceRepository",
    "AccountRepository",
    "AppRepository",
    "AnyAppRepository",
    "ChatAssistantAppRepository",
    "ChatflowAppRepository",
    "WorkflowAppRepository",
    "SiteRepository",
    "AppDslVersionRepository",
    # Variant selection
    "get_app_repository",
]
