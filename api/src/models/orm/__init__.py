"""
SQLAlchemy ORM Models

Pure database models using SQLAlchemy 2.0 declarative style.
For pydantic contracts see src.models.contracts.
"""

from src.models.orm.base import Base
from src.models.orm.instances import ConsoleAccount, ConsoleInstance
from src.models.orm.sites import Site
from src.models.orm.apps import App, ChatAssistantApp, ChatflowApp, WorkflowApp
from src.models.orm.dsl_versions import AppDslVersion

__all__ = [
    # Base
    "Base",
    # Instances
    "ConsoleInstance",
    "ConsoleAccount",
    # Apps
    "App",
    "ChatAssistantApp",
    "ChatflowApp",
    "WorkflowApp",
    # Sites
    "Site",
    # DSL
    "AppDslVersion",
]
