"""
App sync package.

Reconciles remote console apps into local storage:
reconciler -> field_mapper -> site_merger -> persist, with statistics
folded per app and DSL versions recorded by src.services.dsl_sync.
"""

from src.services.app_sync.service import AppSyncService

__all__ = ["AppSyncService"]
