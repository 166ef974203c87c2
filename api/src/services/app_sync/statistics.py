"""
Sync statistics aggregation.

Pure functions over the immutable SyncStats model: each takes the current
value and returns a new one, so results from nested loops or concurrent
scopes can be folded together with merge_sync_stats().
"""

from src.models.contracts.sync import SyncStats, ValidationOutcome


def initialize_sync_stats() -> SyncStats:
    return SyncStats()


def _bump(stats: SyncStats, **increments: int) -> SyncStats:
    return stats.model_copy(
        update={field: getattr(stats, field) + amount for field, amount in increments.items()}
    )


def record_app_created(stats: SyncStats) -> SyncStats:
    return _bump(stats, created_apps=1, synced_apps=1)


def record_app_updated(stats: SyncStats) -> SyncStats:
    return _bump(stats, updated_apps=1, synced_apps=1)


def record_site_synced(stats: SyncStats, is_new: bool) -> SyncStats:
    if is_new:
        return _bump(stats, created_sites=1, synced_sites=1)
    return _bump(stats, updated_sites=1, synced_sites=1)


def record_dsl_version_created(stats: SyncStats) -> SyncStats:
    return _bump(stats, synced_dsl_versions=1)


def record_instance_processed(stats: SyncStats) -> SyncStats:
    return _bump(stats, processed_instances=1)


def record_account_processed(stats: SyncStats) -> SyncStats:
    return _bump(stats, processed_accounts=1)


def update_app_type_stats(stats: SyncStats, app_type: str) -> SyncStats:
    app_types = dict(stats.app_types)
    app_types[app_type] = app_types.get(app_type, 0) + 1
    return stats.model_copy(update={"app_types": app_types})


def add_sync_error(stats: SyncStats, message: str) -> SyncStats:
    return stats.model_copy(
        update={"errors": stats.errors + 1, "error_details": [*stats.error_details, message]}
    )


def merge_sync_errors(stats: SyncStats, outcome: ValidationOutcome) -> SyncStats:
    """Fold a failed validation into the stats, one error per message."""
    if not outcome.errors:
        return stats
    return stats.model_copy(
        update={
            "errors": stats.errors + len(outcome.errors),
            "error_details": [*stats.error_details, *outcome.errors],
        }
    )


def merge_sync_stats(left: SyncStats, right: SyncStats) -> SyncStats:
    """Sum counters, add app_types per key and concatenate error_details."""
    app_types = dict(left.app_types)
    for app_type, count in right.app_types.items():
        app_types[app_type] = app_types.get(app_type, 0) + count

    return SyncStats(
        processed_instances=left.processed_instances + right.processed_instances,
        processed_accounts=left.processed_accounts + right.processed_accounts,
        synced_apps=left.synced_apps + right.synced_apps,
        created_apps=left.created_apps + right.created_apps,
        updated_apps=left.updated_apps + right.updated_apps,
        synced_sites=left.synced_sites + right.synced_sites,
        created_sites=left.created_sites + right.created_sites,
        updated_sites=left.updated_sites + right.updated_sites,
        synced_dsl_versions=left.synced_dsl_versions + right.synced_dsl_versions,
        errors=left.errors + right.errors,
        app_types=app_types,
        error_details=[*left.error_details, *right.error_details],
    )
