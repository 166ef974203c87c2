"""
DSL Retention Scheduler

Trims the DSL version history of every app to the newest
`dsl_retention_keep` versions. Version numbers are never reused: the
next sync after a trim still gets max(version) + 1.
"""

import logging
from datetime import datetime, timezone
from typing import Any

from src.config import get_settings
from src.core.database import get_db_context
from src.repositories.dsl_versions import AppDslVersionRepository

logger = logging.getLogger(__name__)


async def cleanup_old_dsl_versions(keep: int | None = None) -> dict[str, Any]:
    """
    Delete DSL versions beyond the retention window.

    Args:
        keep: Versions kept per app (defaults to settings.dsl_retention_keep)

    Returns:
        Summary of cleanup results
    """
    keep = keep or get_settings().dsl_retention_keep
    start_time = datetime.now(timezone.utc)
    logger.info("▶ DSL retention cleanup starting")

    results: dict[str, Any] = {
        "keep": keep,
        "apps_trimmed": 0,
        "versions_deleted": 0,
        "errors": [],
    }

    try:
        async with get_db_context() as db:
            repo = AppDslVersionRepository(db)

            for app_id in await repo.list_app_ids_over(keep):
                deleted = await repo.delete_old_versions(app_id, keep)
                if deleted:
                    results["apps_trimmed"] += 1
                    results["versions_deleted"] += deleted

            await db.commit()

        duration_seconds = (datetime.now(timezone.utc) - start_time).total_seconds()
        results["duration_seconds"] = duration_seconds

        logger.info(
            f"✓ DSL retention cleanup completed: {results['versions_deleted']} versions deleted "
            f"across {results['apps_trimmed']} apps ({duration_seconds:.1f}s)"
        )

    except Exception as e:
        logger.error(f"✗ DSL retention cleanup failed: {e}", exc_info=True)
        results["errors"].append({"error": str(e)})

    return results
