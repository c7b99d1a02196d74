"""Celery tasks for archive maintenance.

Tasks:
- archive_reclaim_task: capacity-based reclamation, scheduled by Celery Beat
  every ARCHIVE_RECLAIM_INTERVAL_SECONDS
"""

import asyncio
import logging
from typing import Any, Dict

from celery import shared_task

from ..config import get_settings
from ..infrastructure.storage.filesystem_archive import FilesystemArchiveStore

logger = logging.getLogger(__name__)


@shared_task(name="archive.reclaim", bind=True)
def archive_reclaim_task(self) -> Dict[str, Any]:
    """Delete the oldest archived messages when the archive is over capacity.

    Idempotent: a run that finds usage under the threshold deletes nothing.

    Returns:
        Dict with reclamation statistics:
        - status: completed | failed
        - usage_before / usage_after: usage ratios
        - deleted: number of entries deleted
        - deleted_ids: email IDs of deleted entries

    Raises:
        Nothing: errors are logged and reported in the result
    """
    logger.info("Archive reclamation task started")

    try:
        store = FilesystemArchiveStore.from_settings(get_settings())
        report = asyncio.run(store.reclaim())

        result = {
            "status": "completed",
            "usage_before": round(report.usage_before, 4),
            "usage_after": round(report.usage_after, 4),
            "deleted": report.deleted,
            "deleted_ids": report.deleted_ids,
        }
        logger.info(
            f"Archive reclamation task completed: {report.deleted} entries deleted",
            extra={"operation": "archive_reclaim"},
        )
        return result

    except Exception as e:
        logger.error(
            "Archive reclamation task failed",
            exc_info=True,
            extra={"operation": "archive_reclaim"},
        )
        return {
            "status": "failed",
            "error": str(e),
            "deleted": 0,
        }
