"""
Celery tasks for the storage copy service.

The copy job itself never blocks on the storage: while a remote copy is
running, the task is retried after a fixed countdown, without attempt limit.
"""

from django_config import celery_app
from storage_copy.config import settings
from storage_copy.db import init_db, close_db
from storage_copy.errors import PollingRequired
from storage_copy.schemas.enums import JobOutcomeStatus
from storage_copy.schemas.messages import CopyProjectFoldersRequest
from storage_copy.services.copy_operations import copy_operation_service
from storage_copy.workers.copy_project_folders import CopyProjectFoldersJob
import asyncio
import logging

logger = logging.getLogger(__name__)


def _run_with_db(coro_factory):
    """Run a coroutine in a fresh event loop with Beanie initialized for it."""
    async def _wrapper():
        await init_db()
        try:
            return await coro_factory()
        finally:
            await close_db()

    return asyncio.run(_wrapper())


@celery_app.task(bind=True, acks_late=True, max_retries=None, default_retry_delay=settings.POLLING_INTERVAL_SECONDS)
def copy_project_folders_task(self, operation_id: str, source_id: str, target_id: str,
                              work_packages_map: dict, user_id: str):
    """
    Copies one source project storage into its target.

    Outcomes map onto Celery as follows:
    polling_required / busy -> retry after the outcome's countdown (unlimited attempts),
    failed / discarded -> finish without retry, the item carries the error.
    """
    request = CopyProjectFoldersRequest(
        operation_id=operation_id,
        source_id=source_id,
        target_id=target_id,
        work_packages_map=work_packages_map,
        user_id=user_id,
    )

    async def _perform():
        outcome = await CopyProjectFoldersJob().perform(request)
        if outcome.operation_closed:
            callback = await copy_operation_service.completion_callback(operation_id)
            if callback:
                task_name, kwargs = callback
                celery_app.send_task(task_name, kwargs=kwargs)
                logger.info(f"📣 Copy operation {operation_id} finished, sent {task_name}")
        return outcome

    outcome = _run_with_db(_perform)

    if outcome.status in (JobOutcomeStatus.POLLING_REQUIRED, JobOutcomeStatus.BUSY):
        countdown = outcome.countdown or settings.POLLING_INTERVAL_SECONDS
        raise self.retry(
            exc=PollingRequired(f"Copy item {outcome.item_id} requires polling", countdown=countdown),
            countdown=countdown,
            max_retries=None,
        )

    if outcome.status == JobOutcomeStatus.DISCARDED:
        logger.error(f"🗑️  Copy item {outcome.item_id} discarded: {outcome.error}")
    elif outcome.status == JobOutcomeStatus.FAILED:
        logger.error(f"❌ Copy item {outcome.item_id} failed: {outcome.error}")
    else:
        logger.info(f"✅ Copy item {outcome.item_id} completed")

    return {
        "item_id": outcome.item_id,
        "status": outcome.status.value,
        "project_folder_id": outcome.project_folder_id,
        "error": outcome.error,
        "file_links_copied": len(outcome.file_links) - len(outcome.failed_file_links),
        "file_links_failed": len(outcome.failed_file_links),
    }


@celery_app.task(bind=True)
def cleanup_old_copy_operations_task(self, days_old: int = None):
    """
    Scheduled task removing finished copy operations and their items.

    Args:
        days_old: Delete operations finished longer ago than this many days

    Returns:
        int: Number of operations deleted
    """
    days = days_old or settings.COPY_OPERATION_RETENTION_DAYS
    return _run_with_db(lambda: copy_operation_service.cleanup(days))


@celery_app.task(bind=True)
def send_pending_copy_callbacks_task(self):
    """
    Scheduled task sending the completion callbacks of closed copy operations
    whose closing execution stopped before sending them.

    Returns:
        int: Number of callbacks sent
    """
    callbacks = _run_with_db(copy_operation_service.pending_callbacks)
    for task_name, kwargs in callbacks:
        celery_app.send_task(task_name, kwargs=kwargs)
        logger.info(f"📣 Sent pending {task_name} for copy operation {kwargs['operation_id']}")
    return len(callbacks)
