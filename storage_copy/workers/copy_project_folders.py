"""
Copy-project-folders job: copies one source project storage into its target.

A remote copy may take minutes, so one logical job is spread over several
executions. Each execution reads the durable polling state of its item first:

    queued -> initiating -> polling <-> polling -> finalizing -> done
                                  any non-terminal state -> failed

* no polling state: start the copy; if the provider works in the background,
  store ``ongoing(url)`` and ask the scheduler to run us again later
* ``ongoing``: ask the provider; still running -> run again later,
  completed -> store ``completed(resource id)`` and finalize
* ``completed``: finalize right away, the copy is never started twice.
  Synchronous copies store ``completed`` as well before finalizing.

Finalizing updates the target project storage and then copies the file links.
The job never raises for expected situations; it returns a ``JobOutcome`` that
the Celery task maps onto retries. Transport errors and unreadable storage
responses discard the item, any other error fails it and is raised again.
"""

from typing import Optional
import asyncio
import logging

import requests
import xml.etree.ElementTree as ET

from storage_copy.config import settings
from storage_copy.errors import InvalidTransition
from storage_copy.models.mongo_models import PollingState, copy_item_id
from storage_copy.peripherals.registry import PeripheralRegistry
from storage_copy.repositories import copy_operation_repo, project_storage_repo
from storage_copy.schemas.enums import (
    CopyItemStatus, JobOutcomeStatus, PollingStatus, TERMINAL_ITEM_STATUSES
)
from storage_copy.schemas.messages import CopyProjectFoldersRequest, JobOutcome
from storage_copy.schemas.results import CopyTemplateFolderResult
from storage_copy.services.file_links import CopyFileLinksService
from storage_copy.services.project_folders import CopyProjectFoldersService, ProjectStorageService
from storage_copy.utils.date_utils import get_now

logger = logging.getLogger(__name__)

ITEM_TRANSITIONS = {
    CopyItemStatus.QUEUED: {CopyItemStatus.INITIATING, CopyItemStatus.POLLING, CopyItemStatus.FINALIZING},
    # re-entered when a worker died before the state was written
    CopyItemStatus.INITIATING: {CopyItemStatus.INITIATING, CopyItemStatus.POLLING, CopyItemStatus.FINALIZING},
    CopyItemStatus.POLLING: {CopyItemStatus.POLLING, CopyItemStatus.FINALIZING},
    CopyItemStatus.FINALIZING: {CopyItemStatus.FINALIZING, CopyItemStatus.DONE},
    CopyItemStatus.DONE: set(),
    CopyItemStatus.FAILED: set(),
}

REMOTE_COPY_COMPLETED = "completed"
REMOTE_COPY_FAILED = "failed"

# Storage answered, but with a body we cannot read
MALFORMED_RESPONSE_ERRORS = (ET.ParseError, ValueError, KeyError)


def can_transition(from_status: CopyItemStatus, to_status: CopyItemStatus) -> bool:
    if to_status == CopyItemStatus.FAILED:
        return from_status not in (CopyItemStatus.DONE, CopyItemStatus.FAILED)
    return to_status in ITEM_TRANSITIONS[from_status]


class CopyProjectFoldersJob:

    def __init__(
        self,
        operations=copy_operation_repo,
        project_storages=project_storage_repo,
        registry=PeripheralRegistry,
        copy_service: Optional[CopyProjectFoldersService] = None,
        update_service: Optional[ProjectStorageService] = None,
        file_links_service: Optional[CopyFileLinksService] = None,
    ):
        self.operations = operations
        self.project_storages = project_storages
        self.registry = registry
        self.copy_service = copy_service or CopyProjectFoldersService(registry=registry)
        self.update_service = update_service or ProjectStorageService(repository=project_storages)
        self.file_links_service = file_links_service or CopyFileLinksService(registry=registry)

    async def perform(self, request: CopyProjectFoldersRequest) -> JobOutcome:
        item_id = copy_item_id(request.operation_id, request.source_id)
        item = await self.operations.get_item(item_id)
        if not item:
            return self._missing(item_id)

        finished = self._finished(item)
        if finished:
            return finished

        if not await self.operations.acquire_lease(item_id, settings.JOB_LEASE_SECONDS):
            logger.info(f"⏳ Copy item {item_id} is being executed elsewhere")
            return JobOutcome(
                item_id=item_id, status=JobOutcomeStatus.BUSY, countdown=settings.POLLING_INTERVAL_SECONDS
            )

        try:
            # The first read happened before the lease: another execution may have moved the item since
            item = await self.operations.get_item(item_id)
            if not item:
                return self._missing(item_id)
            finished = self._finished(item)
            if finished:
                return finished

            return await self._execute(item, request)
        except requests.RequestException as e:
            if item.status in TERMINAL_ITEM_STATUSES:
                raise
            return await self._fail(
                item, f"Transport failure talking to the storage, discarding: {e}", JobOutcomeStatus.DISCARDED
            )
        except MALFORMED_RESPONSE_ERRORS as e:
            if item.status in TERMINAL_ITEM_STATUSES:
                raise
            return await self._fail(
                item, f"Malformed response from the storage, discarding: {e!r}", JobOutcomeStatus.DISCARDED
            )
        except Exception as e:
            if item.status not in TERMINAL_ITEM_STATUSES:
                await self._fail(item, f"Unexpected error: {e!r}")
            raise
        finally:
            await self.operations.release_lease(item_id)

    @staticmethod
    def _missing(item_id: str) -> JobOutcome:
        logger.error(f"❌ Copy item {item_id} not found")
        return JobOutcome(item_id=item_id, status=JobOutcomeStatus.FAILED, error="Copy item not found")

    @staticmethod
    def _finished(item) -> Optional[JobOutcome]:
        """Outcome of an item that already finished, re-delivered afterwards"""
        if item.status == CopyItemStatus.DONE:
            return JobOutcome(item_id=item.id, status=JobOutcomeStatus.COMPLETED, project_folder_id=item.project_folder_id)
        if item.status == CopyItemStatus.FAILED:
            return JobOutcome(item_id=item.id, status=JobOutcomeStatus.FAILED, error=item.error_summary)
        return None

    async def _execute(self, item, request: CopyProjectFoldersRequest) -> JobOutcome:
        source = await self.project_storages.get(request.source_id)
        target = await self.project_storages.get(request.target_id)
        if not source or not target:
            return await self._fail(item, "Source or target project storage not found")

        storage = await self.project_storages.get_storage(source.storage_id)
        if not storage:
            return await self._fail(item, f"Storage {source.storage_id} not found")

        polling = item.polling
        if polling and polling.status == PollingStatus.COMPLETED:
            folder = CopyTemplateFolderResult(id=polling.resource_id)
        elif polling and polling.status == PollingStatus.ONGOING:
            await self._move(item, CopyItemStatus.POLLING)
            folder = await self._poll(item, storage)
            if isinstance(folder, JobOutcome):
                return folder
        else:
            await self._move(item, CopyItemStatus.INITIATING)
            await self.operations.append_log(item.id, f"🔄 Copying project folder of {source.id} to {target.id}")
            # Storage calls are blocking, keep them off the event loop
            result = await asyncio.to_thread(self.copy_service.call, source, target, storage)
            if result.failure:
                return await self._fail(item, f"Copying project folder failed: {result.describe()}")

            folder = result.result
            if folder.requires_polling:
                await self.operations.save_polling_state(
                    item.id, PollingState(status=PollingStatus.ONGOING, polling_url=folder.polling_url)
                )
                await self._move(item, CopyItemStatus.POLLING)
                await self.operations.append_log(item.id, f"⏳ Storage {storage.name} requires polling")
                return self._polling_required(item)

            # Remember the result so a re-delivery after a crash skips straight to finalizing
            await self.operations.save_polling_state(
                item.id, PollingState(status=PollingStatus.COMPLETED, resource_id=folder.id)
            )

        return await self._finalize(item, request, source, target, storage, folder)

    async def _poll(self, item, storage):
        """Returns the copy result once the provider reports completion, a JobOutcome otherwise."""
        polling_url = item.polling.polling_url
        with self.registry.get_provider(storage.provider_type) as provider:
            status = await asyncio.to_thread(provider.copy_status().call, storage, polling_url)
        if status.failure:
            return await self._fail(item, f"Polling {polling_url} failed: {status.describe()}")

        remote_status = status.result.get("status")
        if remote_status == REMOTE_COPY_FAILED:
            return await self._fail(item, "Storage reported the folder copy as failed")

        if remote_status != REMOTE_COPY_COMPLETED:
            await self.operations.save_polling_state(
                item.id, PollingState(status=PollingStatus.ONGOING, polling_url=polling_url)
            )
            item.poll_count += 1
            await self.operations.update_item(item.id, poll_count=item.poll_count)
            await self.operations.append_log(
                item.id, f"⏳ Polling not completed yet ({remote_status}, attempt {item.poll_count})"
            )
            return self._polling_required(item)

        resource_id = status.result.get("resource_id")
        await self.operations.save_polling_state(
            item.id,
            PollingState(status=PollingStatus.COMPLETED, polling_url=polling_url, resource_id=resource_id),
        )
        await self.operations.append_log(item.id, f"✅ Remote copy completed: {resource_id}")
        return CopyTemplateFolderResult(id=resource_id, requires_polling=False)

    async def _finalize(self, item, request, source, target, storage, folder: CopyTemplateFolderResult) -> JobOutcome:
        await self._move(item, CopyItemStatus.FINALIZING)

        updated = await self.update_service.update_project_folder(
            target, storage, folder.id, source.project_folder_mode
        )
        if updated.failure:
            logger.warning(f"⚠️ Updating project storage {target.id} failed: {updated.describe()}")
            return await self._fail(item, f"Updating target project folder failed: {updated.describe()}")
        target = updated.result

        file_links = await self.file_links_service.call(
            source, target, storage, request.user_id, request.work_packages_map
        )
        failed = [outcome for outcome in file_links if not outcome.success]
        for outcome in failed:
            await self.operations.append_log(
                item.id, f"⚠️ File link {outcome.source_file_link_id} not copied: {outcome.error}"
            )

        await self.operations.update_item(
            item.id,
            project_folder_id=folder.id,
            file_links_copied=len(file_links) - len(failed),
            file_links_failed=len(failed),
        )
        await self._move(item, CopyItemStatus.DONE, finished_at=get_now())
        await self.operations.append_log(
            item.id, f"✅ Project folder copied ({len(file_links) - len(failed)}/{len(file_links)} file links)"
        )
        closed = await self.operations.finish_operation_if_done(item.operation_id)

        return JobOutcome(
            item_id=item.id,
            status=JobOutcomeStatus.COMPLETED,
            project_folder_id=folder.id,
            operation_closed=closed is not None,
            file_links=file_links,
        )

    async def _move(self, item, status: CopyItemStatus, **fields):
        if not can_transition(item.status, status):
            raise InvalidTransition(item.id, item.status, status)
        await self.operations.update_item(item.id, status=status, **fields)
        item.status = status

    async def _fail(self, item, message: str, outcome_status=JobOutcomeStatus.FAILED) -> JobOutcome:
        logger.error(f"❌ Copy item {item.id}: {message}")
        await self._move(item, CopyItemStatus.FAILED, error_summary=message, finished_at=get_now())
        await self.operations.append_log(item.id, f"❌ {message}")
        closed = await self.operations.finish_operation_if_done(item.operation_id)
        return JobOutcome(
            item_id=item.id, status=outcome_status, error=message, operation_closed=closed is not None
        )

    @staticmethod
    def _polling_required(item) -> JobOutcome:
        return JobOutcome(
            item_id=item.id,
            status=JobOutcomeStatus.POLLING_REQUIRED,
            countdown=settings.POLLING_INTERVAL_SECONDS,
        )
