"""
Repositories for storage documents and copy operation state using Beanie ODM.

Job item writes are targeted ``$set`` updates so that concurrent writers
(lease, polling state, status) never overwrite each other's fields.
"""

from datetime import datetime, timedelta
from enum import Enum
from typing import Dict, Iterable, List, Optional, Tuple
import logging

from beanie.operators import In

from storage_copy.models.mongo_models import (
    CopyJobItem, CopyOperation, FileLink, PollingState, ProjectStorage, Storage, copy_item_id
)
from storage_copy.schemas.enums import (
    CopyOperationStatus, CopyItemStatus, PollingStatus, ProjectFolderMode, TERMINAL_ITEM_STATUSES
)
from storage_copy.utils.date_utils import get_now, log_line

logger = logging.getLogger(__name__)


def _to_mongo(value):
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, PollingState):
        return {key: _to_mongo(val) for key, val in value.model_dump().items()}
    if isinstance(value, dict):
        return {key: _to_mongo(val) for key, val in value.items()}
    return value


class ProjectStorageRepository:
    """Access to storages and project storages"""

    async def get(self, project_storage_id: str) -> Optional[ProjectStorage]:
        return await ProjectStorage.get(project_storage_id)

    async def get_storage(self, storage_id: str) -> Optional[Storage]:
        return await Storage.get(storage_id)

    async def update_project_folder(
        self, project_storage: ProjectStorage, folder_id: Optional[str], mode: ProjectFolderMode
    ) -> ProjectStorage:
        project_storage.project_folder_id = folder_id
        project_storage.project_folder_mode = mode
        project_storage.updated_at = get_now()
        await project_storage.save()
        return project_storage


class FileLinkRepository:
    """Access to work package file links"""

    async def find_by_containers(self, container_ids: Iterable[int]) -> List[FileLink]:
        return await FileLink.find(
            In(FileLink.container_id, list(container_ids)),
            FileLink.container_type == "WorkPackage",
        ).to_list()

    async def create(self, attributes: dict) -> FileLink:
        file_link = FileLink(**attributes)
        await file_link.insert()
        return file_link


class CopyOperationRepository:
    """Durable state of copy operations and their job items"""

    def _items(self):
        return CopyJobItem.get_motor_collection()

    def _operations(self):
        return CopyOperation.get_motor_collection()

    async def create_operation(
        self,
        user_id: str,
        pairs: List[Tuple[str, str]],
        work_packages_map: Dict[str, int],
        on_finish_task: Optional[str] = None,
    ) -> Tuple[CopyOperation, List[CopyJobItem]]:
        operation = CopyOperation(user_id=user_id, on_finish_task=on_finish_task)
        items = [
            CopyJobItem(
                id=copy_item_id(operation.id, source_id),
                operation_id=operation.id,
                source_id=source_id,
                target_id=target_id,
                user_id=user_id,
                work_packages_map=work_packages_map,
            )
            for source_id, target_id in pairs
        ]
        operation.item_ids = [item.id for item in items]
        await operation.insert()
        for item in items:
            await item.insert()
        return operation, items

    async def get_operation(self, operation_id: str) -> Optional[CopyOperation]:
        return await CopyOperation.get(operation_id)

    async def get_item(self, item_id: str) -> Optional[CopyJobItem]:
        return await CopyJobItem.get(item_id)

    async def list_items(self, operation_id: str) -> List[CopyJobItem]:
        return await CopyJobItem.find(CopyJobItem.operation_id == operation_id).to_list()

    async def acquire_lease(self, item_id: str, seconds: int) -> bool:
        """
        Claim the item for one execution. Returns False while another execution
        holds an unexpired lease.
        """
        now = get_now()
        result = await self._items().update_one(
            {"_id": item_id, "$or": [{"lease_until": None}, {"lease_until": {"$lt": now}}]},
            {"$set": {"lease_until": now + timedelta(seconds=seconds)}},
        )
        return bool(result and result.modified_count > 0)

    async def release_lease(self, item_id: str):
        await self._items().update_one(
            {"_id": item_id}, {"$set": {"lease_until": None}}
        )

    async def save_polling_state(self, item_id: str, state: PollingState) -> bool:
        """
        Persist the polling state. A completed state is final and is never
        replaced by an ongoing one.
        """
        query = {"_id": item_id}
        if state.status == PollingStatus.ONGOING:
            query["polling.status"] = {"$ne": PollingStatus.COMPLETED.value}
        result = await self._items().update_one(
            query,
            {"$set": {"polling": _to_mongo(state), "updated_at": get_now()}},
        )
        return bool(result and result.modified_count > 0)

    async def update_item(self, item_id: str, **fields):
        fields["updated_at"] = get_now()
        await self._items().update_one(
            {"_id": item_id}, {"$set": _to_mongo(fields)}
        )

    async def append_log(self, item_id: str, message: str):
        logger.info(message)
        await self._items().update_one(
            {"_id": item_id}, {"$push": {"logs": log_line(message)}}
        )

    async def finish_operation_if_done(self, operation_id: str) -> Optional[CopyOperation]:
        """
        Close the operation once every item is terminal. Returns the operation only
        to the single caller that actually closed it.
        """
        items = await self.list_items(operation_id)
        if not items or any(item.status not in TERMINAL_ITEM_STATUSES for item in items):
            return None

        failed = any(item.status == CopyItemStatus.FAILED for item in items)
        status = CopyOperationStatus.FAILED if failed else CopyOperationStatus.COMPLETED
        result = await self._operations().update_one(
            {"_id": operation_id, "status": CopyOperationStatus.RUNNING.value},
            {"$set": {"status": status.value, "finished_at": get_now()}},
        )
        if not (result and result.modified_count > 0):
            return None
        return await self.get_operation(operation_id)

    async def mark_callback_sent(self, operation_id: str) -> bool:
        """Claim the completion callback. Only one caller ever gets True."""
        result = await self._operations().update_one(
            {"_id": operation_id, "callback_sent": False},
            {"$set": {"callback_sent": True}},
        )
        return bool(result and result.modified_count > 0)

    async def find_pending_callbacks(self) -> List[CopyOperation]:
        """Closed operations whose completion callback was never sent."""
        return await CopyOperation.find(
            CopyOperation.status != CopyOperationStatus.RUNNING,
            CopyOperation.on_finish_task != None,  # noqa: E711
            CopyOperation.callback_sent == False,  # noqa: E712
        ).to_list()

    async def delete_finished_before(self, cutoff: datetime) -> int:
        operations = await CopyOperation.find(
            CopyOperation.status != CopyOperationStatus.RUNNING,
            CopyOperation.finished_at < cutoff,
        ).to_list()
        for operation in operations:
            await CopyJobItem.find(CopyJobItem.operation_id == operation.id).delete()
            await operation.delete()
        return len(operations)


# Global singleton instances
project_storage_repo = ProjectStorageRepository()
file_link_repo = FileLinkRepository()
copy_operation_repo = CopyOperationRepository()
