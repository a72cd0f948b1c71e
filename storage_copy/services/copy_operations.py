"""
Copy operations group the job items started by one project copy.
"""

from datetime import timedelta
from typing import Callable, Dict, List, Optional, Tuple
import logging

from storage_copy.repositories import copy_operation_repo
from storage_copy.schemas.messages import CopyProjectFoldersRequest
from storage_copy.utils.date_utils import get_now

logger = logging.getLogger(__name__)


class CopyOperationService:

    def __init__(self, repository=copy_operation_repo):
        self.repository = repository

    async def start(
        self,
        user_id: str,
        pairs: List[Tuple[str, str]],
        work_packages_map: Dict,
        enqueue: Callable[[CopyProjectFoldersRequest, str], None],
        on_finish_task: Optional[str] = None,
    ):
        """
        Create the operation with one item per source/target pair and hand each
        item to ``enqueue`` together with its id, which doubles as the task id.
        """
        if not pairs:
            raise ValueError("A copy operation needs at least one source/target pair")
        source_ids = [source_id for source_id, _ in pairs]
        if len(set(source_ids)) != len(source_ids):
            raise ValueError("Each source project storage can only be copied once per operation")

        wp_map = {str(key): int(value) for key, value in (work_packages_map or {}).items()}
        operation, items = await self.repository.create_operation(user_id, pairs, wp_map, on_finish_task)

        for item in items:
            request = CopyProjectFoldersRequest(
                operation_id=operation.id,
                source_id=item.source_id,
                target_id=item.target_id,
                work_packages_map=wp_map,
                user_id=user_id,
            )
            enqueue(request, item.id)

        logger.info(f"📦 Copy operation {operation.id} started with {len(items)} item(s)")
        return operation, items

    async def completion_callback(self, operation_id: str) -> Optional[Tuple[str, dict]]:
        """
        Task name and kwargs of the completion callback, or None when the operation
        has no callback or it was already sent.
        """
        operation = await self.repository.get_operation(operation_id)
        return await self._claim_callback(operation)

    async def pending_callbacks(self) -> List[Tuple[str, dict]]:
        """Callbacks of closed operations whose closing execution never sent them."""
        callbacks = []
        for operation in await self.repository.find_pending_callbacks():
            callback = await self._claim_callback(operation)
            if callback:
                callbacks.append(callback)
        return callbacks

    async def _claim_callback(self, operation) -> Optional[Tuple[str, dict]]:
        if not operation or not operation.on_finish_task or operation.callback_sent:
            return None
        # The closing execution and the sweep may race, only one of them wins the claim
        if not await self.repository.mark_callback_sent(operation.id):
            return None
        status = getattr(operation.status, "value", operation.status)
        return operation.on_finish_task, {"operation_id": operation.id, "status": status}

    async def cleanup(self, days_old: int) -> int:
        cutoff = get_now() - timedelta(days=days_old)
        deleted = await self.repository.delete_finished_before(cutoff)
        logger.info(f"🗑️  Deleted {deleted} copy operations finished more than {days_old} days ago")
        return deleted


copy_operation_service = CopyOperationService()
