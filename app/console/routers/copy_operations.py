"""
Copy Operations Router - starts project folder copies and reports their progress.
"""

import logging
from fastapi import APIRouter, HTTPException
from typing import List

from app.console.schemas import CopyOperationCreate, CopyOperationResponse, CopyJobItemResponse
from storage_copy.repositories import copy_operation_repo, project_storage_repo
from storage_copy.schemas.messages import CopyProjectFoldersRequest
from storage_copy.services.copy_operations import copy_operation_service
from storage_copy.tasks import copy_project_folders_task

logger = logging.getLogger(__name__)

router = APIRouter(tags=["copy_operations"])


def _enqueue(request: CopyProjectFoldersRequest, task_id: str):
    copy_project_folders_task.apply_async(kwargs=request.model_dump(), task_id=task_id)


def _operation_response(operation, items) -> CopyOperationResponse:
    return CopyOperationResponse(
        id=operation.id,
        user_id=operation.user_id,
        status=operation.status,
        created_at=operation.created_at,
        finished_at=operation.finished_at,
        items=[CopyJobItemResponse.model_validate(item) for item in items],
    )


@router.post("/copy_operations", response_model=CopyOperationResponse, status_code=201)
async def create_copy_operation(body: CopyOperationCreate):
    """Start copying the project folders of every source/target pair."""
    for pair in body.pairs:
        source = await project_storage_repo.get(pair.source_id)
        target = await project_storage_repo.get(pair.target_id)
        if not source or not target:
            raise HTTPException(status_code=400, detail=f"Project storage not found for pair {pair.source_id} -> {pair.target_id}")
        if source.storage_id != target.storage_id:
            raise HTTPException(status_code=400, detail="Source and target must use the same storage")

    try:
        operation, items = await copy_operation_service.start(
            user_id=body.user_id,
            pairs=[(pair.source_id, pair.target_id) for pair in body.pairs],
            work_packages_map=body.work_packages_map,
            enqueue=_enqueue,
            on_finish_task=body.on_finish_task,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return _operation_response(operation, items)


@router.get("/copy_operations/{operation_id}", response_model=CopyOperationResponse)
async def get_copy_operation(operation_id: str):
    """Get a copy operation with the state of each item."""
    operation = await copy_operation_repo.get_operation(operation_id)
    if not operation:
        raise HTTPException(status_code=404, detail="Copy operation not found")
    items = await copy_operation_repo.list_items(operation_id)
    return _operation_response(operation, items)


@router.get("/copy_operations/{operation_id}/items/{item_id}/logs", response_model=List[str])
async def get_copy_item_logs(operation_id: str, item_id: str):
    """Log lines of one copy item."""
    item = await copy_operation_repo.get_item(item_id)
    if not item or item.operation_id != operation_id:
        raise HTTPException(status_code=404, detail="Copy item not found")
    return item.logs
