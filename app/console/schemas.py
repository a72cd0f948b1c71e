from pydantic import BaseModel, Field
from typing import Dict, Optional, List
from datetime import datetime
from storage_copy.schemas.enums import CopyItemStatus, CopyOperationStatus, PollingStatus

class CopyPair(BaseModel):
    source_id: str
    target_id: str

class CopyOperationCreate(BaseModel):
    user_id: str
    pairs: List[CopyPair] = Field(min_length=1)
    work_packages_map: Dict[str, int] = {}
    on_finish_task: Optional[str] = None

class PollingStateResponse(BaseModel):
    status: PollingStatus
    polling_url: Optional[str] = None
    resource_id: Optional[str] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True

class CopyJobItemResponse(BaseModel):
    id: str
    source_id: str
    target_id: str
    status: CopyItemStatus
    polling: Optional[PollingStateResponse] = None
    poll_count: int = 0
    project_folder_id: Optional[str] = None
    error_summary: Optional[str] = None
    file_links_copied: int = 0
    file_links_failed: int = 0
    created_at: datetime
    finished_at: Optional[datetime] = None

    class Config:
        from_attributes = True

class CopyOperationResponse(BaseModel):
    id: str
    user_id: str
    status: CopyOperationStatus
    created_at: datetime
    finished_at: Optional[datetime] = None
    items: List[CopyJobItemResponse] = []

    class Config:
        from_attributes = True
