"""
MongoDB document models using Beanie ODM.
"""

from beanie import Document, Indexed
from datetime import datetime
from typing import Optional, List, Dict
from pydantic import Field, BaseModel
import uuid
from storage_copy.schemas.enums import (
    ProviderType, ProjectFolderMode, PollingStatus, CopyItemStatus, CopyOperationStatus
)
from storage_copy.utils.date_utils import get_now


def generate_uuid():
    """Generate UUID string for document IDs"""
    return str(uuid.uuid4())


def copy_item_id(operation_id: str, source_id: str) -> str:
    """Job items are keyed by operation and source so re-deliveries land on the same record."""
    return f"{operation_id}:{source_id}"


class Storage(Document):
    """External file storage (one Nextcloud instance, one OneDrive drive)"""
    id: str = Field(default_factory=generate_uuid)
    name: Indexed(str, unique=True)
    provider_type: ProviderType
    host: str
    drive_id: Optional[str] = None  # OneDrive only
    username: Optional[str] = None  # Nextcloud admin user
    token_ciphertext: Optional[str] = None  # Encrypted bearer token / app password
    project_folder_root: str = "Projects"
    automatically_managed: bool = False
    created_at: datetime = Field(default_factory=get_now)

    class Settings:
        name = "storages"


class ProjectStorage(Document):
    """Binding of a project to a folder on an external storage"""
    id: str = Field(default_factory=generate_uuid)
    project_id: Indexed(int)
    project_name: str
    storage_id: Indexed(str)
    project_folder_id: Optional[str] = None
    project_folder_mode: ProjectFolderMode = ProjectFolderMode.INACTIVE
    created_at: datetime = Field(default_factory=get_now)
    updated_at: datetime = Field(default_factory=get_now)

    class Settings:
        name = "project_storages"


class FileLink(Document):
    """Reference from a work package to a file on an external storage"""
    id: str = Field(default_factory=generate_uuid)
    storage_id: Indexed(str)
    container_id: Indexed(int)
    container_type: str = "WorkPackage"
    origin_id: Optional[str] = None  # None when the file could not be located after a copy
    origin_name: str
    origin_mime_type: Optional[str] = None
    origin_created_by_name: Optional[str] = None
    origin_last_modified_by_name: Optional[str] = None
    origin_created_at: Optional[datetime] = None
    origin_updated_at: Optional[datetime] = None
    creator_id: str
    created_at: datetime = Field(default_factory=get_now)

    class Settings:
        name = "file_links"


class CopyOperation(Document):
    """Batch of copy job items started by one project copy"""
    id: str = Field(default_factory=generate_uuid)
    user_id: str
    status: CopyOperationStatus = CopyOperationStatus.RUNNING
    item_ids: List[str] = Field(default_factory=list)
    on_finish_task: Optional[str] = None  # Celery task name called once all items finished
    callback_sent: bool = False
    created_at: datetime = Field(default_factory=get_now)
    finished_at: Optional[datetime] = None

    class Settings:
        name = "copy_operations"


class PollingState(BaseModel):
    """Remote copy progress for one source; absent until the copy was initiated."""
    status: PollingStatus
    polling_url: Optional[str] = None
    resource_id: Optional[str] = None
    updated_at: datetime = Field(default_factory=get_now)


class CopyJobItem(Document):
    """One source/target pair of a copy operation"""
    id: str
    operation_id: Indexed(str)
    source_id: str
    target_id: str
    user_id: str
    work_packages_map: Dict[str, int] = Field(default_factory=dict)
    status: CopyItemStatus = CopyItemStatus.QUEUED
    polling: Optional[PollingState] = None
    poll_count: int = 0
    lease_until: Optional[datetime] = None
    project_folder_id: Optional[str] = None
    error_summary: Optional[str] = None
    file_links_copied: int = 0
    file_links_failed: int = 0
    logs: List[str] = []
    created_at: datetime = Field(default_factory=get_now)
    updated_at: datetime = Field(default_factory=get_now)
    finished_at: Optional[datetime] = None

    class Settings:
        name = "copy_job_items"


MONGO_MODELS = [
    Storage, ProjectStorage, FileLink, CopyOperation, CopyJobItem
]
