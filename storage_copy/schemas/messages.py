from pydantic import BaseModel, Field
from typing import Dict, List, Optional
from storage_copy.schemas.enums import JobOutcomeStatus
from storage_copy.schemas.results import FileLinkCopyOutcome

class CopyProjectFoldersRequest(BaseModel):
    """Parameters a copy_project_folders_task is enqueued with."""
    operation_id: str
    source_id: str
    target_id: str
    work_packages_map: Dict[str, int] = Field(default_factory=dict)
    user_id: str

class JobOutcome(BaseModel):
    item_id: str
    status: JobOutcomeStatus
    project_folder_id: Optional[str] = None
    countdown: Optional[int] = None
    error: Optional[str] = None
    operation_closed: bool = False
    file_links: List[FileLinkCopyOutcome] = Field(default_factory=list)

    @property
    def failed_file_links(self) -> List[FileLinkCopyOutcome]:
        return [outcome for outcome in self.file_links if not outcome.success]
