"""
Capability interfaces every storage provider implements.

The orchestration layer only talks to these interfaces; the concrete
provider is picked through ``PeripheralRegistry`` by ``ProviderType``.
"""

from abc import ABC, abstractmethod
from typing import List, Optional, Type
import logging

import requests
from pydantic import BaseModel

from storage_copy.config import settings
from storage_copy.schemas.enums import ProviderType
from storage_copy.schemas.results import ServiceResult, StorageErrorCode

logger = logging.getLogger(__name__)


class ParentFolder(BaseModel):
    """Folder reference for listing queries: an item id or an absolute path."""
    location: str

    @property
    def is_root(self) -> bool:
        return self.location in ("", "/")


def failure_for_status(
    status_code: int,
    not_found_message: Optional[str] = None,
    conflict_message: Optional[str] = None,
) -> ServiceResult:
    """Classify an unsuccessful HTTP status into a typed failure."""
    if status_code == 401:
        return ServiceResult.fail(StorageErrorCode.UNAUTHORIZED)
    if status_code == 403:
        return ServiceResult.fail(StorageErrorCode.FORBIDDEN)
    if status_code == 404:
        return ServiceResult.fail(StorageErrorCode.NOT_FOUND, message=not_found_message)
    if status_code == 409:
        return ServiceResult.fail(StorageErrorCode.CONFLICT, message=conflict_message)
    return ServiceResult.fail(
        StorageErrorCode.ERROR,
        log_message=f"Unexpected response status {status_code}",
        data={"status_code": status_code},
    )


class StorageQuery(ABC):
    """Base for one provider capability; shares the HTTP session of its provider."""

    def __init__(self, session: requests.Session):
        self.session = session

    @property
    def timeout(self) -> int:
        return settings.HTTP_TIMEOUT_SECONDS


class CopyTemplateFolderCommand(StorageQuery):
    """Starts the remote copy of a project folder."""

    def call(self, storage, source_path: str, destination_path: str) -> ServiceResult:
        """
        Returns a success carrying ``{"id": ..., "url": ...}``:
        an id when the provider copied synchronously, a polling url when it accepted
        the copy and finishes it in the background.
        """
        if not (source_path or "").strip() or not (destination_path or "").strip():
            return ServiceResult.fail(
                StorageErrorCode.INVALID_ARGUMENT,
                log_message="Both source and destination paths need to be present",
            )
        return self.copy(storage, source_path, destination_path)

    @abstractmethod
    def copy(self, storage, source_path: str, destination_path: str) -> ServiceResult:
        pass


class FolderFilesFileIdsDeepQuery(StorageQuery):
    """Lists every entry below a folder as ``{absolute path: file id}``."""

    @abstractmethod
    def call(self, storage, folder: ParentFolder) -> ServiceResult:
        pass


class FilesInfoQuery(StorageQuery):
    """Resolves file ids to ``StorageFileInfo`` records (absolute location included)."""

    @abstractmethod
    def call(self, storage, user_id: str, file_ids: List[str]) -> ServiceResult:
        pass


class CopyStatusQuery(StorageQuery):
    """
    Reads the monitor url returned by an asynchronous copy.
    The response JSON carries ``status`` and, once completed, ``resourceId``.
    """

    def call(self, storage, polling_url: str) -> ServiceResult:
        # A finished monitor may answer 303 pointing at the new item; don't follow it
        response = self.session.get(polling_url, timeout=self.timeout, allow_redirects=False)
        if response.status_code not in (200, 202, 303):
            return failure_for_status(response.status_code)

        try:
            payload = response.json() or {}
        except ValueError:
            payload = {}

        status = payload.get("status")
        resource_id = payload.get("resourceId")
        if response.status_code == 303 and not status:
            status = "completed"
            location = response.headers.get("Location", "")
            resource_id = resource_id or location.rstrip("/").rsplit("/", 1)[-1] or None

        return ServiceResult.ok({
            "status": status,
            "resource_id": resource_id,
            "percentage_complete": payload.get("percentageComplete"),
        })


class StorageProvider:
    """
    Bundle of the capabilities one provider offers. All capabilities share the
    provider's HTTP session, closed when the provider is used as a context manager.
    """
    provider_type: ProviderType
    addresses_folders_by_id: bool = False

    copy_template_folder_command: Type[CopyTemplateFolderCommand]
    folder_files_file_ids_deep_query: Type[FolderFilesFileIdsDeepQuery]
    files_info_query: Type[FilesInfoQuery]
    copy_status_query: Type[CopyStatusQuery] = CopyStatusQuery

    def __init__(self, session: Optional[requests.Session] = None):
        self.session = session or requests.Session()

    def close(self):
        self.session.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def copy_template_folder(self) -> CopyTemplateFolderCommand:
        return self.copy_template_folder_command(self.session)

    def folder_files_file_ids_deep(self) -> FolderFilesFileIdsDeepQuery:
        return self.folder_files_file_ids_deep_query(self.session)

    def files_info(self) -> FilesInfoQuery:
        return self.files_info_query(self.session)

    def copy_status(self) -> CopyStatusQuery:
        return self.copy_status_query(self.session)
