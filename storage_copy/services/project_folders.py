"""
Project folder services: copying a project's folder to a new project storage
and updating the project folder a project storage points at.
"""

from typing import Optional
import logging

from storage_copy.peripherals.registry import PeripheralRegistry
from storage_copy.repositories import project_storage_repo
from storage_copy.schemas.enums import ProjectFolderMode
from storage_copy.schemas.results import CopyTemplateFolderResult, ServiceResult, StorageErrorCode
from storage_copy.utils.folder_paths import managed_project_folder_path, project_folder_location

logger = logging.getLogger(__name__)


class CopyProjectFoldersService:
    """
    Decides whether the source project folder needs a remote copy.

    * inactive: nothing to copy, the result carries no id
    * manual: the folder is managed by users, the source id is carried over
    * automatic: the provider copies the folder into the target's managed path,
      either synchronously (id) or in the background (polling url)
    """

    def __init__(self, registry=PeripheralRegistry):
        self.registry = registry

    def call(self, source, target, storage) -> ServiceResult:
        mode = ProjectFolderMode(source.project_folder_mode)

        if mode == ProjectFolderMode.INACTIVE:
            return ServiceResult.ok(CopyTemplateFolderResult(id=None, requires_polling=False))

        if mode == ProjectFolderMode.MANUAL:
            return ServiceResult.ok(
                CopyTemplateFolderResult(id=source.project_folder_id, requires_polling=False)
            )

        with self.registry.get_provider(storage.provider_type) as provider:
            source_path = project_folder_location(storage, source, provider.addresses_folders_by_id)
            destination_path = managed_project_folder_path(storage, target)
            logger.info(f"📁 Copying project folder {source_path} -> {destination_path} on {storage.name}")

            result = provider.copy_template_folder().call(
                storage, source_path=source_path, destination_path=destination_path
            )
        if result.failure:
            return result

        folder_id = result.result.get("id")
        polling_url = result.result.get("url")
        return ServiceResult.ok(CopyTemplateFolderResult(
            id=folder_id,
            polling_url=polling_url,
            requires_polling=bool(polling_url and not folder_id),
        ))


class ProjectStorageService:
    """Updates the project folder of a project storage"""

    def __init__(self, repository=project_storage_repo):
        self.repository = repository

    async def update_project_folder(
        self, project_storage, storage, folder_id: Optional[str], mode
    ) -> ServiceResult:
        try:
            mode = ProjectFolderMode(mode)
        except ValueError:
            return ServiceResult.fail(
                StorageErrorCode.INVALID_ARGUMENT, message=f"Unknown project folder mode '{mode}'"
            )

        if mode == ProjectFolderMode.MANUAL and not (folder_id or "").strip():
            return ServiceResult.fail(
                StorageErrorCode.INVALID_ARGUMENT,
                message="A manually managed project folder needs a folder id",
            )
        if mode == ProjectFolderMode.AUTOMATIC and not storage.automatically_managed:
            return ServiceResult.fail(
                StorageErrorCode.INVALID_ARGUMENT,
                message=f"Storage {storage.name} does not manage project folders automatically",
            )

        updated = await self.repository.update_project_folder(project_storage, folder_id, mode)
        return ServiceResult.ok(updated)
