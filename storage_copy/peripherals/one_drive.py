"""
OneDrive / SharePoint peripherals (Microsoft Graph).

Graph addresses drive items by id, copies run in the background and are
reported through a monitor url returned in the ``Location`` header.
"""

from typing import Dict, List, Optional
from urllib.parse import unquote
import logging

from storage_copy.peripherals.base import (
    CopyTemplateFolderCommand,
    FilesInfoQuery,
    FolderFilesFileIdsDeepQuery,
    ParentFolder,
    StorageProvider,
    failure_for_status,
)
from storage_copy.schemas.enums import ProviderType
from storage_copy.schemas.results import ServiceResult, StorageFileInfo
from storage_copy.utils.crypto import decrypt_token

logger = logging.getLogger(__name__)

GRAPH_HOST = "https://graph.microsoft.com"


def _drive_url(storage) -> str:
    host = (storage.host or GRAPH_HOST).rstrip("/")
    return f"{host}/v1.0/drives/{storage.drive_id}"


def _headers(storage) -> Dict[str, str]:
    return {"Authorization": f"Bearer {decrypt_token(storage.token_ciphertext)}"}


def _parent_location(item: dict) -> str:
    """'/drives/<id>/root:/Projects/Demo (1)' -> '/Projects/Demo (1)'"""
    path = (item.get("parentReference") or {}).get("path") or ""
    _, _, relative = path.partition("root:")
    return unquote(relative).rstrip("/")


class OneDriveCopyTemplateFolderCommand(CopyTemplateFolderCommand):

    def copy(self, storage, source_path: str, destination_path: str) -> ServiceResult:
        # source_path is the template folder item id, the copy lands next to it
        destination_name = destination_path.strip("/").rsplit("/", 1)[-1]
        url = f"{_drive_url(storage)}/items/{source_path}/copy?@microsoft.graph.conflictBehavior=fail"

        response = self.session.post(
            url,
            json={"name": destination_name},
            headers=_headers(storage),
            timeout=self.timeout,
        )
        return self._handle_response(response)

    @staticmethod
    def _handle_response(response) -> ServiceResult:
        if response.status_code == 202:
            return ServiceResult.ok({"id": None, "url": response.headers.get("Location")})
        return failure_for_status(
            response.status_code,
            not_found_message="Template folder not found",
            conflict_message="The copy would overwrite an already existing folder",
        )


class OneDriveFolderFilesFileIdsDeepQuery(FolderFilesFileIdsDeepQuery):

    def call(self, storage, folder: ParentFolder) -> ServiceResult:
        if folder.is_root:
            start = f"{_drive_url(storage)}/root/children"
        else:
            start = f"{_drive_url(storage)}/items/{folder.location}/children"

        file_ids: Dict[str, str] = {}
        pending = [start]
        while pending:
            url: Optional[str] = pending.pop()
            while url:
                response = self.session.get(url, headers=_headers(storage), timeout=self.timeout)
                if response.status_code != 200:
                    return failure_for_status(response.status_code, not_found_message="Folder not found")

                payload = response.json()
                for item in payload.get("value", []):
                    location = f"{_parent_location(item)}/{item['name']}"
                    file_ids[location] = item["id"]
                    if "folder" in item:
                        pending.append(f"{_drive_url(storage)}/items/{item['id']}/children")
                url = payload.get("@odata.nextLink")

        return ServiceResult.ok(file_ids)


class OneDriveFilesInfoQuery(FilesInfoQuery):

    def call(self, storage, user_id: str, file_ids: List[str]) -> ServiceResult:
        infos: List[StorageFileInfo] = []
        for file_id in file_ids:
            response = self.session.get(
                f"{_drive_url(storage)}/items/{file_id}?$select=id,name,parentReference",
                headers=_headers(storage),
                timeout=self.timeout,
            )
            if response.status_code in (401, 403):
                return failure_for_status(response.status_code)
            if response.status_code != 200:
                logger.warning(f"⚠️ File info for {file_id} failed with status {response.status_code}")
                infos.append(StorageFileInfo(id=file_id, status="error", status_code=response.status_code))
                continue

            item = response.json()
            infos.append(StorageFileInfo(
                id=item["id"],
                name=item.get("name"),
                location=f"{_parent_location(item)}/{item.get('name')}",
            ))
        return ServiceResult.ok(infos)


class OneDriveProvider(StorageProvider):
    provider_type = ProviderType.ONE_DRIVE
    addresses_folders_by_id = True

    copy_template_folder_command = OneDriveCopyTemplateFolderCommand
    folder_files_file_ids_deep_query = OneDriveFolderFilesFileIdsDeepQuery
    files_info_query = OneDriveFilesInfoQuery
