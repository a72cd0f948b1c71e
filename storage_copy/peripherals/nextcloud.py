"""
Nextcloud peripherals (WebDAV + OCS).

Nextcloud copies synchronously: a WebDAV COPY answers once the folder exists,
the new folder id is read back with a PROPFIND.
"""

from typing import Dict, List, Optional, Tuple
from urllib.parse import quote, unquote, urlparse
import logging
import xml.etree.ElementTree as ET

from storage_copy.peripherals.base import (
    CopyTemplateFolderCommand,
    FilesInfoQuery,
    FolderFilesFileIdsDeepQuery,
    ParentFolder,
    StorageProvider,
    failure_for_status,
)
from storage_copy.schemas.enums import ProviderType
from storage_copy.schemas.results import ServiceResult, StorageErrorCode, StorageFileInfo
from storage_copy.utils.crypto import decrypt_token

logger = logging.getLogger(__name__)

DAV_NS = "{DAV:}"
OC_NS = "{http://owncloud.org/ns}"

FILEID_PROPFIND_BODY = (
    '<?xml version="1.0"?>'
    '<d:propfind xmlns:d="DAV:" xmlns:oc="http://owncloud.org/ns">'
    "<d:prop><oc:fileid/></d:prop>"
    "</d:propfind>"
)


def _auth(storage) -> Tuple[str, str]:
    return storage.username, decrypt_token(storage.token_ciphertext)


def _dav_root(storage) -> str:
    return f"{storage.host.rstrip('/')}/remote.php/dav/files/{quote(storage.username)}"


def _dav_url(storage, path: str) -> str:
    return _dav_root(storage) + quote("/" + path.strip("/"))


def _parse_file_ids(storage, body: bytes) -> Dict[str, str]:
    """Multistatus response -> {absolute path: fileid}, paths relative to the user's home."""
    dav_prefix = unquote(urlparse(_dav_root(storage)).path)
    file_ids: Dict[str, str] = {}
    for response in ET.fromstring(body).iter(f"{DAV_NS}response"):
        href = unquote(response.findtext(f"{DAV_NS}href", default=""))
        file_id = response.findtext(f".//{OC_NS}fileid")
        if not file_id:
            continue
        path = href[len(dav_prefix):] if href.startswith(dav_prefix) else href
        file_ids[path or "/"] = file_id
    return file_ids


class NextcloudCopyTemplateFolderCommand(CopyTemplateFolderCommand):

    def copy(self, storage, source_path: str, destination_path: str) -> ServiceResult:
        response = self.session.request(
            "COPY",
            _dav_url(storage, source_path),
            headers={"Destination": _dav_url(storage, destination_path), "Overwrite": "F"},
            auth=_auth(storage),
            timeout=self.timeout,
        )
        if response.status_code not in (201, 204):
            return self._failure(response.status_code)

        folder_id = self._folder_id(storage, destination_path)
        if folder_id is None:
            return ServiceResult.fail(
                StorageErrorCode.ERROR,
                log_message=f"Copied folder {destination_path} has no file id",
            )
        return ServiceResult.ok({"id": folder_id, "url": None})

    def _folder_id(self, storage, path: str) -> Optional[str]:
        response = self.session.request(
            "PROPFIND",
            _dav_url(storage, path),
            data=FILEID_PROPFIND_BODY,
            headers={"Depth": "0", "Content-Type": "application/xml"},
            auth=_auth(storage),
            timeout=self.timeout,
        )
        if response.status_code != 207:
            logger.warning(f"⚠️ PROPFIND on {path} answered {response.status_code}")
            return None
        file_ids = _parse_file_ids(storage, response.content)
        return next(iter(file_ids.values()), None)

    @staticmethod
    def _failure(status_code: int) -> ServiceResult:
        # 412: "Overwrite: F" refused because the destination exists
        if status_code == 412:
            status_code = 409
        return failure_for_status(
            status_code,
            not_found_message="Template folder not found",
            conflict_message="The copy would overwrite an already existing folder",
        )


class NextcloudFolderFilesFileIdsDeepQuery(FolderFilesFileIdsDeepQuery):

    def call(self, storage, folder: ParentFolder) -> ServiceResult:
        response = self.session.request(
            "PROPFIND",
            _dav_url(storage, folder.location),
            data=FILEID_PROPFIND_BODY,
            headers={"Depth": "infinity", "Content-Type": "application/xml"},
            auth=_auth(storage),
            timeout=self.timeout,
        )
        if response.status_code != 207:
            return failure_for_status(response.status_code, not_found_message="Folder not found")

        file_ids = _parse_file_ids(storage, response.content)
        folder_path = "/" + folder.location.strip("/")
        return ServiceResult.ok({
            path: file_id for path, file_id in file_ids.items()
            if path.rstrip("/") != folder_path.rstrip("/")
        })


class NextcloudFilesInfoQuery(FilesInfoQuery):
    """Uses the OCS files info endpoint of the integration app on the Nextcloud side."""

    def call(self, storage, user_id: str, file_ids: List[str]) -> ServiceResult:
        if not file_ids:
            return ServiceResult.ok([])

        response = self.session.post(
            f"{storage.host.rstrip('/')}/ocs/v1.php/apps/integration_openproject/filesinfo",
            json={"fileIds": list(file_ids)},
            headers={"OCS-APIRequest": "true", "Accept": "application/json"},
            auth=_auth(storage),
            timeout=self.timeout,
        )
        if response.status_code != 200:
            return failure_for_status(response.status_code)

        data = response.json().get("ocs", {}).get("data", {}) or {}
        infos: List[StorageFileInfo] = []
        for file_id in file_ids:
            entry = data.get(str(file_id)) or {}
            status_code = int(entry.get("statuscode", 404))
            path = entry.get("path")
            infos.append(StorageFileInfo(
                id=str(file_id),
                name=entry.get("name"),
                location=("/" + path.strip("/")) if path else None,
                status=entry.get("status", "Not Found"),
                status_code=status_code,
            ))
        return ServiceResult.ok(infos)


class NextcloudProvider(StorageProvider):
    provider_type = ProviderType.NEXTCLOUD

    copy_template_folder_command = NextcloudCopyTemplateFolderCommand
    folder_files_file_ids_deep_query = NextcloudFolderFilesFileIdsDeepQuery
    files_info_query = NextcloudFilesInfoQuery
