"""
Location helpers for automatically managed project folders.

Every automatically managed project gets its own folder below the storage's
project folder root, named after the project: ``/<root>/<project name> (<project id>)/``.
"""

from typing import Optional

from storage_copy.schemas.enums import ProjectFolderMode


def managed_project_folder_name(project_storage) -> str:
    # "/" would create a nested folder on the remote side
    name = project_storage.project_name.replace("/", "|")
    return f"{name} ({project_storage.project_id})"


def managed_project_folder_path(storage, project_storage) -> str:
    root = storage.project_folder_root.strip("/")
    prefix = f"/{root}" if root else ""
    return f"{prefix}/{managed_project_folder_name(project_storage)}/"


def project_folder_location(storage, project_storage, addresses_folders_by_id: bool) -> Optional[str]:
    """
    Where the provider finds the project folder: its id for manually managed folders
    and for providers addressing items by id, the managed path otherwise.
    """
    if project_storage.project_folder_mode == ProjectFolderMode.MANUAL:
        return project_storage.project_folder_id
    if project_storage.project_folder_mode == ProjectFolderMode.INACTIVE:
        return None
    if addresses_folders_by_id:
        return project_storage.project_folder_id
    return managed_project_folder_path(storage, project_storage)


def replace_path_prefix(location: str, source_prefix: str, target_prefix: str) -> Optional[str]:
    """Swap the leading source folder path for the target one; None if outside the source folder."""
    if not location or not location.startswith(source_prefix):
        return None
    return target_prefix + location[len(source_prefix):]
