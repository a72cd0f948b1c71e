"""
Duplicates the file links of copied work packages.

Only work packages named in the work package map are considered. For
automatically managed project folders the copied files got new ids on the
storage, so each link is re-pointed at the file found at the same relative
path below the target project folder.
"""

from typing import Dict, List, Optional
import asyncio
import logging

from storage_copy.peripherals.base import ParentFolder
from storage_copy.peripherals.registry import PeripheralRegistry
from storage_copy.repositories import file_link_repo
from storage_copy.schemas.enums import ProjectFolderMode
from storage_copy.schemas.results import FileLinkCopyOutcome
from storage_copy.utils.folder_paths import (
    managed_project_folder_path, project_folder_location, replace_path_prefix
)

logger = logging.getLogger(__name__)

CLONED_ATTRIBUTES = (
    "storage_id",
    "container_type",
    "origin_name",
    "origin_mime_type",
    "origin_created_by_name",
    "origin_last_modified_by_name",
    "origin_created_at",
    "origin_updated_at",
)


def normalize_work_packages_map(work_packages_map: Dict) -> Dict[int, int]:
    """Celery hands the map over as JSON, so keys arrive as strings."""
    return {int(key): int(value) for key, value in (work_packages_map or {}).items()}


class CopyFileLinksService:

    def __init__(self, registry=PeripheralRegistry, repository=file_link_repo):
        self.registry = registry
        self.repository = repository

    async def call(self, source, target, storage, user_id: str, work_packages_map: Dict) -> List[FileLinkCopyOutcome]:
        wp_map = normalize_work_packages_map(work_packages_map)
        if not wp_map:
            return []

        source_file_links = await self.repository.find_by_containers(wp_map.keys())
        if not source_file_links:
            return []

        location_map = None
        if ProjectFolderMode(source.project_folder_mode) == ProjectFolderMode.AUTOMATIC:
            # Storage calls are blocking, keep them off the event loop
            location_map = await asyncio.to_thread(
                self._build_location_map, source, target, storage, user_id, source_file_links
            )

        outcomes = []
        for source_link in source_file_links:
            # Without a location map the files were not moved and keep their ids
            origin_id = source_link.origin_id if location_map is None else location_map.get(source_link.origin_id)
            outcomes.append(await self._create_file_link(source_link, wp_map, origin_id, user_id))

        failed = sum(1 for outcome in outcomes if not outcome.success)
        logger.info(f"🔗 Copied {len(outcomes) - failed}/{len(outcomes)} file links to {target.id}")
        return outcomes

    async def _create_file_link(
        self, source_link, wp_map: Dict[int, int], origin_id: Optional[str], user_id: str
    ) -> FileLinkCopyOutcome:
        target_container_id = wp_map[source_link.container_id]
        attributes = {name: getattr(source_link, name) for name in CLONED_ATTRIBUTES}
        attributes.update(
            creator_id=user_id,
            container_id=target_container_id,
            origin_id=origin_id,
        )

        try:
            await self.repository.create(attributes)
        except Exception as e:
            logger.warning(f"⚠️ File link {source_link.id} could not be copied: {e}")
            return FileLinkCopyOutcome(
                source_file_link_id=source_link.id,
                source_container_id=source_link.container_id,
                target_container_id=target_container_id,
                origin_id=origin_id,
                success=False,
                error=str(e),
            )

        if origin_id is None:
            logger.warning(f"⚠️ No copied file found for file link {source_link.id} ({source_link.origin_name})")
        return FileLinkCopyOutcome(
            source_file_link_id=source_link.id,
            source_container_id=source_link.container_id,
            target_container_id=target_container_id,
            origin_id=origin_id,
            success=True,
        )

    def _build_location_map(self, source, target, storage, user_id: str, source_file_links) -> Dict[str, Optional[str]]:
        """Source origin id -> id of the file at the same place below the target project folder."""
        with self.registry.get_provider(storage.provider_type) as provider:
            return self._locate_copied_files(provider, source, target, storage, user_id, source_file_links)

    def _locate_copied_files(self, provider, source, target, storage, user_id: str, source_file_links):
        target_folder = project_folder_location(storage, target, provider.addresses_folders_by_id)
        if not target_folder:
            logger.error(f"❌ Project storage {target.id} has no project folder to look files up in")
            return {}

        target_files = provider.folder_files_file_ids_deep().call(storage, ParentFolder(location=target_folder))
        if target_files.failure:
            logger.error(f"❌ Listing target folder {target_folder} failed: {target_files.describe()}")
            return {}

        origin_ids = list(dict.fromkeys(link.origin_id for link in source_file_links if link.origin_id))
        source_files = provider.files_info().call(storage, user_id, origin_ids)
        if source_files.failure:
            logger.error(f"❌ Reading source file info failed: {source_files.describe()}")
            return {}

        source_prefix = managed_project_folder_path(storage, source)
        target_prefix = managed_project_folder_path(storage, target)

        location_map: Dict[str, Optional[str]] = {}
        for info in source_files.result:
            target_location = replace_path_prefix(info.location, source_prefix, target_prefix)
            location_map[info.id] = target_files.result.get(target_location) if target_location else None
        return location_map
