import asyncio

from fakes import FakeProjectStorageRepository, make_storage
from storage_copy.schemas.enums import ProjectFolderMode
from storage_copy.schemas.results import ServiceResult, StorageErrorCode
from storage_copy.services.project_folders import CopyProjectFoldersService, ProjectStorageService


def test_inactive_source_copies_nothing(registry, provider, source, target, storage):
    source.project_folder_mode = ProjectFolderMode.INACTIVE

    result = CopyProjectFoldersService(registry=registry).call(source, target, storage)

    assert result.success
    assert result.result.id is None
    assert result.result.requires_polling is False
    assert provider.remote_calls == 0


def test_manual_source_keeps_its_folder_id(registry, provider, source, target, storage):
    source.project_folder_mode = ProjectFolderMode.MANUAL
    source.project_folder_id = "manual-folder"

    result = CopyProjectFoldersService(registry=registry).call(source, target, storage)

    assert result.result.id == "manual-folder"
    assert result.result.requires_polling is False
    assert provider.remote_calls == 0


def test_automatic_source_copies_into_managed_path(registry, provider, source, target, storage):
    result = CopyProjectFoldersService(registry=registry).call(source, target, storage)

    assert result.result.id == "copied-folder"
    assert result.result.requires_polling is False
    (args, kwargs), = provider.copy.calls
    assert args == (storage,)
    assert kwargs == {
        "source_path": "/Projects/Template (1)/",
        "destination_path": "/Projects/Copy of Template (2)/",
    }


def test_automatic_source_with_background_copy_requires_polling(registry, provider, source, target, storage):
    provider.addresses_folders_by_id = True
    provider.copy.results = [ServiceResult.ok({"id": None, "url": "https://monitor/1"})]

    result = CopyProjectFoldersService(registry=registry).call(source, target, storage)

    assert result.result.requires_polling is True
    assert result.result.polling_url == "https://monitor/1"
    assert provider.copy.calls[0][1]["source_path"] == "folder-source"


def test_copy_failure_is_passed_through(registry, provider, source, target, storage):
    provider.copy.results = [ServiceResult.fail(StorageErrorCode.CONFLICT, message="exists")]

    result = CopyProjectFoldersService(registry=registry).call(source, target, storage)

    assert result.failure
    assert result.errors.code == StorageErrorCode.CONFLICT


def test_update_project_folder_sets_id_and_mode(target, storage):
    repository = FakeProjectStorageRepository(storages=[storage], project_storages=[target])

    result = asyncio.run(ProjectStorageService(repository=repository).update_project_folder(
        target, storage, "copied-folder", ProjectFolderMode.AUTOMATIC
    ))

    assert result.success
    assert target.project_folder_id == "copied-folder"
    assert target.project_folder_mode == ProjectFolderMode.AUTOMATIC


def test_update_project_folder_validation(target):
    repository = FakeProjectStorageRepository(project_storages=[target])
    service = ProjectStorageService(repository=repository)
    unmanaged = make_storage(automatically_managed=False)

    async def _run():
        return [
            await service.update_project_folder(target, unmanaged, "x", "bogus"),
            await service.update_project_folder(target, unmanaged, " ", ProjectFolderMode.MANUAL),
            await service.update_project_folder(target, unmanaged, "x", ProjectFolderMode.AUTOMATIC),
        ]

    results = asyncio.run(_run())

    assert all(r.errors.code == StorageErrorCode.INVALID_ARGUMENT for r in results)
    assert repository.updates == []


def test_update_project_folder_inactive_allows_empty_id(target, storage):
    repository = FakeProjectStorageRepository(project_storages=[target])

    result = asyncio.run(ProjectStorageService(repository=repository).update_project_folder(
        target, storage, None, "inactive"
    ))

    assert result.success
    assert repository.updates == [("ps-target", None, ProjectFolderMode.INACTIVE)]


def test_provider_is_closed_after_the_copy(registry, provider, source, target, storage):
    CopyProjectFoldersService(registry=registry).call(source, target, storage)

    assert provider.closed == 1
