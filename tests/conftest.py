"""
Pytest configuration and shared fixtures.

Settings are read at import time, so the environment is prepared before any
storage_copy module gets imported.
"""

import os

from cryptography.fernet import Fernet

os.environ.setdefault("MONGO_URI", "mongodb://localhost:27017")
os.environ.setdefault("TOKEN_ENC_KEY", Fernet.generate_key().decode())
os.environ.setdefault("POLLING_INTERVAL_SECONDS", "3")

import pytest

from fakes import (
    FakeCopyOperationRepository,
    FakeFileLinkRepository,
    FakeProjectStorageRepository,
    FakeProvider,
    FakeRegistry,
    make_project_storage,
    make_storage,
)
from storage_copy.schemas.enums import ProjectFolderMode


@pytest.fixture
def storage():
    return make_storage()


@pytest.fixture
def source(storage):
    return make_project_storage(
        "ps-source", project_id=1, project_name="Template", storage=storage,
        mode=ProjectFolderMode.AUTOMATIC, folder_id="folder-source",
    )


@pytest.fixture
def target(storage):
    return make_project_storage("ps-target", project_id=2, project_name="Copy of Template", storage=storage)


@pytest.fixture
def provider():
    return FakeProvider()


@pytest.fixture
def registry(provider):
    return FakeRegistry(provider)


@pytest.fixture
def project_storages(storage, source, target):
    return FakeProjectStorageRepository(storages=[storage], project_storages=[source, target])


@pytest.fixture
def file_links():
    return FakeFileLinkRepository()


@pytest.fixture
def operations():
    return FakeCopyOperationRepository()
