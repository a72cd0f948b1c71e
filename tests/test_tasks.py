from datetime import timedelta

import pytest

from fakes import FakeCopyOperationRepository
from storage_copy import tasks
from storage_copy.errors import PollingRequired
from storage_copy.schemas.enums import CopyOperationStatus, JobOutcomeStatus
from storage_copy.schemas.messages import JobOutcome
from storage_copy.schemas.results import FileLinkCopyOutcome
from storage_copy.services.copy_operations import CopyOperationService
from storage_copy.utils.date_utils import get_now

TASK_KWARGS = {
    "operation_id": "op-1",
    "source_id": "ps-source",
    "target_id": "ps-target",
    "work_packages_map": {"10": 20},
    "user_id": "user-1",
}


@pytest.fixture
def sent_tasks(monkeypatch):
    async def _noop():
        return None

    sent = []
    monkeypatch.setattr(tasks, "init_db", _noop)
    monkeypatch.setattr(tasks, "close_db", _noop)
    monkeypatch.setattr(tasks.celery_app, "send_task", lambda name, kwargs=None: sent.append((name, kwargs)))
    return sent


def _job_returning(monkeypatch, outcome):
    performed = []

    class DummyJob:
        async def perform(self, request):
            performed.append(request)
            return outcome

    monkeypatch.setattr(tasks, "CopyProjectFoldersJob", DummyJob)
    return performed


def test_polling_required_reschedules(monkeypatch, sent_tasks):
    performed = _job_returning(monkeypatch, JobOutcome(
        item_id="op-1:ps-source", status=JobOutcomeStatus.POLLING_REQUIRED, countdown=3
    ))

    with pytest.raises(PollingRequired) as excinfo:
        tasks.copy_project_folders_task(**TASK_KWARGS)

    assert excinfo.value.countdown == 3
    assert performed[0].work_packages_map == {"10": 20}
    assert sent_tasks == []


def test_busy_reschedules(monkeypatch, sent_tasks):
    _job_returning(monkeypatch, JobOutcome(item_id="op-1:ps-source", status=JobOutcomeStatus.BUSY, countdown=3))

    with pytest.raises(PollingRequired):
        tasks.copy_project_folders_task(**TASK_KWARGS)


def test_discarded_finishes_without_retry(monkeypatch, sent_tasks):
    _job_returning(monkeypatch, JobOutcome(
        item_id="op-1:ps-source", status=JobOutcomeStatus.DISCARDED, error="connection reset"
    ))

    result = tasks.copy_project_folders_task(**TASK_KWARGS)

    assert result["status"] == "discarded"
    assert result["error"] == "connection reset"


def test_completed_summary_and_completion_callback(monkeypatch, sent_tasks):
    repository = FakeCopyOperationRepository()
    repository.add_item()
    operation = repository.operations["op-1"]
    operation.status = CopyOperationStatus.COMPLETED
    operation.on_finish_task = "projects.copy_finished"
    monkeypatch.setattr(tasks, "copy_operation_service", CopyOperationService(repository=repository))
    _job_returning(monkeypatch, JobOutcome(
        item_id="op-1:ps-source",
        status=JobOutcomeStatus.COMPLETED,
        project_folder_id="copied-folder",
        operation_closed=True,
        file_links=[
            FileLinkCopyOutcome(source_file_link_id="a", source_container_id=10, target_container_id=20, success=True),
            FileLinkCopyOutcome(source_file_link_id="b", source_container_id=10, success=False, error="locked"),
        ],
    ))

    result = tasks.copy_project_folders_task(**TASK_KWARGS)

    assert result["project_folder_id"] == "copied-folder"
    assert result["file_links_copied"] == 1
    assert result["file_links_failed"] == 1
    assert sent_tasks == [("projects.copy_finished", {"operation_id": "op-1", "status": "completed"})]
    assert operation.callback_sent is True

    # A second closing outcome does not send the callback again
    tasks.copy_project_folders_task(**TASK_KWARGS)
    assert len(sent_tasks) == 1


def test_cleanup_task_deletes_old_operations(monkeypatch, sent_tasks):
    repository = FakeCopyOperationRepository()
    repository.add_item(operation_id="old")
    repository.add_item(operation_id="running")
    old = repository.operations["old"]
    old.status = CopyOperationStatus.COMPLETED
    old.finished_at = get_now() - timedelta(days=40)
    monkeypatch.setattr(tasks, "copy_operation_service", CopyOperationService(repository=repository))

    deleted = tasks.cleanup_old_copy_operations_task(days_old=30)

    assert deleted == 1
    assert set(repository.operations) == {"running"}
    assert all(item.operation_id == "running" for item in repository.items.values())


def test_pending_callbacks_task_sends_missed_callbacks(monkeypatch, sent_tasks):
    repository = FakeCopyOperationRepository()
    repository.add_item()
    operation = repository.operations["op-1"]
    operation.status = CopyOperationStatus.FAILED
    operation.on_finish_task = "projects.copy_finished"
    monkeypatch.setattr(tasks, "copy_operation_service", CopyOperationService(repository=repository))

    sent = tasks.send_pending_copy_callbacks_task()

    assert sent == 1
    assert sent_tasks == [("projects.copy_finished", {"operation_id": "op-1", "status": "failed"})]
    assert tasks.send_pending_copy_callbacks_task() == 0
