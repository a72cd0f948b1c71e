from enum import Enum

class ProviderType(str, Enum):
    NEXTCLOUD = "nextcloud"
    ONE_DRIVE = "one_drive"

class ProjectFolderMode(str, Enum):
    INACTIVE = "inactive"
    MANUAL = "manual"
    AUTOMATIC = "automatic"

class PollingStatus(str, Enum):
    ONGOING = "ongoing"
    COMPLETED = "completed"

class CopyItemStatus(str, Enum):
    QUEUED = "queued"
    INITIATING = "initiating"
    POLLING = "polling"
    FINALIZING = "finalizing"
    DONE = "done"
    FAILED = "failed"

class CopyOperationStatus(str, Enum):
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"

class JobOutcomeStatus(str, Enum):
    COMPLETED = "completed"
    POLLING_REQUIRED = "polling_required"
    FAILED = "failed"
    DISCARDED = "discarded"
    BUSY = "busy"


TERMINAL_ITEM_STATUSES = {CopyItemStatus.DONE, CopyItemStatus.FAILED}
