class StorageCopyError(Exception):
    """Base class for copy orchestration errors."""


class PollingRequired(StorageCopyError):
    """
    Raised towards Celery to reschedule a job item whose remote copy is still running.
    The task is retried after ``countdown`` seconds, without an attempt limit.
    """
    def __init__(self, message: str, countdown: int):
        self.countdown = countdown
        super().__init__(message)


class InvalidTransition(StorageCopyError):
    """Raised when a copy job item status transition is not allowed."""
    def __init__(self, item_id: str, from_status: str, to_status: str):
        self.item_id = item_id
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(
            f"Invalid state transition for copy item {item_id}: "
            f"Cannot move from '{from_status}' to '{to_status}'."
        )
