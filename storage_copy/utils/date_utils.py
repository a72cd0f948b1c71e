from datetime import datetime
from zoneinfo import ZoneInfo
from storage_copy.config import settings

def get_now() -> datetime:
    """
    Returns the current datetime in the configured timezone.
    """
    return datetime.now(ZoneInfo(settings.TIMEZONE))


def log_line(message: str) -> str:
    """Format a line for the per-item log, same layout the console shows."""
    return f"[{get_now().time()}] {message}"
