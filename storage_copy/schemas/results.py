"""
Result envelopes shared by peripherals and services.

Expected failures (bad input, permission problems, conflicts on the remote side)
are returned as a failed ``ServiceResult`` instead of being raised.
"""

from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel


class StorageErrorCode(str, Enum):
    INVALID_ARGUMENT = "invalid_argument"
    UNAUTHORIZED = "unauthorized"
    FORBIDDEN = "forbidden"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    ERROR = "error"


class StorageError(BaseModel):
    code: StorageErrorCode
    log_message: Optional[str] = None
    data: Optional[Dict[str, Any]] = None


class ServiceResult(BaseModel):
    success: bool
    result: Any = None
    errors: Optional[StorageError] = None
    message: Optional[str] = None

    @property
    def failure(self) -> bool:
        return not self.success

    @classmethod
    def ok(cls, result: Any = None) -> "ServiceResult":
        return cls(success=True, result=result)

    @classmethod
    def fail(
        cls,
        code: StorageErrorCode,
        message: Optional[str] = None,
        log_message: Optional[str] = None,
        data: Optional[Dict[str, Any]] = None,
    ) -> "ServiceResult":
        return cls(
            success=False,
            result=code,
            message=message,
            errors=StorageError(code=code, log_message=log_message or message, data=data),
        )

    def describe(self) -> str:
        """Short human readable summary for logs."""
        if self.success:
            return "success"
        code = self.errors.code.value if self.errors else "error"
        detail = self.message or (self.errors.log_message if self.errors else None)
        return f"{code}: {detail}" if detail else code


class CopyTemplateFolderResult(BaseModel):
    id: Optional[str] = None
    polling_url: Optional[str] = None
    requires_polling: bool = False


class StorageFileInfo(BaseModel):
    id: str
    name: Optional[str] = None
    location: Optional[str] = None
    status: str = "ok"
    status_code: int = 200


class FileLinkCopyOutcome(BaseModel):
    source_file_link_id: Optional[str] = None
    source_container_id: int
    target_container_id: Optional[int] = None
    origin_id: Optional[str] = None
    success: bool
    error: Optional[str] = None
