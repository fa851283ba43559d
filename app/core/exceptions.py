"""
Application exceptions

Report generation errors carry the HTTP status they map to and the stage
breadcrumb that was current when they were raised.
"""
from typing import Any, Dict, List, Optional


class StorageError(Exception):
    """Object storage operation failed"""


class ReportError(Exception):
    """Base error for report generation"""
    status_code = 500

    def __init__(self, message: str, stage: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.stage = stage if stage is not None else {}


class MissingFieldsError(ReportError):
    """Required request fields are absent"""
    status_code = 400

    def __init__(self, missing: List[str], stage: Optional[Dict[str, Any]] = None):
        super().__init__(f"Missing required fields: {', '.join(missing)}", stage)
        self.missing = missing


class ResourceNotFoundError(ReportError):
    """Referenced submission or mission does not exist"""
    status_code = 404


class ReportStorageError(ReportError):
    """Generated document could not be stored"""
    status_code = 500


class ReportPersistenceError(ReportError):
    """Report row could not be written"""
    status_code = 500


class EntityNotFoundError(LookupError):
    """A referenced row does not exist"""


class InvalidReferenceError(ValueError):
    """Request references ids that do not exist"""
