"""
Error taxonomy for the enrollment backend.

Every error raised by the gateway, the validator or the store inherits from
AppException and carries the HTTP status it maps to at the API boundary.
"""

from typing import Any, Dict, Iterable, Optional


class AppException(Exception):
    """
    Base exception for all application errors.

    Attributes:
        message: Human-readable error message
        code: Machine-readable error code
        status_code: HTTP status code for API responses
        details: Additional error details
    """

    def __init__(
        self,
        message: str,
        code: str = "ERROR",
        status_code: int = 400,
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to the failure body sent to callers."""
        result = {
            "success": False,
            "message": self.message,
            "code": self.code,
        }
        if self.details:
            result["details"] = self.details
        return result


# === Capture agent errors ===

class AgentUnreachable(AppException):
    def __init__(self, message: str = "Fingerprint capture agent is not running"):
        super().__init__(message=message, code="AGENT_UNREACHABLE", status_code=503)


class AgentTimeout(AppException):
    def __init__(self, timeout: float):
        super().__init__(
            message=f"Fingerprint capture agent did not respond within {timeout:g}s",
            code="AGENT_TIMEOUT",
            status_code=503,
            details={"timeout": timeout}
        )


class AgentError(AppException):
    def __init__(self, message: str = "The fingerprint capture agent reported an error", status: Optional[int] = None):
        details = {"agent_status": status} if status is not None else {}
        super().__init__(message=message, code="AGENT_ERROR", status_code=500, details=details)


# === Input errors ===

class InvalidRequest(AppException):
    def __init__(self, message: str = "Incomplete request data", field: Optional[str] = None):
        details = {"field": field} if field else {}
        super().__init__(message=message, code="INVALID_REQUEST", status_code=400, details=details)


class IncompletePayload(AppException):
    """Agent data is missing one or more required template or image slots."""

    def __init__(self, missing: Iterable[str], code: str = "INCOMPLETE_PAYLOAD"):
        missing = sorted(missing)
        super().__init__(
            message="Data received from the capture agent is incomplete",
            code=code,
            status_code=400,
            details={"missing": missing}
        )
        self.missing = missing


class PayloadRejected(IncompletePayload):
    """Raised by the store when handed a payload that never passed validation."""

    def __init__(self, missing: Iterable[str]):
        super().__init__(missing, code="PAYLOAD_REJECTED")
        self.message = "Enrollment payload rejected: required slots are missing"
        self.args = (self.message,)


# === Storage errors ===

class DuplicateIdentity(AppException):
    def __init__(self, id_number: str):
        super().__init__(
            message=f"ID number {id_number} is already registered",
            code="DUPLICATE_IDENTITY",
            status_code=409,
            details={"id_number": id_number}
        )
        self.id_number = id_number


class IdentityNotFound(AppException):
    def __init__(self, identity_id: int):
        super().__init__(
            message=f"Identity {identity_id} not found",
            code="NOT_FOUND",
            status_code=404
        )


class StorageUnavailable(AppException):
    def __init__(self, operation: Optional[str] = None):
        details = {"operation": operation} if operation else {}
        super().__init__(
            message="A server error occurred while accessing enrollment data",
            code="STORAGE_UNAVAILABLE",
            status_code=500,
            details=details
        )
