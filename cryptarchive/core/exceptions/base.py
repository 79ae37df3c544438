"""Core exception classes for cryptarchive."""

from typing import Any

from cryptarchive.core.exceptions.codes import ErrorCode


class ArchiveError(Exception):
    """Base exception for every recoverable archive failure."""

    def __init__(
        self,
        message: str,
        error_code: str = ErrorCode.GENERAL_ERROR.value,
        details: dict[str, Any] | None = None,
    ):
        """Initialise the exception.

        Args:
            message: human readable error message
            error_code: stable error code
            details: additional structured context
        """
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.details = details or {}

    def to_payload(self) -> dict[str, Any]:
        """Return a serializable payload representing the error."""

        return {
            "error": self.__class__.__name__,
            "error_code": self.error_code,
            "message": self.message,
            "details": dict(self.details),
        }


class UpstreamError(ArchiveError):
    """Transport, HTTP or API-level failure reported by the market-data source."""

    def __init__(
        self,
        message: str,
        endpoint: str | None = None,
        status_code: int | None = None,
        details: dict[str, Any] | None = None,
    ):
        super_details = details or {}
        if endpoint is not None:
            super_details["endpoint"] = endpoint
        if status_code is not None:
            super_details["status_code"] = status_code
        super().__init__(message, ErrorCode.UPSTREAM_ERROR.value, super_details)
        self.endpoint = endpoint
        self.status_code = status_code


class StoreError(ArchiveError):
    """Persistence read or write failure."""

    def __init__(
        self,
        message: str,
        operation: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        super_details = details or {}
        if operation:
            super_details["operation"] = operation
        super().__init__(message, ErrorCode.STORE_ERROR.value, super_details)
        self.operation = operation


class ExportError(ArchiveError):
    """Snapshot artifact could not be written."""

    def __init__(
        self,
        message: str,
        path: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        super_details = details or {}
        if path:
            super_details["path"] = path
        super().__init__(message, ErrorCode.EXPORT_ERROR.value, super_details)
        self.path = path
