"""
Depot Exception Hierarchy.

Defines the custom exceptions used across the Depot service. Expected
protocol branches (conflict, not found) are modelled as result values and
never raised; these exceptions cover invalid input inside collaborators and
genuinely unexpected failures.
"""

from typing import Any


class DepotError(Exception):
    """
    Base exception for all Depot errors.

    All custom exceptions inherit from this class, allowing
    generic catch blocks and consistent error handling.
    """

    def __init__(self, message: str, *, details: dict[str, Any] | None = None):
        """
        Initialize a DepotError.

        Args:
            message: Human-readable error message
            details: Optional structured data for debugging
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        """Return string representation with details."""
        base = self.message
        if self.details:
            details_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"{base} ({details_str})"
        return base

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for serialization."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "details": self.details,
        }


class ConfigurationError(DepotError):
    """
    Raised when the service configuration is invalid.

    Detected once at start-up so a misconfigured process never serves requests.
    """

    def __init__(
        self,
        message: str,
        *,
        setting: str | None = None,
        value: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        details = details or {}
        if setting:
            details["setting"] = setting
        if value is not None:
            details["value"] = value

        super().__init__(message, details=details)
        self.setting = setting
        self.value = value


class InvalidPackageError(DepotError):
    """
    Raised by the package reader when an artifact cannot be parsed.

    Covers archives that are not zip files, missing or duplicate manifests,
    and manifests without a usable id or version.
    """

    def __init__(self, message: str, *, reason: str | None = None, **kwargs):
        details = kwargs.pop("details", {}) or {}
        if reason:
            details["reason"] = reason
        super().__init__(message, details=details)
        self.reason = reason


class PackageStorageError(DepotError):
    """Raised when an artifact cannot be written to or removed from storage."""

    def __init__(
        self,
        message: str,
        *,
        package_id: str | None = None,
        version: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        details = details or {}
        if package_id:
            details["package_id"] = package_id
        if version:
            details["version"] = version

        super().__init__(message, details=details)
        self.package_id = package_id
        self.version = version


class UploadCancelledError(DepotError):
    """Raised when a request's cancellation token fires mid-operation."""

    def __init__(self, message: str = "Operation was cancelled", **kwargs):
        super().__init__(message, **kwargs)


class UploadTooLargeError(DepotError):
    """Raised when a streamed upload exceeds the configured maximum size."""

    def __init__(self, limit: int, received: int):
        super().__init__(
            "Upload exceeds maximum allowed size",
            details={"limit": limit, "received": received},
        )
        self.limit = limit
        self.received = received


class MalformedUploadError(DepotError):
    """Raised when an upload body cannot be decoded, such as a broken multipart form."""
