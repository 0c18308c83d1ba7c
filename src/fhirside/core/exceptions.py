"""
fhirside.core.exceptions - Custom Exception Hierarchy
=======================================================

This module defines a structured exception hierarchy for FhirSide.
Components raise specific exception types that carry contextual
information instead of bare strings.

Exception Hierarchy:
    FhirSideError (base)
        ├── ConfigurationError       - Invalid config, unreadable YAML
        ├── NotFoundError            - Unknown job, file or resource (→ 404)
        │     ├── ExportJobNotFoundError
        │     ├── ExportFileNotFoundError
        │     └── ResourceNotFoundError
        ├── DuplicateJobError        - Job id already registered
        ├── DuplicateArtifactError   - Artifact already written for a job
        ├── JobStateError            - Illegal export job transition
        ├── ExportExecutionError     - Fetch/encode failure in a background export
        └── InvalidResourceError     - Request body is not a usable record (→ 400)

Propagation Policy:
    Errors raised inside background export execution are NEVER surfaced to
    an HTTP caller. The orchestrator catches them at the task boundary and
    records the message on the job. Errors raised during synchronous gateway
    operations (lookup, delete, CRUD) are translated to HTTP status codes by
    the exception handlers registered in ``fhirside.api.app``.

Usage:
    >>> from fhirside.core.exceptions import ExportExecutionError
    >>> raise ExportExecutionError(
    ...     message="Failed to export Observation: store unavailable",
    ...     job_id="4f0c...",
    ...     resource_type="Observation",
    ... )
"""

from __future__ import annotations

from typing import Any, Optional


# =============================================================================
# Base Exception
# =============================================================================
# All FhirSide exceptions inherit from this base class so callers can catch
# every framework error with a single except clause.
# =============================================================================
class FhirSideError(Exception):
    """Base exception for all FhirSide errors.

    Attributes:
        message: Human-readable error description.
        error_code: Machine-readable error code, UPPER_SNAKE_CASE.
        details: Arbitrary dict with additional debugging context.

    Example:
        >>> try:
        ...     await orchestrator.delete_job(job_id)
        ... except FhirSideError as e:
        ...     print(f"[{e.error_code}] {e.message}")
    """

    def __init__(
        self,
        message: str,
        error_code: str = "UNKNOWN_ERROR",
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)

        self.message = message
        self.error_code = error_code
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Serialize this exception to a dictionary.

        Returns:
            Dictionary with error_type, message, error_code, and details.
        """
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "error_code": self.error_code,
            "details": self.details,
        }

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"error_code={self.error_code!r}, "
            f"details={self.details!r})"
        )


class ConfigurationError(FhirSideError):
    """Raised when FhirSide configuration is invalid or unreadable.

    This occurs during startup and should cause the application to fail
    fast with a clear message.
    """

    def __init__(
        self,
        message: str,
        error_code: str = "CONFIG_ERROR",
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message=message, error_code=error_code, details=details)


# =============================================================================
# Not Found Errors
# =============================================================================
# Every lookup miss that should become an HTTP 404. The gateway maps the base
# class, so new subclasses get the right status code automatically.
# =============================================================================
class NotFoundError(FhirSideError):
    """Raised when a requested entity does not exist."""

    def __init__(
        self,
        message: str,
        error_code: str = "NOT_FOUND",
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message=message, error_code=error_code, details=details)


class ExportJobNotFoundError(NotFoundError):
    """Raised when no export job is registered under the given id."""

    def __init__(self, job_id: str, message: str = "Export job not found") -> None:
        super().__init__(
            message=message,
            error_code="EXPORT_JOB_NOT_FOUND",
            details={"job_id": job_id},
        )
        self.job_id = job_id


class ExportFileNotFoundError(NotFoundError):
    """Raised when a job or one of its output files cannot be downloaded."""

    def __init__(self, job_id: str, file_name: str) -> None:
        super().__init__(
            message="Export file not found",
            error_code="EXPORT_FILE_NOT_FOUND",
            details={"job_id": job_id, "file_name": file_name},
        )
        self.job_id = job_id
        self.file_name = file_name


class ResourceNotFoundError(NotFoundError):
    """Raised when a resource id is unknown to its store."""

    def __init__(self, resource_type: str, resource_id: str) -> None:
        super().__init__(
            message=f"{resource_type}/{resource_id} not found",
            error_code="RESOURCE_NOT_FOUND",
            details={"resource_type": resource_type, "resource_id": resource_id},
        )
        self.resource_type = resource_type
        self.resource_id = resource_id


# =============================================================================
# Export Subsystem Errors
# =============================================================================
class DuplicateJobError(FhirSideError):
    """Raised when a job id is registered twice.

    Unreachable under uuid4 id generation; kept as a registry contract.
    """

    def __init__(self, job_id: str) -> None:
        super().__init__(
            message=f"Export job already registered: {job_id}",
            error_code="DUPLICATE_JOB",
            details={"job_id": job_id},
        )
        self.job_id = job_id


class DuplicateArtifactError(FhirSideError):
    """Raised when an artifact name is written twice for the same job."""

    def __init__(self, job_id: str, file_name: str) -> None:
        super().__init__(
            message=f"Artifact {file_name} already exists for job {job_id}",
            error_code="DUPLICATE_ARTIFACT",
            details={"job_id": job_id, "file_name": file_name},
        )
        self.job_id = job_id
        self.file_name = file_name


class JobStateError(FhirSideError):
    """Raised when an export job transition violates the state machine.

    Examples: completing a job that already failed, or appending a second
    output descriptor for the same resource type.
    """

    def __init__(
        self,
        message: str,
        job_id: str,
        error_code: str = "INVALID_JOB_TRANSITION",
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        enriched_details = details or {}
        enriched_details["job_id"] = job_id

        super().__init__(message=message, error_code=error_code, details=enriched_details)

        self.job_id = job_id


class ExportExecutionError(FhirSideError):
    """Raised when a background export cannot fetch or encode a category.

    This error never reaches an HTTP caller. The orchestrator records
    ``message`` on the job and the client sees it on the next status poll.

    Attributes:
        job_id: The export job that failed.
        resource_type: The category being processed, if the failure happened
            inside a category (None for timeouts and cancellation).
    """

    def __init__(
        self,
        message: str,
        job_id: str,
        resource_type: Optional[str] = None,
        error_code: str = "EXPORT_FAILED",
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        enriched_details = details or {}
        enriched_details["job_id"] = job_id
        if resource_type:
            enriched_details["resource_type"] = resource_type

        super().__init__(message=message, error_code=error_code, details=enriched_details)

        self.job_id = job_id
        self.resource_type = resource_type


class InvalidResourceError(FhirSideError):
    """Raised when a request body cannot be stored as the target resource."""

    def __init__(
        self,
        message: str,
        error_code: str = "INVALID_RESOURCE",
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message=message, error_code=error_code, details=details)
