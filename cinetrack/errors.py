"""
Error types for CineTrack.

This module defines the service-level exceptions:
- CineTrackError: Base exception
- DataIntegrityError: A stored record failed shape validation
- MutationError: A batched mutation failed and was not applied
- PartialMutationError: A batched mutation left documents in a mixed state
- InvalidGroupError: An action was invoked with an empty or malformed group
- NotFoundError, ValidationError: Catalog and request lookups/inputs
- AuthenticationError, AccessDeniedError: Session checks

Invariants:
    - All errors inherit from CineTrackError
    - Errors carry a stable code for programmatic handling
    - Error messages never include secrets
"""

from __future__ import annotations

from typing import Any


class CineTrackError(Exception):
    """Base exception for all CineTrack errors.

    Attributes:
        message: Error message
        code: Error code for programmatic handling
        details: Additional error context
    """

    def __init__(
        self,
        message: str,
        code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or "CINETRACK_ERROR"
        self.details = details or {}


class DataIntegrityError(CineTrackError):
    """A stored record could not be interpreted.

    Raised when:
    - The title is missing or empty
    - The request timestamp is missing or unparseable
    - A boolean field holds a non-boolean value
    """

    def __init__(
        self,
        message: str,
        doc_id: str | None = None,
        field_name: str | None = None,
    ) -> None:
        super().__init__(
            message,
            code="DATA_INTEGRITY",
            details={"doc_id": doc_id, "field": field_name},
        )
        self.doc_id = doc_id
        self.field_name = field_name


class MutationError(CineTrackError):
    """A batched mutation failed.

    The affected documents are left as they were before the call.
    """

    def __init__(
        self,
        message: str,
        operation: str,
        doc_ids: list[str] | None = None,
    ) -> None:
        super().__init__(
            message,
            code="MUTATION_FAILED",
            details={"operation": operation, "doc_ids": doc_ids or []},
        )
        self.operation = operation
        self.doc_ids = doc_ids or []


class PartialMutationError(MutationError):
    """A batched mutation partially applied and could not be rolled back.

    Attributes:
        applied_ids: Documents that were changed
        pending_ids: Documents that were not changed
    """

    def __init__(
        self,
        message: str,
        operation: str,
        applied_ids: list[str],
        pending_ids: list[str],
    ) -> None:
        super().__init__(message, operation, doc_ids=applied_ids + pending_ids)
        self.code = "PARTIAL_MUTATION"
        self.details["applied_ids"] = applied_ids
        self.details["pending_ids"] = pending_ids
        self.applied_ids = applied_ids
        self.pending_ids = pending_ids


class InvalidGroupError(CineTrackError):
    """An action was invoked with an empty or malformed request group."""

    def __init__(self, message: str, movie_title: str | None = None) -> None:
        super().__init__(
            message,
            code="INVALID_GROUP",
            details={"movie_title": movie_title},
        )
        self.movie_title = movie_title


class NotFoundError(CineTrackError):
    """Resource not found.

    Raised when:
    - A catalog entry doesn't exist
    - No request group exists for a title
    """

    def __init__(
        self,
        message: str,
        resource_type: str,
        resource_id: str,
    ) -> None:
        super().__init__(
            message,
            code="NOT_FOUND",
            details={
                "resource_type": resource_type,
                "resource_id": resource_id,
            },
        )
        self.resource_type = resource_type
        self.resource_id = resource_id


class ValidationError(CineTrackError):
    """Input validation failed."""

    def __init__(
        self,
        message: str,
        field_name: str | None = None,
        errors: list[str] | None = None,
    ) -> None:
        super().__init__(
            message,
            code="VALIDATION_ERROR",
            details={"field": field_name, "errors": errors or []},
        )
        self.field_name = field_name
        self.errors = errors or []


class AuthenticationError(CineTrackError):
    """Session is missing, expired, or credentials are wrong."""

    def __init__(self, message: str) -> None:
        super().__init__(message, code="UNAUTHENTICATED")


class AccessDeniedError(CineTrackError):
    """Session lacks the required role."""

    def __init__(self, message: str, subject: str, required_role: str) -> None:
        super().__init__(
            message,
            code="ACCESS_DENIED",
            details={"subject": subject, "required_role": required_role},
        )
        self.subject = subject
        self.required_role = required_role
