"""
Base exception classes for application-wide error handling.

This module provides a standardized exception hierarchy that enables:
- Consistent error responses across the API
- Machine-readable error codes for client handling
- An HTTP status and retry hint carried by every error

Exception Hierarchy:
    BaseApplicationError (base)
    ├── ValidationError - Input validation failures (400)
    ├── NotFoundError - Resource not found (404)
    ├── PermissionDeniedError - Authorization failures (403)
    ├── ConflictError - State conflicts, concurrent modifications (409)
    ├── ExternalServiceError - Third-party service failures (502)
    └── PersistenceError - Database commit failures (503, retryable)

Usage:
    from core.exceptions import NotFoundError, ValidationError

    raise ValidationError("Amount must be positive", error_code="INVALID_AMOUNT")

    raise NotFoundError(
        "Campaign not found",
        error_code="CAMPAIGN_NOT_FOUND",
        details={"campaign_id": str(campaign_id)},
    )

    # In a view
    try:
        ...
    except BaseApplicationError as e:
        return Response(e.to_dict(), status=e.http_status)

Note:
    These exceptions are for domain/business logic errors.
    DRF handles API-layer exceptions (serialization, authentication, etc.).
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from typing import Any


class BaseApplicationError(Exception):
    """
    Base exception for all application-specific errors.

    Attributes:
        message: Human-readable error description
        error_code: Machine-readable code for client-side handling
        details: Additional error context (field errors, identifiers, etc.)
        http_status: Status code the API layer answers with
        is_retryable: Whether the caller may safely retry the same request

    Example:
        try:
            ConfirmationReconciler.confirm(payment_intent_id)
        except NotFoundError as e:
            logger.warning(f"Donation not found: {e.error_code}")
            return Response(e.to_dict(), status=e.http_status)
    """

    default_error_code: str = "APPLICATION_ERROR"
    http_status: int = 400
    is_retryable: bool = False

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        """
        Initialize the exception.

        Args:
            message: Human-readable error description
            error_code: Machine-readable error code (defaults to class default)
            details: Additional error context
        """
        self.message = message
        self.error_code = error_code or self.default_error_code
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """
        Convert exception to dictionary for API response.

        Returns:
            Dict with error, error_code, and details keys

        Example:
            {
                "error": "Donation not found",
                "error_code": "DONATION_NOT_FOUND",
                "details": {"payment_intent_id": "pi_123"}
            }
        """
        result: dict[str, Any] = {
            "error": self.message,
            "error_code": self.error_code,
        }
        if self.details:
            result["details"] = self.details
        if self.is_retryable:
            result["retryable"] = True
        return result

    def __str__(self) -> str:
        """Return string representation with error code."""
        return f"[{self.error_code}] {self.message}"

    def __repr__(self) -> str:
        """Return detailed representation for debugging."""
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"error_code={self.error_code!r}, "
            f"details={self.details!r})"
        )


class ValidationError(BaseApplicationError):
    """
    Raised when input validation fails in the service layer.

    Use for business rule violations that serializers cannot express,
    such as a non-positive donation amount reaching a service directly.

    Note:
        For DRF serializer validation, use DRF's built-in validation.
    """

    default_error_code: str = "VALIDATION_ERROR"
    http_status: int = 400


class NotFoundError(BaseApplicationError):
    """
    Raised when a requested resource is not found.

    Example:
        donation = Donation.objects.filter(stripe_payment_intent_id=pi_id).first()
        if not donation:
            raise NotFoundError(
                f"No donation for {pi_id}",
                error_code="DONATION_NOT_FOUND",
                details={"payment_intent_id": pi_id},
            )
    """

    default_error_code: str = "NOT_FOUND"
    http_status: int = 404


class PermissionDeniedError(BaseApplicationError):
    """
    Raised when a user lacks permission for an operation.

    Note:
        For authentication failures (missing/invalid token), use DRF's
        AuthenticationFailed. Use this for authorization failures.
    """

    default_error_code: str = "PERMISSION_DENIED"
    http_status: int = 403


class ConflictError(BaseApplicationError):
    """
    Raised when an operation conflicts with current resource state.

    Use for:
    - Duplicate entries (unique constraint violations)
    - Concurrent modification conflicts
    - Invalid state transitions

    Note:
        HTTP 409 Conflict is the appropriate status for these errors.
    """

    default_error_code: str = "CONFLICT"
    http_status: int = 409


class ExternalServiceError(BaseApplicationError):
    """
    Raised when an external service call fails.

    Use for:
    - Third-party API failures (Stripe)
    - Network timeouts
    - External service unavailability

    Note:
        Log the original error for debugging but don't expose
        internal details to clients in production.
    """

    default_error_code: str = "EXTERNAL_SERVICE_ERROR"
    http_status: int = 502


class PersistenceError(BaseApplicationError):
    """
    Raised when a database write cannot be committed.

    The surrounding transaction has been rolled back, so no partial
    state is visible and the whole operation can be retried.

    Example:
        try:
            with transaction.atomic():
                ...
        except DatabaseError as e:
            raise PersistenceError(
                "Could not commit ledger update",
                details={"error": str(e)},
            ) from e
    """

    default_error_code: str = "PERSISTENCE_ERROR"
    http_status: int = 503
    is_retryable: bool = True
