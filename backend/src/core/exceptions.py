"""
Domain errors raised by the booking services.

Services raise these instead of HTTP errors so the same logic can run from
request handlers, the population job and scripts. The API layer maps them to
JSON responses in main.py.
"""

from typing import Any, Dict, Optional

from fastapi import status


class BookingError(Exception):
    """Base error for booking and availability operations."""

    def __init__(
        self,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        code: str = "booking_error",
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.status_code = status_code
        self.code = code
        self.details = details or {}
        super().__init__(self.message)


class NotFoundError(BookingError):
    """Unknown provider, payer, service instance or appointment."""

    def __init__(self, resource: str, identifier: Optional[Any] = None):
        message = f"{resource} not found"
        if identifier is not None:
            message += f" (id: {identifier})"
        super().__init__(
            message=message,
            status_code=status.HTTP_404_NOT_FOUND,
            code="not_found",
            details={"resource": resource, "id": identifier},
        )


class ConflictError(BookingError):
    """The requested slot was taken between browsing and commit."""

    def __init__(self, message: str = "Slot no longer available", details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            status_code=status.HTTP_409_CONFLICT,
            code="slot_conflict",
            details=details,
        )


class NotBookableError(BookingError):
    """The provider cannot be booked under the requested payer."""

    def __init__(self, provider_id: int, payer_id: int):
        super().__init__(
            message=f"Provider {provider_id} is not bookable for payer {payer_id}",
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            code="not_bookable",
            details={"provider_id": provider_id, "payer_id": payer_id},
        )


class StoreUnavailableError(BookingError):
    """Underlying persistence failure. Read paths may retry; writes never do."""

    retryable = True

    def __init__(self, message: str = "Booking data store unavailable", details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            code="store_unavailable",
            details=details,
        )


class DataIntegrityWarning(UserWarning):
    """Overlapping contracts or supervision rows resolved by tie-break. Logged only."""
