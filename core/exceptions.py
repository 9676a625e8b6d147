"""
Error taxonomy for the messaging and alert-dispatch core.

Every failing operation raises one of these with a stable error code, so
callers (UI shell, record-management collaborators) can branch on the kind
of failure instead of parsing messages.
"""

from datetime import UTC, datetime
from typing import Any


class RpmsError(Exception):
    """Base exception for the patient monitoring core."""

    error_code: str = "RPMS_ERROR"

    def __init__(
        self,
        detail: str,
        *,
        error_code: str | None = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        self.detail = detail
        if error_code is not None:
            self.error_code = error_code
        self.context = context or {}
        self.timestamp = datetime.now(UTC)
        super().__init__(detail)

    def __str__(self) -> str:
        cause = self.__cause__
        if cause is None:
            return f"[{self.error_code}] {self.detail}"
        return f"[{self.error_code}] {self.detail}, cause: {cause}"


class InvalidInputError(RpmsError):
    """A required field was empty, missing or of the wrong type."""

    error_code = "INVALID_INPUT"


class InvalidStateError(RpmsError):
    """The operation does not make sense in the current state."""

    error_code = "INVALID_STATE"


class DeliveryError(RpmsError):
    """A notification channel failed to deliver."""

    error_code = "DELIVERY_ERROR"


class InvalidDeliveryError(InvalidInputError, DeliveryError):
    """A delivery was rejected before reaching the transport (empty address, subject or body)."""

    error_code = "INVALID_DELIVERY"
