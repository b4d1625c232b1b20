"""Custom exceptions and helpers for consistent error responses.

Every error carries the stage it happened in and whether the sale already
went through, so callers can tell "nothing happened, retry the purchase"
apart from "ticket issued, retry fulfillment only".
"""

import json
from typing import Any, Dict, Iterable, Optional

STAGE_VALIDATION = "validation"
STAGE_ISSUANCE = "issuance"
STAGE_FULFILLMENT = "fulfillment"
STAGE_INFRASTRUCTURE = "infrastructure"


class AppError(Exception):
    """Base class for application errors."""

    code = "APP_ERROR"
    stage = STAGE_VALIDATION

    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.message = message
        self.status_code = status_code

    @property
    def sale_completed(self) -> bool:
        """True when the ticket was issued before this error was raised."""
        return self.stage == STAGE_FULFILLMENT

    @property
    def retry_scope(self) -> str:
        if self.sale_completed:
            return "fulfillment"
        return "none"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "stage": self.stage,
            "sale_completed": self.sale_completed,
            "retry_scope": self.retry_scope,
        }


class InvalidInputError(AppError):
    """Raised when identifiers are missing or malformed."""

    code = "INVALID_INPUT"

    def __init__(self, message: str = "Invalid input"):
        super().__init__(message, status_code=400)


class NotFoundError(AppError):
    """Raised when a requested resource is missing."""

    code = "NOT_FOUND"

    def __init__(self, message: str = "Resource not found", missing: Iterable[str] = ()):
        super().__init__(message, status_code=404)
        self.missing = tuple(missing)


class InventoryExhaustedError(AppError):
    """Raised when a batch has no tickets left."""

    code = "INVENTORY_EXHAUSTED"
    stage = STAGE_ISSUANCE

    def __init__(self, batch_id: str, message: str = "Tickets sold out for this batch"):
        super().__init__(message, status_code=409)
        self.batch_id = batch_id


class TransactionConflictError(AppError):
    """Raised when concurrent writers invalidated the transaction snapshot."""

    code = "TRANSACTION_CONFLICT"
    stage = STAGE_ISSUANCE

    def __init__(self, message: str = "Concurrent purchase in progress, try again"):
        super().__init__(message, status_code=409)

    @property
    def retry_scope(self) -> str:
        return "purchase"


class StoreUnavailableError(AppError):
    """Raised when the document store fails for infrastructure reasons."""

    code = "STORE_UNAVAILABLE"
    stage = STAGE_INFRASTRUCTURE

    def __init__(self, message: str = "Ticket store unavailable", stage: Optional[str] = None):
        super().__init__(message, status_code=503)
        if stage:
            self.stage = stage

    @property
    def retry_scope(self) -> str:
        if self.sale_completed:
            return "fulfillment"
        return "purchase"


class ArtifactGenerationError(AppError):
    """Raised when the ticket PDF or its QR code cannot be produced."""

    code = "ARTIFACT_GENERATION_FAILED"
    stage = STAGE_FULFILLMENT

    def __init__(self, message: str = "Could not generate ticket document"):
        super().__init__(message, status_code=502)


class DeliveryFailedError(AppError):
    """Raised when the mail collaborator rejects or times out."""

    code = "DELIVERY_FAILED"
    stage = STAGE_FULFILLMENT

    def __init__(self, message: str = "Could not deliver ticket email"):
        super().__init__(message, status_code=502)


def to_response(error: AppError, correlation_id: Optional[str] = None) -> Dict[str, Any]:
    """Convert an AppError into a Lambda proxy integration response."""
    return {
        "statusCode": error.status_code,
        "headers": {"Content-Type": "application/json"},
        "body": json.dumps(
            {
                "success": False,
                "message": error.message,
                "error": error.to_dict(),
                "correlation_id": correlation_id,
            }
        ),
    }
