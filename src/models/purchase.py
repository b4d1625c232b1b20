"""Results passed between issuance, fulfillment and the HTTP layer."""

from dataclasses import dataclass
from typing import Literal, Optional

from pydantic import BaseModel

from models.buyer import Buyer
from models.event import Batch, Event
from models.ticket import Ticket
from utils.error_handling import AppError


@dataclass(frozen=True)
class IssuanceResult:
    """Outcome of the transactional work: a ticket or the error that aborts it."""

    ticket: Optional[Ticket] = None
    error: Optional[AppError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, ticket: Ticket) -> "IssuanceResult":
        return cls(ticket=ticket)

    @classmethod
    def failure(cls, error: AppError) -> "IssuanceResult":
        return cls(error=error)


@dataclass(frozen=True)
class IssuedTicket:
    """A committed ticket together with the records it was issued from."""

    ticket: Ticket
    buyer: Buyer
    event: Event
    batch: Batch


@dataclass(frozen=True)
class TicketArtifact:
    """Printable ticket document."""

    pdf: bytes
    qr_payload: str
    filename: str


class FulfillmentResult(BaseModel):
    """Outcome of a delivery attempt."""

    ticket_id: str
    status: Literal["delivered", "already_delivered"]
    message_id: Optional[str] = None


class PurchaseSummary(BaseModel):
    """Human-readable summary of an issued ticket."""

    ticket_id: str
    event_title: str
    event_date: str
    venue: str
    batch_name: str
    price: str
    buyer_name: str
    buyer_email: Optional[str] = None


class ErrorInfo(BaseModel):
    """Serializable view of an AppError."""

    code: str
    message: str
    stage: str

    @classmethod
    def from_error(cls, error: AppError) -> "ErrorInfo":
        return cls(code=error.code, message=error.message, stage=error.stage)


class PurchaseOutcome(BaseModel):
    """Structured result of a purchase or fulfillment request.

    ``retry_scope`` tells the caller what is safe to retry: nothing, only the
    fulfillment step, or the whole purchase.
    """

    status: Literal["completed", "issued", "fulfillment_pending"]
    ticket_id: str
    summary: Optional[PurchaseSummary] = None
    delivered: bool = False
    retry_scope: Literal["none", "fulfillment", "purchase"] = "none"
    error: Optional[ErrorInfo] = None
