"""Pydantic models for records and API payloads."""

from models.buyer import Buyer  # noqa: F401
from models.event import Batch, Event  # noqa: F401
from models.purchase import (  # noqa: F401
    ErrorInfo,
    FulfillmentResult,
    IssuanceResult,
    IssuedTicket,
    PurchaseOutcome,
    PurchaseSummary,
    TicketArtifact,
)
from models.response import ApiResponse  # noqa: F401
from models.ticket import PurchaseRequest, Ticket, TicketStatus  # noqa: F401
from models.timestamp import Timestamp, TimestampKind, format_timestamp  # noqa: F401
