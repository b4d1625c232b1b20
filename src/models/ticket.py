"""Ticket models."""

from decimal import Decimal
from enum import Enum
from typing import Any, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from models.buyer import Buyer
from models.event import Batch, Event
from models.timestamp import Timestamp


class TicketStatus(str, Enum):
    """Lifecycle states of an issued ticket."""

    ACTIVE = "active"


class Ticket(BaseModel):
    """Issued ticket with a snapshot of the event/batch at purchase time."""

    id: str
    buyer_id: str
    event_id: str
    batch_id: str
    status: TicketStatus = TicketStatus.ACTIVE
    purchased_at: Timestamp = Field(default_factory=Timestamp.pending)
    delivered: bool = False

    event_title: str
    batch_name: str
    price: Decimal

    @field_validator("purchased_at", mode="before")
    @classmethod
    def parse_purchased_at(cls, value: Any) -> Timestamp:
        return Timestamp.parse(value) or Timestamp.pending()

    @classmethod
    def issue(cls, ticket_id: str, buyer: Buyer, event: Event, batch: Batch) -> "Ticket":
        """Build a new active, undelivered ticket with a pending purchase time."""
        return cls(
            id=ticket_id,
            buyer_id=buyer.id,
            event_id=event.id,
            batch_id=batch.id,
            event_title=event.title,
            batch_name=batch.name,
            price=batch.price,
        )


class PurchaseRequest(BaseModel):
    """Inbound purchase payload (POST /tickets/purchase and /tickets/issue).

    Fields stay optional here; presence is checked by the service so that a
    missing id surfaces as INVALID_INPUT instead of a schema error.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    buyer_id: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("buyer_id", "usuarioID")
    )
    event_id: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("event_id", "eventoID")
    )
    batch_id: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("batch_id", "loteID")
    )
