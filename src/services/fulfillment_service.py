"""
Fulfillment dispatcher.

Delivers the ticket artifact by email and records the delivery flag. The
consistency target is at-least-once email, at-most-once inventory change:
this module never touches batches and never deletes tickets. A ticket that
is already flagged as delivered is not re-sent; only the flag is re-asserted.
"""

from __future__ import annotations

from html import escape
from typing import Tuple

from models.buyer import Buyer
from models.event import Batch, Event
from models.purchase import FulfillmentResult, PurchaseSummary, TicketArtifact
from models.ticket import Ticket
from models.timestamp import UNSPECIFIED, format_timestamp
from repositories.interfaces import TicketingStore
from services.artifact_service import format_price
from services.mail_service import Mailer
from utils.error_handling import (
    STAGE_FULFILLMENT,
    DeliveryFailedError,
    NotFoundError,
    StoreUnavailableError,
)
from utils.logging_config import get_logger

logger = get_logger(__name__)


def build_summary(
    ticket: Ticket, buyer: Buyer, event: Event, tz_name: str = "America/Sao_Paulo"
) -> PurchaseSummary:
    """Summary from the ticket snapshot plus the event's date and venue."""
    return PurchaseSummary(
        ticket_id=ticket.id,
        event_title=ticket.event_title,
        event_date=format_timestamp(event.starts_at, tz_name),
        venue=event.venue or UNSPECIFIED,
        batch_name=ticket.batch_name,
        price=format_price(ticket.price),
        buyer_name=buyer.name,
        buyer_email=buyer.email,
    )


def render_email(summary: PurchaseSummary, brand: str = "EventFlow") -> Tuple[str, str]:
    """Subject and HTML body of the ticket email."""
    subject = f"Your ticket for {summary.event_title}"
    body = f"""
        <p>Hello, {escape(summary.buyer_name)}!</p>
        <p>Your ticket for <b>{escape(summary.event_title)}</b> is confirmed.</p>
        <p>Date: {escape(summary.event_date)}<br>
        Batch: {escape(summary.batch_name)}<br>
        Price: {escape(summary.price)}<br>
        Venue: {escape(summary.venue)}<br>
        ID: {escape(summary.ticket_id)}</p>
        <p>The ticket PDF is attached. Show the QR code at the event entrance.</p>
        <p>Thank you for using {escape(brand)}!</p>
    """
    return subject, body


class FulfillmentDispatcher:
    """Sends ticket emails and flips the delivery flag."""

    def __init__(
        self,
        store: TicketingStore,
        mailer: Mailer,
        display_timezone: str = "America/Sao_Paulo",
        brand: str = "EventFlow",
    ):
        self.store = store
        self.mailer = mailer
        self.display_timezone = display_timezone
        self.brand = brand

    def dispatch(
        self,
        ticket: Ticket,
        buyer: Buyer,
        event: Event,
        batch: Batch,
        artifact: TicketArtifact,
    ) -> FulfillmentResult:
        """Deliver the artifact to the buyer and record delivery.

        Raises:
            DeliveryFailedError: The mail hand-off failed; the ticket stays
                undelivered and can be retried later.
            StoreUnavailableError: Mail went out but the flag could not be
                recorded, including when the ticket vanished meanwhile
                (stage "fulfillment").
        """
        if ticket.delivered:
            return self.confirm_delivered(ticket)

        if not buyer.email:
            raise DeliveryFailedError("Buyer has no email address")

        summary = build_summary(ticket, buyer, event, self.display_timezone)
        subject, body = render_email(summary, self.brand)
        message_id = self.mailer.send(
            recipient=buyer.email,
            subject=subject,
            html_body=body,
            attachment=artifact.pdf,
            filename=artifact.filename,
        )
        logger.info(
            "Ticket email handed off",
            extra={"ticket_id": ticket.id, "batch_id": batch.id, "message_id": message_id},
        )

        self._mark_delivered(ticket.id)
        return FulfillmentResult(ticket_id=ticket.id, status="delivered", message_id=message_id)

    def confirm_delivered(self, ticket: Ticket) -> FulfillmentResult:
        """Re-assert the flag of an already delivered ticket without re-sending."""
        self._mark_delivered(ticket.id)
        logger.info("Ticket already delivered, skipping send", extra={"ticket_id": ticket.id})
        return FulfillmentResult(ticket_id=ticket.id, status="already_delivered")

    def _mark_delivered(self, ticket_id: str) -> None:
        try:
            self.store.mark_delivered(ticket_id)
        except (StoreUnavailableError, NotFoundError) as exc:
            logger.error("Delivery flag not recorded", extra={"ticket_id": ticket_id})
            raise StoreUnavailableError(
                "Delivery flag could not be recorded",
                stage=STAGE_FULFILLMENT,
            ) from exc
