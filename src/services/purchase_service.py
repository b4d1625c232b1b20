"""
Purchase orchestration: issuance -> artifact -> delivery.

Issuance failures propagate as exceptions, meaning nothing happened and the
whole purchase may be retried. Once the ticket is committed the sale is
final: fulfillment failures come back as a ``fulfillment_pending`` outcome
carrying the ticket id, never as success and never as a rollback.
"""

from __future__ import annotations

from typing import Optional

from models.buyer import Buyer
from models.event import Batch, Event
from models.purchase import ErrorInfo, PurchaseOutcome, PurchaseSummary
from models.ticket import Ticket
from repositories.dynamodb_repo import DynamoDbTicketStore
from repositories.interfaces import TicketingStore
from repositories.memory_repo import InMemoryTicketStore
from services.artifact_service import TicketArtifactGenerator
from services.fulfillment_service import FulfillmentDispatcher, build_summary
from services.issuance_service import TicketIssuanceService
from services.mail_service import Mailer, build_mailer
from utils.error_handling import (
    STAGE_FULFILLMENT,
    ArtifactGenerationError,
    DeliveryFailedError,
    NotFoundError,
    StoreUnavailableError,
)
from utils.logging_config import get_logger
from utils.settings import RuntimeSettings
from utils.validators import ensure_present

logger = get_logger(__name__)

FULFILLMENT_ERRORS = (ArtifactGenerationError, DeliveryFailedError, StoreUnavailableError)
UNEXPECTED_FULFILLMENT_ERROR = ErrorInfo(
    code="FULFILLMENT_FAILED",
    message="Ticket issued but fulfillment did not complete",
    stage=STAGE_FULFILLMENT,
)


class PurchaseService:
    """Sequential orchestration of a ticket purchase."""

    def __init__(
        self,
        store: TicketingStore,
        mailer: Mailer,
        settings: Optional[RuntimeSettings] = None,
    ) -> None:
        settings = settings or RuntimeSettings()
        self.store = store
        self.display_timezone = settings.display_timezone
        self.issuance = TicketIssuanceService(
            store,
            max_attempts=settings.issuance_max_attempts,
            backoff_seconds=settings.issuance_backoff_seconds,
            backoff_cap_seconds=settings.issuance_backoff_cap_seconds,
        )
        self.generator = TicketArtifactGenerator(
            qr_prefix=settings.qr_prefix,
            display_timezone=settings.display_timezone,
            brand=settings.mail_sender_name,
        )
        self.dispatcher = FulfillmentDispatcher(
            store,
            mailer,
            display_timezone=settings.display_timezone,
            brand=settings.mail_sender_name,
        )

    def issue_and_fulfill(self, buyer_id: str, event_id: str, batch_id: str) -> PurchaseOutcome:
        """Issue a ticket, then generate and email its PDF."""
        issued = self.issuance.issue(buyer_id, event_id, batch_id)
        return self._fulfill(issued.ticket, issued.buyer, issued.event, issued.batch)

    def issue_only(self, buyer_id: str, event_id: str, batch_id: str) -> PurchaseOutcome:
        """Issue a ticket and return the data needed to deliver it elsewhere."""
        issued = self.issuance.issue(buyer_id, event_id, batch_id)
        return PurchaseOutcome(
            status="issued",
            ticket_id=issued.ticket.id,
            summary=self._summary(issued.ticket, issued.buyer, issued.event),
            delivered=False,
            retry_scope="none",
        )

    def retry_fulfillment(self, ticket_id: str) -> PurchaseOutcome:
        """Out-of-band fulfillment retry for an issued ticket.

        The artifact is rebuilt from the ticket snapshot, so later edits to
        the event title or batch name/price do not leak into it.
        """
        ticket_id = ensure_present(ticket_id, "ticket_id")
        ticket = self.store.get_ticket(ticket_id)
        if ticket is None:
            raise NotFoundError("Not found: ticket", missing=["ticket"])

        buyer = self.store.get_buyer(ticket.buyer_id)
        if buyer is None:
            raise NotFoundError("Not found: buyer", missing=["buyer"])

        event = self.store.get_event(ticket.event_id) or Event(id=ticket.event_id)
        event = event.model_copy(update={"title": ticket.event_title})
        batch = self.store.get_batch(ticket.batch_id) or Batch(id=ticket.batch_id)
        batch = batch.model_copy(update={"name": ticket.batch_name, "price": ticket.price})
        return self._fulfill(ticket, buyer, event, batch)

    def _summary(self, ticket: Ticket, buyer: Buyer, event: Event) -> Optional[PurchaseSummary]:
        # Runs after the commit, so a bad record must not hide the sale.
        try:
            return build_summary(ticket, buyer, event, self.display_timezone)
        except Exception:
            logger.exception("Purchase summary unavailable", extra={"ticket_id": ticket.id})
            return None

    def _fulfill(self, ticket: Ticket, buyer: Buyer, event: Event, batch: Batch) -> PurchaseOutcome:
        summary = self._summary(ticket, buyer, event)
        try:
            if ticket.delivered:
                self.dispatcher.confirm_delivered(ticket)
            else:
                artifact = self.generator.generate(buyer, event, batch, ticket.id)
                self.dispatcher.dispatch(ticket, buyer, event, batch, artifact)
        except FULFILLMENT_ERRORS as exc:
            logger.warning(
                "Fulfillment pending",
                extra={"ticket_id": ticket.id, "code": exc.code},
            )
            error = ErrorInfo.from_error(exc)
        except Exception:
            logger.exception("Fulfillment failed unexpectedly", extra={"ticket_id": ticket.id})
            error = UNEXPECTED_FULFILLMENT_ERROR
        else:
            return PurchaseOutcome(
                status="completed",
                ticket_id=ticket.id,
                summary=summary,
                delivered=True,
            )

        return PurchaseOutcome(
            status="fulfillment_pending",
            ticket_id=ticket.id,
            summary=summary,
            delivered=False,
            retry_scope="fulfillment",
            error=error,
        )


def build_store(settings: RuntimeSettings) -> TicketingStore:
    """Pick the store configured by STORE_BACKEND."""
    if settings.store_backend == "memory":
        logger.warning("STORE_BACKEND=memory; tickets are not persisted")
        return InMemoryTicketStore()
    return DynamoDbTicketStore(settings)


def build_purchase_service(settings: Optional[RuntimeSettings] = None) -> PurchaseService:
    settings = settings or RuntimeSettings.from_environment()
    return PurchaseService(build_store(settings), build_mailer(settings), settings)
