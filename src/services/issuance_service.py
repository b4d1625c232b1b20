"""
Ticket issuance.

Creates a ticket and decrements its batch in one store transaction. The
availability decision is taken on the batch as read *inside* the transaction;
the pre-read done beforehand only produces NotFound errors and a cheap
sold-out fast path.
"""

from __future__ import annotations

import random
import time
from typing import Callable, Optional

from models.buyer import Buyer
from models.event import Batch, Event
from models.purchase import IssuanceResult, IssuedTicket
from models.ticket import Ticket
from repositories.interfaces import StoreTransaction, TicketingStore
from utils.error_handling import (
    InventoryExhaustedError,
    NotFoundError,
    TransactionConflictError,
)
from utils.logging_config import get_logger
from utils.validators import ensure_ids

logger = get_logger(__name__)


class TicketIssuanceService:
    """Atomic inventory decrement plus ticket creation."""

    def __init__(
        self,
        store: TicketingStore,
        max_attempts: int = 5,
        backoff_seconds: float = 0.05,
        backoff_cap_seconds: float = 1.0,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.store = store
        self.max_attempts = max(1, max_attempts)
        self.backoff_seconds = backoff_seconds
        self.backoff_cap_seconds = backoff_cap_seconds
        self._sleep = sleep

    def issue(self, buyer_id: str, event_id: str, batch_id: str) -> IssuedTicket:
        """Issue one ticket for the batch.

        Raises:
            InvalidInputError: An identifier is missing or blank.
            NotFoundError: Buyer, event or batch does not exist.
            InventoryExhaustedError: The batch has no tickets left.
            TransactionConflictError: Concurrent purchases kept invalidating
                the snapshot and the retry budget ran out.
            StoreUnavailableError: The store failed; nothing was written.
        """
        ids = ensure_ids(buyer_id=buyer_id, event_id=event_id, batch_id=batch_id)
        buyer, event, batch = self._load(ids["buyer_id"], ids["event_id"], ids["batch_id"])

        if batch.sold_out:
            logger.info("Batch sold out (pre-check)", extra={"batch_id": batch.id})
            raise InventoryExhaustedError(batch.id)

        for attempt in range(1, self.max_attempts + 1):
            ticket_id = self.store.new_ticket_id()
            try:
                result = self.store.run_transaction(
                    self._issuance_work(ticket_id, buyer, event, batch)
                )
            except TransactionConflictError:
                logger.warning(
                    "Issuance conflict, retrying",
                    extra={"batch_id": batch.id, "attempt": attempt},
                )
                if attempt < self.max_attempts:
                    self._sleep(self._backoff(attempt))
                continue

            if not result.ok:
                logger.info(
                    "Issuance rejected",
                    extra={"batch_id": batch.id, "code": result.error.code},
                )
                raise result.error

            logger.info(
                "Ticket issued",
                extra={"ticket_id": result.ticket.id, "batch_id": batch.id, "attempt": attempt},
            )
            return IssuedTicket(ticket=result.ticket, buyer=buyer, event=event, batch=batch)

        logger.error(
            "Issuance retries exhausted",
            extra={"batch_id": batch.id, "attempts": self.max_attempts},
        )
        latest = self.store.get_batch(batch.id)
        if latest is None or latest.sold_out:
            raise InventoryExhaustedError(batch.id)
        raise TransactionConflictError()

    def _load(self, buyer_id: str, event_id: str, batch_id: str):
        buyer: Optional[Buyer] = self.store.get_buyer(buyer_id)
        event: Optional[Event] = self.store.get_event(event_id)
        batch: Optional[Batch] = self.store.get_batch(batch_id)

        missing = [
            name
            for name, doc in (("buyer", buyer), ("event", event), ("batch", batch))
            if doc is None
        ]
        if missing:
            raise NotFoundError(f"Not found: {', '.join(missing)}", missing=missing)
        return buyer, event, batch

    @staticmethod
    def _issuance_work(
        ticket_id: str, buyer: Buyer, event: Event, batch: Batch
    ) -> Callable[[StoreTransaction], IssuanceResult]:
        def work(txn: StoreTransaction) -> IssuanceResult:
            current = txn.get_batch(batch.id)
            if current is None:
                return IssuanceResult.failure(
                    NotFoundError("Not found: batch", missing=["batch"])
                )
            if current.sold_out:
                return IssuanceResult.failure(InventoryExhaustedError(batch.id))

            # Snapshot uses the transactional read of the batch.
            ticket = Ticket.issue(ticket_id, buyer, event, current)
            txn.create_ticket(ticket)
            txn.decrement_batch(current.id)
            return IssuanceResult.success(ticket)

        return work

    def _backoff(self, attempt: int) -> float:
        delay = self.backoff_seconds * (2 ** (attempt - 1))
        delay += random.uniform(0, self.backoff_seconds)
        return min(delay, self.backoff_cap_seconds)
