"""In-process TicketingStore for local runs and tests.

Mirrors the DynamoDB store's commit rules: under one lock the commit checks
that every ticket id is new and that each decremented batch still has enough
quantity, otherwise it raises TransactionConflictError and writes nothing.
"""

from __future__ import annotations

import threading
import uuid
from collections import Counter
from typing import Callable, Dict, List, Optional, Set

from models.buyer import Buyer
from models.event import Batch, Event
from models.purchase import IssuanceResult
from models.ticket import Ticket
from models.timestamp import Timestamp
from repositories.interfaces import StoreTransaction, TicketingStore
from utils.error_handling import NotFoundError, TransactionConflictError


class _MemoryTransaction(StoreTransaction):
    def __init__(self, store: "InMemoryTicketStore"):
        self._store = store
        self.observed: Set[str] = set()
        self.tickets: List[Ticket] = []
        self.decrements: Counter = Counter()

    def get_batch(self, batch_id: str) -> Optional[Batch]:
        self.observed.add(batch_id)
        return self._store.get_batch(batch_id)

    def create_ticket(self, ticket: Ticket) -> None:
        self.tickets.append(ticket)

    def decrement_batch(self, batch_id: str) -> None:
        if batch_id not in self.observed:
            raise ValueError("batch must be read in the transaction before it is decremented")
        self.decrements[batch_id] += 1


class InMemoryTicketStore(TicketingStore):
    """Dictionary-backed store guarded by a single lock."""

    def __init__(self, clock: Callable[[], Timestamp] = Timestamp.now):
        self._lock = threading.Lock()
        self._clock = clock
        self._docs: Dict[str, Dict[str, object]] = {
            "buyers": {},
            "events": {},
            "batches": {},
            "tickets": {},
        }

    # Seeding helpers (admin-side writes, outside the issuance flow).

    def put_buyer(self, buyer: Buyer) -> None:
        self._put("buyers", buyer.id, buyer)

    def put_event(self, event: Event) -> None:
        self._put("events", event.id, event)

    def put_batch(self, batch: Batch) -> None:
        self._put("batches", batch.id, batch)

    def _put(self, kind: str, doc_id: str, doc: object) -> None:
        with self._lock:
            self._docs[kind][doc_id] = doc

    def _read(self, kind: str, doc_id: str) -> Optional[object]:
        with self._lock:
            doc = self._docs[kind].get(doc_id)
        return doc.model_copy() if doc is not None else None

    # TicketingStore

    def new_ticket_id(self) -> str:
        return uuid.uuid4().hex

    def get_buyer(self, buyer_id: str) -> Optional[Buyer]:
        return self._read("buyers", buyer_id)

    def get_event(self, event_id: str) -> Optional[Event]:
        return self._read("events", event_id)

    def get_batch(self, batch_id: str) -> Optional[Batch]:
        return self._read("batches", batch_id)

    def get_ticket(self, ticket_id: str) -> Optional[Ticket]:
        return self._read("tickets", ticket_id)

    def list_tickets(self, batch_id: Optional[str] = None) -> List[Ticket]:
        with self._lock:
            tickets = list(self._docs["tickets"].values())
        return [t for t in tickets if batch_id is None or t.batch_id == batch_id]

    def run_transaction(
        self, work: Callable[[StoreTransaction], IssuanceResult]
    ) -> IssuanceResult:
        txn = _MemoryTransaction(self)
        result = work(txn)
        if not result.ok:
            return result

        with self._lock:
            for ticket in txn.tickets:
                if ticket.id in self._docs["tickets"]:
                    raise TransactionConflictError()
            for batch_id, count in txn.decrements.items():
                batch = self._docs["batches"].get(batch_id)
                if batch is None or batch.quantity < count:
                    raise TransactionConflictError()

            purchased_at = self._clock()
            for ticket in txn.tickets:
                self._docs["tickets"][ticket.id] = ticket.model_copy(
                    update={"purchased_at": purchased_at}
                )
            for batch_id, count in txn.decrements.items():
                batch = self._docs["batches"][batch_id]
                self._docs["batches"][batch_id] = batch.model_copy(
                    update={"quantity": batch.quantity - count}
                )

        ticket = result.ticket
        if ticket is not None:
            ticket = ticket.model_copy(update={"purchased_at": purchased_at})
        return IssuanceResult.success(ticket)

    def mark_delivered(self, ticket_id: str) -> None:
        with self._lock:
            ticket = self._docs["tickets"].get(ticket_id)
            if ticket is None:
                raise NotFoundError("Ticket not found", missing=["ticket"])
            if not ticket.delivered:
                self._docs["tickets"][ticket_id] = ticket.model_copy(update={"delivered": True})
