"""Store interfaces (repository pattern).

Stores must be swappable and return domain models. Issuance runs through
``run_transaction``: reads made via the transaction form its snapshot, writes
are staged, and the commit lands only if the work returned a successful
``IssuanceResult`` and no document read inside it changed meanwhile.
"""

from abc import ABC, abstractmethod
from typing import Callable, Optional

from models.buyer import Buyer
from models.event import Batch, Event
from models.purchase import IssuanceResult
from models.ticket import Ticket


class StoreTransaction(ABC):
    """Handle given to transactional work."""

    @abstractmethod
    def get_batch(self, batch_id: str) -> Optional[Batch]:
        """Read a batch as part of the transaction snapshot."""
        ...

    @abstractmethod
    def create_ticket(self, ticket: Ticket) -> None:
        """Stage creation of a new ticket document."""
        ...

    @abstractmethod
    def decrement_batch(self, batch_id: str) -> None:
        """Stage an atomic decrement of the batch quantity by one."""
        ...


class TicketingStore(ABC):
    """Interface for ticketing persistence operations."""

    @abstractmethod
    def new_ticket_id(self) -> str:
        """Return a fresh, store-style ticket identifier."""
        ...

    @abstractmethod
    def get_buyer(self, buyer_id: str) -> Optional[Buyer]:
        """Return a buyer by ID, or None if not found."""
        ...

    @abstractmethod
    def get_event(self, event_id: str) -> Optional[Event]:
        """Return an event by ID, or None if not found."""
        ...

    @abstractmethod
    def get_batch(self, batch_id: str) -> Optional[Batch]:
        """Return a batch by ID, or None if not found. Not transactional."""
        ...

    @abstractmethod
    def get_ticket(self, ticket_id: str) -> Optional[Ticket]:
        """Return a ticket by ID, or None if not found."""
        ...

    @abstractmethod
    def run_transaction(
        self, work: Callable[[StoreTransaction], IssuanceResult]
    ) -> IssuanceResult:
        """Run work once and commit its staged writes atomically.

        Raises:
            TransactionConflictError: A document read in the transaction
                changed before commit. Nothing was written.
            StoreUnavailableError: The store failed. Nothing was written.
        """
        ...

    @abstractmethod
    def mark_delivered(self, ticket_id: str) -> None:
        """Set the ticket delivery flag to true. Idempotent."""
        ...
