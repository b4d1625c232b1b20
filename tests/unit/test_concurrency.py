"""
Concurrent purchase tests: no oversell, atomicity and the last-unit race.

Threads share one InMemoryTicketStore, which applies the same optimistic
commit check as the DynamoDB store.

Run with: pytest tests/unit/test_concurrency.py -v
"""

import threading
import time
from concurrent.futures import ThreadPoolExecutor
from decimal import Decimal

import pytest

from models.buyer import Buyer
from models.event import Batch
from services.issuance_service import TicketIssuanceService
from services.purchase_service import PurchaseService
from utils.error_handling import InventoryExhaustedError
from utils.settings import RuntimeSettings


def _race(store, buyers):
    """Fire one issuance per buyer at the same moment with the production retry policy."""
    settings = RuntimeSettings()
    service = TicketIssuanceService(
        store,
        max_attempts=settings.issuance_max_attempts,
        backoff_seconds=settings.issuance_backoff_seconds,
        backoff_cap_seconds=settings.issuance_backoff_cap_seconds,
    )
    barrier = threading.Barrier(len(buyers))

    def buy(buyer_id):
        barrier.wait()
        try:
            return service.issue(buyer_id, "event-1", "batch-1")
        except InventoryExhaustedError as exc:
            return exc

    with ThreadPoolExecutor(max_workers=len(buyers)) as pool:
        return list(pool.map(buy, buyers))


@pytest.mark.parametrize("quantity,extra", [(1, 1), (5, 3), (10, 10), (60, 5)])
def test_no_oversell(store, quantity, extra):
    store.put_batch(Batch(id="batch-1", name="Lote", price=Decimal("50"), quantity=quantity))
    buyers = []
    for i in range(quantity + extra):
        store.put_buyer(Buyer(id=f"buyer-{i}", name=f"Buyer {i}", email=f"b{i}@example.com"))
        buyers.append(f"buyer-{i}")

    results = _race(store, buyers)

    issued = [r for r in results if not isinstance(r, Exception)]
    exhausted = [r for r in results if isinstance(r, InventoryExhaustedError)]
    assert len(issued) == quantity
    assert len(exhausted) == extra
    assert store.get_batch("batch-1").quantity == 0
    assert len(store.list_tickets("batch-1")) == quantity
    assert len({r.ticket.id for r in issued}) == quantity


def test_no_oversell_with_slow_reads(store):
    """Reads that overlap many commits still sell out exactly, within the default retries."""
    store.put_batch(Batch(id="batch-1", name="Lote", price=Decimal("50"), quantity=60))
    buyers = []
    for i in range(65):
        store.put_buyer(Buyer(id=f"buyer-{i}", email=f"b{i}@example.com"))
        buyers.append(f"buyer-{i}")
    real_get_batch = store.get_batch

    def slow_get_batch(batch_id):
        batch = real_get_batch(batch_id)
        time.sleep(0.01)
        return batch

    store.get_batch = slow_get_batch

    results = _race(store, buyers)

    assert sum(not isinstance(r, Exception) for r in results) == 60
    assert sum(isinstance(r, InventoryExhaustedError) for r in results) == 5
    assert real_get_batch("batch-1").quantity == 0


def test_tickets_plus_remaining_equals_original(store):
    store.put_batch(Batch(id="batch-1", name="Lote", price=Decimal("50"), quantity=7))
    buyers = []
    for i in range(4):
        store.put_buyer(Buyer(id=f"buyer-{i}", email=f"b{i}@example.com"))
        buyers.append(f"buyer-{i}")

    _race(store, buyers)

    assert len(store.list_tickets("batch-1")) + store.get_batch("batch-1").quantity == 7


def test_two_buyers_race_for_last_unit(store, mailer):
    """One buyer gets the ticket delivered, the other is told it is sold out."""
    store.put_batch(Batch(id="batch-1", name="Lote", price=Decimal("50"), quantity=1))
    store.put_buyer(Buyer(id="buyer-2", name="Bruno", email="bruno@example.com"))
    purchase = PurchaseService(store, mailer, RuntimeSettings())
    barrier = threading.Barrier(2)

    def buy(buyer_id):
        barrier.wait()
        try:
            return purchase.issue_and_fulfill(buyer_id, "event-1", "batch-1")
        except InventoryExhaustedError as exc:
            return exc

    with ThreadPoolExecutor(max_workers=2) as pool:
        results = list(pool.map(buy, ["buyer-1", "buyer-2"]))

    outcomes = [r for r in results if not isinstance(r, Exception)]
    errors = [r for r in results if isinstance(r, InventoryExhaustedError)]
    assert len(outcomes) == 1
    assert len(errors) == 1
    assert outcomes[0].status == "completed"
    assert store.get_ticket(outcomes[0].ticket_id).delivered is True
    assert store.get_batch("batch-1").quantity == 0
    assert len(mailer.sent) == 1
