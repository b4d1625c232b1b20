"""
Ticket issuance transaction tests against the in-memory store.

Run with: pytest tests/unit/test_issuance_service.py -v
"""

from decimal import Decimal
from unittest.mock import MagicMock

import pytest

from models.event import Batch
from models.purchase import IssuanceResult
from repositories.memory_repo import InMemoryTicketStore
from services.issuance_service import TicketIssuanceService
from utils.error_handling import (
    InvalidInputError,
    InventoryExhaustedError,
    NotFoundError,
    StoreUnavailableError,
    TransactionConflictError,
)


def _service(store, **kwargs) -> TicketIssuanceService:
    kwargs.setdefault("sleep", lambda seconds: None)
    return TicketIssuanceService(store, **kwargs)


class TestIssue:
    def test_issue_creates_ticket_and_decrements(self, store):
        issued = _service(store).issue("buyer-1", "event-1", "batch-1")

        ticket = issued.ticket
        assert ticket.status.value == "active"
        assert ticket.delivered is False
        assert not ticket.purchased_at.is_pending
        assert ticket.event_title == "Rock in Rio"
        assert ticket.batch_name == "Lote 1"
        assert ticket.price == Decimal("150")
        assert store.get_batch("batch-1").quantity == 2
        assert store.get_ticket(ticket.id) == ticket

    def test_issue_strips_identifiers(self, store):
        issued = _service(store).issue(" buyer-1 ", "event-1", "batch-1 ")
        assert issued.ticket.buyer_id == "buyer-1"

    @pytest.mark.parametrize("ids", [
        ("", "event-1", "batch-1"),
        ("buyer-1", None, "batch-1"),
        ("buyer-1", "event-1", "   "),
        ("buyer-1", "event-1", 42),
    ])
    def test_invalid_input_touches_nothing(self, ids):
        store = MagicMock()
        with pytest.raises(InvalidInputError):
            _service(store).issue(*ids)
        store.get_buyer.assert_not_called()
        store.run_transaction.assert_not_called()

    def test_not_found_lists_missing_documents(self, store):
        with pytest.raises(NotFoundError) as exc_info:
            _service(store).issue("nobody", "event-1", "no-batch")
        assert exc_info.value.missing == ("buyer", "batch")
        assert store.list_tickets() == []

    def test_pre_check_rejects_sold_out_without_transaction(self, buyer, event):
        store = InMemoryTicketStore()
        store.put_buyer(buyer)
        store.put_event(event)
        store.put_batch(Batch(id="batch-1", name="Lote", price=Decimal("10"), quantity=0))
        store.run_transaction = MagicMock()

        with pytest.raises(InventoryExhaustedError):
            _service(store).issue("buyer-1", "event-1", "batch-1")
        store.run_transaction.assert_not_called()

    def test_decision_uses_transactional_read(self, store):
        """A stale pre-read showing stock must not let the purchase through."""
        real_get_batch = store.get_batch
        # Pre-read sees 3 left; the authoritative read inside the transaction sees 0.
        store.put_batch(Batch(id="batch-1", name="Lote 1", price=Decimal("150"), quantity=0))
        store.get_batch = MagicMock(
            return_value=Batch(id="batch-1", name="Lote 1", price=Decimal("150"), quantity=3)
        )

        with pytest.raises(InventoryExhaustedError):
            _service(store).issue("buyer-1", "event-1", "batch-1")

        assert real_get_batch("batch-1").quantity == 0
        assert store.list_tickets() == []

    def test_sells_last_unit_then_exhausts(self, store):
        service = _service(store)
        for _ in range(3):
            service.issue("buyer-1", "event-1", "batch-1")

        with pytest.raises(InventoryExhaustedError):
            service.issue("buyer-1", "event-1", "batch-1")

        assert store.get_batch("batch-1").quantity == 0
        assert len(store.list_tickets("batch-1")) == 3


def _interleave_sale(store, remaining):
    """Wrap run_transaction so another buyer commits between our read and our commit."""
    calls = {"n": 0}
    real_run = store.run_transaction

    def racing_run(work):
        calls["n"] += 1
        if calls["n"] == 1:
            def interleaved(txn):
                result = work(txn)
                current = store.get_batch("batch-1")
                store.put_batch(current.model_copy(update={"quantity": remaining}))
                return result
            return real_run(interleaved)
        return real_run(work)

    store.run_transaction = racing_run
    return calls


class TestConflicts:
    def test_concurrent_sale_with_stock_left_does_not_conflict(self, store):
        calls = _interleave_sale(store, remaining=2)
        sleeps = []

        issued = _service(store, sleep=sleeps.append).issue("buyer-1", "event-1", "batch-1")

        assert calls["n"] == 1
        assert sleeps == []
        assert store.get_batch("batch-1").quantity == 1
        assert store.list_tickets() == [store.get_ticket(issued.ticket.id)]

    def test_losing_the_last_unit_retries_then_reports_sold_out(self, store):
        store.put_batch(Batch(id="batch-1", name="Lote 1", price=Decimal("150"), quantity=1))
        calls = _interleave_sale(store, remaining=0)
        sleeps = []

        with pytest.raises(InventoryExhaustedError):
            _service(store, sleep=sleeps.append).issue("buyer-1", "event-1", "batch-1")

        assert calls["n"] == 2
        assert len(sleeps) == 1
        assert store.get_batch("batch-1").quantity == 0
        assert store.list_tickets() == []

    def test_duplicate_ticket_id_conflicts(self, store):
        service = _service(store)
        store.new_ticket_id = lambda: "t-fixed"
        service.issue("buyer-1", "event-1", "batch-1")

        with pytest.raises(TransactionConflictError):
            service.issue("buyer-1", "event-1", "batch-1")

        assert store.get_batch("batch-1").quantity == 2
        assert len(store.list_tickets()) == 1

    def test_exhausted_retries_surface_conflict(self, store):
        store.run_transaction = MagicMock(side_effect=TransactionConflictError())
        sleeps = []

        with pytest.raises(TransactionConflictError):
            _service(store, max_attempts=3, sleep=sleeps.append).issue(
                "buyer-1", "event-1", "batch-1"
            )

        assert store.run_transaction.call_count == 3
        assert len(sleeps) == 2
        assert store.get_batch("batch-1").quantity == 3

    def test_exhausted_retries_on_sold_out_batch_surface_exhausted(self, store):
        def conflict_then_sell_out(work):
            store.put_batch(Batch(id="batch-1", name="Lote 1", price=Decimal("150"), quantity=0))
            raise TransactionConflictError()

        store.run_transaction = conflict_then_sell_out
        with pytest.raises(InventoryExhaustedError):
            _service(store, max_attempts=2).issue("buyer-1", "event-1", "batch-1")

    def test_backoff_is_capped(self, store):
        service = _service(store, backoff_seconds=0.5, backoff_cap_seconds=1.0)
        assert service._backoff(1) <= 1.0
        assert service._backoff(10) == 1.0

    def test_store_failure_propagates_without_retry(self, store):
        store.run_transaction = MagicMock(side_effect=StoreUnavailableError())
        with pytest.raises(StoreUnavailableError):
            _service(store).issue("buyer-1", "event-1", "batch-1")
        assert store.run_transaction.call_count == 1


class TestTransactionWork:
    def test_failed_result_writes_nothing(self, store):
        def work(txn):
            txn.get_batch("batch-1")
            return IssuanceResult.failure(InventoryExhaustedError("batch-1"))

        result = store.run_transaction(work)

        assert not result.ok
        assert store.get_batch("batch-1").quantity == 3
        assert store.list_tickets() == []

    def test_decrement_requires_transactional_read(self, store):
        def work(txn):
            txn.decrement_batch("batch-1")
            return IssuanceResult.success(None)

        with pytest.raises(ValueError):
            store.run_transaction(work)
