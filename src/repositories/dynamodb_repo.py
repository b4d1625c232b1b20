"""DynamoDB repository for buyers, events, batches and tickets.

Batches read through a transaction are consistent reads, and the commit is a
single ``TransactWriteItems`` call: the ticket put requires a new id and the
batch decrement requires enough quantity at commit time. Both land together or
not at all, so concurrent buyers only collide once the batch runs out.
"""

from __future__ import annotations

import uuid
from collections import Counter
from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional, Set

import boto3
from boto3.dynamodb.types import TypeDeserializer, TypeSerializer
from botocore.exceptions import BotoCoreError, ClientError

from models.buyer import Buyer
from models.event import Batch, Event
from models.purchase import IssuanceResult
from models.ticket import Ticket
from models.timestamp import Timestamp
from repositories.interfaces import StoreTransaction, TicketingStore
from utils.error_handling import NotFoundError, StoreUnavailableError, TransactionConflictError
from utils.logging_config import get_logger
from utils.settings import RuntimeSettings

logger = get_logger(__name__)

# Cancellation reasons that mean "someone else got there first".
CONFLICT_REASONS = {"ConditionalCheckFailed", "TransactionConflict"}
CONFLICT_ERRORS = {"TransactionConflictException", "TransactionInProgressException"}

_serializer = TypeSerializer()
_deserializer = TypeDeserializer()


def serialize_item(item: Dict[str, Any]) -> Dict[str, Any]:
    """Convert plain Python values to DynamoDB attribute values."""
    return {key: _serializer.serialize(value) for key, value in item.items()}


def deserialize_item(item: Dict[str, Any]) -> Dict[str, Any]:
    """Convert DynamoDB attribute values to plain Python values."""
    return {key: _deserializer.deserialize(value) for key, value in item.items()}


def ticket_to_item(ticket: Ticket) -> Dict[str, Any]:
    """Ticket document as stored; purchased_at must already be resolved."""
    return {
        "id": ticket.id,
        "buyer_id": ticket.buyer_id,
        "event_id": ticket.event_id,
        "batch_id": ticket.batch_id,
        "status": ticket.status.value,
        "purchased_at": Decimal(str(ticket.purchased_at.epoch_seconds)),
        "delivered": ticket.delivered,
        "event_title": ticket.event_title,
        "batch_name": ticket.batch_name,
        "price": ticket.price,
    }


class _DynamoDbTransaction(StoreTransaction):
    """Collects the read snapshot and staged writes for one attempt."""

    def __init__(self, store: "DynamoDbTicketStore"):
        self._store = store
        self.observed: Set[str] = set()
        self.tickets: List[Ticket] = []
        self.decrements: Counter = Counter()

    def get_batch(self, batch_id: str) -> Optional[Batch]:
        batch = self._store._read_batch(batch_id, consistent=True)
        if batch is not None:
            self.observed.add(batch_id)
        return batch

    def create_ticket(self, ticket: Ticket) -> None:
        self.tickets.append(ticket)

    def decrement_batch(self, batch_id: str) -> None:
        if batch_id not in self.observed:
            raise ValueError("batch must be read in the transaction before it is decremented")
        self.decrements[batch_id] += 1

    def build_items(self, purchased_at: Timestamp) -> List[Dict[str, Any]]:
        """Translate staged writes into TransactWriteItems entries."""
        tables = self._store.tables
        items: List[Dict[str, Any]] = []

        for ticket in self.tickets:
            stamped = ticket.model_copy(update={"purchased_at": purchased_at})
            items.append(
                {
                    "Put": {
                        "TableName": tables["tickets"],
                        "Item": serialize_item(ticket_to_item(stamped)),
                        "ConditionExpression": "attribute_not_exists(id)",
                    }
                }
            )

        # Evaluated atomically at commit; a sold-out batch can never pass.
        for batch_id, count in self.decrements.items():
            items.append(
                {
                    "Update": {
                        "TableName": tables["batches"],
                        "Key": serialize_item({"id": batch_id}),
                        "UpdateExpression": "SET quantity = quantity - :n",
                        "ConditionExpression": "attribute_exists(id) AND quantity >= :n",
                        "ExpressionAttributeValues": serialize_item({":n": count}),
                    }
                }
            )
        return items


class DynamoDbTicketStore(TicketingStore):
    """TicketingStore backed by one DynamoDB table per document type."""

    def __init__(self, settings: Optional[RuntimeSettings] = None, client: Any = None):
        settings = settings or RuntimeSettings.from_environment()
        self.client = client or boto3.client("dynamodb", region_name=settings.aws_region)
        self.tables = {
            "buyers": settings.buyers_table,
            "events": settings.events_table,
            "batches": settings.batches_table,
            "tickets": settings.tickets_table,
        }

    def new_ticket_id(self) -> str:
        return uuid.uuid4().hex

    def _get(self, kind: str, doc_id: str, consistent: bool = False) -> Optional[Dict[str, Any]]:
        try:
            resp = self.client.get_item(
                TableName=self.tables[kind],
                Key=serialize_item({"id": doc_id}),
                ConsistentRead=consistent,
            )
        except (ClientError, BotoCoreError) as exc:
            logger.error("DynamoDB read failed", extra={"table": kind, "error": str(exc)})
            raise StoreUnavailableError() from exc
        item = resp.get("Item")
        return deserialize_item(item) if item else None

    def _read_batch(self, batch_id: str, consistent: bool) -> Optional[Batch]:
        item = self._get("batches", batch_id, consistent=consistent)
        return Batch.model_validate(item) if item else None

    def get_buyer(self, buyer_id: str) -> Optional[Buyer]:
        item = self._get("buyers", buyer_id)
        return Buyer.model_validate(item) if item else None

    def get_event(self, event_id: str) -> Optional[Event]:
        item = self._get("events", event_id)
        return Event.model_validate(item) if item else None

    def get_batch(self, batch_id: str) -> Optional[Batch]:
        return self._read_batch(batch_id, consistent=False)

    def get_ticket(self, ticket_id: str) -> Optional[Ticket]:
        item = self._get("tickets", ticket_id, consistent=True)
        return Ticket.model_validate(item) if item else None

    def run_transaction(
        self, work: Callable[[StoreTransaction], IssuanceResult]
    ) -> IssuanceResult:
        txn = _DynamoDbTransaction(self)
        result = work(txn)
        if not result.ok:
            return result

        purchased_at = Timestamp.now()
        items = txn.build_items(purchased_at)
        if items:
            self._commit(items)

        ticket = result.ticket
        if ticket is not None:
            ticket = ticket.model_copy(update={"purchased_at": purchased_at})
        return IssuanceResult.success(ticket)

    def _commit(self, items: List[Dict[str, Any]]) -> None:
        try:
            self.client.transact_write_items(TransactItems=items)
        except ClientError as exc:
            error = exc.response.get("Error", {})
            code = error.get("Code", "")
            reasons = {
                reason.get("Code")
                for reason in exc.response.get("CancellationReasons", [])
            }
            if code in CONFLICT_ERRORS or (
                code == "TransactionCanceledException" and reasons & CONFLICT_REASONS
            ):
                logger.warning(
                    "Transaction conflict",
                    extra={"code": code, "reasons": sorted(r for r in reasons if r)},
                )
                raise TransactionConflictError() from exc
            logger.error("DynamoDB transaction failed", extra={"code": code, "error": str(exc)})
            raise StoreUnavailableError() from exc
        except BotoCoreError as exc:
            logger.error("DynamoDB transaction failed", extra={"error": str(exc)})
            raise StoreUnavailableError() from exc

    def mark_delivered(self, ticket_id: str) -> None:
        try:
            self.client.update_item(
                TableName=self.tables["tickets"],
                Key=serialize_item({"id": ticket_id}),
                UpdateExpression="SET delivered = :true",
                ConditionExpression="attribute_exists(id)",
                ExpressionAttributeValues=serialize_item({":true": True}),
            )
        except ClientError as exc:
            if exc.response.get("Error", {}).get("Code") == "ConditionalCheckFailedException":
                raise NotFoundError("Ticket not found", missing=["ticket"]) from exc
            logger.error("Delivery flag update failed", extra={"ticket_id": ticket_id})
            raise StoreUnavailableError() from exc
        except BotoCoreError as exc:
            logger.error("Delivery flag update failed", extra={"ticket_id": ticket_id})
            raise StoreUnavailableError() from exc
