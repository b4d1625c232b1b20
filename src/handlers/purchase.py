"""
Purchase handlers.

POST /tickets/purchase issues a ticket and emails it; POST /tickets/issue only
issues it and returns the data needed to send the email elsewhere.
"""

from __future__ import annotations

import json
import uuid
from typing import Dict, Optional

from pydantic import ValidationError

from models.purchase import PurchaseOutcome
from models.response import ApiResponse
from models.ticket import PurchaseRequest
from utils.error_handling import AppError, InvalidInputError, to_response
from utils.logging_config import get_logger

logger = get_logger(__name__)

# Lazy-loaded service to avoid import-time AWS clients
_purchase_service: Optional["PurchaseService"] = None

MESSAGES = {
    "completed": "Ticket purchased and sent by email",
    "issued": "Ticket created",
    "fulfillment_pending": "Ticket purchased, email delivery pending",
}


def _get_purchase_service():
    """Lazy-load PurchaseService."""
    global _purchase_service
    if _purchase_service is None:
        from services.purchase_service import build_purchase_service
        _purchase_service = build_purchase_service()
    return _purchase_service


def parse_request(event: Dict) -> PurchaseRequest:
    """Read the JSON body; malformed bodies are caller errors."""
    try:
        payload = json.loads(event.get("body") or "{}")
        if not isinstance(payload, dict):
            raise InvalidInputError("Request body must be a JSON object")
        return PurchaseRequest.model_validate(payload)
    except (json.JSONDecodeError, ValidationError) as exc:
        raise InvalidInputError("Request body must be a JSON object") from exc


def outcome_response(outcome: PurchaseOutcome, correlation_id: str) -> Dict:
    """Map an outcome to HTTP; a pending fulfillment is never reported as success."""
    pending = outcome.status == "fulfillment_pending"
    body = ApiResponse(
        success=not pending,
        message=MESSAGES[outcome.status],
        data=outcome.model_dump(mode="json"),
        correlation_id=correlation_id,
    )
    return {
        "statusCode": 202 if pending else 200,
        "headers": {"Content-Type": "application/json"},
        "body": body.model_dump_json(),
    }


def _handle(event, operation: str, correlation_id: str) -> Dict:
    try:
        request = parse_request(event)
        service = _get_purchase_service()
        outcome = getattr(service, operation)(request.buyer_id, request.event_id, request.batch_id)
    except AppError as exc:
        logger.info(
            "Purchase rejected",
            extra={"correlation_id": correlation_id, "code": exc.code},
        )
        return to_response(exc, correlation_id)
    except Exception:
        logger.exception("Purchase failed", extra={"correlation_id": correlation_id})
        return {
            "statusCode": 500,
            "headers": {"Content-Type": "application/json"},
            "body": json.dumps(
                {
                    "success": False,
                    "message": "Error processing purchase",
                    "correlation_id": correlation_id,
                }
            ),
        }

    logger.info(
        "Purchase processed",
        extra={
            "correlation_id": correlation_id,
            "ticket_id": outcome.ticket_id,
            "outcome": outcome.status,
        },
    )
    return outcome_response(outcome, correlation_id)


def lambda_handler(event, context):
    """Handle POST /tickets/purchase."""
    correlation_id = str(uuid.uuid4())
    return _handle(event, "issue_and_fulfill", correlation_id)


def issue_handler(event, context):
    """Handle POST /tickets/issue."""
    correlation_id = str(uuid.uuid4())
    return _handle(event, "issue_only", correlation_id)
