"""Handler for POST /tickets/{id}/fulfill (out-of-band delivery retry)."""

import json
import uuid

from utils.error_handling import AppError, to_response
from utils.logging_config import get_logger

from . import purchase

logger = get_logger(__name__)


def _ticket_id(event) -> str:
    path_params = event.get("pathParameters") or {}
    if path_params.get("id"):
        return path_params["id"]
    path = event.get("requestContext", {}).get("http", {}).get("path", "")
    parts = [p for p in path.split("/") if p]
    # /tickets/{id}/fulfill
    if len(parts) == 3 and parts[0] == "tickets":
        return parts[1]
    return ""


def lambda_handler(event, context):
    """Re-run fulfillment for an issued ticket; delivered tickets are not re-sent."""
    correlation_id = str(uuid.uuid4())
    try:
        outcome = purchase._get_purchase_service().retry_fulfillment(_ticket_id(event))
    except AppError as exc:
        logger.info(
            "Fulfillment retry rejected",
            extra={"correlation_id": correlation_id, "code": exc.code},
        )
        return to_response(exc, correlation_id)
    except Exception:
        logger.exception("Fulfillment retry failed", extra={"correlation_id": correlation_id})
        return {
            "statusCode": 500,
            "headers": {"Content-Type": "application/json"},
            "body": json.dumps(
                {
                    "success": False,
                    "message": "Error processing fulfillment",
                    "correlation_id": correlation_id,
                }
            ),
        }

    logger.info(
        "Fulfillment retry processed",
        extra={
            "correlation_id": correlation_id,
            "ticket_id": outcome.ticket_id,
            "outcome": outcome.status,
        },
    )
    return purchase.outcome_response(outcome, correlation_id)
