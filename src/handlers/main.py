"""
Single entrypoint Lambda that routes HTTP API requests to thin handler modules.

One function keeps the store client and services warm across routes.
"""

from typing import Callable, Dict, Tuple
import json
import re

from . import fulfillment, health_check, purchase


def _response(status: int, body: Dict) -> Dict:
    """Format a JSON API Gateway HTTP API response."""
    return {
        "statusCode": status,
        "headers": {"Content-Type": "application/json"},
        "body": json.dumps(body),
    }


def lambda_handler(event, context):
    """
    Entry point invoked by API Gateway HTTP API.

    The event contains the HTTP method and path; we route it to the correct
    handler while keeping shared setup (logging, error handling) centralized.
    """
    method = event.get("requestContext", {}).get("http", {}).get("method", "")
    path = event.get("requestContext", {}).get("http", {}).get("path", "")
    route_key = f"{method.upper()} {path.rstrip('/') or '/'}"

    route_table: Tuple[Tuple[str, Callable], ...] = (
        (r"GET /health", health_check.lambda_handler),
        (r"POST /tickets/purchase", purchase.lambda_handler),
        (r"POST /tickets/issue", purchase.issue_handler),
        (r"POST /tickets/[^/]+/fulfill", fulfillment.lambda_handler),
    )

    for pattern, handler in route_table:
        if re.fullmatch(pattern, route_key):
            return handler(event, context)

    return _response(404, {"message": "Route not found", "route": route_key})
