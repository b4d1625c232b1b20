"""Lightweight validation helpers for inbound identifiers."""

from typing import Any, Dict

from utils.error_handling import InvalidInputError


def ensure_present(value: Any, field: str) -> str:
    """Raise InvalidInputError if value is not a non-blank string."""
    if not isinstance(value, str) or not value.strip():
        raise InvalidInputError(f"{field} is required")
    return value.strip()


def ensure_ids(**ids: Any) -> Dict[str, str]:
    """Validate every keyword as a required identifier, reporting all gaps at once."""
    missing = [
        field for field, value in ids.items()
        if not isinstance(value, str) or not value.strip()
    ]
    if missing:
        raise InvalidInputError(f"Missing data: {', '.join(missing)}")
    return {field: value.strip() for field, value in ids.items()}
