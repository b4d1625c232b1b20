"""Event and batch models."""

from decimal import Decimal
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from models.timestamp import Timestamp


def _present(value: Any) -> bool:
    """Stored nulls and blank strings fall back to the display default."""
    return value is not None and not (isinstance(value, str) and not value.strip())


class Event(BaseModel):
    """Read-only event record."""

    model_config = ConfigDict(extra="ignore")

    id: str
    title: str = "Event"
    starts_at: Optional[Timestamp] = None
    venue: Optional[str] = None

    @field_validator("title", mode="before")
    @classmethod
    def blank_title_is_default(cls, value: Any) -> Any:
        return value if _present(value) else "Event"

    @field_validator("starts_at", mode="before")
    @classmethod
    def parse_starts_at(cls, value: Any) -> Optional[Timestamp]:
        return Timestamp.parse(value)

    @field_validator("venue", mode="before")
    @classmethod
    def blank_venue_is_unset(cls, value: Any) -> Optional[str]:
        if isinstance(value, str) and not value.strip():
            return None
        return value


class Batch(BaseModel):
    """Priced allotment of tickets ("lote") with a remaining quantity."""

    model_config = ConfigDict(extra="ignore")

    id: str
    event_id: Optional[str] = None
    name: str = "Batch"
    price: Decimal = Field(default=Decimal("0"), ge=0)
    quantity: int = Field(default=0, ge=0)

    @field_validator("name", mode="before")
    @classmethod
    def blank_name_is_default(cls, value: Any) -> Any:
        return value if _present(value) else "Batch"

    @property
    def sold_out(self) -> bool:
        return self.quantity <= 0
