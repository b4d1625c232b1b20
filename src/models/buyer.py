"""Buyer models."""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, field_validator


class Buyer(BaseModel):
    """Read-only buyer record."""

    model_config = ConfigDict(extra="ignore")

    id: str
    name: str = "Guest"
    email: Optional[str] = None

    @field_validator("name", mode="before")
    @classmethod
    def blank_name_is_default(cls, value: Any) -> Any:
        if value is None or (isinstance(value, str) and not value.strip()):
            return "Guest"
        return value

    @field_validator("email", mode="before")
    @classmethod
    def blank_email_is_unset(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value
