"""Pydantic schemas for identity resolution input and output.

Field names are snake_case in Python and camelCase on the wire
(`phoneNumber`, `primaryContactId`, ...).
"""

from __future__ import annotations

from typing import Annotated, Any

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field
from pydantic.alias_generators import to_camel


def normalize_identifier(value: Any) -> Any:
    """Normalize an email or phone number.

    Clients may send phone numbers as JSON numbers (123456 instead of
    "123456"). Surrounding whitespace is stripped and blank strings become
    None so that "" never matches anything.
    """
    if value is None:
        return None
    if isinstance(value, int) and not isinstance(value, bool):
        value = str(value)
    if isinstance(value, str):
        value = value.strip()
        return value or None
    return value


Identifier = Annotated[str | None, BeforeValidator(normalize_identifier)]


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class IdentifyRequest(_CamelModel):
    """Body of POST /identify."""

    email: Identifier = None
    phone_number: Identifier = None


class AggregateIdentity(_CamelModel):
    """Canonical view of one identity cluster."""

    primary_contact_id: int
    emails: list[str] = Field(default_factory=list)
    """Primary's email first, then other members' in cluster order. No duplicates."""

    phone_numbers: list[str] = Field(default_factory=list)
    """Same ordering rule as emails."""

    secondary_contact_ids: list[int] = Field(default_factory=list)


class IdentifyResponse(_CamelModel):
    """Body of a successful POST /identify."""

    contact: AggregateIdentity


class ErrorResponse(BaseModel):
    error: str
