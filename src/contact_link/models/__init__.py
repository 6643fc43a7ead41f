"""Database models for contact-link."""

from contact_link.models.base import Base
from contact_link.models.contact import Contact
from contact_link.models.enums import LinkPrecedence

__all__ = [
    "Base",
    "Contact",
    "LinkPrecedence",
]
