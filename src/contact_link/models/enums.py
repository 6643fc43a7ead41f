"""Enumerations for the contact-link data model."""

from enum import Enum


class LinkPrecedence(str, Enum):
    """Role of a contact within its identity cluster."""

    PRIMARY = "primary"  # Canonical record, linked_id is NULL
    SECONDARY = "secondary"  # Points (possibly via a chain) at the primary
