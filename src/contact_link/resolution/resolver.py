"""Contact-linking reconciliation.

Given a new (email, phone number) pair:

1. Look up the earliest live contact with that email, and independently the
   earliest live contact with that phone number.
2. Resolve each match to its cluster primary (ClusterReader.find_primary).
3. Decide:
   - no match          -> CREATED: new primary contact
   - one match         -> ATTACHED: new secondary under the matched contact,
                          unless the request adds nothing (UNCHANGED)
   - two matches, same primary      -> UNCHANGED
   - two matches, different primary -> MERGED: the newer primary is demoted
                                       under the older one
4. Render the resulting cluster.

Merging re-points only the demoted primary. Its existing secondaries keep
their linked_id, so clusters become multi-level trees.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from contact_link.errors import InvariantViolation, ValidationError
from contact_link.models import Contact, LinkPrecedence
from contact_link.resolution.reader import ClusterReader, render
from contact_link.resolution.schemas import AggregateIdentity, normalize_identifier
from contact_link.storage.base import ContactStore

logger = logging.getLogger(__name__)

MISSING_IDENTIFIER_MESSAGE = "At least one of email or phoneNumber is required"


class ResolutionAction(str, Enum):
    """What a resolution did to the store."""

    CREATED = "created"  # New primary contact
    ATTACHED = "attached"  # New secondary contact
    MERGED = "merged"  # Two clusters joined by demoting a primary
    UNCHANGED = "unchanged"  # Nothing written


@dataclass
class ResolutionOutcome:
    """Result of resolving one (email, phone number) pair."""

    action: ResolutionAction
    identity: AggregateIdentity

    created: Contact | None = None
    """Contact inserted by this resolution (CREATED / ATTACHED)."""

    demoted: Contact | None = None
    """Former primary re-pointed by this resolution (MERGED)."""


class IdentityResolver:
    """Main identity resolution service.

    Usage:
        async with session.begin():
            resolver = IdentityResolver(SqlContactStore(session))
            aggregate = await resolver.resolve(email="a@x.com", phone_number="111")
    """

    def __init__(self, store: ContactStore, *, reader: ClusterReader | None = None) -> None:
        self._store = store
        self._reader = reader or ClusterReader(store)

    async def resolve(
        self,
        email: str | None = None,
        phone_number: str | None = None,
    ) -> AggregateIdentity:
        """Resolve a contact pair and return the aggregate identity of its cluster.

        Raises:
            ValidationError: If neither email nor phone number is supplied.
            StorageError: If the store fails. Not retried.
            InvariantViolation: If the identity graph is malformed.
        """
        outcome = await self.resolve_with_outcome(email=email, phone_number=phone_number)
        return outcome.identity

    async def resolve_with_outcome(
        self,
        email: str | None = None,
        phone_number: str | None = None,
    ) -> ResolutionOutcome:
        """Like resolve(), but also report which decision was applied."""
        email = normalize_identifier(email)
        phone_number = normalize_identifier(phone_number)
        if email is None and phone_number is None:
            raise ValidationError(MISSING_IDENTIFIER_MESSAGE)

        by_email = await self._store.find_earliest_by_email(email) if email else None
        by_phone = await self._store.find_earliest_by_phone(phone_number) if phone_number else None
        logger.debug(
            "Lookup email=%r -> %s, phone=%r -> %s",
            email,
            by_email.id if by_email else None,
            phone_number,
            by_phone.id if by_phone else None,
        )

        if by_email is None and by_phone is None:
            return await self._create_primary(email, phone_number)

        if by_email is None or by_phone is None:
            matched = by_email if by_email is not None else by_phone
            return await self._attach(matched, email, phone_number)

        email_root = await self._reader.find_primary(by_email)
        phone_root = await self._reader.find_primary(by_phone)
        if email_root.id == phone_root.id:
            identity = await self._reader.read_cluster(email_root.id)
            return ResolutionOutcome(action=ResolutionAction.UNCHANGED, identity=identity)

        return await self._merge(email_root, phone_root)

    async def _create_primary(
        self, email: str | None, phone_number: str | None
    ) -> ResolutionOutcome:
        contact = await self._store.create(
            email=email,
            phone_number=phone_number,
            linked_id=None,
            link_precedence=LinkPrecedence.PRIMARY,
        )
        logger.info("Created primary contact %d", contact.id)
        return ResolutionOutcome(
            action=ResolutionAction.CREATED,
            identity=render([contact]),
            created=contact,
        )

    async def _attach(
        self, matched: Contact, email: str | None, phone_number: str | None
    ) -> ResolutionOutcome:
        root = await self._reader.find_primary(matched)
        if not root.is_primary:
            msg = f"Cannot attach to cluster rooted at contact {root.id}: it is not a primary"
            raise InvariantViolation(msg)

        if not _adds_information(matched, email, phone_number):
            identity = await self._reader.read_cluster(root.id)
            return ResolutionOutcome(action=ResolutionAction.UNCHANGED, identity=identity)

        # Attach under the record that matched, not under its primary
        contact = await self._store.create(
            email=email,
            phone_number=phone_number,
            linked_id=matched.id,
            link_precedence=LinkPrecedence.SECONDARY,
        )
        logger.info(
            "Attached secondary contact %d to contact %d (primary %d)",
            contact.id,
            matched.id,
            root.id,
        )
        identity = await self._reader.read_cluster(root.id)
        return ResolutionOutcome(
            action=ResolutionAction.ATTACHED,
            identity=identity,
            created=contact,
        )

    async def _merge(self, first: Contact, second: Contact) -> ResolutionOutcome:
        for root in (first, second):
            if not root.is_primary:
                msg = f"Cannot merge cluster rooted at contact {root.id}: it is not a primary"
                raise InvariantViolation(msg)

        survivor, loser = sorted((first, second), key=_creation_order)

        # Single write. Re-applying it leaves the same state.
        demoted = await self._store.update(
            loser.id,
            link_precedence=LinkPrecedence.SECONDARY,
            linked_id=survivor.id,
        )

        new_root = await self._reader.find_primary(demoted)
        if new_root.id != survivor.id:
            msg = (
                f"Demoted contact {demoted.id} resolves to {new_root.id}, "
                f"expected primary {survivor.id}"
            )
            raise InvariantViolation(msg)

        logger.info("Merged cluster %d into cluster %d", loser.id, survivor.id)
        identity = await self._reader.read_cluster(survivor.id)
        return ResolutionOutcome(
            action=ResolutionAction.MERGED,
            identity=identity,
            demoted=demoted,
        )


def _adds_information(contact: Contact, email: str | None, phone_number: str | None) -> bool:
    """True if the request carries a value the matched contact does not have."""
    if email is not None and email != contact.email:
        return True
    return phone_number is not None and phone_number != contact.phone_number


def _creation_order(contact: Contact) -> tuple[datetime, int]:
    return (contact.created_at, contact.id)
