"""Cluster traversal and rendering.

A cluster is a tree rooted at its primary contact. Secondaries point at
their parent through linked_id, and after a merge a parent may itself be a
secondary, so both directions of traversal must handle chains of any depth:

- find_primary: walk linked_id upward until a contact with no parent.
- materialize: expand downward level by level (frontier expansion) and
  collect every descendant.
- render: flatten a materialized cluster into an AggregateIdentity.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

from contact_link.errors import InvariantViolation
from contact_link.models import Contact, LinkPrecedence
from contact_link.resolution.schemas import AggregateIdentity
from contact_link.storage.base import ContactStore

logger = logging.getLogger(__name__)


class ClusterReader:
    """Read-side view of the identity graph.

    Usage:
        reader = ClusterReader(store)
        primary = await reader.find_primary(contact)
        aggregate = await reader.read_cluster(primary.id)
    """

    def __init__(self, store: ContactStore) -> None:
        self._store = store

    async def find_primary(self, contact: Contact) -> Contact:
        """Follow linked_id references from `contact` to its cluster root.

        A parent that no longer exists (missing or soft-deleted) ends the
        walk at the last contact reached; that contact is returned as the
        root even though it is not PRIMARY.

        Raises:
            InvariantViolation: If the chain loops back on itself.
        """
        current = contact
        seen = {current.id}

        while current.linked_id is not None:
            parent = await self._store.find_by_id(current.linked_id)
            if parent is None:
                logger.warning(
                    "Contact %d links to missing contact %d; treating it as the root",
                    current.id,
                    current.linked_id,
                )
                break
            if parent.id in seen:
                msg = f"Cycle in linked_id chain starting at contact {contact.id}"
                raise InvariantViolation(msg)
            seen.add(parent.id)
            current = parent

        return current

    async def materialize(self, primary_id: int) -> list[Contact]:
        """Collect the primary and every descendant at every depth.

        Returns the primary first (if it exists), followed by descendants in
        breadth-first order; each level is ordered by creation time.
        """
        members: list[Contact] = []
        seen: set[int] = {primary_id}
        frontier: set[int] = {primary_id}

        while frontier:
            children = await self._store.find_many_by_linked_id_in(frontier)
            fresh = [c for c in children if c.id not in seen]
            if not fresh:
                break
            members.extend(fresh)
            seen.update(c.id for c in fresh)
            frontier = {c.id for c in fresh}

        primary = await self._store.find_by_id(primary_id)
        if primary is not None:
            members.insert(0, primary)

        logger.debug("Materialized cluster %d with %d contacts", primary_id, len(members))
        return members

    async def read_cluster(self, primary_id: int) -> AggregateIdentity:
        """Materialize and render the cluster rooted at `primary_id`."""
        return render(await self.materialize(primary_id))

    def render(self, contacts: Sequence[Contact]) -> AggregateIdentity:
        return render(contacts)


def render(contacts: Sequence[Contact]) -> AggregateIdentity:
    """Flatten a cluster into its aggregate identity.

    Raises:
        InvariantViolation: If `contacts` does not hold exactly one primary.
    """
    primaries = [c for c in contacts if c.link_precedence == LinkPrecedence.PRIMARY]
    if len(primaries) != 1:
        ids = [c.id for c in primaries]
        msg = f"Cluster must contain exactly one primary contact, found {len(primaries)}: {ids}"
        raise InvariantViolation(msg)

    primary = primaries[0]
    secondaries = [c for c in contacts if c is not primary]
    ordered = [primary, *secondaries]

    return AggregateIdentity(
        primary_contact_id=primary.id,
        emails=_unique(c.email for c in ordered),
        phone_numbers=_unique(c.phone_number for c in ordered),
        secondary_contact_ids=[c.id for c in secondaries],
    )


def _unique(values) -> list[str]:
    result: list[str] = []
    for value in values:
        if value is not None and value not in result:
            result.append(value)
    return result
