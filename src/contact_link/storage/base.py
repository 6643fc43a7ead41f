"""Storage interface consumed by the resolver and cluster reader.

Concurrency precondition:
    Two concurrent resolutions can both observe "no match" for the same
    email or phone and both create a primary, or both try to merge the same
    pair of clusters. Implementations MUST provide either serializable
    isolation around one resolution's read-decide-write sequence, or
    conflict detection on the creation path so such races fail loudly.
    Nothing above this layer locks.

Read-your-writes:
    A contact returned from create() or update() must be visible to every
    subsequent read issued through the same store instance.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any, Protocol

from contact_link.models import Contact, LinkPrecedence


class ContactStore(Protocol):
    """Async access to contact records.

    Every read excludes soft-deleted contacts. Failures are raised as
    contact_link.errors.StorageError.
    """

    async def find_earliest_by_email(self, email: str) -> Contact | None:
        """Earliest-created contact whose email equals `email`."""
        ...

    async def find_earliest_by_phone(self, phone_number: str) -> Contact | None:
        """Earliest-created contact whose phone number equals `phone_number`."""
        ...

    async def find_by_id(self, contact_id: int) -> Contact | None: ...

    async def find_many_by_linked_id_in(self, ids: Iterable[int]) -> list[Contact]:
        """Contacts whose linked_id is in `ids`, ordered by (created_at, id)."""
        ...

    async def create(
        self,
        *,
        email: str | None,
        phone_number: str | None,
        linked_id: int | None,
        link_precedence: LinkPrecedence,
    ) -> Contact: ...

    async def update(self, contact_id: int, **fields: Any) -> Contact:
        """Apply `fields` to a contact in one write and refresh updated_at."""
        ...
