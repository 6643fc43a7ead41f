"""In-memory contact store.

Keeps Contact instances (never attached to a session) in a dict. Used by
the test suite and for experimenting with resolution without a database.
Single-task use only: it offers none of the isolation guarantees that
ContactStore asks for under concurrent writers.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from datetime import datetime, timezone
from typing import Any

from contact_link.errors import StorageError
from contact_link.models import Contact, LinkPrecedence


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class InMemoryContactStore:
    """ContactStore backed by a dict keyed by contact id."""

    def __init__(self, *, clock: Callable[[], datetime] = _utcnow) -> None:
        self._clock = clock
        self._contacts: dict[int, Contact] = {}
        self._next_id = 1

    @property
    def contacts(self) -> list[Contact]:
        """All stored contacts, soft-deleted included, in id order."""
        return [self._contacts[key] for key in sorted(self._contacts)]

    async def find_earliest_by_email(self, email: str) -> Contact | None:
        return self._earliest(lambda c: c.email == email)

    async def find_earliest_by_phone(self, phone_number: str) -> Contact | None:
        return self._earliest(lambda c: c.phone_number == phone_number)

    async def find_by_id(self, contact_id: int) -> Contact | None:
        contact = self._contacts.get(contact_id)
        if contact is None or contact.deleted_at is not None:
            return None
        return contact

    async def find_many_by_linked_id_in(self, ids: Iterable[int]) -> list[Contact]:
        wanted = set(ids)
        return sorted(
            (c for c in self._live() if c.linked_id in wanted),
            key=_creation_order,
        )

    async def create(
        self,
        *,
        email: str | None,
        phone_number: str | None,
        linked_id: int | None,
        link_precedence: LinkPrecedence,
    ) -> Contact:
        now = self._clock()
        contact = Contact(
            id=self._next_id,
            email=email,
            phone_number=phone_number,
            linked_id=linked_id,
            link_precedence=link_precedence,
            created_at=now,
            updated_at=now,
            deleted_at=None,
        )
        self._contacts[contact.id] = contact
        self._next_id += 1
        return contact

    async def update(self, contact_id: int, **fields: Any) -> Contact:
        contact = self._contacts.get(contact_id)
        if contact is None:
            raise StorageError(f"Contact {contact_id} not found")
        for name, value in fields.items():
            if not hasattr(contact, name) or name in ("id", "created_at"):
                msg = f"Cannot update contact field: {name}"
                raise ValueError(msg)
            setattr(contact, name, value)
        contact.updated_at = self._clock()
        return contact

    async def soft_delete(self, contact_id: int) -> Contact:
        """Mark a contact deleted. Not part of ContactStore."""
        return await self.update(contact_id, deleted_at=self._clock())

    def _live(self) -> Iterable[Contact]:
        return (c for c in self._contacts.values() if c.deleted_at is None)

    def _earliest(self, predicate: Callable[[Contact], bool]) -> Contact | None:
        matches = [c for c in self._live() if predicate(c)]
        return min(matches, key=_creation_order, default=None)


def _creation_order(contact: Contact) -> tuple[datetime, int]:
    return (contact.created_at, contact.id)
