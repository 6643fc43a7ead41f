"""SQLAlchemy-backed contact store."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from contact_link.errors import StorageError
from contact_link.models import Contact, LinkPrecedence

logger = logging.getLogger(__name__)

_UPDATABLE_FIELDS = frozenset({"email", "phone_number", "linked_id", "link_precedence", "deleted_at"})


class SqlContactStore:
    """ContactStore over an AsyncSession.

    The store never commits. Callers own the transaction boundary, which is
    also the unit of atomicity for a resolution:

        async with session.begin():
            store = SqlContactStore(session)
            aggregate = await IdentityResolver(store).resolve(email=..., phone_number=...)

    Writes are flushed immediately so later reads in the same transaction see
    them. Run the engine at SERIALIZABLE isolation (settings default) to meet
    the ContactStore concurrency precondition.
    """

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def find_earliest_by_email(self, email: str) -> Contact | None:
        stmt = (
            select(Contact)
            .where(Contact.email == email, Contact.deleted_at.is_(None))
            .order_by(Contact.created_at, Contact.id)
            .limit(1)
        )
        return await self._scalar(stmt)

    async def find_earliest_by_phone(self, phone_number: str) -> Contact | None:
        stmt = (
            select(Contact)
            .where(Contact.phone_number == phone_number, Contact.deleted_at.is_(None))
            .order_by(Contact.created_at, Contact.id)
            .limit(1)
        )
        return await self._scalar(stmt)

    async def find_by_id(self, contact_id: int) -> Contact | None:
        stmt = select(Contact).where(Contact.id == contact_id, Contact.deleted_at.is_(None))
        return await self._scalar(stmt)

    async def find_many_by_linked_id_in(self, ids: Iterable[int]) -> list[Contact]:
        id_list = list(ids)
        if not id_list:
            return []
        stmt = (
            select(Contact)
            .where(Contact.linked_id.in_(id_list), Contact.deleted_at.is_(None))
            .order_by(Contact.created_at, Contact.id)
        )
        try:
            result = await self._session.execute(stmt)
        except SQLAlchemyError as exc:
            raise StorageError(f"Failed to load contacts linked to {id_list}") from exc
        return list(result.scalars().all())

    async def create(
        self,
        *,
        email: str | None,
        phone_number: str | None,
        linked_id: int | None,
        link_precedence: LinkPrecedence,
    ) -> Contact:
        contact = Contact(
            email=email,
            phone_number=phone_number,
            linked_id=linked_id,
            link_precedence=link_precedence,
        )
        try:
            self._session.add(contact)
            await self._session.flush()
            # Load server-side timestamps
            await self._session.refresh(contact)
        except SQLAlchemyError as exc:
            raise StorageError("Failed to create contact") from exc
        logger.debug("Inserted %r", contact)
        return contact

    async def update(self, contact_id: int, **fields: Any) -> Contact:
        unknown = set(fields) - _UPDATABLE_FIELDS
        if unknown:
            msg = f"Cannot update contact fields: {sorted(unknown)}"
            raise ValueError(msg)

        try:
            contact = await self._session.get(Contact, contact_id)
            if contact is None:
                raise StorageError(f"Contact {contact_id} not found")
            for name, value in fields.items():
                setattr(contact, name, value)
            # Explicit so a no-op re-application still emits an UPDATE
            contact.updated_at = func.now()
            await self._session.flush()
            await self._session.refresh(contact)
        except SQLAlchemyError as exc:
            raise StorageError(f"Failed to update contact {contact_id}") from exc
        logger.debug("Updated %r (%s)", contact, ", ".join(sorted(fields)))
        return contact

    async def _scalar(self, stmt: Any) -> Contact | None:
        try:
            result = await self._session.execute(stmt)
        except SQLAlchemyError as exc:
            raise StorageError("Contact lookup failed") from exc
        return result.scalar_one_or_none()
