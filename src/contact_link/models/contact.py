"""Contact model for identity records."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import CheckConstraint, DateTime, Enum, ForeignKey, Index, String, func
from sqlalchemy.orm import Mapped, mapped_column

from contact_link.models.base import Base
from contact_link.models.enums import LinkPrecedence


class Contact(Base):
    """A single identity record: an email and/or phone number.

    Contacts that share an email or phone number belong to the same cluster.
    Each cluster has exactly one PRIMARY contact (linked_id is NULL); every
    other member is SECONDARY and points at its parent via linked_id. Parents
    may themselves be secondaries after a merge, so clusters are trees rooted
    at the primary, not stars.
    """

    __tablename__ = "contacts"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)

    email: Mapped[str | None] = mapped_column(String(255))
    phone_number: Mapped[str | None] = mapped_column(String(64))

    linked_id: Mapped[int | None] = mapped_column(ForeignKey("contacts.id"), index=True)
    """Parent contact. Set only on secondaries."""

    link_precedence: Mapped[LinkPrecedence] = mapped_column(
        Enum(
            LinkPrecedence,
            name="link_precedence",
            values_callable=lambda enum: [member.value for member in enum],
        ),
        default=LinkPrecedence.PRIMARY,
    )

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    """Soft-delete marker. Deleted contacts are invisible to matching and traversal."""

    __table_args__ = (
        CheckConstraint(
            "(link_precedence = 'primary' AND linked_id IS NULL) OR "
            "(link_precedence = 'secondary' AND linked_id IS NOT NULL)",
            name="ck_contacts_precedence_linked_id",
        ),
        # Earliest-match lookups filter on the value and order by creation time
        Index("ix_contacts_email_created", "email", "created_at"),
        Index("ix_contacts_phone_created", "phone_number", "created_at"),
    )

    @property
    def is_primary(self) -> bool:
        return self.link_precedence == LinkPrecedence.PRIMARY

    def __repr__(self) -> str:
        return (
            f"<Contact id={self.id} email={self.email!r} phone={self.phone_number!r} "
            f"{self.link_precedence.value} linked_id={self.linked_id}>"
        )
