"""Error taxonomy for identity resolution.

- ValidationError: the caller supplied nothing to match on.
- StorageError: the contact store failed or is unreachable.
- InvariantViolation: the identity graph is malformed (a bug, not user input).

Nothing in this package retries on any of these.
"""


class ContactLinkError(Exception):
    """Base class for all contact-link errors."""


class ValidationError(ContactLinkError):
    """Neither email nor phone number was supplied."""


class StorageError(ContactLinkError):
    """The underlying contact store failed."""


class InvariantViolation(ContactLinkError):
    """A cluster breaks the primary/secondary invariants."""
