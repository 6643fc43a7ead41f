"""Contact storage backends.

- base: ContactStore protocol (the only thing the resolver depends on)
- sql: SQLAlchemy AsyncSession implementation
- memory: dict-backed implementation for tests and local use
"""

from contact_link.storage.base import ContactStore
from contact_link.storage.memory import InMemoryContactStore
from contact_link.storage.sql import SqlContactStore

__all__ = [
    "ContactStore",
    "InMemoryContactStore",
    "SqlContactStore",
]
