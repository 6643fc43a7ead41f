"""Identity resolution for contact-link.

Submodules:
- schemas: request/response models (camelCase on the wire)
- reader: ClusterReader, traversal and rendering of identity clusters
- resolver: IdentityResolver, the create / attach / merge decision
"""

from contact_link.resolution.reader import ClusterReader, render
from contact_link.resolution.resolver import (
    IdentityResolver,
    ResolutionAction,
    ResolutionOutcome,
)
from contact_link.resolution.schemas import AggregateIdentity, IdentifyRequest, IdentifyResponse

__all__ = [
    "AggregateIdentity",
    "ClusterReader",
    "IdentifyRequest",
    "IdentifyResponse",
    "IdentityResolver",
    "ResolutionAction",
    "ResolutionOutcome",
    "render",
]
