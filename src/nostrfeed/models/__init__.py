"""Pure frozen dataclasses with zero network I/O.

The models layer is the foundation of the diamond DAG. It has no
dependencies on any other nostrfeed package. Validation happens in
``__post_init__`` so invalid instances never escape the constructor.

Attributes:
    Event: Immutable signed event with a two-variant content type.
    RawContent: Content kept verbatim.
    StructuredContent: Content decoded from a JSON object.
    UnsignedEvent: Event body awaiting an id and signature.
    Filter: NIP-01 subscription filter.
    Relay: Validated relay URL (RFC 3986).
    ResultSet: Notes, related events and profiles returned by feed queries.
    RelatedEvents: Output of the relation resolver.
    ProfileResult: Profile metadata and contact list of one author.
    EventKind: Event kinds understood by the client.
"""

from .constants import (
    DEFAULT_CONNECT_TIMEOUT,
    DEFAULT_FETCH_LIMIT,
    DEFAULT_FETCH_TIMEOUT,
    DEFAULT_PUBLISH_TIMEOUT,
    DEFAULT_RELAYS,
    EVENT_KIND_MAX,
    TAG_EVENT,
    TAG_PUBKEY,
    EventKind,
)
from .event import Content, Event, RawContent, StructuredContent, UnsignedEvent
from .filter import Filter
from .relay import Relay
from .result import ProfileResult, RelatedEvents, ResultSet, unique_by_id


__all__ = [
    "DEFAULT_CONNECT_TIMEOUT",
    "DEFAULT_FETCH_LIMIT",
    "DEFAULT_FETCH_TIMEOUT",
    "DEFAULT_PUBLISH_TIMEOUT",
    "DEFAULT_RELAYS",
    "EVENT_KIND_MAX",
    "TAG_EVENT",
    "TAG_PUBKEY",
    "Content",
    "Event",
    "EventKind",
    "Filter",
    "ProfileResult",
    "RawContent",
    "RelatedEvents",
    "Relay",
    "ResultSet",
    "StructuredContent",
    "UnsignedEvent",
    "unique_by_id",
]
