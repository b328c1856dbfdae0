"""Shared constants for the models layer.

Defines the event kinds this client understands and the protocol-level
defaults (relay list, deadlines, fetch limit) that form its external
contract. Placing them here keeps the models layer free of imports from
the packages above it.

See Also:
    [NostrFeedConfig][nostrfeed.client.configs.NostrFeedConfig]: Exposes
        these defaults as overridable configuration fields.
"""

from __future__ import annotations

from enum import IntEnum
from typing import Final


class EventKind(IntEnum):
    """Nostr event kinds handled by the client (NIP-01, NIP-02, NIP-18, NIP-25).

    Attributes:
        PROFILE: Kind 0 -- profile metadata, JSON object content.
        NOTE: Kind 1 -- short text note.
        CONTACT_LIST: Kind 3 -- follow list carried in ``p`` tags.
        REPOST: Kind 6 -- repost, optionally embedding the reposted event.
        REACTION: Kind 7 -- reaction to another event.

    Note:
        Only ``PROFILE`` content is decoded into structured form by
        [normalize()][nostrfeed.nips.codec.normalize]; every other kind
        keeps its content as raw text.
    """

    PROFILE = 0
    NOTE = 1
    CONTACT_LIST = 3
    REPOST = 6
    REACTION = 7


EVENT_KIND_MAX: Final[int] = 65_535

DEFAULT_RELAYS: Final[tuple[str, ...]] = (
    "wss://relay.damus.io",
    "wss://relay.snort.social",
    "wss://nostr-pub.wellorder.net",
    "wss://nostr.oxtr.dev",
    "wss://nostr-pub.semisol.dev",
)

# Seconds
DEFAULT_CONNECT_TIMEOUT: Final[float] = 1.0
DEFAULT_FETCH_TIMEOUT: Final[float] = 3.0
DEFAULT_PUBLISH_TIMEOUT: Final[float] = 5.0

DEFAULT_FETCH_LIMIT: Final[int] = 50

# Single-letter tag names used for cross-references
TAG_EVENT: Final[str] = "e"
TAG_PUBKEY: Final[str] = "p"
