"""
Immutable Nostr event model with a two-variant content type.

Events arrive from relays as JSON objects and are turned into
[Event][nostrfeed.models.event.Event] instances by
[normalize()][nostrfeed.nips.codec.normalize]. The client never mutates an
event; it only copies, merges and forwards references to it.

Content is decided once at normalization time:

* [RawContent][nostrfeed.models.event.RawContent] -- the content string as
  sent by the relay (notes, reposts, reactions, and profiles whose content
  is not a JSON object).
* [StructuredContent][nostrfeed.models.event.StructuredContent] -- a parsed
  JSON object (profile metadata), keeping the original text alongside so
  the event can still be re-serialized and verified byte for byte.

See Also:
    [nostrfeed.nips.codec][]: Builds events from wire data.
    [nostrfeed.nips.signing][]: Computes ids and signatures for
        [UnsignedEvent][nostrfeed.models.event.UnsignedEvent] bodies.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from ._validation import (
    deep_freeze,
    thaw,
    validate_hex,
    validate_instance,
    validate_tags,
    validate_timestamp,
)
from .constants import EVENT_KIND_MAX


_ID_LENGTH = 64
_SIG_LENGTH = 128

Tags = tuple[tuple[str, ...], ...]


def freeze_tags(tags: Any) -> Tags:
    """Convert any iterable of iterables of strings into an immutable tag tuple."""
    return tuple(tuple(tag) for tag in tags)


@dataclass(frozen=True, slots=True)
class RawContent:
    """Event content kept verbatim."""

    text: str

    def __post_init__(self) -> None:
        validate_instance(self.text, str, "text")


@dataclass(frozen=True, slots=True)
class StructuredContent:
    """Event content decoded from a JSON object.

    Attributes:
        text: The original content string.
        data: Read-only view of the decoded object.
    """

    text: str
    data: Mapping[str, Any] = field(compare=False)

    def __post_init__(self) -> None:
        validate_instance(self.text, str, "text")
        validate_instance(self.data, Mapping, "data")
        object.__setattr__(self, "data", deep_freeze(self.data))

    def get(self, key: str, default: Any = None) -> Any:
        """Look up a top-level field of the decoded object."""
        return self.data.get(key, default)

    def to_dict(self) -> dict[str, Any]:
        """Return a mutable deep copy of the decoded object."""
        return thaw(self.data)


Content = RawContent | StructuredContent


@dataclass(frozen=True, slots=True)
class UnsignedEvent:
    """Event body before an id and signature have been attached.

    Produced by the publisher and handed to a
    [Signer][nostrfeed.nips.signing.Signer].
    """

    pubkey: str
    created_at: int
    kind: int
    tags: Tags = ()
    content: str = ""

    def __post_init__(self) -> None:
        object.__setattr__(self, "tags", freeze_tags(self.tags))
        validate_hex(self.pubkey, _ID_LENGTH, "pubkey")
        validate_timestamp(self.created_at, "created_at")
        validate_kind(self.kind)
        validate_tags(self.tags, "tags")
        validate_instance(self.content, str, "content")
        object.__setattr__(self, "kind", int(self.kind))

    def serialize(self) -> str:
        """Return the canonical NIP-01 serialization used for id hashing."""
        return json.dumps(
            [0, self.pubkey, self.created_at, self.kind, [list(t) for t in self.tags], self.content],
            separators=(",", ":"),
            ensure_ascii=False,
        )


@dataclass(frozen=True, slots=True)
class Event:
    """Immutable, signed Nostr event.

    Two events with the same ``id`` are considered identical regardless of
    the relay they came from; ``id`` is the deduplication key everywhere in
    the client.

    Attributes:
        id: 32-byte content fingerprint, lowercase hex.
        pubkey: Author public key, lowercase hex.
        created_at: Unix timestamp (seconds).
        kind: Event kind (see [EventKind][nostrfeed.models.constants.EventKind]).
        tags: Ordered tags, each an ordered tuple of strings.
        content: [RawContent][nostrfeed.models.event.RawContent] or
            [StructuredContent][nostrfeed.models.event.StructuredContent].
        sig: Schnorr signature over ``id``, lowercase hex.
        embedded: True for a copy decoded leniently from a repost's content.
            Its ``id``, ``pubkey`` and ``sig`` are not checked to be hex and
            may be empty; all other fields are validated as usual.

    Raises:
        TypeError: If a field has the wrong type.
        ValueError: If a hex field has the wrong length or alphabet, or the
            kind is out of range.
    """

    id: str
    pubkey: str
    created_at: int
    kind: int
    tags: Tags
    content: Content
    sig: str
    embedded: bool = field(default=False, kw_only=True, compare=False, repr=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "tags", freeze_tags(self.tags))
        if self.embedded:
            validate_instance(self.id, str, "id")
            validate_instance(self.pubkey, str, "pubkey")
            validate_instance(self.sig, str, "sig")
        else:
            validate_hex(self.id, _ID_LENGTH, "id")
            validate_hex(self.pubkey, _ID_LENGTH, "pubkey")
            validate_hex(self.sig, _SIG_LENGTH, "sig")
        validate_timestamp(self.created_at, "created_at")
        validate_kind(self.kind)
        validate_tags(self.tags, "tags")
        if not isinstance(self.content, RawContent | StructuredContent):
            raise TypeError(
                f"content must be RawContent or StructuredContent, got {type(self.content).__name__}"
            )
        object.__setattr__(self, "kind", int(self.kind))

    @property
    def text(self) -> str:
        """The content string exactly as it was signed."""
        return self.content.text

    @property
    def is_structured(self) -> bool:
        return isinstance(self.content, StructuredContent)

    def tag_values(self, name: str) -> list[str]:
        """Return the first value of every tag named *name*, in tag order."""
        return [tag[1] for tag in self.tags if len(tag) > 1 and tag[0] == name]

    def first_tag_value(self, name: str) -> str | None:
        """Return the value of the first tag named *name*, or ``None``."""
        for tag in self.tags:
            if len(tag) > 1 and tag[0] == name:
                return tag[1]
        return None

    def unsigned(self) -> UnsignedEvent:
        """Return the signed fields as an [UnsignedEvent][nostrfeed.models.event.UnsignedEvent]."""
        return UnsignedEvent(
            pubkey=self.pubkey,
            created_at=self.created_at,
            kind=self.kind,
            tags=self.tags,
            content=self.text,
        )

    def to_dict(self) -> dict[str, Any]:
        """Return the NIP-01 wire representation (content as the raw string)."""
        return {
            "id": self.id,
            "pubkey": self.pubkey,
            "created_at": self.created_at,
            "kind": self.kind,
            "tags": [list(tag) for tag in self.tags],
            "content": self.text,
            "sig": self.sig,
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), separators=(",", ":"), ensure_ascii=False)


def validate_kind(value: Any) -> None:
    """Raise if *value* is not an ``int`` in the valid kind range (0-65535)."""
    validate_timestamp(value, "kind")
    if value > EVENT_KIND_MAX:
        raise ValueError(f"kind {value} out of valid range (0-{EVENT_KIND_MAX})")
