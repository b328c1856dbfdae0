"""NIP-01 event codec.

Turns raw wire events (JSON objects as sent inside ``EVENT`` frames) into
typed [Event][nostrfeed.models.event.Event] instances.

Content decoding is decided once, here:

* profile-metadata events (kind 0) have their content parsed as a JSON
  object into [StructuredContent][nostrfeed.models.event.StructuredContent];
  if the content is not a JSON object the event is still valid and keeps
  [RawContent][nostrfeed.models.event.RawContent];
* every other kind keeps its content verbatim.

Normalization never fails a whole fetch. Only a structurally broken event
(missing fields, wrong types, bad hex) raises
[EventDecodeError][nostrfeed.core.exceptions.EventDecodeError], and callers
drop that single event.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from typing import Any

from nostrfeed.core.exceptions import ContentDecodeError, EventDecodeError
from nostrfeed.models.constants import EVENT_KIND_MAX, EventKind
from nostrfeed.models.event import Content, Event, RawContent, StructuredContent


logger = logging.getLogger("nostrfeed.nips.codec")

_REQUIRED_FIELDS: tuple[str, ...] = ("id", "pubkey", "created_at", "kind", "tags", "content", "sig")


def decode_structured(text: str) -> Mapping[str, Any]:
    """Parse *text* as a JSON object.

    Raises:
        ContentDecodeError: If *text* is not valid JSON or not an object.
    """
    try:
        data = json.loads(text)
    # ValueError covers oversized integer literals, RecursionError deep nesting
    except (TypeError, ValueError, RecursionError) as e:
        raise ContentDecodeError(f"content is not valid JSON: {e}") from e
    if not isinstance(data, dict):
        raise ContentDecodeError(f"content is JSON {type(data).__name__}, expected object")
    return data


def decode_content(kind: int, text: str) -> Content:
    """Build the content variant for an event of the given kind."""
    if kind != EventKind.PROFILE:
        return RawContent(text)
    try:
        return StructuredContent(text, decode_structured(text))
    except ContentDecodeError as e:
        logger.debug("content_decode_failed kind=%s error=%s", kind, e)
        return RawContent(text)


def normalize(raw: Mapping[str, Any] | Event) -> Event:
    """Normalize a wire event into an [Event][nostrfeed.models.event.Event].

    Already-normalized events are returned unchanged, so applying this
    function twice is a no-op.

    Args:
        raw: JSON object from an ``EVENT`` frame, or an ``Event``.

    Returns:
        The typed event.

    Raises:
        EventDecodeError: If a required field is missing or invalid.
    """
    if isinstance(raw, Event):
        return raw
    if not isinstance(raw, Mapping):
        raise EventDecodeError(f"event must be a JSON object, got {type(raw).__name__}")

    missing = [name for name in _REQUIRED_FIELDS if name not in raw]
    if missing:
        raise EventDecodeError(f"event is missing fields: {', '.join(missing)}")

    content = raw["content"]
    kind = raw["kind"]
    tags = raw["tags"]
    if not isinstance(content, str):
        raise EventDecodeError(f"content must be a string, got {type(content).__name__}")
    if isinstance(kind, bool) or not isinstance(kind, int):
        raise EventDecodeError(f"kind must be an integer, got {type(kind).__name__}")
    if not isinstance(tags, list) or not all(isinstance(tag, list) for tag in tags):
        raise EventDecodeError("tags must be a list of lists")

    try:
        return Event(
            id=raw["id"],
            pubkey=raw["pubkey"],
            created_at=raw["created_at"],
            kind=kind,
            tags=tags,
            content=decode_content(kind, content),
            sig=raw["sig"],
        )
    except (TypeError, ValueError) as e:
        raise EventDecodeError(f"invalid event: {e}") from e


def decode_embedded_event(repost: Event) -> Event | None:
    """Return the event embedded in a repost's content, if any.

    NIP-18 reposts may carry the stringified reposted event as content.
    Any JSON object with a non-empty string ``id`` is accepted: a
    well-formed event is normalized as usual, anything looser is kept as an
    ``embedded`` event with missing or ill-typed fields defaulted. Empty
    content, non-JSON content and objects without an id yield ``None``; the
    caller then fetches the reposted event by its ``e`` tag instead.
    """
    if not repost.text:
        return None
    try:
        data = decode_structured(repost.text)
    except ContentDecodeError as e:
        logger.debug("embedded_event_unusable repost=%s error=%s", repost.id[:16], e)
        return None
    try:
        return normalize(data)
    except EventDecodeError:
        return _lenient_event(data, repost)


def _lenient_event(data: Mapping[str, Any], repost: Event) -> Event | None:
    event_id = data.get("id")
    if not isinstance(event_id, str) or not event_id:
        logger.debug("embedded_event_unusable repost=%s error=missing id", repost.id[:16])
        return None

    kind = data.get("kind")
    if isinstance(kind, bool) or not isinstance(kind, int) or not 0 <= kind <= EVENT_KIND_MAX:
        kind = EventKind.NOTE
    created_at = data.get("created_at")
    if isinstance(created_at, bool) or not isinstance(created_at, int) or created_at < 0:
        created_at = 0
    raw_tags = data.get("tags")
    tags = [
        tag
        for tag in (raw_tags if isinstance(raw_tags, list) else [])
        if isinstance(tag, list) and all(isinstance(item, str) for item in tag)
    ]
    content = data.get("content")

    logger.debug("embedded_event_lenient repost=%s id=%s", repost.id[:16], event_id[:16])
    return Event(
        id=event_id,
        pubkey=_str_or_empty(data.get("pubkey")),
        created_at=created_at,
        kind=kind,
        tags=tags,
        content=decode_content(kind, content if isinstance(content, str) else ""),
        sig=_str_or_empty(data.get("sig")),
        embedded=True,
    )


def _str_or_empty(value: Any) -> str:
    return value if isinstance(value, str) else ""
