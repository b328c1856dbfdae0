"""Expand a set of events into the events and profiles they reference.

Given base events (a feed page, a thread), the resolver gathers what a
client needs to render them:

* reposted events -- taken from the repost's embedded copy when present,
  otherwise fetched by the repost's first ``e`` tag;
* reply parents -- fetched by each non-repost's first ``e`` tag;
* events referencing any of the above or the base events themselves;
* the profile metadata of every author involved.

The two event fetches run concurrently; the profile fetch follows, since
its author set depends on their results.
"""

from __future__ import annotations

import asyncio
from collections.abc import Sequence
from typing import TYPE_CHECKING

from nostrfeed.core.logger import Logger
from nostrfeed.models.constants import DEFAULT_FETCH_LIMIT, DEFAULT_FETCH_TIMEOUT, TAG_EVENT, EventKind
from nostrfeed.models.filter import Filter
from nostrfeed.models.result import RelatedEvents, unique_by_id
from nostrfeed.nips.codec import decode_embedded_event

from .aggregator import Verifier, collect


if TYPE_CHECKING:
    from nostrfeed.models.event import Event
    from nostrfeed.utils.transport import RelaySession


logger = Logger("resolver")

FEED_KINDS: tuple[int, ...] = (EventKind.NOTE, EventKind.REPOST)


async def _no_events() -> list[Event]:
    return []


async def resolve_related(
    relays: Sequence[RelaySession],
    base_events: Sequence[Event],
    *,
    timeout: float = DEFAULT_FETCH_TIMEOUT,  # noqa: ASYNC109
    default_limit: int = DEFAULT_FETCH_LIMIT,
    verifier: Verifier | None = None,
) -> RelatedEvents:
    """Fetch the events and author profiles referenced by *base_events*.

    Args:
        relays: Open relay sessions used for every fetch.
        base_events: Events to expand.
        timeout: Deadline for each aggregation.
        default_limit: Limit of the "references any of these" fetch.
        verifier: Optional predicate applied to fetched and embedded events.

    Returns:
        ``related`` holds embedded reposted events, then fetched related
        events, then fetched reply parents, without repeated ids.
        ``profiles`` maps author pubkeys to profile-metadata events.
    """
    if not base_events:
        return RelatedEvents()

    embedded: list[Event] = []
    repost_ids: dict[str, None] = {}
    reply_ids: dict[str, None] = {}
    for event in base_events:
        target = event.first_tag_value(TAG_EVENT)
        if event.kind == EventKind.REPOST:
            inner = decode_embedded_event(event)
            if inner is not None and (verifier is None or verifier(inner)):
                embedded.append(inner)
            elif target:
                repost_ids[target] = None
        elif target:
            reply_ids[target] = None

    related_filters: list[Filter] = []
    if repost_ids:
        related_filters.append(Filter(ids=repost_ids, kinds=FEED_KINDS, limit=len(repost_ids)))
    referenced = [*reply_ids, *repost_ids, *(event.id for event in base_events)]
    related_filters.append(Filter(kinds=FEED_KINDS, tags={TAG_EVENT: referenced}, limit=default_limit))

    replies_fetch = (
        collect(
            relays,
            Filter(ids=reply_ids, kinds=(EventKind.NOTE,), limit=len(reply_ids)),
            timeout=timeout,
            default_limit=default_limit,
            verifier=verifier,
        )
        if reply_ids
        else _no_events()
    )
    related, replies = await asyncio.gather(
        collect(relays, related_filters, timeout=timeout, default_limit=default_limit, verifier=verifier),
        replies_fetch,
    )

    authors = dict.fromkeys(event.pubkey for event in base_events if event.kind == EventKind.NOTE)
    for event in (*embedded, *related, *replies):
        # Lenient embedded copies may carry no author
        if event.pubkey:
            authors[event.pubkey] = None

    profiles: dict[str, Event] = {}
    if authors:
        profile_events = await collect(
            relays,
            Filter(kinds=(EventKind.PROFILE,), authors=authors, limit=len(authors)),
            timeout=timeout,
            default_limit=default_limit,
            verifier=verifier,
        )
        # Last processed wins; relays already return the newest per author
        for profile in profile_events:
            profiles[profile.pubkey] = profile

    logger.debug(
        "related_resolved",
        base=len(base_events),
        embedded=len(embedded),
        related=len(related),
        replies=len(replies),
        profiles=len(profiles),
    )
    return RelatedEvents(related=unique_by_id([*embedded, *related, *replies]), profiles=profiles)
