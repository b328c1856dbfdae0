"""Fan-out subscriptions across relays and merge the results.

[collect()][nostrfeed.client.aggregator.collect] opens one subscription per
capable relay and merges every event it receives into a single id-keyed
map. The first of three signals ends the aggregation:

1. the number of distinct events reaches the requested limit;
2. every relay has signalled end-of-stored-events (or ended otherwise);
3. the deadline elapses -- the partial merge is returned, not an error.

Once settled, later events are ignored and every subscription is closed
before the result is returned.

[collect_one()][nostrfeed.client.aggregator.collect_one] is the
single-event variant: the first event from any relay wins.

Note:
    Relays that fail to subscribe, or send malformed events, never fail the
    aggregation. They only contribute fewer events.

See Also:
    [resolve_related()][nostrfeed.client.resolver.resolve_related]: Issues
        several aggregations concurrently over the same relay set.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Sequence
from typing import TYPE_CHECKING, Any

from nostrfeed.core.exceptions import ConnectivityError, EventDecodeError
from nostrfeed.core.logger import Logger
from nostrfeed.core.metrics import EVENTS_RECEIVED
from nostrfeed.models.constants import DEFAULT_FETCH_LIMIT, DEFAULT_FETCH_TIMEOUT
from nostrfeed.models.filter import Filter
from nostrfeed.nips.codec import normalize


if TYPE_CHECKING:
    from nostrfeed.models.event import Event
    from nostrfeed.utils.transport import RelaySession


logger = Logger("aggregator")

Verifier = Callable[["Event"], bool]


def with_default_limits(filters: Filter | Sequence[Filter], default_limit: int) -> list[Filter]:
    """Return *filters* as a list, giving ``default_limit`` to filters without a positive limit."""
    if isinstance(filters, Filter):
        filters = [filters]
    return [f if f.limit else f.with_limit(default_limit) for f in filters]


def _accept(raw: Any, verifier: Verifier | None, relay_url: str) -> Event | None:
    """Normalize one raw event; ``None`` if it is malformed or fails verification."""
    try:
        event = normalize(raw)
    except EventDecodeError as e:
        EVENTS_RECEIVED.labels(outcome="invalid").inc()
        logger.debug("event_malformed", relay=relay_url, error=str(e))
        return None
    if verifier is not None and not verifier(event):
        EVENTS_RECEIVED.labels(outcome="invalid").inc()
        logger.debug("event_unverified", relay=relay_url, event_id=event.id)
        return None
    return event


def _raise_unexpected(results: list[Any]) -> None:
    for result in results:
        # gather(return_exceptions=True) captures CancelledError as a result
        if isinstance(result, Exception):
            raise result


async def collect(
    relays: Sequence[RelaySession],
    filters: Filter | Sequence[Filter],
    *,
    timeout: float = DEFAULT_FETCH_TIMEOUT,  # noqa: ASYNC109
    default_limit: int = DEFAULT_FETCH_LIMIT,
    verifier: Verifier | None = None,
) -> list[Event]:
    """Collect events matching *filters* from every capable relay.

    Args:
        relays: Open relay sessions. Sessions whose ``supports_subscriptions``
            is false are skipped.
        filters: One filter, or several sent in the same ``REQ`` (an event
            matches if it matches any of them).
        timeout: Deadline in seconds for the whole aggregation.
        default_limit: Limit given to filters that carry none, or ``limit=0``.
        verifier: Optional predicate; events for which it returns false are
            dropped.

    Returns:
        Distinct events in first-seen order. When the same id arrives from
        several relays the last copy received is kept.
    """
    wanted = with_default_limits(filters, default_limit)
    target = sum(f.limit or 0 for f in wanted)
    capable = [relay for relay in relays if relay.supports_subscriptions]
    if not capable or not wanted:
        return []

    merged: dict[str, Event] = {}
    settled = asyncio.Event()

    def merge(raw: Any, relay_url: str) -> None:
        if settled.is_set():
            return
        event = _accept(raw, verifier, relay_url)
        if event is None:
            return
        EVENTS_RECEIVED.labels(outcome="duplicate" if event.id in merged else "new").inc()
        merged[event.id] = event
        if len(merged) >= target:
            settled.set()

    async def drain(relay: RelaySession) -> None:
        try:
            sub = await relay.subscribe(wanted)
        except ConnectivityError as e:
            logger.debug("subscribe_failed", relay=relay.url, error=str(e))
            return
        try:
            async for raw in sub:
                merge(raw, relay.url)
                if settled.is_set():
                    break
        finally:
            await sub.close()

    tasks = [asyncio.create_task(drain(relay)) for relay in capable]
    waiter = asyncio.create_task(settled.wait())
    reason = "limit"
    try:
        async with asyncio.timeout(timeout):
            while not settled.is_set():
                running = [task for task in tasks if not task.done()]
                if not running:
                    reason = "eose"
                    break
                await asyncio.wait([waiter, *running], return_when=asyncio.FIRST_COMPLETED)
    except TimeoutError:
        reason = "deadline"
    finally:
        settled.set()
        for task in tasks:
            task.cancel()
        results = await asyncio.gather(*tasks, waiter, return_exceptions=True)

    _raise_unexpected(results)
    logger.debug("collect_settled", reason=reason, relays=len(capable), events=len(merged), target=target)
    return list(merged.values())


async def collect_one(
    relays: Sequence[RelaySession],
    filter: Filter,  # noqa: A002
    *,
    verifier: Verifier | None = None,
) -> Event | None:
    """Return the first event matching *filter* from any capable relay.

    A filter without a limit (or with ``limit=0``) is sent with ``limit=1``.
    There is no deadline here; callers bound the wait themselves (see
    [NostrFeed.fetch_profile()][nostrfeed.client.feed.NostrFeed.fetch_profile]).

    Returns:
        The first acceptable event, or ``None`` once every subscription has
        ended without producing one.
    """
    capable = [relay for relay in relays if relay.supports_subscriptions]
    if not capable:
        return None
    wanted = filter if filter.limit else filter.with_limit(1)

    async def first(relay: RelaySession) -> Event | None:
        try:
            sub = await relay.subscribe([wanted])
        except ConnectivityError as e:
            logger.debug("subscribe_failed", relay=relay.url, error=str(e))
            return None
        try:
            async for raw in sub:
                event = _accept(raw, verifier, relay.url)
                if event is not None:
                    return event
            return None
        finally:
            await sub.close()

    tasks = [asyncio.create_task(first(relay)) for relay in capable]
    try:
        for next_done in asyncio.as_completed(tasks):
            event = await next_done
            if event is not None:
                EVENTS_RECEIVED.labels(outcome="new").inc()
                return event
        return None
    finally:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
