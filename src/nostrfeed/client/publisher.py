"""Sign an event and race its publication across relays.

The event is sent to every relay that supports publishing. The first
relay to accept it settles the result; rejections and "already have it"
acknowledgements are only logged. If no relay accepts before the
deadline, or every relay rejects, the result is ``None``.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Iterable, Sequence
from typing import TYPE_CHECKING

from nostrfeed.core.exceptions import ConnectivityError
from nostrfeed.core.logger import Logger
from nostrfeed.core.metrics import PUBLISH_OUTCOMES
from nostrfeed.models.constants import DEFAULT_PUBLISH_TIMEOUT
from nostrfeed.models.event import UnsignedEvent
from nostrfeed.utils.transport import PublishStatus


if TYPE_CHECKING:
    from nostrfeed.models.event import Event
    from nostrfeed.nips.signing import Signer
    from nostrfeed.utils.transport import RelaySession


logger = Logger("publisher")


async def publish(  # noqa: PLR0913
    relays: Sequence[RelaySession],
    signer: Signer,
    kind: int,
    content: str = "",
    tags: Iterable[Sequence[str]] = (),
    *,
    timeout: float = DEFAULT_PUBLISH_TIMEOUT,  # noqa: ASYNC109
) -> Event | None:
    """Sign a new event and publish it to every capable relay.

    Args:
        relays: Open relay sessions.
        signer: Signs the event; its ``public_key`` becomes the author.
        kind: Event kind.
        content: Event content.
        tags: Event tags.
        timeout: Seconds to wait for the first acceptance.

    Returns:
        The signed event once a relay accepts it, otherwise ``None``.
    """
    unsigned = UnsignedEvent(
        pubkey=signer.public_key,
        created_at=int(time.time()),
        kind=kind,
        tags=tuple(tuple(tag) for tag in tags),
        content=content,
    )
    event = signer.sign_event(unsigned)
    log = logger.bind(event_id=event.id, kind=event.kind)

    capable = [relay for relay in relays if relay.supports_publishing]
    if not capable:
        log.warning("publish_no_relays")
        return None

    async def send(relay: RelaySession) -> bool:
        try:
            publication = await relay.publish(event)
        except ConnectivityError as e:
            log.debug("publish_send_failed", relay=relay.url, error=str(e))
            return False
        outcome = await publication.wait()
        PUBLISH_OUTCOMES.labels(status=outcome.status.value).inc()
        if outcome.status == PublishStatus.ACCEPTED:
            return True
        log.info(
            "publish_not_accepted", relay=relay.url, status=outcome.status.value, message=outcome.message
        )
        return False

    tasks = [asyncio.create_task(send(relay)) for relay in capable]
    try:
        async with asyncio.timeout(timeout):
            for next_done in asyncio.as_completed(tasks):
                if await next_done:
                    log.info("publish_accepted", relays=len(capable))
                    return event
        log.warning("publish_rejected", relays=len(capable))
        return None
    except TimeoutError:
        log.warning("publish_timeout", relays=len(capable), timeout_s=timeout)
        return None
    finally:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
