"""Relay WebSocket sessions speaking the NIP-01 wire protocol.

One [RelayConnection][nostrfeed.utils.transport.RelayConnection] is one
aiohttp WebSocket session to one relay. A background reader task parses
incoming frames and routes them:

* ``EVENT``  -> the matching [Subscription][nostrfeed.utils.transport.Subscription]
* ``EOSE``   -> ends that subscription's iteration (no more stored events)
* ``CLOSED`` -> ends that subscription with the relay's reason
* ``OK``     -> resolves the matching [Publication][nostrfeed.utils.transport.Publication]
* ``NOTICE`` -> logged

Connection setup is a race between the handshake and a timer, see
[open_relay()][nostrfeed.utils.transport.open_relay]: exactly one of
[Connected][nostrfeed.utils.transport.Connected],
[ConnectFailed][nostrfeed.utils.transport.ConnectFailed] or
[ConnectTimedOut][nostrfeed.utils.transport.ConnectTimedOut] is returned
and the session is closed on the two failure paths.

Note:
    Sessions are not shared between operations. Each facade operation
    opens its relays with
    [open_relays()][nostrfeed.utils.transport.open_relays] and every
    session is closed when the ``async with`` block exits.

Examples:
    ```python
    async with open_relays(["wss://relay.damus.io"], timeout=1.0) as relays:
        for relay in relays:
            sub = await relay.subscribe([Filter(kinds=(1,), limit=5)])
            async for raw in sub:
                print(raw["id"])
            await sub.close()
    ```
"""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
import secrets
from collections.abc import AsyncIterator, Callable, Iterable, Sequence
from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING, Any, NamedTuple, Protocol

import aiohttp

from nostrfeed.core.exceptions import ConnectivityError, RelayConnectionError, RelayTimeoutError
from nostrfeed.core.metrics import RELAY_CONNECTIONS
from nostrfeed.models.constants import DEFAULT_CONNECT_TIMEOUT
from nostrfeed.models.relay import Relay


if TYPE_CHECKING:
    from nostrfeed.models.event import Event
    from nostrfeed.models.filter import Filter


logger = logging.getLogger("utils.transport")

_WS_HEARTBEAT = 30.0
_WS_CLOSE_TIMEOUT = 5.0
_DUPLICATE_PREFIX = "duplicate:"

# Queue marker: no further items for this subscription
_END = object()


class RelayStatus(StrEnum):
    """Lifecycle of a [RelayConnection][nostrfeed.utils.transport.RelayConnection]."""

    INITIAL = "initial"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    CLOSED = "closed"


class PublishStatus(StrEnum):
    """Per-relay outcome of publishing one event.

    Attributes:
        ACCEPTED: ``OK`` with ``true`` -- the relay stored the event.
        SEEN: ``OK`` with ``true`` and a ``duplicate:`` message -- the relay
            already had the event.
        FAILED: ``OK`` with ``false``, or the connection ended first.
    """

    ACCEPTED = "accepted"
    SEEN = "seen"
    FAILED = "failed"


class PublishOutcome(NamedTuple):
    """Result of one [Publication][nostrfeed.utils.transport.Publication]."""

    relay: str
    status: PublishStatus
    message: str = ""


# =============================================================================
# Session protocols
# =============================================================================


class SubscriptionHandle(Protocol):
    """What the aggregator needs from a subscription."""

    def __aiter__(self) -> AsyncIterator[Any]: ...

    async def close(self) -> None: ...


class PublicationHandle(Protocol):
    """What the publisher needs from a publication."""

    async def wait(self) -> PublishOutcome: ...


class RelaySession(Protocol):
    """What the aggregator, resolver and publisher need from a relay session.

    [RelayConnection][nostrfeed.utils.transport.RelayConnection] is the
    production implementation; tests inject in-memory fakes through the
    facade's ``relay_factory``.
    """

    @property
    def url(self) -> str: ...

    @property
    def supports_subscriptions(self) -> bool: ...

    @property
    def supports_publishing(self) -> bool: ...

    async def connect(self) -> None: ...

    async def subscribe(self, filters: Sequence[Filter]) -> SubscriptionHandle: ...

    async def publish(self, event: Event) -> PublicationHandle: ...

    async def close(self) -> None: ...


RelayFactory = Callable[[str], RelaySession]


# =============================================================================
# Subscription / Publication
# =============================================================================


class Subscription:
    """A live ``REQ`` on one relay.

    Iterating yields raw event objects (parsed JSON, not yet normalized)
    until the relay signals end-of-stored-events, closes the subscription,
    or the connection ends. [close()][nostrfeed.utils.transport.Subscription.close]
    sends ``CLOSE`` to the relay exactly once.

    Attributes:
        id: Subscription id used in the wire frames.
        filters: Filters sent with the ``REQ``.
        eose_received: Whether iteration ended because of ``EOSE``.
        reason: Why iteration ended (relay ``CLOSED`` message,
            ``"closed"``, or a connection-level reason).
    """

    __slots__ = ("_closed", "_finished", "_queue", "_relay", "eose_received", "filters", "id", "reason")

    def __init__(self, relay: RelayConnection, sub_id: str, filters: Sequence[Filter]) -> None:
        self._relay = relay
        self.id = sub_id
        self.filters = tuple(filters)
        self._queue: asyncio.Queue[Any] = asyncio.Queue()
        self._closed = False
        self._finished = False
        self.eose_received = False
        self.reason: str | None = None

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def finished(self) -> bool:
        """True once no further events will be yielded."""
        return self._finished

    def __aiter__(self) -> AsyncIterator[Any]:
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[Any]:
        while True:
            item = await self._queue.get()
            if item is _END:
                # Leave the marker for any later iteration
                self._queue.put_nowait(_END)
                return
            yield item

    def _push(self, raw: Any) -> None:
        if not self._finished:
            self._queue.put_nowait(raw)

    def _finish(self, *, eose: bool = False, reason: str | None = None) -> None:
        if self._finished:
            return
        self._finished = True
        self.eose_received = eose
        self.reason = reason
        self._queue.put_nowait(_END)

    async def close(self) -> None:
        """Stop the subscription and send ``CLOSE`` to the relay (idempotent)."""
        if self._closed:
            return
        self._closed = True
        self._finish(reason="closed")
        await self._relay._unsubscribe(self)


class Publication:
    """An ``EVENT`` sent to one relay, awaiting its ``OK``."""

    __slots__ = ("_future", "event_id", "relay_url")

    def __init__(self, relay_url: str, event_id: str) -> None:
        self.relay_url = relay_url
        self.event_id = event_id
        self._future: asyncio.Future[PublishOutcome] = asyncio.get_running_loop().create_future()

    @property
    def done(self) -> bool:
        return self._future.done()

    def _resolve(self, status: PublishStatus, message: str = "") -> None:
        if not self._future.done():
            self._future.set_result(PublishOutcome(self.relay_url, status, message))

    async def wait(self) -> PublishOutcome:
        """Wait for the relay's verdict. Cancelling the wait leaves the publication pending."""
        return await asyncio.shield(self._future)


# =============================================================================
# Relay connection
# =============================================================================


class RelayConnection:
    """One WebSocket session to one relay.

    Args:
        url: Relay URL, validated and normalized through
            [Relay][nostrfeed.models.relay.Relay].
        session: Optional shared ``aiohttp.ClientSession``. When omitted the
            connection creates its own and closes it in
            [close()][nostrfeed.utils.transport.RelayConnection.close].
        heartbeat: WebSocket ping interval in seconds.

    Raises:
        ValueError: If ``url`` is not a valid relay URL.
    """

    def __init__(
        self,
        url: str | Relay,
        *,
        session: aiohttp.ClientSession | None = None,
        heartbeat: float = _WS_HEARTBEAT,
    ) -> None:
        self.relay = url if isinstance(url, Relay) else Relay(url)
        self._session = session
        self._owns_session = session is None
        self._heartbeat = heartbeat
        self._ws: aiohttp.ClientWebSocketResponse | None = None
        self._reader: asyncio.Task[None] | None = None
        self._subscriptions: dict[str, Subscription] = {}
        self._publications: dict[str, Publication] = {}
        self._status = RelayStatus.INITIAL
        self._shut_down = False

    def __repr__(self) -> str:
        return f"RelayConnection(url={self.url!r}, status={self._status.value})"

    @property
    def url(self) -> str:
        return self.relay.url

    @property
    def status(self) -> RelayStatus:
        return self._status

    @property
    def is_connected(self) -> bool:
        return self._status == RelayStatus.CONNECTED

    @property
    def supports_subscriptions(self) -> bool:
        return self.is_connected

    @property
    def supports_publishing(self) -> bool:
        return self.is_connected

    @property
    def subscriptions(self) -> tuple[Subscription, ...]:
        """Subscriptions opened on this session and not yet closed."""
        return tuple(self._subscriptions.values())

    async def connect(self) -> None:
        """Perform the WebSocket handshake and start the frame reader.

        Raises:
            RelayConnectionError: On handshake rejection or transport error,
                or if this session was already used.
        """
        if self._status != RelayStatus.INITIAL:
            raise RelayConnectionError(f"Session already used: {self.url}", url=self.url)
        self._status = RelayStatus.CONNECTING
        if self._session is None:
            self._session = aiohttp.ClientSession()

        try:
            self._ws = await self._session.ws_connect(self.url, heartbeat=self._heartbeat)
        except (aiohttp.ClientError, OSError) as e:
            await self.close()
            raise RelayConnectionError(f"Connection failed: {self.url} ({e})", url=self.url) from e

        self._status = RelayStatus.CONNECTED
        self._reader = asyncio.create_task(self._read_loop(), name=f"relay-reader {self.url}")
        logger.debug("relay_connected relay=%s", self.url)

    async def close(self) -> None:
        """End every subscription and publication, then close the socket (idempotent)."""
        if self._shut_down:
            return
        self._shut_down = True
        self._status = RelayStatus.CLOSED
        self._teardown("connection closed")

        if self._reader is not None and self._reader is not asyncio.current_task():
            self._reader.cancel()
            await asyncio.gather(self._reader, return_exceptions=True)

        # aiohttp can raise ClientError, ServerDisconnectedError, etc. during
        # close -- broad suppression is intentional for teardown.
        if self._ws is not None:
            with contextlib.suppress(Exception):
                await asyncio.wait_for(self._ws.close(), timeout=_WS_CLOSE_TIMEOUT)
        if self._owns_session and self._session is not None:
            with contextlib.suppress(Exception):
                await asyncio.wait_for(self._session.close(), timeout=_WS_CLOSE_TIMEOUT)
        logger.debug("relay_closed relay=%s", self.url)

    async def subscribe(self, filters: Sequence[Filter]) -> Subscription:
        """Send ``REQ`` with *filters* and return the live subscription.

        Raises:
            RelayConnectionError: If the session is not connected or the send fails.
        """
        sub = Subscription(self, secrets.token_hex(8), filters)
        self._subscriptions[sub.id] = sub
        try:
            await self._send(["REQ", sub.id, *(f.to_wire() for f in sub.filters)])
        except RelayConnectionError:
            self._subscriptions.pop(sub.id, None)
            raise
        logger.debug("subscription_opened relay=%s sub=%s", self.url, sub.id)
        return sub

    async def publish(self, event: Event) -> Publication:
        """Send ``EVENT`` and return a publication awaiting the relay's ``OK``.

        Send failures do not raise: the returned publication is already
        resolved as [FAILED][nostrfeed.utils.transport.PublishStatus].
        """
        pub = self._publications.get(event.id)
        if pub is None:
            pub = Publication(self.url, event.id)
            self._publications[event.id] = pub
        try:
            await self._send(["EVENT", event.to_dict()])
        except RelayConnectionError as e:
            self._publications.pop(event.id, None)
            pub._resolve(PublishStatus.FAILED, str(e))
        return pub

    async def _unsubscribe(self, sub: Subscription) -> None:
        if self._subscriptions.pop(sub.id, None) is None or not self.is_connected:
            return
        try:
            await self._send(["CLOSE", sub.id])
        except RelayConnectionError as e:
            logger.debug("unsubscribe_failed relay=%s sub=%s error=%s", self.url, sub.id, e)

    async def _send(self, frame: list[Any]) -> None:
        if not self.is_connected or self._ws is None:
            raise RelayConnectionError(f"Relay not connected: {self.url}", url=self.url)
        try:
            await self._ws.send_str(json.dumps(frame, separators=(",", ":"), ensure_ascii=False))
        except (aiohttp.ClientError, OSError) as e:
            raise RelayConnectionError(f"Send failed: {self.url} ({e})", url=self.url) from e

    async def _read_loop(self) -> None:
        if self._ws is None:
            return
        try:
            async for message in self._ws:
                if message.type == aiohttp.WSMsgType.TEXT:
                    self._dispatch(message.data)
                elif message.type == aiohttp.WSMsgType.ERROR:
                    logger.debug("relay_socket_error relay=%s error=%s", self.url, self._ws.exception())
                    break
        finally:
            if self._status != RelayStatus.CLOSED:
                logger.debug("relay_disconnected relay=%s", self.url)
                self._status = RelayStatus.CLOSED
                self._teardown("connection lost")

    def _teardown(self, reason: str) -> None:
        for sub in self._subscriptions.values():
            sub._finish(reason=reason)
        self._subscriptions.clear()
        for pub in self._publications.values():
            pub._resolve(PublishStatus.FAILED, reason)
        self._publications.clear()

    def _dispatch(self, data: str) -> None:  # noqa: C901
        """Route one text frame to its subscription or publication."""
        try:
            frame = json.loads(data)
        except (ValueError, RecursionError):
            logger.debug("invalid_frame relay=%s", self.url)
            return
        if not isinstance(frame, list) or not frame or not isinstance(frame[0], str):
            logger.debug("invalid_frame relay=%s", self.url)
            return

        label, args = frame[0], frame[1:]

        if label == "EVENT" and len(args) >= 2:
            sub = self._subscriptions.get(args[0])
            if sub is not None:
                sub._push(args[1])
        elif label == "EOSE" and args:
            sub = self._subscriptions.get(args[0])
            if sub is not None:
                sub._finish(eose=True)
        elif label == "CLOSED" and args:
            sub = self._subscriptions.pop(args[0], None)
            if sub is not None:
                reason = str(args[1]) if len(args) > 1 else ""
                logger.debug(
                    "subscription_closed_by_relay relay=%s sub=%s reason=%s", self.url, sub.id, reason
                )
                sub._finish(reason=reason)
        elif label == "OK" and len(args) >= 2:
            pub = self._publications.pop(args[0], None)
            if pub is not None:
                message = str(args[2]) if len(args) > 2 else ""
                if args[1] is not True:
                    pub._resolve(PublishStatus.FAILED, message)
                elif message.startswith(_DUPLICATE_PREFIX):
                    pub._resolve(PublishStatus.SEEN, message)
                else:
                    pub._resolve(PublishStatus.ACCEPTED, message)
        elif label == "NOTICE":
            logger.info("relay_notice relay=%s message=%s", self.url, args[0] if args else "")
        else:
            logger.debug("unhandled_frame relay=%s label=%s", self.url, label)


# =============================================================================
# Connection race
# =============================================================================


@dataclass(frozen=True, slots=True)
class Connected:
    """Handshake completed; the session is usable."""

    relay: RelaySession

    @property
    def url(self) -> str:
        return self.relay.url


@dataclass(frozen=True, slots=True)
class ConnectFailed:
    """Handshake rejected or transport error; the session was closed."""

    url: str
    error: RelayConnectionError


@dataclass(frozen=True, slots=True)
class ConnectTimedOut:
    """No handshake outcome before the deadline; the session was force-closed."""

    url: str
    error: RelayTimeoutError


ConnectOutcome = Connected | ConnectFailed | ConnectTimedOut


async def open_relay(
    url: str,
    *,
    timeout: float = DEFAULT_CONNECT_TIMEOUT,  # noqa: ASYNC109
    relay_factory: RelayFactory = RelayConnection,
) -> ConnectOutcome:
    """Connect to one relay, racing the handshake against a timer.

    Whichever of the handshake and the timer completes first decides the
    outcome; the loser's result is discarded. When the timer wins, the
    in-flight handshake is cancelled and the session closed so nothing
    leaks.

    Args:
        url: Relay URL.
        timeout: Connection deadline in seconds.
        relay_factory: Builds the session object for ``url``.

    Returns:
        Exactly one of [Connected][nostrfeed.utils.transport.Connected],
        [ConnectFailed][nostrfeed.utils.transport.ConnectFailed] or
        [ConnectTimedOut][nostrfeed.utils.transport.ConnectTimedOut].
    """
    try:
        relay = relay_factory(url)
    except ValueError as e:
        RELAY_CONNECTIONS.labels(outcome="failed").inc()
        return ConnectFailed(url, RelayConnectionError(f"Invalid relay URL: {url} ({e})", url=url))

    handshake = asyncio.ensure_future(relay.connect())
    timer = asyncio.ensure_future(asyncio.sleep(timeout))
    try:
        done, _ = await asyncio.wait({handshake, timer}, return_when=asyncio.FIRST_COMPLETED)
    except asyncio.CancelledError:
        handshake.cancel()
        timer.cancel()
        await asyncio.gather(handshake, timer, return_exceptions=True)
        await relay.close()
        raise
    timer.cancel()

    if handshake in done:
        error = handshake.exception()
        if error is None:
            RELAY_CONNECTIONS.labels(outcome="connected").inc()
            logger.debug("connect_succeeded relay=%s", relay.url)
            return Connected(relay)

        await relay.close()
        if not isinstance(error, ConnectivityError | OSError):
            raise error
        RELAY_CONNECTIONS.labels(outcome="failed").inc()
        logger.debug("connect_failed relay=%s error=%s", relay.url, error)
        if not isinstance(error, RelayConnectionError):
            error = RelayConnectionError(f"Connection failed: {relay.url} ({error})", url=relay.url)
        return ConnectFailed(relay.url, error)

    handshake.cancel()
    await asyncio.gather(handshake, return_exceptions=True)
    await relay.close()
    RELAY_CONNECTIONS.labels(outcome="timeout").inc()
    logger.debug("connect_timeout relay=%s timeout_s=%s", relay.url, timeout)
    return ConnectTimedOut(
        relay.url, RelayTimeoutError(f"Connection timeout after {timeout}s: {relay.url}", url=relay.url)
    )


@contextlib.asynccontextmanager
async def open_relays(
    urls: Iterable[str],
    *,
    timeout: float = DEFAULT_CONNECT_TIMEOUT,  # noqa: ASYNC109
    relay_factory: RelayFactory = RelayConnection,
) -> AsyncIterator[list[RelaySession]]:
    """Open every relay concurrently and yield the ones that connected.

    Failed and timed-out relays are logged and skipped. Every connected
    session is closed when the block exits, normally or not. If opening one
    relay raises (or the caller is cancelled while relays are opening), the
    sessions already connected are closed before the error propagates.
    """
    tasks = [
        asyncio.ensure_future(open_relay(url, timeout=timeout, relay_factory=relay_factory))
        for url in dict.fromkeys(urls)
    ]
    try:
        outcomes = await asyncio.gather(*tasks, return_exceptions=True)
    except asyncio.CancelledError:
        for task in tasks:
            task.cancel()
        await _close_connected(await asyncio.gather(*tasks, return_exceptions=True))
        raise

    errors = [outcome for outcome in outcomes if isinstance(outcome, BaseException)]
    if errors:
        await _close_connected(outcomes)
        raise errors[0]

    relays: list[RelaySession] = []
    for outcome in outcomes:
        if isinstance(outcome, Connected):
            relays.append(outcome.relay)
        else:
            logger.info("relay_skipped relay=%s error=%s", outcome.url, outcome.error)
    logger.debug("relays_opened connected=%d requested=%d", len(relays), len(outcomes))

    try:
        yield relays
    finally:
        await asyncio.gather(*(relay.close() for relay in relays))


async def _close_connected(outcomes: Iterable[ConnectOutcome | BaseException]) -> None:
    await asyncio.gather(
        *(outcome.relay.close() for outcome in outcomes if isinstance(outcome, Connected)),
        return_exceptions=True,
    )
