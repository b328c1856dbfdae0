"""High-level query facade over a configured relay set.

[NostrFeed][nostrfeed.client.feed.NostrFeed] is what applications use. Each
operation opens its own relay sessions, runs one or more aggregations,
closes every session, and returns plain result objects. Relay faults never
surface as exceptions: unreachable relays are skipped and slow ones cut
off by the deadlines in [TimeoutsConfig][nostrfeed.client.configs.TimeoutsConfig].

Examples:
    ```python
    feed = NostrFeed.from_yaml("config/nostrfeed.yaml")
    result = await feed.fetch_events_for_authors([pubkey], limit=20)
    for note in result.notes:
        author = result.profiles.get(note.pubkey)
        name = author.content.get("name") if author and author.is_structured else None
        print(name or note.pubkey, note.text)
    ```
"""

from __future__ import annotations

import asyncio
import json
from collections.abc import Iterable, Mapping, Sequence
from pathlib import Path
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from nostrfeed.core.exceptions import ConfigurationError, PublishingError
from nostrfeed.core.logger import Logger
from nostrfeed.core.metrics import OPERATION_DURATION_SECONDS
from nostrfeed.core.yaml import load_yaml
from nostrfeed.models.constants import TAG_EVENT, TAG_PUBKEY, EventKind
from nostrfeed.models.filter import Filter
from nostrfeed.models.result import ProfileResult, RelatedEvents, ResultSet
from nostrfeed.nips.signing import verify_event
from nostrfeed.utils.transport import RelayConnection, open_relays

from . import aggregator, publisher
from .configs import NostrFeedConfig
from .resolver import FEED_KINDS, resolve_related


if TYPE_CHECKING:
    from contextlib import AbstractAsyncContextManager

    from nostrfeed.models.event import Event
    from nostrfeed.nips.signing import Signer
    from nostrfeed.utils.transport import RelayFactory, RelaySession


class NostrFeed:
    """Query and publish against a set of relays.

    Args:
        config: Relay list, deadlines and limits. Defaults to
            ``NostrFeedConfig()``.
        signer: Signs published events. When omitted, the key named by
            ``config.keys`` is loaded on the first publishing call.
        relay_factory: Builds one relay session per URL.

    Note:
        Read operations never require a key. Publishing operations raise
        [PublishingError][nostrfeed.core.exceptions.PublishingError] when no
        signer is available.
    """

    def __init__(
        self,
        config: NostrFeedConfig | None = None,
        *,
        signer: Signer | None = None,
        relay_factory: RelayFactory = RelayConnection,
    ) -> None:
        self._config = config or NostrFeedConfig()
        self._signer = signer
        self._relay_factory = relay_factory
        self._verifier = verify_event if self._config.verify_signatures else None
        self._logger = Logger("feed")

    @classmethod
    def from_yaml(cls, config_path: str | Path, **kwargs: Any) -> NostrFeed:
        """Build a facade from a YAML file.

        Raises:
            FileNotFoundError: If the file does not exist.
            ConfigurationError: If the YAML or its values are invalid.
        """
        return cls.from_dict(load_yaml(config_path), **kwargs)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], **kwargs: Any) -> NostrFeed:
        """Build a facade from a configuration mapping.

        Raises:
            ConfigurationError: If the values are invalid.
        """
        try:
            config = NostrFeedConfig.model_validate(data)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid configuration: {e}") from e
        return cls(config, **kwargs)

    @property
    def config(self) -> NostrFeedConfig:
        return self._config

    def connect(self, relays: Iterable[str] | None = None) -> AbstractAsyncContextManager[list[RelaySession]]:
        """Open the configured relays (or *relays*) for the duration of an ``async with`` block."""
        return open_relays(
            self._config.relays if relays is None else relays,
            timeout=self._config.timeouts.connect,
            relay_factory=self._relay_factory,
        )

    # -- Queries ---------------------------------------------------------------

    async def fetch_events_for_authors(self, pubkeys: Iterable[str], limit: int | None = None) -> ResultSet:
        """Notes and reposts by *pubkeys*, with referenced events and author profiles."""
        authors = list(dict.fromkeys(pubkeys))
        if not authors:
            return ResultSet()
        wanted = Filter(kinds=FEED_KINDS, authors=authors, limit=limit or self._config.limits.default)
        with OPERATION_DURATION_SECONDS.labels(operation="authors").time():
            async with self.connect() as relays:
                notes = await self._collect(relays, wanted)
                related = await self._resolve(relays, notes)
        self._logger.info(
            "authors_fetched", authors=len(authors), notes=len(notes), related=len(related.related)
        )
        return ResultSet(notes=notes, related=related.related, profiles=related.profiles)

    async def fetch_events_mentioning(self, pubkey: str, limit: int | None = None) -> ResultSet:
        """Notes and reposts tagging *pubkey*.

        Referenced events and profiles are not resolved: ``related`` and
        ``profiles`` are always empty.
        """
        limit = limit or self._config.limits.default
        wanted = Filter(kinds=FEED_KINDS, tags={TAG_PUBKEY: (pubkey,)}, limit=limit)
        with OPERATION_DURATION_SECONDS.labels(operation="mentions").time():
            async with self.connect() as relays:
                notes = await self._collect(relays, wanted)
        self._logger.info("mentions_fetched", pubkey=pubkey, notes=len(notes))
        return ResultSet(notes=notes)

    async def fetch_profile(self, pubkey: str) -> ProfileResult:
        """Profile metadata and contact list of *pubkey*, looked up concurrently."""
        with OPERATION_DURATION_SECONDS.labels(operation="profile").time():
            async with self.connect() as relays:
                profile, contact_list = await asyncio.gather(
                    self._lookup(relays, Filter(kinds=(EventKind.PROFILE,), authors=(pubkey,), limit=1)),
                    self._lookup(relays, Filter(kinds=(EventKind.CONTACT_LIST,), authors=(pubkey,), limit=1)),
                )
        self._logger.info(
            "profile_fetched", pubkey=pubkey, profile=profile is not None, contacts=contact_list is not None
        )
        return ProfileResult(profile=profile, contact_list=contact_list)

    async def fetch_thread(self, event_ids: Iterable[str]) -> ResultSet:
        """Notes referencing any of *event_ids*, with referenced events and author profiles."""
        ids = list(dict.fromkeys(event_ids))
        if not ids:
            return ResultSet()
        wanted = Filter(kinds=(EventKind.NOTE,), tags={TAG_EVENT: ids}, limit=self._config.limits.default)
        with OPERATION_DURATION_SECONDS.labels(operation="thread").time():
            async with self.connect() as relays:
                notes = await self._collect(relays, wanted)
                related = await self._resolve(relays, notes)
        self._logger.info("thread_fetched", ids=len(ids), notes=len(notes), related=len(related.related))
        return ResultSet(notes=notes, related=related.related, profiles=related.profiles)

    async def fetch_replies(self, event_ids: Iterable[str]) -> ResultSet:
        """Same as [fetch_thread()][nostrfeed.client.feed.NostrFeed.fetch_thread]."""
        return await self.fetch_thread(event_ids)

    async def collect(
        self,
        filters: Filter | Sequence[Filter],
        *,
        timeout: float | None = None,  # noqa: ASYNC109
    ) -> list[Event]:
        """Run one aggregation over the configured relays."""
        with OPERATION_DURATION_SECONDS.labels(operation="collect").time():
            async with self.connect() as relays:
                return await self._collect(relays, filters, timeout=timeout)

    async def collect_one(self, filter: Filter) -> Event | None:  # noqa: A002
        """First event matching *filter*, or ``None`` within the lookup deadline."""
        with OPERATION_DURATION_SECONDS.labels(operation="collect_one").time():
            async with self.connect() as relays:
                return await self._lookup(relays, filter)

    # -- Publishing ------------------------------------------------------------

    async def publish(self, kind: int, content: str = "", tags: Iterable[Sequence[str]] = ()) -> Event | None:
        """Sign and publish an event; the event once a relay accepts it, else ``None``.

        Raises:
            PublishingError: If no signer is available.
        """
        signer = self._require_signer()
        with OPERATION_DURATION_SECONDS.labels(operation="publish").time():
            async with self.connect() as relays:
                return await self._publish(relays, signer, kind, content, tags)

    async def publish_note(self, content: str, reply_to: Event | None = None) -> Event | None:
        """Publish a text note, optionally as a reply to *reply_to*."""
        tags = [] if reply_to is None else _reference_tags(reply_to)
        return await self.publish(EventKind.NOTE, content, tags)

    async def repost(self, event: Event) -> Event | None:
        """Repost *event*, embedding it so readers need not fetch it."""
        return await self.publish(EventKind.REPOST, event.to_json(), _reference_tags(event))

    async def react(self, event: Event, reaction: str = "+") -> Event | None:
        return await self.publish(EventKind.REACTION, reaction, _reference_tags(event))

    async def update_profile(self, metadata: Mapping[str, Any]) -> Event | None:
        """Replace the signer's profile metadata (``name``, ``about``, ``picture``, ...)."""
        return await self.publish(EventKind.PROFILE, json.dumps(dict(metadata), ensure_ascii=False))

    async def follow(self, pubkey: str) -> Event | None:
        """Add *pubkey* to the signer's contact list.

        Returns:
            The published contact list, the current one if *pubkey* is
            already followed, or ``None`` if no relay accepted the update.
        """
        return await self._edit_contacts(pubkey, follow=True)

    async def unfollow(self, pubkey: str) -> Event | None:
        """Remove *pubkey* from the signer's contact list.

        Returns:
            The published contact list, the current one (or ``None`` when
            there is none) if *pubkey* is not followed, or ``None`` if no
            relay accepted the update.
        """
        return await self._edit_contacts(pubkey, follow=False)

    # -- Internals -------------------------------------------------------------

    def _require_signer(self) -> Signer:
        if self._signer is None:
            try:
                self._signer = self._config.keys.signer()
            except ConfigurationError as e:
                raise PublishingError(f"No signer available: {e}") from e
        return self._signer

    async def _collect(
        self,
        relays: Sequence[RelaySession],
        filters: Filter | Sequence[Filter],
        *,
        timeout: float | None = None,  # noqa: ASYNC109
    ) -> list[Event]:
        return await aggregator.collect(
            relays,
            filters,
            timeout=timeout or self._config.timeouts.fetch,
            default_limit=self._config.limits.default,
            verifier=self._verifier,
        )

    async def _lookup(self, relays: Sequence[RelaySession], wanted: Filter) -> Event | None:
        try:
            async with asyncio.timeout(self._config.timeouts.lookup):
                return await aggregator.collect_one(relays, wanted, verifier=self._verifier)
        except TimeoutError:
            self._logger.debug("lookup_timeout", filter=wanted.to_wire())
            return None

    async def _resolve(self, relays: Sequence[RelaySession], notes: Sequence[Event]) -> RelatedEvents:
        return await resolve_related(
            relays,
            notes,
            timeout=self._config.timeouts.fetch,
            default_limit=self._config.limits.default,
            verifier=self._verifier,
        )

    async def _publish(  # noqa: PLR0913
        self,
        relays: Sequence[RelaySession],
        signer: Signer,
        kind: int,
        content: str,
        tags: Iterable[Sequence[str]],
    ) -> Event | None:
        return await publisher.publish(
            relays, signer, kind, content, tags, timeout=self._config.timeouts.publish
        )

    async def _edit_contacts(self, pubkey: str, *, follow: bool) -> Event | None:
        signer = self._require_signer()
        with OPERATION_DURATION_SECONDS.labels(operation="follow" if follow else "unfollow").time():
            async with self.connect() as relays:
                current = await self._lookup(
                    relays, Filter(kinds=(EventKind.CONTACT_LIST,), authors=(signer.public_key,), limit=1)
                )
                tags = list(current.tags) if current else []
                following = any(_is_pubkey_tag(tag, pubkey) for tag in tags)
                if follow == following:
                    self._logger.info("contacts_unchanged", pubkey=pubkey, following=following)
                    return current

                if follow:
                    tags.append((TAG_PUBKEY, pubkey))
                else:
                    tags = [tag for tag in tags if not _is_pubkey_tag(tag, pubkey)]
                content = current.text if current else ""
                return await self._publish(relays, signer, EventKind.CONTACT_LIST, content, tags)


def _reference_tags(event: Event) -> list[tuple[str, str]]:
    return [(TAG_EVENT, event.id), (TAG_PUBKEY, event.pubkey)]


def _is_pubkey_tag(tag: Sequence[str], pubkey: str) -> bool:
    return len(tag) > 1 and tag[0] == TAG_PUBKEY and tag[1] == pubkey
