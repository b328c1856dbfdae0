"""Query facade configuration models.

Every field has a default, so ``NostrFeedConfig()`` is a working
configuration against the public default relays. YAML files loaded through
[NostrFeed.from_yaml()][nostrfeed.client.feed.NostrFeed.from_yaml] only need
to override what differs.

See Also:
    [NostrFeed][nostrfeed.client.feed.NostrFeed]: The facade that consumes
        these configurations.
    [KeysConfig][nostrfeed.utils.keys.KeysConfig]: Where the publishing key
        is read from.
"""

from __future__ import annotations

from pydantic import BaseModel, Field, field_validator

from nostrfeed.models.constants import (
    DEFAULT_CONNECT_TIMEOUT,
    DEFAULT_FETCH_LIMIT,
    DEFAULT_FETCH_TIMEOUT,
    DEFAULT_PUBLISH_TIMEOUT,
    DEFAULT_RELAYS,
)
from nostrfeed.models.relay import Relay
from nostrfeed.utils.keys import KeysConfig


class TimeoutsConfig(BaseModel):
    """Deadlines in seconds.

    Note:
        ``fetch`` bounds a whole aggregation, from the moment subscriptions
        are opened. ``connect`` bounds each relay handshake separately and
        is not included in ``fetch``.
    """

    connect: float = Field(
        default=DEFAULT_CONNECT_TIMEOUT, gt=0.0, le=60.0, description="Per-relay handshake deadline"
    )
    fetch: float = Field(
        default=DEFAULT_FETCH_TIMEOUT, gt=0.0, le=300.0, description="Aggregation deadline"
    )
    lookup: float = Field(
        default=DEFAULT_FETCH_TIMEOUT, gt=0.0, le=300.0, description="Single-event lookup deadline"
    )
    publish: float = Field(
        default=DEFAULT_PUBLISH_TIMEOUT, gt=0.0, le=300.0, description="Publish acknowledgement deadline"
    )


class LimitsConfig(BaseModel):
    """Result-size limits."""

    default: int = Field(
        default=DEFAULT_FETCH_LIMIT,
        ge=1,
        le=5000,
        description="Limit applied to filters that carry none",
    )


class NostrFeedConfig(BaseModel):
    """Top-level configuration of [NostrFeed][nostrfeed.client.feed.NostrFeed].

    Examples:
        ```yaml
        relays:
          - wss://relay.damus.io
          - wss://nos.lol
        timeouts:
          fetch: 5.0
        verify_signatures: true
        ```
    """

    relays: list[str] = Field(
        default_factory=lambda: list(DEFAULT_RELAYS),
        min_length=1,
        description="Relay URLs queried and published to",
    )
    timeouts: TimeoutsConfig = Field(default_factory=TimeoutsConfig)
    limits: LimitsConfig = Field(default_factory=LimitsConfig)
    verify_signatures: bool = Field(
        default=False, description="Drop events whose id or signature does not verify"
    )
    keys: KeysConfig = Field(default_factory=KeysConfig)

    @field_validator("relays", mode="after")
    @classmethod
    def normalize_relays(cls, v: list[str]) -> list[str]:
        """Validate each URL and return them normalized, without duplicates."""
        return list(dict.fromkeys(Relay(url).url for url in v))
