"""Client layer: aggregation, relation resolution, publishing and the facade.

Top of the diamond DAG. Everything here works on open relay sessions
provided by [nostrfeed.utils.transport][nostrfeed.utils.transport].

Attributes:
    NostrFeed: Query facade. See [NostrFeed][nostrfeed.client.feed.NostrFeed].
    NostrFeedConfig: Its Pydantic configuration model.
    collect: Multi-relay aggregation with limit, EOSE and deadline termination.
    collect_one: First matching event from any relay.
    resolve_related: Reposted events, reply parents and author profiles.
    publish: Sign and race a publication across relays.
"""

from .aggregator import collect, collect_one
from .configs import LimitsConfig, NostrFeedConfig, TimeoutsConfig
from .feed import NostrFeed
from .publisher import publish
from .resolver import resolve_related


__all__ = [
    "LimitsConfig",
    "NostrFeed",
    "NostrFeedConfig",
    "TimeoutsConfig",
    "collect",
    "collect_one",
    "publish",
    "resolve_related",
]
