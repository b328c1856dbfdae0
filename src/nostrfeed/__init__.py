r"""nostrfeed -- Nostr client-side relay aggregation and event reconciliation.

Fans queries out to many relays, merges and deduplicates what comes back,
expands reposts and replies into the events they reference, and races
publications until the first relay accepts.

Architecture follows a **diamond DAG** dependency structure where imports
flow strictly downward:

```text
               client          Aggregator, resolver, publisher, facade
             /   |   \
          core  nips  utils    Logging/errors, wire codec, transport
             \   |   /
              models           Pure frozen dataclasses (zero I/O)
```

Attributes:
    models: Events, filters, relays and result containers.
    core: Exceptions, structured logging, YAML loading, metrics.
    nips: NIP-01 event codec, ids, signing and verification.
    utils: aiohttp WebSocket relay sessions, key loading.
    client: [NostrFeed][nostrfeed.client.feed.NostrFeed] and the functions
        it is built from.

Note:
    Top-level imports (``from nostrfeed import NostrFeed``) use lazy loading
    and resolve on first access.
"""

import importlib
from importlib.metadata import version as _get_version


__version__ = _get_version("nostrfeed")

__all__ = [
    "Event",
    "EventKind",
    "Filter",
    "Logger",
    "NostrFeed",
    "NostrFeedConfig",
    "NostrFeedError",
    "ProfileResult",
    "Relay",
    "RelayConnection",
    "ResultSet",
]

_LAZY_IMPORTS: dict[str, tuple[str, str]] = {
    "Logger": ("nostrfeed.core", "Logger"),
    "NostrFeedError": ("nostrfeed.core", "NostrFeedError"),
    "Event": ("nostrfeed.models", "Event"),
    "EventKind": ("nostrfeed.models", "EventKind"),
    "Filter": ("nostrfeed.models", "Filter"),
    "ProfileResult": ("nostrfeed.models", "ProfileResult"),
    "Relay": ("nostrfeed.models", "Relay"),
    "ResultSet": ("nostrfeed.models", "ResultSet"),
    "RelayConnection": ("nostrfeed.utils.transport", "RelayConnection"),
    "NostrFeed": ("nostrfeed.client", "NostrFeed"),
    "NostrFeedConfig": ("nostrfeed.client", "NostrFeedConfig"),
}


def __getattr__(name: str) -> object:
    if name in _LAZY_IMPORTS:
        module_path, attr_name = _LAZY_IMPORTS[name]
        module = importlib.import_module(module_path)
        value = getattr(module, attr_name)
        globals()[name] = value  # Cache for subsequent access
        return value
    raise AttributeError(f"module 'nostrfeed' has no attribute {name!r}")


def __dir__() -> list[str]:
    return __all__
