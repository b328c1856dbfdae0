"""Relay transport and Nostr key loading.

The utils layer sits in the middle of the diamond DAG, above
[nostrfeed.models][nostrfeed.models] and [nostrfeed.core][nostrfeed.core].
It provides the network and key-handling primitives the
[nostrfeed.client][nostrfeed.client] layer is built on.

Attributes:
    keys: Private key loading from environment variables (nsec1 bech32 or
        hex) with a Pydantic config model. Only needed for publishing.
    transport: aiohttp WebSocket sessions speaking NIP-01, the
        connect-or-timeout race and the ``open_relays`` context manager.

Note:
    The utils layer has **zero** imports from ``nostrfeed.client``.

Examples:
    ```python
    from nostrfeed.utils.transport import open_relays
    from nostrfeed.utils.keys import KeysConfig
    ```
"""
