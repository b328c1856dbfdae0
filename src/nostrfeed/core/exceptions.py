"""nostrfeed exception hierarchy.

Relay-level faults never reach the callers of the query facade as
exceptions: they are caught at the relay boundary, logged, and degrade to
partial results. The classes below are what those boundaries catch, plus
the few errors that do propagate (bad configuration, publishing without a
signer).

Exception hierarchy:

```text
NostrFeedError (base -- never raised directly)
├── ConfigurationError       -- config validation, missing keys, bad YAML
├── ConnectivityError        -- relay unreachable, transport failures
│   ├── RelayConnectionError -- handshake rejected or transport error
│   └── RelayTimeoutError    -- no handshake outcome within the deadline
├── ProtocolError            -- malformed wire data
│   ├── EventDecodeError     -- wire event structurally invalid
│   └── ContentDecodeError   -- structured content unparsable
└── PublishingError          -- event cannot be published
```

See Also:
    [open_relay()][nostrfeed.utils.transport.open_relay]: Maps handshake
        failures to [RelayConnectionError][nostrfeed.core.exceptions.RelayConnectionError]
        and [RelayTimeoutError][nostrfeed.core.exceptions.RelayTimeoutError].
    [normalize()][nostrfeed.nips.codec.normalize]: Raises
        [EventDecodeError][nostrfeed.core.exceptions.EventDecodeError].
"""

from __future__ import annotations


class NostrFeedError(Exception):
    """Base exception for all nostrfeed errors.

    Never raised directly -- always use a specific subclass.
    """


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


class ConfigurationError(NostrFeedError):
    """Invalid or missing configuration (YAML, env vars, CLI flags)."""


# ---------------------------------------------------------------------------
# Connectivity
# ---------------------------------------------------------------------------


class ConnectivityError(NostrFeedError):
    """Base for all relay/network connectivity errors.

    Attributes:
        url: The relay URL the error relates to.
    """

    def __init__(self, message: str, *, url: str = "") -> None:
        super().__init__(message)
        self.url = url


class RelayConnectionError(ConnectivityError):
    """Handshake rejected, transport error, or send on a closed session.

    The relay is skipped for the current operation; the operation itself
    continues with the remaining relays.
    """


class RelayTimeoutError(ConnectivityError):
    """No handshake outcome within the connection deadline.

    Treated identically to
    [RelayConnectionError][nostrfeed.core.exceptions.RelayConnectionError].
    """


# ---------------------------------------------------------------------------
# Protocol
# ---------------------------------------------------------------------------


class ProtocolError(NostrFeedError):
    """Malformed data received from a relay."""


class EventDecodeError(ProtocolError):
    """A wire event is missing fields or has fields of the wrong type.

    The event is dropped; the fetch continues.
    """


class ContentDecodeError(ProtocolError):
    """Event content that should hold a JSON object could not be parsed.

    Never surfaced to callers: the event is kept with its raw content.
    """


# ---------------------------------------------------------------------------
# Publishing
# ---------------------------------------------------------------------------


class PublishingError(NostrFeedError):
    """An event cannot be published (e.g. no signer configured).

    Note:
        A publish that no relay acknowledges in time is *not* an error:
        [publish()][nostrfeed.client.publisher.publish] returns ``None``.
    """
