"""
Validated Nostr relay URL.

Parses and normalizes WebSocket relay URLs (``ws://`` or ``wss://``) with
RFC 3986 validation. Query strings and fragments are rejected, duplicate
slashes in the path are collapsed and default ports are stripped so that
two spellings of the same endpoint compare equal.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, ClassVar

from rfc3986 import uri_reference
from rfc3986.exceptions import UnpermittedComponentError, ValidationError
from rfc3986.validators import Validator


@dataclass(frozen=True, slots=True)
class Relay:
    """Immutable representation of a relay endpoint.

    Attributes:
        url: Fully normalized URL including scheme.
        scheme: ``ws`` or ``wss``.
        host: Hostname or IP address (brackets stripped for IPv6).
        port: Explicit non-default port, or ``None``.
        path: URL path component, or ``None``.

    Raises:
        ValueError: If the URL is malformed, uses an unsupported scheme,
            or contains a query, fragment or null bytes.

    Examples:
        ```python
        Relay("wss://relay.damus.io/").url        # 'wss://relay.damus.io'
        Relay("WSS://Relay.Damus.io:443").url     # 'wss://relay.damus.io'
        ```
    """

    raw_url: str = field(repr=False)

    url: str = field(init=False)
    scheme: str = field(init=False)
    host: str = field(init=False)
    port: int | None = field(init=False)
    path: str | None = field(init=False)

    _DEFAULT_PORTS: ClassVar[dict[str, int]] = {"ws": 80, "wss": 443}

    def __post_init__(self) -> None:
        if "\x00" in self.raw_url:
            raise ValueError("Relay URL contains null bytes")

        parsed = self._parse(self.raw_url)
        for key, value in parsed.items():
            object.__setattr__(self, key, value)

    def __str__(self) -> str:
        return self.url

    @classmethod
    def _parse(cls, raw: str) -> dict[str, Any]:
        uri = uri_reference(raw.strip()).normalize()

        validator = (
            Validator()
            .require_presence_of("scheme", "host")
            .allow_schemes("ws", "wss")
            .check_validity_of("scheme", "host", "port", "path")
        )
        try:
            validator.validate(uri)
        except UnpermittedComponentError:
            raise ValueError("Invalid scheme: must be ws or wss") from None
        except ValidationError as e:
            raise ValueError(f"Invalid URL: {e}") from None

        if uri.query:
            raise ValueError(f"Relay URL must not contain a query string: ?{uri.query}")
        if uri.fragment:
            raise ValueError(f"Relay URL must not contain a fragment: #{uri.fragment}")

        scheme = uri.scheme
        host = uri.host.strip("[]")
        port = int(uri.port) if uri.port else None
        if port == cls._DEFAULT_PORTS[scheme]:
            port = None

        path = uri.path or ""
        while "//" in path:
            path = path.replace("//", "/")
        path = path.rstrip("/") or None

        netloc = f"[{host}]" if ":" in host else host
        if port is not None:
            netloc = f"{netloc}:{port}"

        return {
            "url": f"{scheme}://{netloc}{path or ''}",
            "scheme": scheme,
            "host": host,
            "port": port,
            "path": path,
        }
