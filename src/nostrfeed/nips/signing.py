"""Event ids, signatures and verification.

The cryptographic primitives themselves come from ``nostr-sdk``; this
module only fixes the call contract the rest of the client relies on:

* [compute_event_id()][nostrfeed.nips.signing.compute_event_id] -- NIP-01
  fingerprint of an unsigned body (sha256 of its canonical serialization).
* [Signer][nostrfeed.nips.signing.Signer] -- anything with a
  ``public_key`` and a ``sign_event()`` method;
  [KeysSigner][nostrfeed.nips.signing.KeysSigner] is the ``nostr_sdk.Keys``
  implementation.
* [verify_event()][nostrfeed.nips.signing.verify_event] -- id and Schnorr
  signature check delegated to ``nostr_sdk.Event.verify()``.
* [validate_event()][nostrfeed.nips.signing.validate_event] -- structural
  well-formedness, including id recomputation, without touching the
  signature.

Examples:
    ```python
    from nostr_sdk import Keys

    signer = KeysSigner(Keys.generate())
    event = signer.sign_event(
        UnsignedEvent(pubkey=signer.public_key, created_at=1700000000, kind=1, content="gm")
    )
    verify_event(event)  # True
    ```
"""

from __future__ import annotations

import hashlib
import json
import logging
from typing import Protocol, runtime_checkable

from nostr_sdk import Event as NostrEvent
from nostr_sdk import EventBuilder, Keys, Kind, Tag, Timestamp

from nostrfeed.core.exceptions import EventDecodeError
from nostrfeed.models.event import Event, UnsignedEvent

from .codec import normalize


logger = logging.getLogger("nostrfeed.nips.signing")

# Silence nostr-sdk UniFFI callback stack traces (verification failures are handled here)
logging.getLogger("nostr_sdk").setLevel(logging.CRITICAL)


def compute_event_id(unsigned: UnsignedEvent) -> str:
    """Return the NIP-01 id (lowercase hex sha256) of an unsigned event body."""
    return hashlib.sha256(unsigned.serialize().encode("utf-8")).hexdigest()


@runtime_checkable
class Signer(Protocol):
    """Signing collaborator used by the publisher."""

    @property
    def public_key(self) -> str:
        """Hex public key events are authored under."""
        ...

    def sign_event(self, unsigned: UnsignedEvent) -> Event:
        """Attach an id and a signature to *unsigned*."""
        ...


class KeysSigner:
    """[Signer][nostrfeed.nips.signing.Signer] backed by ``nostr_sdk.Keys``.

    Warning:
        Holds a live private key. Never log or serialize this object.
    """

    __slots__ = ("_keys", "_public_key")

    def __init__(self, keys: Keys) -> None:
        self._keys = keys
        self._public_key = keys.public_key().to_hex()

    def __repr__(self) -> str:
        return f"KeysSigner(public_key={self._public_key})"

    @property
    def public_key(self) -> str:
        return self._public_key

    def sign_event(self, unsigned: UnsignedEvent) -> Event:
        """Sign *unsigned* with the wrapped keys.

        Raises:
            ValueError: If ``unsigned.pubkey`` is not this signer's key, or
                the id computed by nostr-sdk disagrees with
                [compute_event_id()][nostrfeed.nips.signing.compute_event_id].
        """
        if unsigned.pubkey != self._public_key:
            raise ValueError("unsigned event pubkey does not match the signing keys")

        builder = (
            EventBuilder(Kind(unsigned.kind), unsigned.content)
            .tags([Tag.parse(list(tag)) for tag in unsigned.tags])
            .custom_created_at(Timestamp.from_secs(unsigned.created_at))
        )
        signed = builder.sign_with_keys(self._keys)
        event = normalize(json.loads(signed.as_json()))

        if event.id != compute_event_id(unsigned):
            raise ValueError(f"event id mismatch after signing: {event.id}")
        return event


def verify_event(event: Event) -> bool:
    """Check the id and signature of *event* with nostr-sdk."""
    try:
        return bool(NostrEvent.from_json(event.to_json()).verify())
    # nostr-sdk FFI raises its own error types for malformed input
    except Exception as e:  # noqa: BLE001
        logger.debug("verify_failed event=%s error=%s", event.id[:16], e)
        return False


def validate_event(event: Event) -> bool:
    """Check that *event* is well-formed and its id matches its fields.

    The signature is not checked; see
    [verify_event()][nostrfeed.nips.signing.verify_event].
    """
    try:
        normalize(event.to_dict())
    except EventDecodeError:
        return False
    return event.id == compute_event_id(event.unsigned())
