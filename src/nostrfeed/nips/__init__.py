"""NIP-01 wire codec and the signing collaborator.

Attributes:
    normalize: Raw wire event to typed [Event][nostrfeed.models.event.Event].
    decode_embedded_event: Reposted event carried in repost content.
    compute_event_id: NIP-01 fingerprint of an unsigned body.
    KeysSigner: ``nostr_sdk.Keys`` backed signer.
    verify_event: Id and signature verification.
    validate_event: Structural well-formedness check.
"""

from .codec import decode_content, decode_embedded_event, decode_structured, normalize
from .signing import KeysSigner, Signer, compute_event_id, validate_event, verify_event


__all__ = [
    "KeysSigner",
    "Signer",
    "compute_event_id",
    "decode_content",
    "decode_embedded_event",
    "decode_structured",
    "normalize",
    "validate_event",
    "verify_event",
]
