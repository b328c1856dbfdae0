"""Nostr key loading.

Private keys are read from environment variables (``nsec1`` bech32 or
64-char hex) and wrapped in a
[KeysSigner][nostrfeed.nips.signing.KeysSigner] for publishing.

Warning:
    Private keys must never be stored in configuration files or logged.
    Only the *name* of the environment variable is configurable.

Examples:
    ```python
    import os

    os.environ["NOSTR_PRIVATE_KEY"] = "nsec1..."  # pragma: allowlist secret
    signer = KeysConfig().signer()
    print(signer.public_key)
    ```
"""

from __future__ import annotations

import os

from nostr_sdk import Keys
from pydantic import BaseModel, Field

from nostrfeed.core.exceptions import ConfigurationError
from nostrfeed.nips.signing import KeysSigner


ENV_PRIVATE_KEY = "NOSTR_PRIVATE_KEY"  # pragma: allowlist secret  # Default env var name


def load_keys_from_env(env_var: str = ENV_PRIVATE_KEY) -> Keys:
    """Load Nostr keys from an environment variable.

    Raises:
        ConfigurationError: If the variable is unset/empty or the key is malformed.
    """
    value = os.getenv(env_var)
    if not value:
        raise ConfigurationError(
            f"{env_var} environment variable is required to publish. "
            "Generate one with: openssl rand -hex 32"
        )
    try:
        return Keys.parse(value)
    # nostr-sdk FFI raises its own error types for malformed keys
    except Exception as e:  # noqa: BLE001
        raise ConfigurationError(f"{env_var} does not hold a valid private key") from e


class KeysConfig(BaseModel):
    """Where to find the private key used for publishing.

    Unlike most config models, the key itself is loaded lazily by
    [signer()][nostrfeed.utils.keys.KeysConfig.signer] so that read-only
    use of the client never requires one.
    """

    keys_env: str = Field(
        default=ENV_PRIVATE_KEY,
        min_length=1,
        description="Environment variable name for the private key",
    )

    def signer(self) -> KeysSigner:
        """Load the key from the environment and return a signer for it."""
        return KeysSigner(load_keys_from_env(self.keys_env))
