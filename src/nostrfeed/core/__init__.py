"""Core layer: exceptions, structured logging, YAML loading and metrics.

Sits in the middle of the diamond DAG -- depends only on the standard
library and third-party packages, and is used by every layer above
``nostrfeed.models``.

Attributes:
    Logger: Structured logger supporting key=value and JSON output.
        See [Logger][nostrfeed.core.logger.Logger].
    load_yaml: Safe YAML loading. See [load_yaml()][nostrfeed.core.yaml.load_yaml].
    NostrFeedError: Root of the exception hierarchy.
        See [nostrfeed.core.exceptions][].
"""

from .exceptions import (
    ConfigurationError,
    ConnectivityError,
    ContentDecodeError,
    EventDecodeError,
    NostrFeedError,
    ProtocolError,
    PublishingError,
    RelayConnectionError,
    RelayTimeoutError,
)
from .logger import Logger, StructuredFormatter, format_kv_pairs, setup_logging
from .metrics import (
    EVENTS_RECEIVED,
    OPERATION_DURATION_SECONDS,
    PUBLISH_OUTCOMES,
    RELAY_CONNECTIONS,
)
from .yaml import load_yaml


__all__ = [
    "EVENTS_RECEIVED",
    "OPERATION_DURATION_SECONDS",
    "PUBLISH_OUTCOMES",
    "RELAY_CONNECTIONS",
    "ConfigurationError",
    "ConnectivityError",
    "ContentDecodeError",
    "EventDecodeError",
    "Logger",
    "NostrFeedError",
    "ProtocolError",
    "PublishingError",
    "RelayConnectionError",
    "RelayTimeoutError",
    "StructuredFormatter",
    "format_kv_pairs",
    "load_yaml",
    "setup_logging",
]
