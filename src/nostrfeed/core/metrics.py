"""
Prometheus metrics for relay traffic.

Module-level metric objects (process-wide singletons) recorded by the
transport, aggregator and publisher. They are collected into the default
``prometheus_client`` registry; exposing them is left to the embedding
application (e.g. ``prometheus_client.start_http_server``).

Architecture:
    RELAY_CONNECTIONS:           Connect outcomes by result.
    EVENTS_RECEIVED:             Events merged by aggregations, by outcome
                                 (``new``, ``duplicate``, ``invalid``).
    PUBLISH_OUTCOMES:            Per-relay publish signals by status.
    OPERATION_DURATION_SECONDS:  Facade operation latency histogram.
"""

from __future__ import annotations

from prometheus_client import Counter, Histogram


RELAY_CONNECTIONS = Counter(
    "nostrfeed_relay_connections",
    "Relay connection attempts by outcome",
    ["outcome"],
)

EVENTS_RECEIVED = Counter(
    "nostrfeed_events_received",
    "Events received from relay subscriptions by merge outcome",
    ["outcome"],
)

PUBLISH_OUTCOMES = Counter(
    "nostrfeed_publish_outcomes",
    "Per-relay publish signals by status",
    ["status"],
)

OPERATION_DURATION_SECONDS = Histogram(
    "nostrfeed_operation_duration_seconds",
    "Duration of query facade operations in seconds",
    ["operation"],
    buckets=(0.1, 0.25, 0.5, 1, 2, 3, 5, 10, 30),
)
