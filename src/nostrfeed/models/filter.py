"""
NIP-01 subscription filter.

A [Filter][nostrfeed.models.filter.Filter] is a declarative query sent to a
relay inside a ``REQ`` frame. All fields are optional; a filter with no
bounds at all is unbounded and relies on the aggregator's deadline to
terminate.

Examples:
    ```python
    from nostrfeed.models import EventKind, Filter

    f = Filter(kinds=(EventKind.NOTE,), tags={"p": ("ab" * 32,)}, limit=20)
    f.to_wire()
    # {'kinds': [1], '#p': ['abab...'], 'limit': 20}
    ```
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Any

from ._validation import validate_timestamp


def _as_tuple(values: Iterable[Any] | None) -> tuple[Any, ...] | None:
    if values is None:
        return None
    return tuple(dict.fromkeys(values))


@dataclass(frozen=True, slots=True)
class Filter:
    """Immutable query descriptor for a relay subscription.

    Iterable fields are stored as de-duplicated tuples preserving first-seen
    order, so filters built from sets or generators compare and serialize
    deterministically.

    Attributes:
        ids: Event ids to match.
        kinds: Event kinds to match.
        authors: Author pubkeys to match.
        tags: Single-letter tag name to accepted values, e.g. ``{"e": (...)}``
            for "references event" and ``{"p": (...)}`` for "references pubkey".
        since: Lower time bound (inclusive, unix seconds).
        until: Upper time bound (inclusive, unix seconds).
        limit: Maximum number of events wanted.

    Raises:
        ValueError: If a tag name is not a single letter or a bound is negative.
    """

    ids: tuple[str, ...] | None = None
    kinds: tuple[int, ...] | None = None
    authors: tuple[str, ...] | None = None
    tags: Mapping[str, tuple[str, ...]] = field(default_factory=dict)
    since: int | None = None
    until: int | None = None
    limit: int | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "ids", _as_tuple(self.ids))
        kinds = _as_tuple(self.kinds)
        object.__setattr__(self, "kinds", None if kinds is None else tuple(int(k) for k in kinds))
        object.__setattr__(self, "authors", _as_tuple(self.authors))

        frozen_tags: dict[str, tuple[str, ...]] = {}
        for name, values in self.tags.items():
            if len(name) != 1 or not name.isalpha():
                raise ValueError(f"tag filter name must be a single letter: {name!r}")
            frozen_tags[name] = _as_tuple(values) or ()
        object.__setattr__(self, "tags", MappingProxyType(frozen_tags))

        for name in ("since", "until", "limit"):
            value = getattr(self, name)
            if value is not None:
                validate_timestamp(value, name)

    def __hash__(self) -> int:
        tags = tuple(sorted(self.tags.items()))
        return hash((self.ids, self.kinds, self.authors, tags, self.since, self.until, self.limit))

    def with_limit(self, limit: int) -> Filter:
        """Return a copy of this filter with ``limit`` set."""
        return replace(self, tags=dict(self.tags), limit=limit)

    def to_wire(self) -> dict[str, Any]:
        """Return the JSON object placed in a ``REQ`` frame, omitting unset fields."""
        wire: dict[str, Any] = {}
        if self.ids is not None:
            wire["ids"] = list(self.ids)
        if self.kinds is not None:
            wire["kinds"] = list(self.kinds)
        if self.authors is not None:
            wire["authors"] = list(self.authors)
        for name, values in self.tags.items():
            wire[f"#{name}"] = list(values)
        if self.since is not None:
            wire["since"] = self.since
        if self.until is not None:
            wire["until"] = self.until
        if self.limit is not None:
            wire["limit"] = self.limit
        return wire
