"""Composite results returned by the query facade and the relation resolver.

See Also:
    [NostrFeed][nostrfeed.client.feed.NostrFeed]: Produces
        [ResultSet][nostrfeed.models.result.ResultSet] and
        [ProfileResult][nostrfeed.models.result.ProfileResult].
    [resolve_related()][nostrfeed.client.resolver.resolve_related]: Produces
        [RelatedEvents][nostrfeed.models.result.RelatedEvents].
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

from .constants import TAG_PUBKEY
from .event import Event


def unique_by_id(events: Iterable[Event]) -> list[Event]:
    """Drop repeated ids, keeping the first occurrence and the input order."""
    seen: dict[str, Event] = {}
    for event in events:
        seen.setdefault(event.id, event)
    return list(seen.values())


@dataclass(slots=True)
class RelatedEvents:
    """Events referenced by a base set, plus the profiles of their authors."""

    related: list[Event] = field(default_factory=list)
    profiles: dict[str, Event] = field(default_factory=dict)


@dataclass(slots=True)
class ResultSet:
    """Graph-shaped response of a feed or thread query.

    Attributes:
        notes: The events matching the query, without repeated ids.
        related: Reposted events, reply parents and events referencing the
            notes, without repeated ids.
        profiles: Author pubkey to profile-metadata event.
    """

    notes: list[Event] = field(default_factory=list)
    related: list[Event] = field(default_factory=list)
    profiles: dict[str, Event] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "notes": [event.to_dict() for event in self.notes],
            "related": [event.to_dict() for event in self.related],
            "profiles": {pubkey: event.to_dict() for pubkey, event in self.profiles.items()},
        }


@dataclass(slots=True)
class ProfileResult:
    """Profile metadata and contact list of a single author."""

    profile: Event | None = None
    contact_list: Event | None = None

    @property
    def follows(self) -> list[str]:
        """Pubkeys followed according to the contact list (``p`` tags)."""
        if self.contact_list is None:
            return []
        return list(dict.fromkeys(self.contact_list.tag_values(TAG_PUBKEY)))

    def is_following(self, pubkey: str) -> bool:
        return pubkey in self.follows

    def to_dict(self) -> dict[str, Any]:
        return {
            "profile": self.profile.to_dict() if self.profile else None,
            "contact_list": self.contact_list.to_dict() if self.contact_list else None,
        }
