"""
Unit tests for client.feed module.

Tests:
- NostrFeed construction from dicts and YAML files
- Query operations: authors, mentions, profile, thread, collect
- Publishing operations: notes, replies, reposts, reactions, profile
  updates, follow / unfollow
- Relay sessions closed after every operation, unreachable relays skipped
"""

import json

import pytest

from fixtures.relays import (
    PUBKEY_A,
    PUBKEY_B,
    PUBKEY_C,
    TEST_SECRET_KEY,
    FakeRelay,
    factory_for,
    make_event,
)
from nostrfeed.client.configs import NostrFeedConfig
from nostrfeed.client.feed import NostrFeed
from nostrfeed.core.exceptions import ConfigurationError, PublishingError
from nostrfeed.models import EventKind, Filter
from nostrfeed.utils.transport import PublishStatus


ONE = "wss://one.example.com"
TWO = "wss://two.example.com"

FAST_TIMEOUTS = {"connect": 0.5, "fetch": 0.5, "lookup": 0.5, "publish": 0.5}


def _feed(*relays, signer=None, **overrides):
    config = NostrFeedConfig(
        relays=[relay.url for relay in relays],
        timeouts=FAST_TIMEOUTS,
        **overrides,
    )
    return NostrFeed(config, signer=signer, relay_factory=factory_for(*relays))


def _profile(pubkey, name):
    return make_event(kind=EventKind.PROFILE, pubkey=pubkey, content=json.dumps({"name": name}))


# =============================================================================
# Construction
# =============================================================================


class TestConstruction:
    def test_defaults(self):
        feed = NostrFeed()
        assert feed.config == NostrFeedConfig()

    def test_from_dict(self):
        feed = NostrFeed.from_dict({"relays": [ONE], "limits": {"default": 10}})
        assert feed.config.relays == [ONE]
        assert feed.config.limits.default == 10

    def test_from_dict_invalid(self):
        with pytest.raises(ConfigurationError, match="Invalid configuration"):
            NostrFeed.from_dict({"relays": ["http://not-a-relay.example.com"]})

    def test_from_dict_empty_relays(self):
        with pytest.raises(ConfigurationError):
            NostrFeed.from_dict({"relays": []})

    def test_from_yaml(self, tmp_path):
        path = tmp_path / "nostrfeed.yaml"
        path.write_text("relays:\n  - wss://one.example.com/\ntimeouts:\n  fetch: 2.5\n")
        feed = NostrFeed.from_yaml(path)
        assert feed.config.relays == [ONE]
        assert feed.config.timeouts.fetch == 2.5

    def test_from_yaml_missing(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            NostrFeed.from_yaml(tmp_path / "missing.yaml")


# =============================================================================
# Queries
# =============================================================================


class TestFetchEventsForAuthors:
    async def test_notes_related_and_profiles(self):
        note = make_event(pubkey=PUBKEY_A, content="gm")
        comment = make_event(pubkey=PUBKEY_B, content="gm!", tags=[["e", note.id]])
        one = FakeRelay(ONE, events=[note, _profile(PUBKEY_A, "alice")])
        two = FakeRelay(TWO, events=[note, comment, _profile(PUBKEY_B, "bob")])
        feed = _feed(one, two)

        result = await feed.fetch_events_for_authors([PUBKEY_A])

        assert result.notes == [note]
        assert result.related == [comment]
        assert set(result.profiles) == {PUBKEY_A, PUBKEY_B}
        assert result.profiles[PUBKEY_A].content.get("name") == "alice"

    async def test_limit_sent(self):
        relay = FakeRelay(ONE)
        await _feed(relay).fetch_events_for_authors([PUBKEY_A, PUBKEY_A], limit=5)
        wanted = relay.subscriptions[0].filters[0]
        assert wanted.authors == (PUBKEY_A,)
        assert wanted.kinds == (EventKind.NOTE, EventKind.REPOST)
        assert wanted.limit == 5

    async def test_default_limit_from_config(self):
        relay = FakeRelay(ONE)
        await _feed(relay, limits={"default": 12}).fetch_events_for_authors([PUBKEY_A])
        assert relay.subscriptions[0].filters[0].limit == 12

    async def test_no_authors(self):
        relay = FakeRelay(ONE)
        result = await _feed(relay).fetch_events_for_authors([])
        assert result.notes == []
        assert not relay.connected

    async def test_relays_closed(self):
        one = FakeRelay(ONE, events=[make_event()])
        two = FakeRelay(TWO)
        await _feed(one, two).fetch_events_for_authors([PUBKEY_A])
        assert one.close_calls == 1
        assert two.close_calls == 1

    async def test_unreachable_relay_skipped(self):
        note = make_event()
        good = FakeRelay(ONE, events=[note])
        down = FakeRelay(TWO, connect_error=OSError("refused"))

        result = await _feed(good, down).fetch_events_for_authors([PUBKEY_A])

        assert result.notes == [note]
        assert down.subscriptions == []

    async def test_verify_signatures_drops_unsigned(self):
        relay = FakeRelay(ONE, events=[make_event()])
        result = await _feed(relay, verify_signatures=True).fetch_events_for_authors([PUBKEY_A])
        assert result.notes == []


class TestFetchEventsMentioning:
    async def test_notes_only(self):
        mention = make_event(pubkey=PUBKEY_B, content="hi", tags=[["p", PUBKEY_A]])
        reply = make_event(pubkey=PUBKEY_C, tags=[["e", mention.id], ["p", PUBKEY_A]])
        relay = FakeRelay(ONE, events=[mention, reply, make_event(pubkey=PUBKEY_B)])

        result = await _feed(relay).fetch_events_mentioning(PUBKEY_A)

        assert {event.id for event in result.notes} == {mention.id, reply.id}
        assert result.related == []
        assert result.profiles == {}
        assert len(relay.subscriptions) == 1
        assert relay.subscriptions[0].filters[0].tags == {"p": (PUBKEY_A,)}


class TestFetchProfile:
    async def test_profile_and_contacts(self, profile_event):
        contacts = make_event(kind=EventKind.CONTACT_LIST, tags=[["p", PUBKEY_B], ["p", PUBKEY_C]])
        relay = FakeRelay(ONE, events=[profile_event, contacts])

        result = await _feed(relay).fetch_profile(PUBKEY_A)

        assert result.profile == profile_event
        assert result.contact_list == contacts
        assert result.follows == [PUBKEY_B, PUBKEY_C]
        assert len(relay.subscriptions) == 2

    async def test_missing(self):
        result = await _feed(FakeRelay(ONE)).fetch_profile(PUBKEY_A)
        assert result.profile is None
        assert result.contact_list is None
        assert result.follows == []

    async def test_lookup_deadline(self):
        relay = FakeRelay(ONE, send_eose=False)
        result = await _feed(relay).fetch_profile(PUBKEY_A)
        assert result.profile is None
        assert all(sub.closed for sub in relay.subscriptions)


class TestFetchThread:
    async def test_replies_with_related(self):
        root = make_event(pubkey=PUBKEY_A, content="root")
        reply = make_event(pubkey=PUBKEY_B, content="reply", tags=[["e", root.id]])
        relay = FakeRelay(ONE, events=[root, reply, _profile(PUBKEY_B, "bob")])

        result = await _feed(relay).fetch_thread([root.id])

        assert result.notes == [reply]
        assert root in result.related
        assert PUBKEY_B in result.profiles

    async def test_replies_alias(self):
        root = make_event()
        reply = make_event(tags=[["e", root.id]])
        relay = FakeRelay(ONE, events=[root, reply])
        result = await _feed(relay).fetch_replies([root.id])
        assert result.notes == [reply]

    async def test_no_ids(self):
        relay = FakeRelay(ONE)
        result = await _feed(relay).fetch_thread([])
        assert result.notes == []
        assert not relay.connected


class TestCollect:
    async def test_collect(self):
        note = make_event()
        relay = FakeRelay(ONE, events=[note])
        assert await _feed(relay).collect(Filter(kinds=[EventKind.NOTE])) == [note]
        assert relay.close_calls == 1

    async def test_collect_one(self):
        note = make_event()
        relay = FakeRelay(ONE, events=[note])
        assert await _feed(relay).collect_one(Filter(ids=[note.id])) == note

    async def test_collect_one_deadline(self):
        relay = FakeRelay(ONE, send_eose=False)
        assert await _feed(relay).collect_one(Filter(kinds=[EventKind.NOTE])) is None


# =============================================================================
# Publishing
# =============================================================================


class TestSigner:
    async def test_no_key(self, monkeypatch):
        monkeypatch.delenv("NOSTR_PRIVATE_KEY", raising=False)
        relay = FakeRelay(ONE)
        with pytest.raises(PublishingError, match="No signer available"):
            await _feed(relay).publish_note("gm")
        assert not relay.connected

    async def test_key_from_environment(self, monkeypatch):
        monkeypatch.setenv("NOSTR_PRIVATE_KEY", TEST_SECRET_KEY)
        relay = FakeRelay(ONE)
        event = await _feed(relay).publish_note("gm")
        assert event is not None
        assert relay.published == [event]

    async def test_reads_need_no_key(self, monkeypatch):
        monkeypatch.delenv("NOSTR_PRIVATE_KEY", raising=False)
        result = await _feed(FakeRelay(ONE)).fetch_profile(PUBKEY_A)
        assert result.profile is None


class TestPublish:
    async def test_publish_note(self, signer):
        relay = FakeRelay(ONE)
        event = await _feed(relay, signer=signer).publish_note("gm")
        assert event.kind == EventKind.NOTE
        assert event.text == "gm"
        assert event.tags == ()
        assert relay.close_calls == 1

    async def test_reply_tags(self, signer, note):
        relay = FakeRelay(ONE)
        event = await _feed(relay, signer=signer).publish_note("hey", reply_to=note)
        assert event.tags == (("e", note.id), ("p", note.pubkey))

    async def test_repost_embeds_event(self, signer, note):
        relay = FakeRelay(ONE)
        event = await _feed(relay, signer=signer).repost(note)
        assert event.kind == EventKind.REPOST
        assert json.loads(event.text) == note.to_dict()
        assert event.first_tag_value("e") == note.id

    async def test_react(self, signer, note):
        relay = FakeRelay(ONE)
        event = await _feed(relay, signer=signer).react(note)
        assert event.kind == EventKind.REACTION
        assert event.text == "+"

    async def test_update_profile(self, signer):
        relay = FakeRelay(ONE)
        event = await _feed(relay, signer=signer).update_profile({"name": "alice"})
        assert event.kind == EventKind.PROFILE
        assert event.content.get("name") == "alice"

    async def test_rejected(self, signer):
        relay = FakeRelay(ONE, publish_status=PublishStatus.FAILED)
        assert await _feed(relay, signer=signer).publish_note("gm") is None


class TestContacts:
    """follow() / unfollow() edit the signer's own contact list."""

    def _contacts(self, signer, *pubkeys):
        return make_event(
            kind=EventKind.CONTACT_LIST,
            pubkey=signer.public_key,
            content="relay-hints",
            tags=[["p", pubkey] for pubkey in pubkeys],
        )

    async def test_follow_appends(self, signer):
        relay = FakeRelay(ONE, events=[self._contacts(signer, PUBKEY_A)])
        event = await _feed(relay, signer=signer).follow(PUBKEY_B)
        assert event.kind == EventKind.CONTACT_LIST
        assert event.tag_values("p") == [PUBKEY_A, PUBKEY_B]
        assert event.text == "relay-hints"

    async def test_follow_without_list(self, signer):
        relay = FakeRelay(ONE)
        event = await _feed(relay, signer=signer).follow(PUBKEY_B)
        assert event.tag_values("p") == [PUBKEY_B]
        assert event.text == ""

    async def test_follow_already_following(self, signer):
        current = self._contacts(signer, PUBKEY_B)
        relay = FakeRelay(ONE, events=[current])
        assert await _feed(relay, signer=signer).follow(PUBKEY_B) == current
        assert relay.published == []

    async def test_unfollow_removes(self, signer):
        relay = FakeRelay(ONE, events=[self._contacts(signer, PUBKEY_A, PUBKEY_B)])
        event = await _feed(relay, signer=signer).unfollow(PUBKEY_A)
        assert event.tag_values("p") == [PUBKEY_B]

    async def test_unfollow_not_following(self, signer):
        relay = FakeRelay(ONE)
        assert await _feed(relay, signer=signer).unfollow(PUBKEY_A) is None
        assert relay.published == []

    async def test_other_authors_lists_ignored(self, signer):
        foreign = make_event(kind=EventKind.CONTACT_LIST, pubkey=PUBKEY_C, tags=[["p", PUBKEY_B]])
        relay = FakeRelay(ONE, events=[foreign])
        event = await _feed(relay, signer=signer).follow(PUBKEY_B)
        assert event is not None
        assert event.pubkey == signer.public_key
