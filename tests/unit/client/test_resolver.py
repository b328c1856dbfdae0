"""
Unit tests for client.resolver module.

Tests:
- Embedded reposts used without fetching the reposted id
- Repost targets and reply parents fetched by their first ``e`` tag
- Events referencing the base set
- Profiles of every author involved
- Empty base set resolves without network traffic
"""

from fixtures.relays import PUBKEY_A, PUBKEY_B, PUBKEY_C, FakeRelay, make_event, open_fakes
from nostrfeed.client.resolver import resolve_related
from nostrfeed.models import EventKind, RelatedEvents


def _profile(pubkey, name):
    return make_event(kind=EventKind.PROFILE, pubkey=pubkey, content=f'{{"name":"{name}"}}')


def _repost_of(event):
    return make_event(kind=EventKind.REPOST, content=event.to_json(), tags=[["e", event.id]])


def _requested_ids(relay):
    ids = set()
    for sub in relay.subscriptions:
        for flt in sub.filters:
            ids.update(flt.ids or ())
    return ids


class TestEmptyBase:
    async def test_no_network(self):
        relay = (await open_fakes(FakeRelay()))[0]
        assert await resolve_related([relay], []) == RelatedEvents()
        assert relay.subscriptions == []


class TestReposts:
    async def test_embedded_repost_used_without_fetch(self):
        original = make_event(pubkey=PUBKEY_B, content="original")
        repost = make_event(
            kind=EventKind.REPOST,
            pubkey=PUBKEY_A,
            content=original.to_json(),
            tags=[["e", original.id], ["p", PUBKEY_B]],
        )
        relay = FakeRelay(events=[_profile(PUBKEY_B, "bob")])
        await relay.connect()

        result = await resolve_related([relay], [repost], timeout=1.0)

        assert result.related == [original]
        assert original.id not in _requested_ids(relay)
        assert set(result.profiles) == {PUBKEY_B}
        # related fetch and profile fetch only; no reply fetch
        assert len(relay.subscriptions) == 2

    async def test_embedded_repost_failing_verifier_fetched_instead(self):
        original = make_event(pubkey=PUBKEY_B, content="original")
        repost = _repost_of(original)
        relay = FakeRelay(events=[original])
        await relay.connect()

        result = await resolve_related([relay], [repost], timeout=1.0, verifier=lambda event: False)

        assert original.id in _requested_ids(relay)
        assert result.related == []

    async def test_repost_target_fetched_by_e_tag(self):
        target = make_event(pubkey=PUBKEY_C, content="reposted")
        repost = make_event(kind=EventKind.REPOST, tags=[["e", target.id]])
        relay = FakeRelay(events=[target, _profile(PUBKEY_A, "alice"), _profile(PUBKEY_C, "carol")])
        await relay.connect()

        result = await resolve_related([relay], [repost], timeout=1.0)

        assert result.related == [target]
        assert target.id in _requested_ids(relay)
        # The reposter is not a note author; only the reposted author's profile is fetched
        assert set(result.profiles) == {PUBKEY_C}

    async def test_loose_embedded_copy_used_without_fetch(self):
        """Any parsable embedded object with an id counts as the reposted event."""
        repost = make_event(
            kind=EventKind.REPOST,
            content='{"id":"abc","content":"hello","sig":"x"}',
            tags=[["e", "abc"]],
        )
        relay = FakeRelay()
        await relay.connect()

        result = await resolve_related([relay], [repost], timeout=1.0)

        assert [event.id for event in result.related] == ["abc"]
        assert result.related[0].text == "hello"
        assert "abc" not in _requested_ids(relay)
        # No author on the copy, so no profile fetch
        assert result.profiles == {}
        assert len(relay.subscriptions) == 1

    async def test_deeply_nested_repost_content_fetched_by_e_tag(self):
        target = make_event(pubkey=PUBKEY_C, content="reposted")
        repost = make_event(
            kind=EventKind.REPOST, content="[" * 100_000 + "]" * 100_000, tags=[["e", target.id]]
        )
        relay = FakeRelay(events=[target])
        await relay.connect()

        result = await resolve_related([relay], [repost], timeout=1.0)

        assert result.related == [target]

    async def test_repost_without_target_or_embed(self):
        repost = make_event(kind=EventKind.REPOST, content="")
        relay = FakeRelay()
        await relay.connect()
        result = await resolve_related([relay], [repost], timeout=1.0)
        assert result == RelatedEvents()


class TestReplies:
    async def test_reply_parent_fetched(self):
        parent = make_event(pubkey=PUBKEY_B, content="parent")
        reply = make_event(content="reply", tags=[["e", parent.id], ["p", PUBKEY_B]])
        profiles = [_profile(PUBKEY_A, "alice"), _profile(PUBKEY_B, "bob")]
        relay = FakeRelay(events=[parent, reply, *profiles])
        await relay.connect()

        result = await resolve_related([relay], [reply], timeout=1.0)

        assert parent in result.related
        assert set(result.profiles) == {PUBKEY_A, PUBKEY_B}
        assert result.profiles[PUBKEY_B].content.get("name") == "bob"

    async def test_only_first_e_tag_followed(self):
        parent = make_event(content="parent")
        other = make_event(content="other")
        reply = make_event(content="reply", tags=[["e", parent.id], ["e", other.id]])
        relay = FakeRelay(events=[parent, other])
        await relay.connect()

        await resolve_related([relay], [reply], timeout=1.0)

        assert parent.id in _requested_ids(relay)
        assert other.id not in _requested_ids(relay)


class TestReferencingEvents:
    async def test_events_referencing_base(self):
        note = make_event(pubkey=PUBKEY_A, content="note")
        comment = make_event(pubkey=PUBKEY_B, content="nice", tags=[["e", note.id]])
        boost = make_event(kind=EventKind.REPOST, pubkey=PUBKEY_C, tags=[["e", note.id]])
        relay = FakeRelay(events=[note, comment, boost])
        await relay.connect()

        result = await resolve_related([relay], [note], timeout=1.0)

        assert {event.id for event in result.related} == {comment.id, boost.id}

    async def test_related_without_repeats(self):
        parent = make_event(content="parent")
        sibling = make_event(content="sibling", tags=[["e", parent.id]])
        reply = make_event(content="reply", tags=[["e", parent.id]])
        relay = FakeRelay(events=[parent, sibling])
        await relay.connect()

        result = await resolve_related([relay], [reply], timeout=1.0)

        ids = [event.id for event in result.related]
        assert len(ids) == len(set(ids))
        assert set(ids) == {parent.id, sibling.id}

    async def test_order_embedded_then_related_then_replies(self):
        original = make_event(pubkey=PUBKEY_B, content="embedded")
        repost = _repost_of(original)
        parent = make_event(content="parent")
        reply = make_event(content="reply", tags=[["e", parent.id]])
        comment = make_event(content="comment", tags=[["e", reply.id]])
        relay = FakeRelay(events=[parent, comment])
        await relay.connect()

        result = await resolve_related([relay], [repost, reply], timeout=1.0)

        assert result.related[0] == original
        assert result.related.index(comment) < result.related.index(parent)


class TestProfiles:
    async def test_profiles_from_several_relays(self):
        note = make_event(pubkey=PUBKEY_A, content="hi")
        one = FakeRelay("wss://one.example.com", events=[_profile(PUBKEY_A, "alice")])
        two = FakeRelay("wss://two.example.com", events=[note])
        relays = await open_fakes(one, two)

        result = await resolve_related(relays, [note], timeout=1.0)

        assert result.profiles[PUBKEY_A].content.get("name") == "alice"

    async def test_profile_limit_is_author_count(self):
        note = make_event(pubkey=PUBKEY_A)
        relay = FakeRelay()
        await relay.connect()

        await resolve_related([relay], [note], timeout=1.0)

        profile_filters = [
            flt
            for sub in relay.subscriptions
            for flt in sub.filters
            if flt.kinds == (EventKind.PROFILE,)
        ]
        assert len(profile_filters) == 1
        assert profile_filters[0].authors == (PUBKEY_A,)
        assert profile_filters[0].limit == 1
