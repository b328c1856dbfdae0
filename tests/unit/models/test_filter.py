"""
Unit tests for models.filter module.

Tests:
- Filter normalization (dedup, int kinds, frozen tags)
- Validation of tag names and bounds
- to_wire() serialization
- with_limit(), equality and hashing
"""

import dataclasses

import pytest

from nostrfeed.models import EventKind, Filter


class TestFilterNormalization:
    """Iterable fields become de-duplicated tuples."""

    def test_dedup_preserves_first_seen_order(self):
        f = Filter(ids=["b", "a", "b"], authors=iter(["x", "x", "y"]))
        assert f.ids == ("b", "a")
        assert f.authors == ("x", "y")

    def test_kinds_stored_as_ints(self):
        f = Filter(kinds=[EventKind.NOTE, EventKind.REPOST, 1])
        assert f.kinds == (1, 6)
        assert all(type(k) is int for k in f.kinds)

    def test_unset_fields_stay_none(self):
        f = Filter()
        assert f.ids is None
        assert f.kinds is None
        assert f.authors is None
        assert dict(f.tags) == {}

    def test_tags_are_read_only(self):
        f = Filter(tags={"e": ["x", "x", "y"]})
        assert f.tags["e"] == ("x", "y")
        with pytest.raises(TypeError):
            f.tags["p"] = ("z",)  # type: ignore[index]

    def test_frozen(self):
        with pytest.raises(dataclasses.FrozenInstanceError):
            Filter().limit = 3  # type: ignore[misc]


class TestFilterValidation:
    @pytest.mark.parametrize("name", ["ee", "", "#", "1"])
    def test_tag_name_must_be_single_letter(self, name):
        with pytest.raises(ValueError, match="single letter"):
            Filter(tags={name: ["x"]})

    @pytest.mark.parametrize("field", ["since", "until", "limit"])
    def test_negative_bounds_rejected(self, field):
        with pytest.raises(ValueError, match=field):
            Filter(**{field: -1})


class TestFilterToWire:
    """to_wire() emits NIP-01 filter objects."""

    def test_empty_filter(self):
        assert Filter().to_wire() == {}

    def test_all_fields(self):
        f = Filter(
            ids=["i"],
            kinds=[1],
            authors=["a"],
            tags={"e": ["x"], "p": ["y"]},
            since=10,
            until=20,
            limit=5,
        )
        assert f.to_wire() == {
            "ids": ["i"],
            "kinds": [1],
            "authors": ["a"],
            "#e": ["x"],
            "#p": ["y"],
            "since": 10,
            "until": 20,
            "limit": 5,
        }

    def test_limit_zero_is_kept(self):
        assert Filter(limit=0).to_wire() == {"limit": 0}


class TestFilterWithLimit:
    def test_returns_copy(self):
        original = Filter(kinds=[1], tags={"e": ["x"]})
        limited = original.with_limit(10)
        assert limited.limit == 10
        assert limited.tags["e"] == ("x",)
        assert original.limit is None


class TestFilterEquality:
    def test_equal_filters_hash_equal(self):
        a = Filter(kinds=[1], tags={"e": ["x"], "p": ["y"]})
        b = Filter(kinds=(1,), tags={"p": ("y",), "e": ("x",)})
        assert a == b
        assert hash(a) == hash(b)
        assert len({a, b}) == 1

    def test_different_limits_differ(self):
        assert Filter(limit=1) != Filter(limit=2)
