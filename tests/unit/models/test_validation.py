"""Tests for nostrfeed.models._validation shared helpers."""

from __future__ import annotations

from types import MappingProxyType

import pytest

from nostrfeed.models._validation import (
    deep_freeze,
    thaw,
    validate_hex,
    validate_instance,
    validate_tags,
    validate_timestamp,
)


class TestValidateInstance:
    def test_correct_type_passes(self) -> None:
        validate_instance("hello", str, "field")

    def test_wrong_type_raises(self) -> None:
        with pytest.raises(TypeError, match="field must be a str, got int"):
            validate_instance(42, str, "field")

    def test_article_an_for_vowel(self) -> None:
        with pytest.raises(TypeError, match="field must be an int, got NoneType"):
            validate_instance(None, int, "field")


class TestValidateTimestamp:
    def test_zero_passes(self) -> None:
        validate_timestamp(0, "created_at")

    def test_bool_rejected(self) -> None:
        with pytest.raises(TypeError, match="created_at must be an int, got bool"):
            validate_timestamp(True, "created_at")

    def test_negative_rejected(self) -> None:
        with pytest.raises(ValueError, match="non-negative"):
            validate_timestamp(-1, "created_at")


class TestValidateHex:
    def test_valid(self) -> None:
        validate_hex("ab" * 32, 64, "id")

    @pytest.mark.parametrize("value", ["AB" * 32, "ab" * 31, "zz" * 32, ""])
    def test_invalid(self, value: str) -> None:
        with pytest.raises(ValueError, match="id must be 64 lowercase hex characters"):
            validate_hex(value, 64, "id")

    def test_non_string(self) -> None:
        with pytest.raises(TypeError):
            validate_hex(b"ab", 2, "id")


class TestValidateTags:
    def test_valid(self) -> None:
        validate_tags((("e", "abc"), ("p",)), "tags")

    def test_list_rejected(self) -> None:
        with pytest.raises(TypeError, match="tags must be a tuple"):
            validate_tags([("e", "abc")], "tags")

    def test_non_string_value_rejected(self) -> None:
        with pytest.raises(TypeError, match="tags value must be a str"):
            validate_tags((("e", 1),), "tags")


class TestFreezeThaw:
    def test_deep_freeze(self) -> None:
        frozen = deep_freeze({"a": [1, {"b": [2]}]})
        assert isinstance(frozen, MappingProxyType)
        assert frozen["a"][0] == 1
        assert isinstance(frozen["a"][1], MappingProxyType)
        assert frozen["a"][1]["b"] == (2,)

    def test_thaw_inverts_freeze(self) -> None:
        data = {"name": "alice", "nip05": {"names": ["a", "b"]}}
        assert thaw(deep_freeze(data)) == data
