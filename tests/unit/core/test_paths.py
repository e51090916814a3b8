# tests/unit/core/test_paths.py — v1
"""Tests for core/paths.py — dotted path reads, writes and deletes."""

from __future__ import annotations

import pytest

from semantic_mediator.core.paths import (
    MISSING,
    delete_nested_value,
    get_nested_value,
    has_nested_value,
    set_nested_value,
    split_path,
)


class TestGetNestedValue:
    def test_reads_nested_dict(self):
        assert get_nested_value({"a": {"b": {"c": 1}}}, "a.b.c") == 1

    def test_numeric_segment_indexes_list(self):
        data = {"items": [{"id": "x"}, {"id": "y"}]}
        assert get_nested_value(data, "items.1.id") == "y"

    def test_missing_key(self):
        assert get_nested_value({"a": {}}, "a.b") is MISSING

    def test_through_scalar(self):
        assert get_nested_value({"a": 5}, "a.b") is MISSING

    def test_through_none(self):
        assert get_nested_value({"a": None}, "a.b") is MISSING

    def test_stored_none_is_not_missing(self):
        assert get_nested_value({"a": None}, "a") is None
        assert has_nested_value({"a": None}, "a")

    def test_default(self):
        assert get_nested_value({}, "x", default="fallback") == "fallback"

    def test_index_out_of_range(self):
        assert get_nested_value({"items": [1]}, "items.3") is MISSING

    def test_empty_path(self):
        assert get_nested_value({"a": 1}, "") is MISSING

    def test_missing_is_falsy_singleton(self):
        assert not MISSING
        assert repr(MISSING) == "MISSING"


class TestSetNestedValue:
    def test_creates_intermediates(self):
        result = set_nested_value({}, "contact.email", "a@b.c")
        assert result == {"contact": {"email": "a@b.c"}}

    def test_replaces_scalar_on_the_way(self):
        result = set_nested_value({"contact": "none"}, "contact.email", "a@b.c")
        assert result == {"contact": {"email": "a@b.c"}}

    def test_idempotent(self):
        obj: dict = {}
        set_nested_value(obj, "a.b", 1)
        snapshot = {"a": {"b": 1}}
        set_nested_value(obj, "a.b", 1)
        assert obj == snapshot

    def test_list_index_extends(self):
        obj = {"items": []}
        set_nested_value(obj, "items.2", "z")
        assert obj["items"] == [None, None, "z"]

    def test_list_replaced_by_named_segment(self):
        result = set_nested_value({"tags": ["a", "b"]}, "tags.primary", "a")
        assert result == {"tags": {"primary": "a"}}

    def test_list_kept_for_numeric_segment(self):
        result = set_nested_value({"tags": ["a", "b"]}, "tags.1", "c")
        assert result == {"tags": ["a", "c"]}

    def test_empty_path_rejected(self):
        with pytest.raises(ValueError):
            set_nested_value({}, "", 1)


class TestDeleteNestedValue:
    def test_prunes_empty_parents(self):
        obj = {"a": {"b": {"c": 1}}, "keep": True}
        assert delete_nested_value(obj, "a.b.c") is True
        assert obj == {"keep": True}

    def test_keeps_non_empty_parents(self):
        obj = {"a": {"b": 1, "c": 2}}
        delete_nested_value(obj, "a.b")
        assert obj == {"a": {"c": 2}}

    def test_without_prune(self):
        obj = {"a": {"b": 1}}
        delete_nested_value(obj, "a.b", prune=False)
        assert obj == {"a": {}}

    def test_missing_path(self):
        obj = {"a": 1}
        assert delete_nested_value(obj, "x.y") is False
        assert obj == {"a": 1}

    def test_list_element(self):
        obj = {"items": [1, 2, 3]}
        assert delete_nested_value(obj, "items.0")
        assert obj == {"items": [2, 3]}


def test_split_path_ignores_empty_segments():
    assert split_path("a..b.") == ["a", "b"]
