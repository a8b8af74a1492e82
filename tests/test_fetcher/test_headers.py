"""Tests for supafetch.fetcher.headers -- header and query merging."""

from __future__ import annotations

import pytest

from supafetch.fetcher.headers import find_value, merge_headers, merge_query, without


class TestMergeHeaders:
    def test_incoming_wins_on_collision(self) -> None:
        merged = merge_headers({"accept": "text/plain"}, {"accept": "application/json"})
        assert merged == (("accept", "application/json"),)

    def test_collision_ignores_case(self) -> None:
        merged = merge_headers({"Content-Type": "text/plain"}, {"content-type": "application/json"})
        assert merged == (("content-type", "application/json"),)

    def test_first_seen_order_incoming_first(self) -> None:
        merged = merge_headers(
            [("a", "1"), ("b", "2")],
            [("c", "3"), ("a", "9")],
        )
        assert merged == (("c", "3"), ("a", "9"), ("b", "2"))

    def test_none_value_in_incoming_deletes_base_entry(self) -> None:
        merged = merge_headers({"authorization": "Bearer x", "accept": "*/*"}, {"Authorization": None})
        assert merged == (("accept", "*/*"),)

    def test_none_value_only_in_base_is_dropped(self) -> None:
        assert merge_headers({"x-empty": None, "a": "1"}, {}) == (("a", "1"),)

    def test_values_are_coerced_to_strings(self) -> None:
        assert merge_headers({}, {"content-length": 10}) == (("content-length", "10"),)

    def test_none_inputs(self) -> None:
        assert merge_headers(None, None) == ()

    @pytest.mark.parametrize(
        "base, incoming",
        [
            ({"a": "1", "B": "2"}, {"b": "3", "c": None}),
            ([("x", "1"), ("y", "2")], [("Y", "3")]),
            ({}, {"only": "incoming"}),
            ({"only": "base"}, {}),
        ],
    )
    def test_idempotent(self, base, incoming) -> None:
        once = merge_headers(base, incoming)
        assert merge_headers(once, incoming) == once

    @pytest.mark.parametrize(
        "base, incoming",
        [
            ({"Accept": "1", "x-a": "2"}, {"accept": "3", "X-A": "4", "new": "5"}),
            ([("k", "1"), ("K", "2")], [("other", "3")]),
        ],
    )
    def test_no_duplicate_keys(self, base, incoming) -> None:
        keys = [name.lower() for name, _ in merge_headers(base, incoming)]
        assert len(keys) == len(set(keys))


class TestMergeQuery:
    def test_keys_are_case_sensitive(self) -> None:
        merged = merge_query({"Select": "a"}, {"select": "b"})
        assert merged == (("select", "b"), ("Select", "a"))

    def test_incoming_wins(self) -> None:
        assert merge_query({"limit": "5"}, {"limit": "10"}) == (("limit", "10"),)


class TestLookups:
    def test_find_value_exact(self) -> None:
        pairs = (("content-type", "application/json"),)
        assert find_value(pairs, "content-type") == "application/json"
        assert find_value(pairs, "Content-Type") is None
        assert find_value(pairs, "missing", "fallback") == "fallback"

    def test_find_value_case_insensitive(self) -> None:
        pairs = (("Content-Type", "text/csv"),)
        assert find_value(pairs, "content-type", case_insensitive=True) == "text/csv"

    def test_without_removes_any_casing(self) -> None:
        pairs = (("Authorization", "Bearer x"), ("accept", "*/*"))
        assert without(pairs, "authorization") == [("accept", "*/*")]
