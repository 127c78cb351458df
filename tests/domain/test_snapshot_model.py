"""Tests for deep_clone and the Snapshot model."""

from __future__ import annotations

import dataclasses
import re
from datetime import date, datetime
from typing import Any

import pytest

from formstate.domain.snapshots import INITIAL_TITLE, Snapshot, deep_clone, restore_into


class TestDeepClone:
    def test_nested_containers_are_detached(self) -> None:
        source = {"user": {"tags": ["a", "b"]}, "items": [{"id": 1}]}
        clone = deep_clone(source)
        assert clone == source
        assert clone is not source
        assert clone["user"] is not source["user"]
        assert clone["user"]["tags"] is not source["user"]["tags"]
        assert clone["items"][0] is not source["items"][0]

    def test_later_edits_do_not_leak(self) -> None:
        source = {"user": {"tags": ["a"]}}
        clone = deep_clone(source)
        source["user"]["tags"].append("b")
        assert clone["user"]["tags"] == ["a"]

    def test_sets_are_copied(self) -> None:
        source = {"roles": {"admin"}}
        clone = deep_clone(source)
        source["roles"].add("user")
        assert clone["roles"] == {"admin"}

    def test_dates_keep_their_value(self) -> None:
        born = date(1990, 5, 17)
        seen = datetime(2024, 1, 2, 3, 4, 5)
        clone = deep_clone({"born": born, "seen": seen})
        assert clone["born"] == born
        assert clone["seen"] == seen

    def test_opaque_values_are_shared(self) -> None:
        pattern = re.compile("x")
        marker = object()
        clone = deep_clone({"pattern": pattern, "marker": marker, "pair": (1, 2)})
        assert clone["pattern"] is pattern
        assert clone["marker"] is marker
        assert clone["pair"] == (1, 2)


class TestSnapshot:
    def test_capture_clones_source(self) -> None:
        source = {"name": "Ann", "address": {"zip": "1000"}}
        snapshot = Snapshot.capture(INITIAL_TITLE, source)
        source["address"]["zip"] = "2000"
        assert snapshot.title == "Initial"
        assert snapshot.data == {"name": "Ann", "address": {"zip": "1000"}}

    def test_frozen(self) -> None:
        snapshot = Snapshot.capture("Edit", {})
        with pytest.raises(dataclasses.FrozenInstanceError):
            snapshot.title = "Other"  # type: ignore[misc]


class TestRestoreInto:
    def test_nested_containers_keep_identity(self) -> None:
        target = {"address": {"zip": "2000"}, "tags": ["a", "b", "c"]}
        address, tags = target["address"], target["tags"]

        restore_into(target, {"address": {"zip": "1000"}, "tags": ["a"]})

        assert target == {"address": {"zip": "1000"}, "tags": ["a"]}
        assert target["address"] is address
        assert target["tags"] is tags

    def test_missing_keys_are_removed(self) -> None:
        target = {"name": "Ann", "address": {"zip": "2000", "extra": 1}}
        restore_into(target, {"address": {"zip": "1000"}})
        assert target == {"address": {"zip": "1000"}}

    def test_lists_grow_and_recurse(self) -> None:
        target = {"items": [{"qty": 5}]}
        first = target["items"][0]
        restore_into(target, {"items": [{"qty": 1}, {"qty": 2}]})
        assert target["items"] == [{"qty": 1}, {"qty": 2}]
        assert target["items"][0] is first

    def test_changed_kind_is_replaced(self) -> None:
        target: dict[str, Any] = {"value": {"a": 1}, "other": "text"}
        restore_into(target, {"value": ["a"], "other": {"b": 2}})
        assert target == {"value": ["a"], "other": {"b": 2}}
