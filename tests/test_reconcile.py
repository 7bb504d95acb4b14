"""Tests for replica reconciliation."""

from datetime import date

import pytest

from mtc.items import Event, ItemKind, Task, Todo, Weekday
from mtc.reconcile import (
    SyncMode,
    is_expired,
    reconcile,
    reconcile_overwrite,
    reconcile_self,
    reconcile_store,
)
from mtc.store import ReplicaStore

TODAY = date(2024, 1, 10)


def as_set(items):
    return {(item.kind, item.value_key()) for item in items}


def ids(items):
    return [item.id for item in items]


class TestReconcile:
    """Two-sided merge of one kind."""

    def test_union_of_distinct_values(self):
        local = [Todo("a"), Todo("b")]
        remote = [Todo("b"), Todo("c")]
        merged = reconcile(local, remote, TODAY)
        assert [item.body for item in merged] == ["a", "b", "c"]
        assert ids(merged) == [0, 1, 2]

    def test_same_body_different_weekday_are_distinct(self):
        merged = reconcile([Todo("Call", Weekday.MONDAY)], [Todo("Call", Weekday.FRIDAY)], TODAY)
        assert [item.weekday for item in merged] == [Weekday.MONDAY, Weekday.FRIDAY]

    def test_buy_milk_tombstone_wins(self):
        """A removal on the remote side deletes the local active copy."""
        local = [Todo("Buy milk", removed=False)]
        remote = [Todo("Buy milk", removed=True)]
        assert reconcile(local, remote, TODAY) == []
        assert reconcile(remote, local, TODAY) == []

    def test_gym_task_reaches_empty_remote(self):
        gym = Task("Gym", duration=60, weekdays={Weekday.MONDAY, Weekday.WEDNESDAY})
        merged = reconcile([gym], [], TODAY)
        assert merged == [gym]
        assert merged[0].id == 0
        assert merged[0] is not gym

    def test_tombstones_are_symmetric(self):
        a = [Todo("x", removed=True), Todo("y"), Todo("z")]
        b = [Todo("x"), Todo("y", removed=True), Todo("w")]
        forward = reconcile(a, b, TODAY)
        backward = reconcile(b, a, TODAY)
        assert as_set(forward) == as_set(backward)
        assert [item.body for item in forward] == ["w", "z"]
        assert ids(forward) == ids(backward) == [0, 1]

    def test_duplicates_within_a_snapshot_collapse(self):
        merged = reconcile([Todo("a"), Todo("a")], [Todo("a")], TODAY)
        assert len(merged) == 1

    def test_output_is_active_only(self):
        merged = reconcile([Todo("a"), Todo("b", removed=True)], [Todo("c")], TODAY)
        assert all(item.removed is False for item in merged)

    def test_inputs_are_not_mutated(self):
        local = [Todo("b", id=4), Todo("a", id=9)]
        reconcile(local, [], TODAY)
        assert ids(local) == [4, 9]


class TestEventExpiry:
    """Events more than three days old are dropped."""

    def test_boundary(self):
        events = [Event("four days ago", date(2024, 1, 6)), Event("three days ago", date(2024, 1, 7))]
        merged = reconcile(events, [], TODAY)
        assert [item.body for item in merged] == ["three days ago"]

    def test_future_events_are_kept(self):
        assert reconcile([Event("later", date(2024, 3, 1))], [], TODAY)[0].body == "later"

    def test_custom_threshold(self):
        assert reconcile([Event("old", date(2024, 1, 7))], [], TODAY, expiry_days=2) == []

    def test_only_events_expire(self):
        assert not is_expired(Todo("x"), TODAY)
        assert is_expired(Event("x", date(2024, 1, 6)), TODAY)
        assert not is_expired(Event("x", date(2024, 1, 7)), TODAY)


class TestSelfAndOverwrite:
    def test_self_purges_tombstones(self):
        local = [Todo("a", removed=True), Todo("b"), Todo("c")]
        assert [item.body for item in reconcile_self(local, TODAY)] == ["b", "c"]

    def test_self_is_idempotent(self):
        local = [Todo("c"), Todo("a", removed=True), Todo("b"), Todo("b")]
        first = reconcile_self(local, TODAY)
        second = reconcile_self(first, TODAY)
        assert as_set(first) == as_set(second)
        assert [(item.id, item.body) for item in first] == [(item.id, item.body) for item in second]

    def test_overwrite_depends_only_on_local(self):
        local = [Task("Gym", 60), Task("Read", 30, removed=True)]
        result = reconcile_overwrite(local, TODAY)
        assert [item.body for item in result] == ["Gym"]
        assert as_set(result) == as_set(reconcile_self(local, TODAY))


class TestReconcileStore:
    """Reconciliation of all kinds of a replica."""

    def make_store(self):
        store = ReplicaStore(
            todos=[Todo("Buy milk"), Todo("Walk dog")],
            tasks=[Task("Gym", 60, {Weekday.MONDAY, Weekday.WEDNESDAY})],
            events=[Event("Dentist", date(2024, 1, 12)), Event("Old", date(2024, 1, 1))],
        )
        store.remove(ItemKind.TODO, 1)
        return store

    def test_normal_mode(self):
        store = self.make_store()
        remote = {
            ItemKind.TODO: [Todo("Buy milk", removed=True), Todo("Water plants")],
            ItemKind.TASK: [],
            ItemKind.EVENT: [Event("Party", date(2024, 1, 20))],
        }
        merged = reconcile_store(store, remote, TODAY, SyncMode.NORMAL)
        assert [item.body for item in merged[ItemKind.TODO]] == ["Water plants"]
        assert [item.body for item in merged[ItemKind.TASK]] == ["Gym"]
        assert [item.body for item in merged[ItemKind.EVENT]] == ["Dentist", "Party"]

    def test_local_store_is_not_modified(self):
        store = self.make_store()
        reconcile_store(store, None, TODAY, SyncMode.SELF)
        assert len(store.todos) == 2
        assert store.todos.get(1).removed is True
        assert len(store.events) == 2

    def test_self_mode_ignores_remote(self):
        store = self.make_store()
        merged = reconcile_store(store, None, TODAY, SyncMode.SELF)
        assert [item.body for item in merged[ItemKind.TODO]] == ["Buy milk"]
        assert [item.body for item in merged[ItemKind.EVENT]] == ["Dentist"]

    def test_overwrite_mode_never_reads_remote(self):
        store = self.make_store()
        remote = {kind: [Todo("ignored")] if kind is ItemKind.TODO else [] for kind in ItemKind}
        with_remote = reconcile_store(store, remote, TODAY, SyncMode.OVERWRITE)
        without_remote = reconcile_store(store, None, TODAY, SyncMode.OVERWRITE)
        for kind in ItemKind:
            assert with_remote[kind] == without_remote[kind]

    def test_normal_mode_needs_every_kind(self):
        with pytest.raises(ValueError):
            reconcile_store(self.make_store(), {ItemKind.TODO: []}, TODAY, SyncMode.NORMAL)


class TestSyncMode:
    def test_remote_usage(self):
        assert SyncMode.NORMAL.needs_remote and SyncMode.NORMAL.reads_remote
        assert SyncMode.OVERWRITE.needs_remote and not SyncMode.OVERWRITE.reads_remote
        assert not SyncMode.SELF.needs_remote and not SyncMode.SELF.reads_remote
