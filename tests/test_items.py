"""Tests for the item model: equality, ordering, scheduling and serialization."""

from datetime import date

import pytest

from mtc.errors import CorruptSnapshot, InvalidInput
from mtc.items import (
    Event,
    ItemKind,
    Task,
    Todo,
    Weekday,
    item_from_dict,
    items_equal,
    kind_of,
    order_key,
    renumber,
    sort_key,
)


class TestWeekday:
    """Weekday parsing and calendar helpers."""

    def test_parse_short_and_full_names(self):
        assert Weekday.parse("mon") is Weekday.MONDAY
        assert Weekday.parse("Friday") is Weekday.FRIDAY
        assert Weekday.parse("  SUN ") is Weekday.SUNDAY

    def test_parse_rejects_unknown(self):
        with pytest.raises(InvalidInput):
            Weekday.parse("someday")
        with pytest.raises(InvalidInput):
            Weekday.parse("")

    def test_index_matches_date_weekday(self):
        wednesday = date(2024, 1, 10)
        assert Weekday.of(wednesday) is Weekday.WEDNESDAY
        assert Weekday.WEDNESDAY.index == wednesday.weekday()
        assert Weekday.from_index(7) is Weekday.MONDAY


class TestItemKind:
    def test_parse_singular_and_plural(self):
        assert ItemKind.parse("todo") is ItemKind.TODO
        assert ItemKind.parse("Tasks") is ItemKind.TASK
        assert ItemKind.parse("events") is ItemKind.EVENT

    def test_parse_unknown(self):
        with pytest.raises(InvalidInput):
            ItemKind.parse("note")

    def test_filenames(self):
        assert [kind.filename for kind in ItemKind] == ["todos.json", "tasks.json", "events.json"]

    def test_kind_of(self):
        assert kind_of(Todo("a")) is ItemKind.TODO
        assert kind_of(Task("a", 5)) is ItemKind.TASK
        assert kind_of(Event("a", date(2024, 1, 1))) is ItemKind.EVENT


class TestValueEquality:
    """Equality covers every field except id and removed."""

    def test_id_and_removed_are_ignored(self):
        a = Todo("Buy milk", Weekday.FRIDAY, removed=False, id=0)
        b = Todo("Buy milk", Weekday.FRIDAY, removed=True, id=7)
        assert a == b
        assert items_equal(a, b)

    def test_value_fields_are_compared(self):
        assert Todo("Buy milk", Weekday.FRIDAY) != Todo("Buy milk", Weekday.MONDAY)
        assert Todo("Buy milk") != Todo("Buy milk", Weekday.MONDAY)
        assert Task("Gym", 60) != Task("Gym", 45)
        assert Event("Dentist", date(2024, 1, 10)) != Event("Dentist", date(2024, 1, 11))

    def test_different_kinds_never_equal(self):
        assert Todo("Gym") != Task("Gym", 60)

    def test_task_weekday_order_is_irrelevant(self):
        a = Task("Gym", 60, [Weekday.WEDNESDAY, Weekday.MONDAY])
        b = Task("Gym", 60, {Weekday.MONDAY, Weekday.WEDNESDAY})
        assert a == b
        assert a.value_key() == b.value_key()
        assert isinstance(a.weekdays, frozenset)


class TestOrdering:
    def test_sort_key_is_body(self):
        assert sort_key(Task("Read", 30)) == "Read"

    def test_order_key_breaks_body_ties_by_value(self):
        items = [Todo("Call", Weekday.FRIDAY), Todo("Call"), Todo("Call", Weekday.MONDAY), Todo("Apples")]
        ordered = sorted(items, key=order_key)
        assert [item.body for item in ordered] == ["Apples", "Call", "Call", "Call"]
        assert [item.weekday for item in ordered[1:]] == [None, Weekday.MONDAY, Weekday.FRIDAY]

    def test_renumber_assigns_positions(self):
        items = [Todo("a", id=5), Todo("b", id=5), Todo("c", id=9)]
        renumber(items)
        assert [item.id for item in items] == [0, 1, 2]


class TestOccursOn:
    """Scheduling rules per kind."""

    wednesday = date(2024, 1, 10)

    def test_todo(self):
        assert Todo("any").occurs_on(self.wednesday)
        assert Todo("wed", Weekday.WEDNESDAY).occurs_on(self.wednesday)
        assert not Todo("fri", Weekday.FRIDAY).occurs_on(self.wednesday)

    def test_task(self):
        assert Task("daily", 10).occurs_on(self.wednesday)
        assert Task("mon wed", 10, [Weekday.MONDAY, Weekday.WEDNESDAY]).occurs_on(self.wednesday)
        assert not Task("tue", 10, [Weekday.TUESDAY]).occurs_on(self.wednesday)

    def test_event(self):
        assert Event("x", self.wednesday).occurs_on(self.wednesday)
        assert not Event("x", date(2024, 1, 11)).occurs_on(self.wednesday)


class TestSerialization:
    def test_records_use_short_names_and_iso_dates(self):
        task = Task("Gym", 60, [Weekday.WEDNESDAY, Weekday.MONDAY], removed=True, id=3)
        assert task.to_dict() == {"body": "Gym", "duration": 60, "weekdays": ["mon", "wed"], "removed": True}
        assert Event("Dentist", date(2024, 1, 10)).to_dict()["date"] == "2024-01-10"
        assert "id" not in Todo("x").to_dict()

    def test_from_dict_restores_tombstone(self):
        todo = item_from_dict(ItemKind.TODO, {"body": "Buy milk", "weekday": "fri", "removed": True})
        assert todo == Todo("Buy milk", Weekday.FRIDAY)
        assert todo.removed is True

    def test_removed_defaults_to_false(self):
        event = item_from_dict(ItemKind.EVENT, {"body": "Dentist", "date": "2024-01-10"})
        assert event.removed is False

    @pytest.mark.parametrize("kind,record", [
        (ItemKind.TODO, {"weekday": "fri"}),
        (ItemKind.TODO, {"body": "x", "weekday": "funday"}),
        (ItemKind.TASK, {"body": "x", "duration": "60"}),
        (ItemKind.TASK, {"body": "x", "duration": 60, "weekdays": "mon"}),
        (ItemKind.EVENT, {"body": "x", "date": "10/01/2024"}),
        (ItemKind.EVENT, {"body": "x"}),
        (ItemKind.TODO, {"body": "x", "removed": "yes"}),
        (ItemKind.TODO, ["x"]),
        (ItemKind.TODO, {"body": "   "}),
        (ItemKind.TASK, {"body": "x", "duration": 0}),
        (ItemKind.TASK, {"body": "x", "duration": -5}),
        (ItemKind.TASK, {"body": "x", "duration": 60, "weekdays": [None]}),
        (ItemKind.TASK, {"body": "x", "duration": 60, "weekdays": ["mon", None]}),
    ])
    def test_malformed_records(self, kind, record):
        with pytest.raises(CorruptSnapshot):
            item_from_dict(kind, record)
