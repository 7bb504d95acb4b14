"""Item model for mtc: todos, recurring tasks and dated events.

The three item kinds form a closed union (``Item``). Code that must treat
them uniformly dispatches on ``ItemKind`` rather than on a class hierarchy.

Equality between two items of the same kind is *value-equality*: every field
except ``id`` and ``removed`` takes part. The dataclass ``__eq__`` implements
it directly because both fields are declared with ``compare=False``.
"""

from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Any, ClassVar, Dict, FrozenSet, Iterable, Optional, Tuple, Union

from .errors import CorruptSnapshot, InvalidInput
from .utils.datetime import to_date_string


class Weekday(Enum):
    """Days of the week, serialized by their short lower-case name."""
    MONDAY = "mon"
    TUESDAY = "tue"
    WEDNESDAY = "wed"
    THURSDAY = "thu"
    FRIDAY = "fri"
    SATURDAY = "sat"
    SUNDAY = "sun"

    @property
    def index(self) -> int:
        """Day number with 0=Monday, matching ``date.weekday()``."""
        return _WEEKDAY_ORDER.index(self)

    @property
    def label(self) -> str:
        return self.name.capitalize()

    @classmethod
    def from_index(cls, index: int) -> "Weekday":
        return _WEEKDAY_ORDER[index % 7]

    @classmethod
    def of(cls, day: date) -> "Weekday":
        """Return the weekday a calendar date falls on."""
        return cls.from_index(day.weekday())

    @classmethod
    def parse(cls, text: str) -> "Weekday":
        """Parse a weekday from its short or full English name (case-insensitive).

        Raises:
            InvalidInput: If the text names no weekday
        """
        token = (text or "").strip().lower()
        for weekday in _WEEKDAY_ORDER:
            if token and (token == weekday.value or token == weekday.name.lower()):
                return weekday
        raise InvalidInput(f"Cannot parse '{text}' to a weekday.", field_name="weekday", value=text)


_WEEKDAY_ORDER = list(Weekday)


class ItemKind(Enum):
    """The closed set of item kinds."""
    TODO = "todo"
    TASK = "task"
    EVENT = "event"

    @property
    def plural(self) -> str:
        return f"{self.value}s"

    @property
    def filename(self) -> str:
        """Name of the snapshot document holding this kind."""
        return f"{self.plural}.json"

    @property
    def item_type(self):
        return ITEM_TYPES[self]

    @classmethod
    def parse(cls, text: str) -> "ItemKind":
        """Parse a kind from its singular or plural name.

        Raises:
            InvalidInput: If the text names no kind
        """
        token = (text or "").strip().lower()
        for kind in cls:
            if token in (kind.value, kind.plural):
                return kind
        raise InvalidInput(f"Unknown type: '{text}'", field_name="type", value=text)


def _weekday_from_record(value: Any) -> Optional[Weekday]:
    if value is None:
        return None
    if not isinstance(value, str):
        raise CorruptSnapshot(f"Invalid weekday in snapshot: {value!r}")
    try:
        return Weekday.parse(value)
    except InvalidInput as e:
        raise CorruptSnapshot(str(e))


def _body_from_record(data: Dict[str, Any]) -> str:
    body = data.get("body")
    if not isinstance(body, str) or not body.strip():
        raise CorruptSnapshot(f"Item record has no text body: {data!r}")
    return body


def _removed_from_record(data: Dict[str, Any]) -> bool:
    removed = data.get("removed", False)
    if not isinstance(removed, bool):
        raise CorruptSnapshot(f"Invalid removed flag in snapshot: {removed!r}")
    return removed


@dataclass
class Todo:
    """A short term todo, optionally scheduled on a weekday."""

    body: str
    weekday: Optional[Weekday] = None

    # Not part of the item's value
    removed: bool = field(default=False, compare=False)
    id: int = field(default=0, compare=False)

    kind: ClassVar[ItemKind] = ItemKind.TODO

    def value_key(self) -> Tuple:
        """Hashable, orderable key of every value field."""
        return (self.body, self.weekday.index if self.weekday else -1)

    def occurs_on(self, day: date) -> bool:
        """True if the todo is scheduled for ``day`` (unscheduled todos always are)."""
        return self.weekday is None or self.weekday.index == day.weekday()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "body": self.body,
            "weekday": self.weekday.value if self.weekday else None,
            "removed": self.removed,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Todo":
        return cls(
            body=_body_from_record(data),
            weekday=_weekday_from_record(data.get("weekday")),
            removed=_removed_from_record(data),
        )


@dataclass
class Task:
    """A recurring task with a duration in minutes.

    An empty ``weekdays`` set means the task recurs every day.
    """

    body: str
    duration: int
    weekdays: FrozenSet[Weekday] = field(default_factory=frozenset)

    removed: bool = field(default=False, compare=False)
    id: int = field(default=0, compare=False)

    kind: ClassVar[ItemKind] = ItemKind.TASK

    def __post_init__(self):
        """Normalize any iterable of weekdays to a frozenset."""
        self.weekdays = frozenset(self.weekdays or ())

    def sorted_weekdays(self) -> Tuple[Weekday, ...]:
        return tuple(sorted(self.weekdays, key=lambda wd: wd.index))

    def value_key(self) -> Tuple:
        return (self.body, self.duration, tuple(wd.index for wd in self.sorted_weekdays()))

    def occurs_on(self, day: date) -> bool:
        return not self.weekdays or Weekday.of(day) in self.weekdays

    def to_dict(self) -> Dict[str, Any]:
        return {
            "body": self.body,
            "duration": self.duration,
            "weekdays": [wd.value for wd in self.sorted_weekdays()],
            "removed": self.removed,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Task":
        duration = data.get("duration")
        if not isinstance(duration, int) or isinstance(duration, bool) or duration <= 0:
            raise CorruptSnapshot(f"Invalid task duration in snapshot: {duration!r}")
        weekdays = data.get("weekdays", [])
        if not isinstance(weekdays, list) or None in weekdays:
            raise CorruptSnapshot(f"Invalid task weekdays in snapshot: {weekdays!r}")
        return cls(
            body=_body_from_record(data),
            duration=duration,
            weekdays=frozenset(_weekday_from_record(wd) for wd in weekdays),
            removed=_removed_from_record(data),
        )


@dataclass
class Event:
    """A one-shot event on a calendar date."""

    body: str
    date: date

    removed: bool = field(default=False, compare=False)
    id: int = field(default=0, compare=False)

    kind: ClassVar[ItemKind] = ItemKind.EVENT

    def value_key(self) -> Tuple:
        return (self.body, self.date.toordinal())

    def occurs_on(self, day: date) -> bool:
        return self.date == day

    def to_dict(self) -> Dict[str, Any]:
        return {
            "body": self.body,
            "date": to_date_string(self.date),
            "removed": self.removed,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Event":
        raw_date = data.get("date")
        try:
            parsed = date.fromisoformat(raw_date)
        except (TypeError, ValueError):
            raise CorruptSnapshot(f"Invalid event date in snapshot: {raw_date!r}")
        return cls(
            body=_body_from_record(data),
            date=parsed,
            removed=_removed_from_record(data),
        )


Item = Union[Todo, Task, Event]

ITEM_TYPES = {
    ItemKind.TODO: Todo,
    ItemKind.TASK: Task,
    ItemKind.EVENT: Event,
}


def kind_of(item: Item) -> ItemKind:
    """Return the kind tag of an item."""
    return item.kind


def items_equal(a: Item, b: Item) -> bool:
    """Value-equality: all fields except ``id`` and ``removed``."""
    return a == b


def sort_key(item: Item) -> str:
    """The body text, which orders items within a kind."""
    return item.body


def order_key(item: Item) -> Tuple:
    """Total order used for id assignment: body first, then remaining fields."""
    return (item.body, item.value_key())


def item_from_dict(kind: ItemKind, data: Any) -> Item:
    """Build an item of ``kind`` from a serialized record.

    Raises:
        CorruptSnapshot: If the record is malformed
    """
    if not isinstance(data, dict):
        raise CorruptSnapshot(f"Expected an item record, got {type(data).__name__}")
    return kind.item_type.from_dict(data)


def renumber(items: Iterable[Item]) -> None:
    """Assign ids 0..n-1 in iteration order."""
    for index, item in enumerate(items):
        item.id = index
