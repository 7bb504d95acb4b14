"""Replica store for mtc.

A replica holds one ordered ``ItemList`` per item kind. Ids are positions in
that order and are reassigned whenever the list changes shape, so an id is
only meaningful until the next add, body edit or reconciliation.

``LocalStorage`` persists a replica as one JSON snapshot document per kind.
The same documents are what the sync adapters move to and from the remote
location.
"""

import copy
import json
import logging
import os
import tempfile
from dataclasses import dataclass
from datetime import date, timedelta
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List, Optional, Tuple, Union

from .errors import CorruptSnapshot, InvalidInput, NotFound, StorageError
from .items import Item, ItemKind, Todo, Weekday, item_from_dict, order_key, renumber
from .utils.datetime import days_between, next_date_for_weekday, today as local_today, week_start
from .utils.validation import coerce_field, validate_item

logger = logging.getLogger(__name__)


SNAPSHOT_VERSION = 1
STAGING_SUFFIX = ".part"


@dataclass(frozen=True)
class DayFilter:
    """Selects items scheduled on any day of an inclusive date range.

    ``today`` anchors the todo carry-forward policy: with ``carry_forward``
    set, a todo whose weekday already passed in the current week (weeks
    start on ``first_day_of_week``) is listed on today and every later day.
    """
    start: date
    end: date
    today: date
    carry_forward: bool = False
    first_day_of_week: int = 0

    @classmethod
    def for_date(cls, day: date, today: Optional[date] = None, **policy) -> "DayFilter":
        return cls(start=day, end=day, today=today or local_today(), **policy)

    @classmethod
    def for_today(cls, today: Optional[date] = None, **policy) -> "DayFilter":
        today = today or local_today()
        return cls(start=today, end=today, today=today, **policy)

    @classmethod
    def for_weekday(cls, weekday: Weekday, today: Optional[date] = None, **policy) -> "DayFilter":
        """The next date on or after today falling on ``weekday``."""
        today = today or local_today()
        day = next_date_for_weekday(weekday.index, today)
        return cls(start=day, end=day, today=today, **policy)

    @classmethod
    def for_range(cls, start: date, end: date, today: Optional[date] = None, **policy) -> "DayFilter":
        if end < start:
            start, end = end, start
        return cls(start=start, end=end, today=today or local_today(), **policy)

    def days(self) -> Iterator[date]:
        return days_between(self.start, self.end)

    def is_carried_forward(self, item: Item, day: date) -> bool:
        """True if an overdue todo should also be listed on ``day``."""
        if not self.carry_forward or not isinstance(item, Todo) or item.weekday is None:
            return False
        if day < self.today:
            return False
        offset = (item.weekday.index - self.first_day_of_week) % 7
        due = week_start(self.today, self.first_day_of_week) + timedelta(days=offset)
        return due < self.today

    def matches_day(self, item: Item, day: date) -> bool:
        return item.occurs_on(day) or self.is_carried_forward(item, day)

    def matches(self, item: Item) -> bool:
        return any(self.matches_day(item, day) for day in self.days())


class ItemView:
    """Lazy, restartable view over the active items of one kind.

    Each iteration walks the underlying list afresh, so a view reflects the
    list at iteration time and can be iterated any number of times.
    """

    def __init__(self, items: "ItemList", day_filter: Optional[DayFilter] = None):
        self._items = items
        self._filter = day_filter

    def __iter__(self) -> Iterator[Item]:
        for item in self._items:
            if item.removed:
                continue
            if self._filter is None or self._filter.matches(item):
                yield item

    def __repr__(self):
        return f"ItemView({self._items.kind.value}, filter={self._filter!r})"


class ItemList:
    """The ordered items of one kind within a replica, tombstones included."""

    def __init__(self, kind: ItemKind, items: Optional[Iterable[Item]] = None):
        self.kind = kind
        self._items: List[Item] = []
        for item in items or ():
            self._check_kind(item)
            self._items.append(item)
        self._reindex()

    def __iter__(self) -> Iterator[Item]:
        return iter(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def _check_kind(self, item: Item) -> None:
        if item.kind is not self.kind:
            raise InvalidInput(f"Cannot store a {item.kind.value} in the {self.kind.plural} list.")

    def _reindex(self) -> None:
        self._items.sort(key=order_key)
        renumber(self._items)

    def get(self, item_id: int) -> Item:
        """Return the item currently holding ``item_id``.

        Raises:
            NotFound: If the id is out of range
        """
        if isinstance(item_id, bool) or not isinstance(item_id, int) or not 0 <= item_id < len(self._items):
            raise NotFound(self.kind.value, item_id)
        return self._items[item_id]

    def get_active(self, item_id: int) -> Item:
        """Like ``get``, but a removed item is treated as missing.

        Raises:
            NotFound: If the id is out of range or names a removed item
        """
        item = self.get(item_id)
        if item.removed:
            raise NotFound(self.kind.value, item_id)
        return item

    def add(self, item: Item) -> int:
        """Insert a validated item in sorted position and renumber the whole kind."""
        self._check_kind(item)
        validate_item(item)
        item.removed = False
        self._items.append(item)
        self._reindex()
        logger.debug(f"Added {self.kind.value} {item.body!r} at id {item.id}")
        return item.id

    def set(self, item_id: int, field_name: str, value: Any) -> Item:
        """Change one field of an item in place.

        The value is validated before anything is touched. Changing a value
        field re-sorts the kind, which reassigns ids when the body moved.

        Raises:
            NotFound: If the id is out of range or the item was removed
            InvalidInput: If the field or value is invalid for this kind
        """
        item = self.get_active(item_id)
        typed_value = coerce_field(self.kind, field_name, value)
        name = field_name.strip().lower()
        setattr(item, name, typed_value)
        self._reindex()
        logger.debug(f"Set {name} of {self.kind.value} {item_id} -> id {item.id}")
        return item

    def mark_removed(self, item_id: int) -> Item:
        """Tombstone an active item; ordering and ids are unchanged.

        Raises:
            NotFound: If the id is out of range or the item is already removed
        """
        item = self.get_active(item_id)
        item.removed = True
        logger.debug(f"Marked {self.kind.value} {item_id} ({item.body!r}) removed")
        return item

    def active(self, day_filter: Optional[DayFilter] = None) -> ItemView:
        return ItemView(self, day_filter)

    def snapshot(self) -> List[Item]:
        """Copies of every item, tombstones included."""
        return [copy.deepcopy(item) for item in self._items]

    def replace(self, items: Iterable[Item]) -> None:
        """Install a new item list, e.g. the result of a reconciliation."""
        new_items = [copy.deepcopy(item) for item in items]
        for item in new_items:
            self._check_kind(item)
        self._items = new_items
        self._reindex()

    def expire_events(self, today: date, expiry_days: int) -> int:
        """Drop events dated more than ``expiry_days`` before ``today``."""
        if self.kind is not ItemKind.EVENT:
            return 0
        kept = [item for item in self._items if (today - item.date).days <= expiry_days]
        dropped = len(self._items) - len(kept)
        if dropped:
            self._items = kept
            self._reindex()
            logger.info(f"Expired {dropped} event(s) older than {expiry_days} days")
        return dropped


class ReplicaStore:
    """One replica: an ``ItemList`` per kind."""

    def __init__(self, todos: Iterable[Item] = (), tasks: Iterable[Item] = (), events: Iterable[Item] = ()):
        self._lists: Dict[ItemKind, ItemList] = {
            ItemKind.TODO: ItemList(ItemKind.TODO, todos),
            ItemKind.TASK: ItemList(ItemKind.TASK, tasks),
            ItemKind.EVENT: ItemList(ItemKind.EVENT, events),
        }

    @property
    def todos(self) -> ItemList:
        return self._lists[ItemKind.TODO]

    @property
    def tasks(self) -> ItemList:
        return self._lists[ItemKind.TASK]

    @property
    def events(self) -> ItemList:
        return self._lists[ItemKind.EVENT]

    def list_for(self, kind: ItemKind) -> ItemList:
        return self._lists[kind]

    def add(self, item: Item) -> int:
        return self._lists[item.kind].add(item)

    def set(self, kind: ItemKind, item_id: int, field_name: str, value: Any) -> Item:
        return self._lists[kind].set(item_id, field_name, value)

    def remove(self, kind: ItemKind, item_id: int) -> Item:
        return self._lists[kind].mark_removed(item_id)

    def list(self, kind: ItemKind, day_filter: Optional[DayFilter] = None) -> ItemView:
        return self._lists[kind].active(day_filter)

    def items_on(self, day: date, day_filter: Optional[DayFilter] = None) -> Iterator[Tuple[ItemKind, Item]]:
        """Active items of every kind scheduled on ``day``, kind by kind."""
        day_filter = day_filter or DayFilter.for_date(day)
        for kind in ItemKind:
            for item in self._lists[kind]:
                if not item.removed and day_filter.matches_day(item, day):
                    yield kind, item

    def snapshot(self, kind: ItemKind) -> List[Item]:
        return self._lists[kind].snapshot()

    def replace(self, kind: ItemKind, items: Iterable[Item]) -> None:
        self._lists[kind].replace(items)

    def expire_events(self, today: date, expiry_days: int) -> int:
        return self.events.expire_events(today, expiry_days)


def dump_snapshot(kind: ItemKind, items: Iterable[Item]) -> str:
    """Serialize the items of one kind to a snapshot document.

    Ids are not written; they are recomputed from sort order on load.
    """
    document = {
        "kind": kind.value,
        "version": SNAPSHOT_VERSION,
        "items": [item.to_dict() for item in items],
    }
    return json.dumps(document, indent=2, ensure_ascii=False)


def load_snapshot(kind: ItemKind, raw: Union[str, bytes]) -> List[Item]:
    """Parse a snapshot document into items sorted and numbered for ``kind``.

    ``raw`` is the document text or its UTF-8 encoded bytes.

    Raises:
        CorruptSnapshot: If the document is not a valid snapshot of ``kind``
    """
    if isinstance(raw, bytes):
        try:
            raw = raw.decode("utf-8")
        except UnicodeDecodeError as e:
            raise CorruptSnapshot(f"Snapshot for {kind.plural} is not valid UTF-8: {e}")
    try:
        document = json.loads(raw)
    except (TypeError, ValueError) as e:
        raise CorruptSnapshot(f"Snapshot for {kind.plural} is not valid JSON: {e}")

    if not isinstance(document, dict) or not isinstance(document.get("items"), list):
        raise CorruptSnapshot(f"Snapshot for {kind.plural} has no item list.")
    if document.get("kind") != kind.value:
        raise CorruptSnapshot(f"Expected a {kind.value} snapshot, found {document.get('kind')!r}.")
    if document.get("version") != SNAPSHOT_VERSION:
        raise CorruptSnapshot(
            f"Unsupported snapshot version {document.get('version')!r} for {kind.plural}; "
            f"run 'mtc sync overwrite' after upgrading every replica."
        )

    items = [item_from_dict(kind, record) for record in document["items"]]
    items.sort(key=order_key)
    renumber(items)
    return items


def write_atomic(path: Path, content: str) -> None:
    """Write ``content`` to ``path`` through a temporary file and a rename."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", dir=str(path.parent))
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(content)
        os.replace(tmp_name, path)
    except BaseException:
        if os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise


class LocalStorage:
    """File-based persistence of the local replica.

    Saving goes through two steps so that a sync can prepare the local files
    before it touches the remote: ``stage`` writes every kind to a ``.part``
    file and ``commit`` renames them into place.
    """

    def __init__(self, data_dir):
        self.data_dir = Path(os.path.expanduser(str(data_dir)))

    def path_for(self, kind: ItemKind) -> Path:
        return self.data_dir / kind.filename

    def load_kind(self, kind: ItemKind) -> List[Item]:
        path = self.path_for(kind)
        if not path.exists():
            logger.debug(f"No local {kind.plural} yet at {path}")
            return []
        try:
            with open(path, "rb") as f:
                raw = f.read()
        except OSError as e:
            raise StorageError(f"Failed to read {path}: {e}")
        return load_snapshot(kind, raw)

    def load(self) -> ReplicaStore:
        """Load the local replica; missing files are empty kinds.

        Raises:
            CorruptSnapshot: If a stored file cannot be parsed
            StorageError: If a stored file cannot be read
        """
        return ReplicaStore(
            todos=self.load_kind(ItemKind.TODO),
            tasks=self.load_kind(ItemKind.TASK),
            events=self.load_kind(ItemKind.EVENT),
        )

    def stage(self, store: ReplicaStore) -> List[Tuple[Path, Path]]:
        """Write every kind of ``store`` next to its file without replacing it.

        Returns:
            ``(staging_path, final_path)`` pairs for ``commit`` or ``discard``

        Raises:
            StorageError: If a file cannot be written; nothing stays staged
        """
        staged = []
        try:
            for kind in ItemKind:
                final = self.path_for(kind)
                part = final.with_name(final.name + STAGING_SUFFIX)
                write_atomic(part, dump_snapshot(kind, store.snapshot(kind)))
                staged.append((part, final))
        except OSError as e:
            self.discard(staged)
            raise StorageError(f"Failed to write the local replica to {self.data_dir}: {e}")
        return staged

    def commit(self, staged: List[Tuple[Path, Path]]) -> None:
        """Rename staged files into place.

        Raises:
            StorageError: If a rename fails
        """
        try:
            for part, final in staged:
                os.replace(part, final)
        except OSError as e:
            self.discard(staged)
            raise StorageError(f"Failed to replace the local replica in {self.data_dir}: {e}")
        logger.debug(f"Saved local replica to {self.data_dir}")

    @staticmethod
    def discard(staged: List[Tuple[Path, Path]]) -> None:
        for part, _ in staged:
            if part.exists():
                part.unlink()

    def save(self, store: ReplicaStore) -> None:
        """Write every kind of ``store``, tombstones included.

        Raises:
            StorageError: If the files cannot be written
        """
        self.commit(self.stage(store))
