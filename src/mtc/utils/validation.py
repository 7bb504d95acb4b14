"""Field validation for items entering a replica store.

Values arrive either already typed (library use) or as raw strings from the
command line. ``coerce_field`` turns both into the typed value an item field
holds, raising ``InvalidInput`` for anything malformed.
"""

import logging
import re
from datetime import date, datetime
from typing import Any, Dict, FrozenSet, Optional, Tuple

from ..errors import InvalidInput
from ..items import Event, Item, ItemKind, Task, Todo, Weekday
from .datetime import parse_date

logger = logging.getLogger(__name__)


EDITABLE_FIELDS: Dict[ItemKind, Tuple[str, ...]] = {
    ItemKind.TODO: ("body", "weekday"),
    ItemKind.TASK: ("body", "duration", "weekdays"),
    ItemKind.EVENT: ("body", "date"),
}

# Words accepted in place of an empty weekday / weekday set
_NONE_WORDS = {"", "none", "-"}
_DAILY_WORDS = {"daily", "every", "everyday", "all"}


def validate_body(value: Any) -> str:
    if not isinstance(value, str) or not value.strip():
        raise InvalidInput("The body must be non-empty text.", field_name="body", value=value)
    return value.strip()


def validate_weekday(value: Any) -> Optional[Weekday]:
    if value is None or isinstance(value, Weekday):
        return value
    if isinstance(value, str):
        if value.strip().lower() in _NONE_WORDS:
            return None
        return Weekday.parse(value)
    raise InvalidInput(f"Invalid weekday: {value!r}", field_name="weekday", value=value)


def validate_weekdays(value: Any) -> FrozenSet[Weekday]:
    if value is None:
        return frozenset()
    if isinstance(value, str):
        token = value.strip().lower()
        if token in _NONE_WORDS or token in _DAILY_WORDS:
            return frozenset()
        return frozenset(Weekday.parse(part) for part in re.split(r"[,\s]+", token) if part)
    if isinstance(value, Weekday):
        return frozenset([value])
    try:
        days = list(value)
    except TypeError:
        raise InvalidInput(f"Invalid weekdays: {value!r}", field_name="weekdays", value=value)
    return frozenset(validate_weekday(day) for day in days if day is not None)


def validate_duration(value: Any) -> int:
    """Duration in minutes; must be a positive integer."""
    if isinstance(value, str):
        try:
            value = int(value.strip())
        except ValueError:
            raise InvalidInput(f"Cannot parse '{value}' to a number.", field_name="duration", value=value)
    if not isinstance(value, int) or isinstance(value, bool):
        raise InvalidInput(f"Invalid duration: {value!r}", field_name="duration", value=value)
    if value <= 0:
        raise InvalidInput(f"The duration must be a positive number of minutes, got {value}.",
                           field_name="duration", value=value)
    return value


def validate_date(value: Any, date_format: str = "%Y-%m-%d") -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        return parse_date(value, date_format)
    raise InvalidInput(f"Invalid date: {value!r}", field_name="date", value=value)


_VALIDATORS = {
    "body": validate_body,
    "weekday": validate_weekday,
    "weekdays": validate_weekdays,
    "duration": validate_duration,
    "date": validate_date,
}


def coerce_field(kind: ItemKind, field_name: str, value: Any) -> Any:
    """Validate ``value`` for ``field_name`` on an item of ``kind``.

    Returns:
        The typed value to store on the item

    Raises:
        InvalidInput: If the field is not editable for the kind or the value is malformed
    """
    name = (field_name or "").strip().lower()
    if name == "id":
        raise InvalidInput("The id of an item cannot be set.", field_name="id", value=value)
    if name == "removed":
        raise InvalidInput("Items are removed with the remove command and cannot be restored.",
                           field_name="removed", value=value)
    if name not in EDITABLE_FIELDS[kind]:
        allowed = ", ".join(EDITABLE_FIELDS[kind])
        raise InvalidInput(f"Unknown property '{field_name}' for {kind.value} (expected one of: {allowed}).",
                           field_name=field_name, value=value)
    return _VALIDATORS[name](value)


def validate_item(item: Item) -> Item:
    """Validate and normalize every value field of a freshly constructed item.

    Raises:
        InvalidInput: If a required field is missing or malformed
    """
    if isinstance(item, Todo):
        item.weekday = validate_weekday(item.weekday)
    elif isinstance(item, Task):
        item.duration = validate_duration(item.duration)
        item.weekdays = validate_weekdays(item.weekdays)
    elif isinstance(item, Event):
        if item.date is None:
            raise InvalidInput("An event needs a date.", field_name="date")
        item.date = validate_date(item.date)
    else:
        raise InvalidInput(f"Not an mtc item: {item!r}")
    item.body = validate_body(item.body)
    logger.debug(f"Validated {item.kind.value}: {item.body!r}")
    return item
