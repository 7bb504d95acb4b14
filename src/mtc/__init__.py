"""mtc - My Time Contract, a CLI time management app with replica sync."""

__version__ = "0.1.0"

from .items import (
    Event,
    ItemKind,
    Task,
    Todo,
    Weekday,
)

__all__ = ["Todo", "Task", "Event", "ItemKind", "Weekday", "__version__"]
