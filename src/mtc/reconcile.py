"""Reconciliation of two replicas into one converged snapshot per kind.

Items are matched across replicas purely by value (every field except ``id``
and ``removed``). A removal seen on either side wins unconditionally: there
are no timestamps and no last-writer-wins. Events more than a few days in the
past are expired during the same pass. The merged list is re-sorted and
re-numbered, so ids issued before a reconciliation are no longer valid.

Nothing in this module performs I/O; callers fetch snapshots first and write
the result back only once every kind has been reconciled.
"""

import copy
import logging
from datetime import date
from enum import Enum
from typing import Dict, Hashable, Iterable, List, Mapping, Optional, Tuple

from .items import Item, ItemKind, order_key, renumber
from .store import ReplicaStore

logger = logging.getLogger(__name__)


DEFAULT_EVENT_EXPIRY_DAYS = 3


class SyncMode(Enum):
    """How a sync treats the remote replica."""
    NORMAL = "normal"        # two-sided merge; both replicas get the result
    SELF = "self"            # merge the local replica with itself, no remote
    OVERWRITE = "overwrite"  # never read the remote; push the normalized local replica

    @property
    def needs_remote(self) -> bool:
        return self is not SyncMode.SELF

    @property
    def reads_remote(self) -> bool:
        return self is SyncMode.NORMAL


def is_expired(item: Item, today: date, expiry_days: int = DEFAULT_EVENT_EXPIRY_DAYS) -> bool:
    """True for an event dated strictly more than ``expiry_days`` before ``today``."""
    if item.kind is not ItemKind.EVENT:
        return False
    return (today - item.date).days > expiry_days


def _key(item: Item) -> Tuple[ItemKind, Hashable]:
    return (item.kind, item.value_key())


def reconcile(
    local: Iterable[Item],
    remote: Iterable[Item],
    today: date,
    expiry_days: int = DEFAULT_EVENT_EXPIRY_DAYS,
) -> List[Item]:
    """Merge two snapshots of the same kind.

    Args:
        local: Local snapshot, tombstones included
        remote: Remote snapshot, tombstones included
        today: Date of the machine driving the reconciliation
        expiry_days: Events older than this many days are dropped

    Returns:
        The active merged items, sorted and numbered 0..n-1. The input items
        are never mutated.
    """
    candidates: Dict[Hashable, Item] = {}
    tombstoned = set()

    for item in list(local) + list(remote):
        key = _key(item)
        if key not in candidates:
            candidates[key] = item
        if item.removed:
            tombstoned.add(key)

    merged: List[Item] = []
    expired = 0
    for key, item in candidates.items():
        if key in tombstoned:
            continue
        if is_expired(item, today, expiry_days):
            expired += 1
            continue
        survivor = copy.deepcopy(item)
        survivor.removed = False
        merged.append(survivor)

    merged.sort(key=order_key)
    renumber(merged)

    logger.debug(
        f"Reconciled {len(candidates)} distinct value(s): {len(tombstoned)} tombstoned, "
        f"{expired} expired, {len(merged)} kept"
    )
    return merged


def reconcile_self(
    local: Iterable[Item],
    today: date,
    expiry_days: int = DEFAULT_EVENT_EXPIRY_DAYS,
) -> List[Item]:
    """Reconcile a snapshot against itself: purge tombstones, expire, renumber."""
    items = list(local)
    return reconcile(items, items, today, expiry_days)


def reconcile_overwrite(
    local: Iterable[Item],
    today: date,
    expiry_days: int = DEFAULT_EVENT_EXPIRY_DAYS,
) -> List[Item]:
    """Normalize the local snapshot for pushing over whatever the remote holds.

    The remote state is never consulted; the output depends on ``local`` only.
    """
    return reconcile_self(local, today, expiry_days)


def reconcile_store(
    local: ReplicaStore,
    remote: Optional[Mapping[ItemKind, Iterable[Item]]],
    today: date,
    mode: SyncMode = SyncMode.NORMAL,
    expiry_days: int = DEFAULT_EVENT_EXPIRY_DAYS,
) -> Dict[ItemKind, List[Item]]:
    """Reconcile every kind of a replica and return the merged snapshots.

    ``remote`` is only read in ``SyncMode.NORMAL``; it must then hold a
    snapshot for every kind. ``local`` is not modified.
    """
    merged: Dict[ItemKind, List[Item]] = {}
    for kind in ItemKind:
        local_items = local.snapshot(kind)
        if mode is SyncMode.NORMAL:
            if remote is None or kind not in remote:
                raise ValueError(f"A normal reconciliation needs a remote snapshot of {kind.plural}")
            merged[kind] = reconcile(local_items, remote[kind], today, expiry_days)
        else:
            merged[kind] = reconcile_self(local_items, today, expiry_days)
        logger.info(f"{kind.plural}: {len(merged[kind])} item(s) after {mode.value} reconciliation")
    return merged
