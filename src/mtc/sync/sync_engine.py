"""Sync orchestration: fetch, reconcile, then write back to both replicas.

The order of operations is what keeps a failed sync harmless. Every remote
snapshot is fetched and parsed before anything is reconciled, every kind is
reconciled in memory before anything is written, and the local files are
staged before the push and only renamed into place once the remote write has
succeeded.
"""

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Dict, List, Optional

from ..items import Item, ItemKind
from ..reconcile import DEFAULT_EVENT_EXPIRY_DAYS, SyncMode, reconcile_store
from ..store import LocalStorage, ReplicaStore, dump_snapshot, load_snapshot
from ..utils.datetime import today as local_today
from .adapters import SyncAdapter

logger = logging.getLogger(__name__)


@dataclass
class SyncResult:
    """Outcome of one sync run."""
    mode: SyncMode
    counts: Dict[ItemKind, int] = field(default_factory=dict)
    purged: Dict[ItemKind, int] = field(default_factory=dict)
    pushed: bool = False

    def summary(self) -> str:
        parts = [f"{self.counts.get(kind, 0)} {kind.plural}" for kind in ItemKind]
        target = "local and remote" if self.pushed else "local"
        return f"Synced ({self.mode.value}) {', '.join(parts)} to {target}."


class SyncManager:
    """Runs a sync between a local replica and an adapter."""

    def __init__(self, storage: LocalStorage, adapter: Optional[SyncAdapter] = None,
                 expiry_days: int = DEFAULT_EVENT_EXPIRY_DAYS):
        self.storage = storage
        self.adapter = adapter
        self.expiry_days = expiry_days

    def fetch_remote(self) -> Dict[ItemKind, List[Item]]:
        """Fetch and parse every remote snapshot.

        Raises:
            TransportError: If any fetch fails
            CorruptSnapshot: If any document cannot be parsed
        """
        remote = {}
        for kind in ItemKind:
            raw = self.adapter.fetch(kind)
            remote[kind] = load_snapshot(kind, raw)
            logger.debug(f"Fetched {len(remote[kind])} remote {kind.plural}")
        return remote

    def sync(self, mode: SyncMode = SyncMode.NORMAL, today: Optional[date] = None,
             store: Optional[ReplicaStore] = None) -> SyncResult:
        """Reconcile the local replica and write the result back.

        Args:
            mode: Normal, self or overwrite sync
            today: Date used for event expiry (defaults to the local date)
            store: Already loaded local replica; loaded from storage when omitted

        Returns:
            A ``SyncResult``; ``store`` holds the merged items afterwards

        Raises:
            TransportError: If the remote could not be read or written
            CorruptSnapshot: If a snapshot could not be parsed
            StorageError: If the local replica could not be written
        """
        if mode.needs_remote and self.adapter is None:
            raise ValueError(f"A {mode.value} sync needs a transport adapter")

        today = today or local_today()
        if store is None:
            store = self.storage.load()

        remote = self.fetch_remote() if mode.reads_remote else None
        merged = reconcile_store(store, remote, today, mode, self.expiry_days)

        result = SyncResult(mode=mode)
        for kind in ItemKind:
            result.counts[kind] = len(merged[kind])
            result.purged[kind] = len(store.list_for(kind)) - len(merged[kind])

        staged = self.storage.stage(ReplicaStore(**{kind.plural: items for kind, items in merged.items()}))
        if mode.needs_remote:
            try:
                self.adapter.store_all({kind: dump_snapshot(kind, items) for kind, items in merged.items()})
            except Exception:
                self.storage.discard(staged)
                raise
            result.pushed = True
            logger.info(f"Pushed merged snapshots through {self.adapter.name}")

        self.storage.commit(staged)
        for kind, items in merged.items():
            store.replace(kind, items)

        logger.info(result.summary())
        return result
