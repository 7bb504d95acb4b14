"""Synchronization of the local replica with a single remote replica."""

from .adapters import LocalFileAdapter, ScpAdapter, SyncAdapter
from .sync_engine import SyncManager, SyncResult
from ..reconcile import SyncMode

__all__ = [
    "SyncAdapter",
    "LocalFileAdapter",
    "ScpAdapter",
    "SyncManager",
    "SyncResult",
    "SyncMode",
]
