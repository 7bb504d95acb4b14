"""Transport adapters moving snapshot documents to and from the remote replica.

An adapter only knows how to fetch and store the serialized document of one
item kind. It never interprets the content; parsing and merging happen in
``mtc.store`` and ``mtc.reconcile``.
"""

import logging
import os
import posixpath
import shlex
import subprocess
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import List, Mapping, Optional, Sequence

from ..config import SyncSettings
from ..errors import RemoteNotFound, TransportError
from ..items import ItemKind
from ..store import STAGING_SUFFIX, write_atomic

logger = logging.getLogger(__name__)


class SyncAdapter(ABC):
    """Base class for all transport adapters."""

    def __init__(self):
        self.logger = logging.getLogger(f"{self.__class__.__module__}.{self.__class__.__name__}")

    @property
    def name(self) -> str:
        return self.__class__.__name__

    @abstractmethod
    def fetch(self, kind: ItemKind) -> bytes:
        """Return the raw remote snapshot document of ``kind``.

        Decoding is left to ``load_snapshot``, which reports undecodable
        content as ``CorruptSnapshot``.

        Raises:
            RemoteNotFound: If the remote location holds no document for ``kind``
            TransportError: If the channel fails
        """
        pass

    @abstractmethod
    def store(self, kind: ItemKind, data: str) -> None:
        """Replace the remote snapshot document of ``kind``.

        Raises:
            TransportError: If the channel fails
        """
        pass

    def store_all(self, documents: Mapping[ItemKind, str]) -> None:
        """Store several documents; adapters that can stage writes override this."""
        for kind, data in documents.items():
            self.store(kind, data)


class LocalFileAdapter(SyncAdapter):
    """Uses a directory on this machine (e.g. a mounted share) as the remote replica."""

    def __init__(self, sync_path):
        super().__init__()
        self.sync_path = Path(os.path.expanduser(str(sync_path)))

    def _path(self, kind: ItemKind) -> Path:
        return self.sync_path / kind.filename

    def fetch(self, kind: ItemKind) -> bytes:
        path = self._path(kind)
        if not path.exists():
            raise RemoteNotFound(f"No remote {kind.plural} at {path}; use 'mtc sync overwrite' to create them.")
        try:
            with open(path, "rb") as f:
                return f.read()
        except OSError as e:
            raise TransportError(f"Failed to read {path}: {e}")

    def store(self, kind: ItemKind, data: str) -> None:
        try:
            write_atomic(self._path(kind), data)
        except OSError as e:
            raise TransportError(f"Failed to write {self._path(kind)}: {e}")
        self.logger.debug(f"Stored {kind.plural} in {self.sync_path}")

    def store_all(self, documents: Mapping[ItemKind, str]) -> None:
        """Write every document to a staging file first, then rename them into place."""
        staged = []
        try:
            self.sync_path.mkdir(parents=True, exist_ok=True)
            for kind, data in documents.items():
                part = self._path(kind).with_name(kind.filename + STAGING_SUFFIX)
                with open(part, "w", encoding="utf-8") as f:
                    f.write(data)
                staged.append((part, self._path(kind)))
            for part, final in staged:
                os.replace(part, final)
        except OSError as e:
            for part, _ in staged:
                if part.exists():
                    part.unlink()
            raise TransportError(f"Failed to write snapshots to {self.sync_path}: {e}")
        self.logger.debug(f"Stored {len(staged)} snapshot(s) in {self.sync_path}")


class ScpAdapter(SyncAdapter):
    """Copies snapshot documents with the system ``scp``/``ssh`` clients.

    Authentication is left to the SSH client, which prompts for the password
    on the terminal. A shared control connection keeps that to one prompt per
    sync.
    """

    DEFAULT_SSH_OPTIONS = (
        "-o", "ControlMaster=auto",
        "-o", "ControlPath=~/.ssh/mtc-%r@%h:%p",
        "-o", "ControlPersist=60",
    )

    def __init__(self, settings: SyncSettings, timeout: int = 60,
                 scp_command: str = "scp", ssh_command: str = "ssh",
                 ssh_options: Optional[Sequence[str]] = None):
        super().__init__()
        self.settings = settings
        self.timeout = timeout
        self.scp_command = scp_command
        self.ssh_command = ssh_command
        self.ssh_options = list(self.DEFAULT_SSH_OPTIONS if ssh_options is None else ssh_options)

    @property
    def login(self) -> str:
        return f"{self.settings.username}@{self.settings.host}"

    def remote_path(self, kind: ItemKind) -> str:
        return posixpath.join(self.settings.server_path, kind.filename)

    def _remote_target(self, path: str) -> str:
        # scp hands the remote path to the remote shell
        return f"{self.login}:{shlex.quote(path)}"

    def _run(self, args: List[str]) -> subprocess.CompletedProcess:
        self.logger.debug(f"Running: {' '.join(args)}")
        try:
            return subprocess.run(args, capture_output=True, text=True, timeout=self.timeout)
        except FileNotFoundError:
            raise TransportError(f"'{args[0]}' is not installed or not on PATH.")
        except subprocess.TimeoutExpired:
            raise TransportError(f"Connection to {self.settings.address} timed out after {self.timeout}s.")

    def _raise_for(self, result: subprocess.CompletedProcess, action: str, kind: ItemKind) -> None:
        if result.returncode == 0:
            return
        stderr = (result.stderr or "").strip()
        if "No such file" in stderr:
            raise RemoteNotFound(
                f"No remote {kind.plural} at {self.settings.address}:{self.remote_path(kind)}; "
                f"use 'mtc sync overwrite' to create them."
            )
        if "Permission denied" in stderr:
            raise TransportError(f"Authentication as {self.settings.username} rejected by {self.settings.address}.")
        raise TransportError(f"Failed to {action} {kind.plural} ({result.returncode}): {stderr or 'no output'}")

    def _scp_args(self) -> List[str]:
        return [self.scp_command, "-q", "-P", str(self.settings.port), *self.ssh_options]

    def fetch(self, kind: ItemKind) -> bytes:
        with tempfile.TemporaryDirectory(prefix="mtc-") as tmp:
            local = Path(tmp) / kind.filename
            result = self._run(self._scp_args() + [self._remote_target(self.remote_path(kind)), str(local)])
            self._raise_for(result, "download", kind)
            with open(local, "rb") as f:
                data = f.read()
        self.logger.debug(f"Fetched {kind.plural} from {self.settings.address}")
        return data

    def _upload(self, kind: ItemKind, data: str, remote_path: str) -> None:
        with tempfile.TemporaryDirectory(prefix="mtc-") as tmp:
            local = Path(tmp) / kind.filename
            with open(local, "w", encoding="utf-8") as f:
                f.write(data)
            result = self._run(self._scp_args() + [str(local), self._remote_target(remote_path)])
            self._raise_for(result, "upload", kind)

    def store(self, kind: ItemKind, data: str) -> None:
        self._upload(kind, data, self.remote_path(kind))
        self.logger.debug(f"Stored {kind.plural} on {self.settings.address}")

    def store_all(self, documents: Mapping[ItemKind, str]) -> None:
        """Upload every document to a staging name, then move them all into place at once."""
        moves = []
        for kind, data in documents.items():
            final = self.remote_path(kind)
            part = final + STAGING_SUFFIX
            self._upload(kind, data, part)
            moves.append(f"mv -f -- {shlex.quote(part)} {shlex.quote(final)}")

        if not moves:
            return
        args = [self.ssh_command, "-p", str(self.settings.port), *self.ssh_options,
                self.login, " && ".join(moves)]
        result = self._run(args)
        if result.returncode != 0:
            raise TransportError(
                f"Failed to commit snapshots on {self.settings.address}: {(result.stderr or '').strip()}"
            )
        self.logger.debug(f"Committed {len(moves)} snapshot(s) on {self.settings.address}")
