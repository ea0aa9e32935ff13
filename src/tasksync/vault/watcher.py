"""watchdog bridge delivering vault change events onto the asyncio loop."""

from __future__ import annotations

import asyncio
import os
from collections.abc import Callable
from pathlib import Path

import structlog
from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

log = structlog.get_logger()


def to_vault_path(root: Path, raw_path: str | bytes) -> str | None:
    """Convert an absolute event path to a vault-relative Markdown path.

    Returns None for paths outside the vault, inside dot-directories, or
    that are not Markdown documents.
    """
    path = Path(os.fsdecode(raw_path))
    try:
        rel = path.relative_to(root)
    except ValueError:
        return None
    if path.suffix.lower() != ".md":
        return None
    if any(part.startswith(".") for part in rel.parts[:-1]):
        return None
    return rel.as_posix()


class VaultEventHandler(FileSystemEventHandler):
    """Forwards Markdown create/modify/move/delete events to the loop.

    watchdog calls these methods on its observer thread; every event is
    handed to the loop with ``call_soon_threadsafe``.
    """

    def __init__(
        self,
        root: Path,
        loop: asyncio.AbstractEventLoop,
        on_change: Callable[[str], None],
        on_delete: Callable[[str], None],
    ):
        super().__init__()
        self._root = root
        self._loop = loop
        self._on_change = on_change
        self._on_delete = on_delete

    def _forward(self, raw_path: str | bytes, callback: Callable[[str], None]) -> None:
        path = to_vault_path(self._root, raw_path)
        if path is None:
            return
        try:
            self._loop.call_soon_threadsafe(callback, path)
        except RuntimeError:
            # Loop already closed during shutdown
            pass

    def on_created(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._forward(event.src_path, self._on_change)

    def on_modified(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._forward(event.src_path, self._on_change)

    def on_moved(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._forward(event.src_path, self._on_delete)
            self._forward(event.dest_path, self._on_change)

    def on_deleted(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._forward(event.src_path, self._on_delete)


class VaultWatcher:
    """Owns the watchdog observer for one vault root."""

    def __init__(self, root: Path):
        self.root = root
        self._observer: Observer | None = None

    @property
    def running(self) -> bool:
        """Check if the observer thread is running."""
        return self._observer is not None

    def start(
        self,
        loop: asyncio.AbstractEventLoop,
        on_change: Callable[[str], None],
        on_delete: Callable[[str], None],
    ) -> None:
        """Start watching the vault recursively."""
        if self._observer is not None:
            return

        handler = VaultEventHandler(self.root, loop, on_change, on_delete)
        observer = Observer()
        observer.schedule(handler, str(self.root), recursive=True)
        observer.start()
        self._observer = observer
        log.info("vault_watcher_started", root=str(self.root))

    def stop(self) -> None:
        """Stop the observer thread."""
        if self._observer is None:
            return
        try:
            self._observer.stop()
            self._observer.join(timeout=2.0)
        finally:
            self._observer = None
        log.info("vault_watcher_stopped", root=str(self.root))
