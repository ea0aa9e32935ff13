"""Filesystem-backed document store."""

from __future__ import annotations

import asyncio
import os
import re
import tempfile
from pathlib import Path

import structlog

from tasksync.vault.store import ChangeCallback, Unsubscribe
from tasksync.vault.watcher import VaultWatcher

log = structlog.get_logger()

_LIST_ITEM = re.compile(r"^\s*(?:[-*+]|\d+[.)])\s", re.MULTILINE)


def has_list_items(content: str) -> bool:
    """Check if text contains at least one list item."""
    return _LIST_ITEM.search(content) is not None


def _atomic_write(target_path: Path, content: str) -> None:
    temp_path: Path | None = None
    try:
        with tempfile.NamedTemporaryFile(
            "w", encoding="utf-8", dir=target_path.parent, delete=False
        ) as temp_file:
            temp_path = Path(temp_file.name)
            temp_file.write(content)
            temp_file.flush()
            os.fsync(temp_file.fileno())
        os.replace(temp_path, target_path)
    finally:
        if temp_path is not None and temp_path.exists():
            try:
                temp_path.unlink()
            except OSError:
                pass


class FileSystemVault:
    """Markdown documents under a root directory.

    Paths are vault-relative POSIX strings such as ``Work/Reports.md``.
    Dot-directories (``.git``, ``.obsidian``, ``.tasksync``) are ignored.
    """

    def __init__(self, root: Path):
        """Initialize the vault.

        Args:
            root: Vault root directory.
        """
        self.root = root.expanduser().resolve()
        self._watcher = VaultWatcher(self.root)
        self._subscribers: list[ChangeCallback] = []
        # Cheap "might contain list items" index, refreshed after events
        self._hints: dict[str, bool] = {}
        self._hint_tasks: set[asyncio.Task] = set()

    def _abs(self, path: str) -> Path:
        target = (self.root / path).resolve()
        if not target.is_relative_to(self.root):
            raise ValueError(f"Path escapes vault root: {path}")
        return target

    async def read(self, path: str) -> str:
        """Read a document's text."""
        return await asyncio.to_thread(self._abs(path).read_text, encoding="utf-8")

    async def write(self, path: str, text: str) -> None:
        """Atomically replace a document's text."""
        await asyncio.to_thread(_atomic_write, self._abs(path), text)

    def list_documents(self) -> list[str]:
        """List every Markdown document, sorted."""
        paths = []
        for md_file in self.root.rglob("*.md"):
            rel = md_file.relative_to(self.root)
            if any(part.startswith(".") for part in rel.parts):
                continue
            if md_file.is_file():
                paths.append(rel.as_posix())
        return sorted(paths)

    def exists(self, path: str) -> bool:
        """Check if a document exists."""
        try:
            return self._abs(path).is_file()
        except ValueError:
            return False

    def might_have_list_items(self, path: str) -> bool:
        """Return the indexed hint; unindexed documents might have items."""
        return self._hints.get(path, True)

    async def build_hints(self) -> int:
        """Index list-item presence for every document.

        Returns:
            Number of documents indexed.
        """
        for path in self.list_documents():
            await self._refresh_hint(path)
        log.debug("hints_built", documents=len(self._hints))
        return len(self._hints)

    async def _refresh_hint(self, path: str) -> None:
        try:
            content = await self.read(path)
        except (OSError, UnicodeDecodeError):
            self._hints.pop(path, None)
            return
        self._hints[path] = has_list_items(content)

    def subscribe(self, callback: ChangeCallback) -> Unsubscribe:
        """Register a change callback; starts the watcher on first use.

        Must be called from a running event loop.
        """
        loop = asyncio.get_running_loop()
        self._subscribers.append(callback)
        if not self._watcher.running:
            self._watcher.start(loop, self._dispatch_change, self._dispatch_delete)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)
            if not self._subscribers:
                self.close()

        return unsubscribe

    def _dispatch_change(self, path: str) -> None:
        # Subscribers hear first; the hint catches up in the background
        task = asyncio.get_running_loop().create_task(self._refresh_hint(path))
        self._hint_tasks.add(task)
        task.add_done_callback(self._hint_tasks.discard)

        for callback in list(self._subscribers):
            callback(path)

    def _dispatch_delete(self, path: str) -> None:
        self._hints.pop(path, None)

    def close(self) -> None:
        """Stop watching and cancel pending hint refreshes."""
        self._watcher.stop()
        for task in self._hint_tasks:
            task.cancel()
        self._hint_tasks.clear()
