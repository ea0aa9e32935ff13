"""Wikilink resolution and generation against a document store."""

from __future__ import annotations

from pathlib import PurePosixPath
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from tasksync.vault.store import DocumentStore


def _strip_md(path: str) -> str:
    return path[:-3] if path.endswith(".md") else path


class LinkResolver:
    """Resolves ``[[link]]`` targets to vault paths and back."""

    def __init__(self, store: DocumentStore):
        self.store = store

    def resolve(self, target: str) -> str | None:
        """Resolve link text to an existing document path.

        Tries the exact path, the path with ``.md`` appended, then a
        basename match anywhere in the vault (shortest path first).

        Args:
            target: Link text without brackets or alias.

        Returns:
            Vault path, or None if no document matches.
        """
        target = target.strip().lstrip("/")
        if not target:
            return None

        if target.endswith(".md") and self.store.exists(target):
            return target
        with_ext = target if target.endswith(".md") else f"{target}.md"
        if self.store.exists(with_ext):
            return with_ext

        name = PurePosixPath(with_ext).name
        candidates = [
            p for p in self.store.list_documents() if PurePosixPath(p).name == name
        ]
        if not candidates:
            return None
        return min(candidates, key=lambda p: (p.count("/"), p))

    def link_to(self, path: str) -> str:
        """Generate a wikilink for a document.

        Uses the bare name when it is unique in the vault, otherwise the
        full path without extension.
        """
        name = PurePosixPath(path).name
        same_name = [
            p for p in self.store.list_documents() if PurePosixPath(p).name == name
        ]
        if same_name == [path]:
            return f"[[{_strip_md(name)}]]"
        return f"[[{_strip_md(path)}]]"
