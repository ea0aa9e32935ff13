"""Locate today's daily note, the aggregator document."""

from __future__ import annotations

from collections.abc import Callable
from datetime import date
from typing import TYPE_CHECKING

import structlog

if TYPE_CHECKING:
    from tasksync.vault.store import DocumentStore

log = structlog.get_logger()


class DailyNoteLocator:
    """Resolves the current aggregator document from a folder and date format."""

    def __init__(
        self,
        store: DocumentStore,
        folder: str = "",
        date_format: str = "%Y-%m-%d",
        today: Callable[[], date] = date.today,
    ):
        """Initialize the locator.

        Args:
            store: Document store.
            folder: Vault-relative folder holding daily notes.
            date_format: strftime format of daily note names.
            today: Clock used to pick the note.
        """
        self.store = store
        self.folder = folder.strip("/")
        self.date_format = date_format
        self._today = today

    def expected_path(self) -> str:
        """Path today's note would have."""
        name = f"{self._today().strftime(self.date_format)}.md"
        return f"{self.folder}/{name}" if self.folder else name

    def current(self) -> str | None:
        """Today's note path, or None if it does not exist yet."""
        path = self.expected_path()
        if not self.store.exists(path):
            log.debug("daily_note_missing", path=path)
            return None
        return path
