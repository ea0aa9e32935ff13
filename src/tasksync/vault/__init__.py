"""Document store, watcher and link handling for a Markdown vault."""

from tasksync.vault.daily import DailyNoteLocator
from tasksync.vault.filesystem import FileSystemVault, has_list_items
from tasksync.vault.links import LinkResolver
from tasksync.vault.store import DocumentStore

__all__ = [
    "DocumentStore",
    "FileSystemVault",
    "has_list_items",
    "LinkResolver",
    "DailyNoteLocator",
]
