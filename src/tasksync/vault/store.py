"""Document store contract consumed by the scanner and orchestrator."""

from collections.abc import Callable
from typing import Protocol

ChangeCallback = Callable[[str], None]
Unsubscribe = Callable[[], None]


class DocumentStore(Protocol):
    """A set of Markdown documents addressed by vault-relative POSIX paths."""

    async def read(self, path: str) -> str:
        """Read a document's text."""
        ...

    async def write(self, path: str, text: str) -> None:
        """Replace a document's text."""
        ...

    def list_documents(self) -> list[str]:
        """List every Markdown document path, sorted."""
        ...

    def exists(self, path: str) -> bool:
        """Check if a document exists."""
        ...

    def might_have_list_items(self, path: str) -> bool:
        """Cheap hint; may be stale right after a write."""
        ...

    def subscribe(self, callback: ChangeCallback) -> Unsubscribe:
        """Register for change notifications, called on the event loop."""
        ...
