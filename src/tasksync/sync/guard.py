"""Re-entrance guard for documents this process is writing."""

from __future__ import annotations

import contextlib
import hashlib
from collections.abc import Iterator


def _digest(content: str) -> str:
    return hashlib.sha256(content.encode("utf-8")).hexdigest()


class WriteGuard:
    """Tracks self-caused writes so their notifications are not re-processed.

    While ``hold(path)`` is active every notification for ``path`` is
    suppressed. Notifications arriving later are matched against the digest
    of the content last written.
    """

    def __init__(self) -> None:
        self._active: set[str] = set()
        self._echoes: dict[str, str] = {}

    @contextlib.contextmanager
    def hold(self, path: str, content: str) -> Iterator[None]:
        """Guard a write-back of ``content`` to ``path``.

        The guard is released even if the write fails; a failed write also
        forgets the expected echo.
        """
        self._active.add(path)
        self._echoes[path] = _digest(content)
        try:
            yield
        except BaseException:
            self._echoes.pop(path, None)
            raise
        finally:
            self._active.discard(path)

    def is_active(self, path: str) -> bool:
        """Check if a write to ``path`` is in flight."""
        return path in self._active

    def expects_echo(self, path: str) -> bool:
        """Check if a notification for ``path`` may be our own write."""
        return path in self._echoes

    def consume_echo(self, path: str, content: str) -> bool:
        """Check and forget the expected echo for ``path``.

        Returns:
            True if ``content`` is exactly what this process last wrote.
        """
        expected = self._echoes.pop(path, None)
        return expected is not None and expected == _digest(content)

    def clear(self) -> None:
        """Forget every expected echo."""
        self._echoes.clear()
