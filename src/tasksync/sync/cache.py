"""Per-document snapshot cache owned by the orchestrator."""

from __future__ import annotations

from tasksync.tasks.models import Snapshot


class SnapshotCache:
    """Latest snapshot per watched document.

    Populated when watching starts, replaced wholesale after each processed
    change, cleared on teardown. Snapshots are immutable, so handing them
    out does not expose the cache to mutation.
    """

    def __init__(self) -> None:
        self._snapshots: dict[str, Snapshot] = {}

    def get(self, path: str) -> Snapshot | None:
        """Get the cached snapshot for a document."""
        return self._snapshots.get(path)

    def replace(self, path: str, snapshot: Snapshot) -> Snapshot | None:
        """Store a new snapshot, returning the previous one."""
        previous = self._snapshots.get(path)
        self._snapshots[path] = snapshot
        return previous

    def discard(self, path: str) -> None:
        """Forget a document."""
        self._snapshots.pop(path, None)

    def clear(self) -> None:
        """Forget every document."""
        self._snapshots.clear()

    def __contains__(self, path: object) -> bool:
        return path in self._snapshots

    def __len__(self) -> int:
        return len(self._snapshots)

    @property
    def paths(self) -> list[str]:
        """Cached document paths."""
        return list(self._snapshots)
