"""Sync orchestration between source documents and the daily note."""

from tasksync.sync.cache import SnapshotCache
from tasksync.sync.guard import WriteGuard
from tasksync.sync.orchestrator import SyncOrchestrator
from tasksync.sync.scope import FullVault, Scope, SingleDocument, SyncPhase, merge_scope

__all__ = [
    "SyncOrchestrator",
    "SnapshotCache",
    "WriteGuard",
    "Scope",
    "SingleDocument",
    "FullVault",
    "SyncPhase",
    "merge_scope",
]
