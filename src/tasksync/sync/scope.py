"""Pending scan scope and the per-document sync phase."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class SyncPhase(str, Enum):
    """Per-document sync phase."""

    IDLE = "idle"
    PENDING_DEBOUNCE = "pending_debounce"
    SCANNING = "scanning"


@dataclass(frozen=True)
class SingleDocument:
    """Only one document changed since the last cycle."""

    path: str


@dataclass(frozen=True)
class FullVault:
    """Several documents changed, or a manual sync was requested."""


Scope = SingleDocument | FullVault


def merge_scope(scope: Scope, path: str) -> Scope:
    """Widen a pending scope with another changed document.

    The same document keeps a single-document scope, a different one widens
    to the whole vault, and the whole vault never narrows.
    """
    if isinstance(scope, SingleDocument) and scope.path == path:
        return scope
    return FullVault()
