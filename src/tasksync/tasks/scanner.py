"""Vault scanner for uncompleted priority tasks."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import PurePosixPath
from typing import TYPE_CHECKING

import structlog

from tasksync.tasks.models import PriorityTier, ScanResult
from tasksync.tasks.parser import classify, normalize

if TYPE_CHECKING:
    from tasksync.vault.store import DocumentStore

log = structlog.get_logger()

_TIER_ORDER = {PriorityTier.ELEVATED: 0, PriorityTier.STANDARD: 1}


@dataclass(frozen=True)
class ExclusionRules:
    """Folder, path and file-name exclusions for scanning."""

    folders: tuple[str, ...] = field(default_factory=tuple)
    files: tuple[str, ...] = field(default_factory=tuple)
    file_names: tuple[str, ...] = field(default_factory=tuple)

    def is_excluded(self, path: str) -> bool:
        """Check if a document is excluded.

        Folders are checked first, then full paths, then basenames in any
        directory. The first match wins.

        Args:
            path: Vault-relative document path.

        Returns:
            True if the document must not be scanned.
        """
        for folder in self.folders:
            folder = folder.strip("/")
            if folder and (path == folder or path.startswith(folder + "/")):
                return True

        for excluded in self.files:
            if excluded and path == excluded:
                return True

        name = PurePosixPath(path).name
        for file_name in self.file_names:
            if file_name and name == file_name:
                return True

        return False


def parse_document(path: str, content: str) -> list[ScanResult]:
    """Collect uncompleted, prioritised task lines from one document.

    Args:
        path: Vault-relative document path.
        content: Document text.

    Returns:
        Scan results in document order.
    """
    results: list[ScanResult] = []
    for index, line in enumerate(content.split("\n")):
        facts = classify(line)
        if not facts.is_task or facts.completed:
            continue
        if facts.priority == PriorityTier.NONE:
            continue
        results.append(
            ScanResult(
                raw_text=line,
                canonical_text=normalize(line),
                source_path=path,
                line_index=index,
                priority=facts.priority,
            )
        )
    return results


def sort_by_priority(results: list[ScanResult]) -> list[ScanResult]:
    """Elevated before standard, document order kept within a tier."""
    return sorted(results, key=lambda r: _TIER_ORDER.get(r.priority, 2))


def filter_by_priority(
    results: list[ScanResult],
    include_elevated: bool = True,
    include_standard: bool = True,
) -> list[ScanResult]:
    """Keep only the tiers enabled in settings."""
    allowed = set()
    if include_elevated:
        allowed.add(PriorityTier.ELEVATED)
    if include_standard:
        allowed.add(PriorityTier.STANDARD)
    return [r for r in results if r.priority in allowed]


def apply_limit(results: list[ScanResult], limit: int) -> list[ScanResult]:
    """Cap the result count (0 = unlimited)."""
    if limit > 0:
        return results[:limit]
    return results


class Scanner:
    """Finds eligible task lines across the vault or in a single document."""

    def __init__(self, store: DocumentStore, rules: ExclusionRules | None = None):
        """Initialize the scanner.

        Args:
            store: Document store to read from.
            rules: Exclusion rules (default: exclude nothing).
        """
        self.store = store
        self.rules = rules or ExclusionRules()

    async def scan_vault(self) -> list[ScanResult]:
        """Scan every document for uncompleted priority tasks.

        Documents the store reports as list-free are skipped without being
        read. This never writes.

        Returns:
            Scan results, elevated tier first.
        """
        results: list[ScanResult] = []
        for path in self.store.list_documents():
            if self.rules.is_excluded(path):
                continue
            if not self.store.might_have_list_items(path):
                continue

            try:
                content = await self.store.read(path)
            except (OSError, UnicodeDecodeError) as e:
                log.warning("scan_read_failed", path=path, error=str(e))
                continue

            results.extend(parse_document(path, content))

        log.debug("vault_scanned", found=len(results))
        return sort_by_priority(results)

    async def scan_document(self, path: str) -> list[ScanResult]:
        """Scan a single document after it changed.

        The list-item hint is not consulted here, since it lags behind
        writes.

        Args:
            path: Vault-relative document path.

        Returns:
            Scan results from this document, elevated tier first.
        """
        if self.rules.is_excluded(path):
            log.debug("scan_excluded", path=path)
            return []

        try:
            content = await self.store.read(path)
        except (OSError, UnicodeDecodeError) as e:
            log.warning("scan_read_failed", path=path, error=str(e))
            return []

        results = parse_document(path, content)
        log.debug("document_scanned", path=path, found=len(results))
        return sort_by_priority(results)
