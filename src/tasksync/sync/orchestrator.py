"""Debounced, direction-aware sync between source documents and the daily note.

Three flows share one event queue:

* source -> aggregator: new priority tasks are appended to the daily note
  section after a debounce window;
* aggregator -> source: checkbox flips in the daily note are written back to
  the linked source document;
* source -> aggregator (completion): checkbox flips in a source document are
  mirrored onto its daily note line.

Every write-back goes through a WriteGuard so the notification it raises is
recognised as self-caused.
"""

from __future__ import annotations

import asyncio
import contextlib
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

import structlog

from tasksync.sync.cache import SnapshotCache
from tasksync.sync.guard import WriteGuard
from tasksync.sync.scope import FullVault, Scope, SingleDocument, SyncPhase, merge_scope
from tasksync.tasks.append import merge_tasks
from tasksync.tasks.models import CompletionChange, PriorityTier, Snapshot
from tasksync.tasks.patch import patch_completion
from tasksync.tasks.reconcile import find_changed_tasks
from tasksync.tasks.scanner import Scanner, apply_limit, filter_by_priority
from tasksync.tasks.snapshot import build_snapshot

if TYPE_CHECKING:
    from tasksync.config import Settings
    from tasksync.vault.daily import DailyNoteLocator
    from tasksync.vault.links import LinkResolver
    from tasksync.vault.store import DocumentStore, Unsubscribe

log = structlog.get_logger()

_IO_ERRORS = (OSError, UnicodeDecodeError)


class _EventKind(Enum):
    CHANGE = "change"
    DEBOUNCE_FIRED = "debounce_fired"
    SYNC_NOW = "sync_now"


@dataclass
class _Event:
    kind: _EventKind
    path: str | None = None
    done: asyncio.Future | None = None


class SyncOrchestrator:
    """Owns the sync control loop and the per-document snapshot cache."""

    def __init__(
        self,
        settings: Settings,
        store: DocumentStore,
        locator: DailyNoteLocator,
        links: LinkResolver,
        scanner: Scanner | None = None,
    ):
        """Initialize the orchestrator.

        Args:
            settings: Sync settings.
            store: Document store.
            locator: Finds today's daily note.
            links: Resolves and generates wikilinks.
            scanner: Task scanner (default: built from settings).
        """
        self.settings = settings
        self.store = store
        self.locator = locator
        self.links = links
        self.scanner = scanner or Scanner(store, settings.exclusion_rules)

        self.cache = SnapshotCache()
        self.guard = WriteGuard()

        self._aggregator_path: str | None = None
        self._pending_scope: Scope | None = None
        self._changed: dict[str, None] = {}
        self._phases: dict[str, SyncPhase] = {}
        self._timer: asyncio.TimerHandle | None = None

        self._queue: asyncio.Queue[_Event] | None = None
        self._consumer: asyncio.Task | None = None
        self._unsubscribe: Unsubscribe | None = None

    # ═══════════════════════════════════════════════════════════════
    # Lifecycle
    # ═══════════════════════════════════════════════════════════════

    @property
    def running(self) -> bool:
        """Check if the orchestrator is processing events."""
        return self._consumer is not None

    @property
    def aggregator_path(self) -> str | None:
        """Daily note currently being watched."""
        return self._aggregator_path

    def phase(self, path: str) -> SyncPhase:
        """Current sync phase of a document."""
        return self._phases.get(path, SyncPhase.IDLE)

    async def start(self) -> None:
        """Startup hook: subscribe to changes and bind today's daily note."""
        if not self.settings.enabled:
            log.info("sync_disabled")
            return
        if self.running:
            return

        self._queue = asyncio.Queue()
        self._consumer = asyncio.create_task(self._consume(self._queue))
        self._unsubscribe = self.store.subscribe(self.notify)

        aggregator = self.locator.current()
        if aggregator:
            await self._bind_aggregator(aggregator)

        log.info(
            "sync_started",
            aggregator=self._aggregator_path,
            debounce_ms=self.settings.debounce_ms,
        )

    async def stop(self) -> None:
        """Teardown hook: release subscriptions, timers and cached state.

        Queued events are dropped (pending ``sync_now`` calls return 0); an
        event already being handled runs to completion.
        """
        if self._unsubscribe:
            self._unsubscribe()
            self._unsubscribe = None

        self._cancel_timer()

        queue = self._queue
        self._queue = None
        if queue is not None:
            _drop_pending(queue)
            await queue.join()
        self._cancel_timer()

        if self._consumer:
            self._consumer.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._consumer
            self._consumer = None

        self.cache.clear()
        self.guard.clear()
        self._pending_scope = None
        self._changed.clear()
        self._phases.clear()
        self._aggregator_path = None
        log.info("sync_stopped")

    async def sync_now(self) -> int:
        """Run a full sync immediately.

        Returns:
            Number of tasks appended to the daily note.
        """
        if self._consumer is None:
            return await self._sync_priority_tasks(FullVault())
        if self._queue is None:
            # Stopping
            return 0

        done: asyncio.Future = asyncio.get_running_loop().create_future()
        self._queue.put_nowait(_Event(_EventKind.SYNC_NOW, done=done))
        return await done

    async def flush(self) -> None:
        """Fire a pending debounce now and wait until all events are handled."""
        if self._queue is None:
            return
        if self._timer is not None:
            self._cancel_timer()
            self._queue.put_nowait(_Event(_EventKind.DEBOUNCE_FIRED))
        await self._queue.join()

    async def join(self) -> None:
        """Wait until queued events are handled, leaving the debounce alone."""
        if self._queue is not None:
            await self._queue.join()

    @property
    def pending_scope(self) -> Scope | None:
        """Scope of the next debounced cycle, if one is scheduled."""
        return self._pending_scope

    # ═══════════════════════════════════════════════════════════════
    # Notifications
    # ═══════════════════════════════════════════════════════════════

    def notify(self, path: str) -> None:
        """Receive a document change notification on the event loop."""
        if self._queue is None or not path.endswith(".md"):
            return
        if self.guard.is_active(path):
            log.debug("change_suppressed", path=path)
            return
        self._queue.put_nowait(_Event(_EventKind.CHANGE, path=path))

    async def _consume(self, queue: asyncio.Queue[_Event]) -> None:
        while True:
            event = await queue.get()
            try:
                await self._dispatch(event)
            except Exception as e:
                log.exception(
                    "sync_event_failed", kind=event.kind.value, path=event.path
                )
                if event.done is not None and not event.done.done():
                    event.done.set_exception(e)
            finally:
                queue.task_done()

    async def _dispatch(self, event: _Event) -> None:
        if event.kind is _EventKind.CHANGE and event.path is not None:
            await self._handle_change(event.path)
        elif event.kind is _EventKind.DEBOUNCE_FIRED:
            await self._run_cycle()
        elif event.kind is _EventKind.SYNC_NOW:
            count = await self._sync_priority_tasks(FullVault())
            if event.done is not None and not event.done.done():
                event.done.set_result(count)

    async def _handle_change(self, path: str) -> None:
        if self.guard.expects_echo(path):
            try:
                content = await self.store.read(path)
            except _IO_ERRORS as e:
                log.warning("read_failed", path=path, error=str(e))
                return
            if self.guard.consume_echo(path, content):
                log.debug("self_write_ignored", path=path)
                return

        await self._check_aggregator(path)

        if path == self._aggregator_path:
            await self._handle_aggregator_change(path)
            return

        if self.scanner.rules.is_excluded(path):
            return

        self._schedule(path)

    async def _check_aggregator(self, changed_path: str) -> None:
        """Re-bind when today's daily note changed or just appeared."""
        current = self.locator.current()
        if current == self._aggregator_path:
            return

        if current is None:
            log.info("daily_note_unbound", previous=self._aggregator_path)
            self._aggregator_path = None
            self.cache.clear()
            return

        await self._bind_aggregator(current)
        if changed_path == current:
            log.info("daily_note_created", path=current)
            await self._sync_priority_tasks(FullVault())

    # ═══════════════════════════════════════════════════════════════
    # Debounce
    # ═══════════════════════════════════════════════════════════════

    def _schedule(self, path: str) -> None:
        if self._pending_scope is None:
            self._pending_scope = SingleDocument(path)
        else:
            self._pending_scope = merge_scope(self._pending_scope, path)
        self._changed[path] = None
        self._phases[path] = SyncPhase.PENDING_DEBOUNCE

        self._cancel_timer()
        loop = asyncio.get_running_loop()
        self._timer = loop.call_later(self.settings.debounce_seconds, self._fire)
        log.debug(
            "sync_scheduled",
            path=path,
            scope=type(self._pending_scope).__name__,
        )

    def _fire(self) -> None:
        self._timer = None
        if self._queue is not None:
            self._queue.put_nowait(_Event(_EventKind.DEBOUNCE_FIRED))

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    async def _run_cycle(self) -> None:
        scope = self._pending_scope
        changed = list(self._changed)
        self._pending_scope = None
        self._changed.clear()
        if scope is None:
            return

        for path in changed:
            self._phases[path] = SyncPhase.SCANNING
        try:
            if self.settings.enable_reverse_sync:
                for path in changed:
                    await self._mirror_source_completion(path)
            await self._sync_priority_tasks(scope)
        except Exception:
            log.exception("sync_cycle_failed", scope=type(scope).__name__)
        finally:
            for path in changed:
                self._phases.pop(path, None)

    # ═══════════════════════════════════════════════════════════════
    # Source -> aggregator (new tasks)
    # ═══════════════════════════════════════════════════════════════

    async def _sync_priority_tasks(self, scope: Scope) -> int:
        """Append new priority tasks found in ``scope`` to the daily note."""
        if not self.settings.enabled:
            return 0

        aggregator = self.locator.current()
        if not aggregator:
            log.debug("sync_skipped", reason="no_daily_note")
            return 0

        if isinstance(scope, SingleDocument):
            if scope.path == aggregator:
                return 0
            results = await self.scanner.scan_document(scope.path)
        else:
            results = [
                r for r in await self.scanner.scan_vault() if r.source_path != aggregator
            ]

        results = filter_by_priority(
            results,
            include_elevated=self.settings.include_highest,
            include_standard=self.settings.include_high,
        )
        # Incremental scans are never capped: the triggering task must survive
        if isinstance(scope, FullVault):
            results = apply_limit(results, self.settings.task_limit)
        if not results:
            return 0

        content = await self._read_aggregator(aggregator)
        if content is None:
            return 0

        merged = merge_tasks(
            content, self.settings.section_header, results, self.links.link_to
        )
        if merged.inserted == 0:
            log.debug("no_new_tasks", aggregator=aggregator)
            return 0

        if not await self._write_back(aggregator, merged.content):
            return 0

        # Completion flips in newly linked sources are mirrored from here on
        written = self.cache.get(aggregator)
        if written is not None:
            await self._track_sources(aggregator, written)
        log.info(
            "tasks_appended",
            count=merged.inserted,
            aggregator=aggregator,
            scope=type(scope).__name__,
        )
        return merged.inserted

    # ═══════════════════════════════════════════════════════════════
    # Aggregator -> source (completion)
    # ═══════════════════════════════════════════════════════════════

    async def _handle_aggregator_change(self, path: str) -> None:
        await self._read_aggregator(path)

    async def _read_aggregator(self, path: str) -> str | None:
        """Read the daily note after propagating flips not yet handled.

        Every path that rewrites the daily note reads it through here, so a
        user check that is still queued is written back to its source before
        the daily note is overwritten.
        """
        try:
            content = await self.store.read(path)
        except _IO_ERRORS as e:
            log.warning("read_failed", path=path, error=str(e))
            return None

        if not await self._reconcile_aggregator(path, content):
            return content

        # Reconciling may have rewritten the daily note
        try:
            return await self.store.read(path)
        except _IO_ERRORS as e:
            log.warning("read_failed", path=path, error=str(e))
            return None

    async def _reconcile_aggregator(self, path: str, content: str) -> int:
        """Diff the daily note against its cached snapshot and apply the flips.

        Returns:
            Number of completion changes found.
        """
        new = self._snapshot(content)
        old = self.cache.replace(path, new)
        await self._track_sources(path, new)
        if old is None or not self.settings.enable_reverse_sync:
            return 0

        changes = find_changed_tasks(old, new)
        if not changes:
            return 0

        by_source: dict[str, list[CompletionChange]] = {}
        for change in changes:
            ref = change.state.cross_doc_ref
            if not ref:
                log.debug(
                    "reverse_sync_skipped",
                    reason="no_link",
                    task=change.state.canonical_text,
                )
                continue
            by_source.setdefault(ref, []).append(change)

        for source, source_changes in by_source.items():
            await self._apply_to_source(source, source_changes)
        return len(changes)

    async def _apply_to_source(
        self, source: str, changes: list[CompletionChange]
    ) -> int:
        if not self.store.exists(source):
            log.debug("reverse_sync_skipped", reason="source_missing", source=source)
            return 0

        try:
            content = await self.store.read(source)
        except _IO_ERRORS as e:
            log.warning("read_failed", path=source, error=str(e))
            return 0

        # Flips made in the source while its debounce is pending go first;
        # the write below refreshes the cache and would otherwise hide them
        await self._mirror_source_completion(source, content)

        applied = 0
        for change in changes:
            patched = patch_completion(
                content, change.state.canonical_text, change.now_checked
            )
            if patched is None:
                log.debug(
                    "reverse_sync_no_match",
                    source=source,
                    task=change.state.canonical_text,
                )
                continue
            content = patched
            applied += 1

        if applied and await self._write_back(source, content):
            log.info("completion_synced_to_source", source=source, count=applied)
            return applied
        return 0

    # ═══════════════════════════════════════════════════════════════
    # Source -> aggregator (completion)
    # ═══════════════════════════════════════════════════════════════

    async def _mirror_source_completion(
        self, path: str, content: str | None = None
    ) -> int:
        """Mirror checkbox flips in a linked source onto the daily note.

        Only documents the daily note links to are cached, so edits to any
        other document are ignored here.
        """
        aggregator = self._aggregator_path
        if aggregator is None or path not in self.cache:
            return 0

        if content is None:
            try:
                content = await self.store.read(path)
            except _IO_ERRORS as e:
                log.warning("read_failed", path=path, error=str(e))
                return 0

        new = self._snapshot(content)
        old = self.cache.replace(path, new)
        if old is None:
            return 0

        changes = [
            c
            for c in find_changed_tasks(old, new)
            if c.state.priority != PriorityTier.NONE
        ]
        if not changes:
            return 0

        agg_content = await self._read_aggregator(aggregator)
        if agg_content is None:
            return 0

        applied = 0
        for change in changes:
            patched = patch_completion(
                agg_content,
                change.state.canonical_text,
                change.now_checked,
                ref=path,
                resolve=self.links.resolve,
            )
            if patched is not None:
                agg_content = patched
                applied += 1

        if applied and await self._write_back(aggregator, agg_content):
            log.info("completion_synced_to_daily_note", source=path, count=applied)
            return applied
        return 0

    # ═══════════════════════════════════════════════════════════════
    # Helpers
    # ═══════════════════════════════════════════════════════════════

    def _snapshot(self, content: str) -> Snapshot:
        return build_snapshot(content, self.links.resolve)

    async def _bind_aggregator(self, path: str) -> None:
        """Watch a daily note and cache it plus every source it links to."""
        self.cache.clear()
        self._aggregator_path = path
        try:
            content = await self.store.read(path)
        except _IO_ERRORS as e:
            log.warning("read_failed", path=path, error=str(e))
            return

        snapshot = self._snapshot(content)
        self.cache.replace(path, snapshot)
        await self._track_sources(path, snapshot)
        log.info("daily_note_bound", path=path, sources=len(self.cache) - 1)

    async def _track_sources(self, aggregator: str, snapshot: Snapshot) -> None:
        """Keep cached exactly the sources the daily note links to."""
        refs = {
            s.cross_doc_ref
            for s in snapshot.values()
            if s.cross_doc_ref and s.cross_doc_ref != aggregator
        }
        for path in self.cache.paths:
            if path != aggregator and path not in refs:
                self.cache.discard(path)
        await self._cache_sources({r for r in refs if r not in self.cache})

    async def _cache_sources(self, sources: set[str]) -> None:
        for source in sorted(sources):
            if not self.store.exists(source):
                continue
            try:
                content = await self.store.read(source)
            except _IO_ERRORS as e:
                log.warning("read_failed", path=source, error=str(e))
                continue
            self.cache.replace(source, self._snapshot(content))

    async def _write_back(self, path: str, content: str) -> bool:
        """Write a document under the re-entrance guard and refresh its cache."""
        try:
            with self.guard.hold(path, content):
                await self.store.write(path, content)
        except OSError as e:
            log.warning("write_failed", path=path, error=str(e))
            return False

        self.cache.replace(path, self._snapshot(content))
        return True


def _drop_pending(queue: asyncio.Queue[_Event]) -> None:
    """Discard queued events, resolving any caller still waiting on one."""
    while True:
        try:
            event = queue.get_nowait()
        except asyncio.QueueEmpty:
            return
        if event.done is not None and not event.done.done():
            event.done.set_result(0)
        queue.task_done()
