"""Shared fixtures: an in-memory document store and a wired orchestrator."""

import asyncio
from datetime import date

import pytest

from tasksync.config import Settings
from tasksync.sync import SyncOrchestrator
from tasksync.vault import DailyNoteLocator, LinkResolver

TODAY = date(2025, 3, 14)
DAILY_NOTE = "Daily/2025-03-14.md"
SECTION = "## ⚡ High Priority Tasks"


class InMemoryVault:
    """Dict-backed document store.

    Writes notify subscribers on the next loop iteration, like a file
    watcher would.
    """

    def __init__(self, docs: dict[str, str] | None = None):
        self.docs: dict[str, str] = dict(docs or {})
        self.hints: dict[str, bool] = {}
        self.writes: list[tuple[str, str]] = []
        self.reads: list[str] = []
        self.fail_writes: set[str] = set()
        # When set, reads block until the event is set
        self.read_gate: asyncio.Event | None = None
        self._subscribers: list = []

    async def read(self, path: str) -> str:
        self.reads.append(path)
        if self.read_gate is not None:
            await self.read_gate.wait()
        if path not in self.docs:
            raise FileNotFoundError(path)
        return self.docs[path]

    async def write(self, path: str, text: str) -> None:
        if path in self.fail_writes:
            raise OSError(f"disk full: {path}")
        self.docs[path] = text
        self.writes.append((path, text))
        self._announce(path)

    def edit(self, path: str, text: str) -> None:
        """Simulate a user edit made outside the process."""
        self.docs[path] = text
        self._announce(path)

    def touch(self, path: str) -> None:
        """Announce a change notification that arrives late."""
        self._announce(path)

    def _announce(self, path: str) -> None:
        loop = asyncio.get_running_loop()
        for callback in list(self._subscribers):
            loop.call_soon(callback, path)

    def list_documents(self) -> list[str]:
        return sorted(self.docs)

    def exists(self, path: str) -> bool:
        return path in self.docs

    def might_have_list_items(self, path: str) -> bool:
        return self.hints.get(path, True)

    def subscribe(self, callback):
        self._subscribers.append(callback)

        def unsubscribe():
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)


def daily_note(*tasks: str, footer: str = "## Notes\nnothing yet") -> str:
    """Build a daily note with the task section followed by a footer."""
    return "\n".join(["# Friday", SECTION, *tasks, footer])


async def settle(orchestrator: SyncOrchestrator, rounds: int = 5) -> None:
    """Deliver pending notifications and run every due cycle."""
    for _ in range(rounds):
        await asyncio.sleep(0)
        await orchestrator.flush()


async def deliver(orchestrator: SyncOrchestrator, rounds: int = 5) -> None:
    """Deliver pending notifications without firing the debounce."""
    for _ in range(rounds):
        await asyncio.sleep(0)
        await orchestrator.join()


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        vault_root=tmp_path,
        daily_note_folder="Daily",
        debounce_ms=500,
        task_limit=5,
        excluded_folders=["Archive"],
    )


@pytest.fixture
def vault() -> InMemoryVault:
    return InMemoryVault()


@pytest.fixture
async def orchestrator(settings: Settings, vault: InMemoryVault):
    orchestrator = SyncOrchestrator(
        settings=settings,
        store=vault,
        locator=DailyNoteLocator(vault, folder="Daily", today=lambda: TODAY),
        links=LinkResolver(vault),
    )
    yield orchestrator
    await orchestrator.stop()
