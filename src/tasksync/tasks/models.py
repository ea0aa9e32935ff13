"""Value types for task lines, snapshots and scan results."""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType


class PriorityTier(str, Enum):
    """Priority tier enumeration."""

    NONE = "none"
    STANDARD = "standard"
    ELEVATED = "elevated"


# Tasks plugin priority markers
PRIORITY_MARKERS: dict[PriorityTier, str] = {
    PriorityTier.ELEVATED: "⏫",
    PriorityTier.STANDARD: "🔺",
}


@dataclass(frozen=True)
class LineClass:
    """Structural facts about a single line."""

    is_task: bool
    completed: bool = False
    priority: PriorityTier = PriorityTier.NONE


@dataclass(frozen=True)
class TaskState:
    """A task-bearing line as seen in one snapshot.

    ``line_index`` is the position at snapshot time, not a durable id.
    """

    line_index: int
    canonical_text: str
    priority: PriorityTier
    completed: bool
    cross_doc_ref: str | None
    raw_text: str


class Snapshot(Mapping[int, TaskState]):
    """Immutable, ordered mapping of line index to TaskState for one document."""

    __slots__ = ("_states",)

    def __init__(self, states: Iterable[TaskState] = ()):
        ordered: dict[int, TaskState] = {}
        last = -1
        for state in states:
            if state.line_index <= last:
                raise ValueError(
                    f"Snapshot line indices must be strictly increasing "
                    f"(got {state.line_index} after {last})"
                )
            ordered[state.line_index] = state
            last = state.line_index
        self._states: Mapping[int, TaskState] = MappingProxyType(ordered)

    def __getitem__(self, line_index: int) -> TaskState:
        return self._states[line_index]

    def __iter__(self) -> Iterator[int]:
        return iter(self._states)

    def __len__(self) -> int:
        return len(self._states)

    def __repr__(self) -> str:
        return f"Snapshot({list(self._states.values())!r})"

    def states(self) -> list[TaskState]:
        """Task states in line order."""
        return list(self._states.values())


@dataclass(frozen=True)
class TaskMatch:
    """Pairing of a new task state with its previous counterpart, if any."""

    new_state: TaskState
    old_state: TaskState | None
    changed_completion: bool = False

    @property
    def is_new(self) -> bool:
        """True when no previous state was matched."""
        return self.old_state is None


@dataclass(frozen=True)
class CompletionChange:
    """A matched task whose checkbox flipped between snapshots."""

    state: TaskState
    now_checked: bool


@dataclass(frozen=True)
class ScanResult:
    """An eligible task line found by the scanner."""

    raw_text: str
    canonical_text: str
    source_path: str
    line_index: int
    priority: PriorityTier


@dataclass(frozen=True)
class SectionTask:
    """A checkbox line already present in the aggregator section."""

    canonical_text: str
    line: str
    completed: bool
    line_index: int


@dataclass(frozen=True)
class AppendResult:
    """Outcome of merging scan results into the aggregator document."""

    content: str
    inserted: int
