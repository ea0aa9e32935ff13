"""Match task states between two snapshots of the same document.

Tasks carry no durable id, so identity is scored from three signals:

* canonical text equal: +3 (strong)
* priority tier equal: +1 (supporting)
* line index unchanged: +1 (weak)

A pair qualifies at ``MATCH_THRESHOLD`` (2). Text equality alone qualifies,
priority plus position qualifies, position alone never does. New states are
visited in line order and each takes its best old state still available.
"""

from collections.abc import Callable

from tasksync.tasks.models import CompletionChange, Snapshot, TaskMatch, TaskState

Scorer = Callable[[TaskState, TaskState], int]

TEXT_WEIGHT = 3
PRIORITY_WEIGHT = 1
POSITION_WEIGHT = 1
MATCH_THRESHOLD = 2


def score_pair(old: TaskState, new: TaskState) -> int:
    """Score how likely two task states are the same task."""
    score = 0
    if old.canonical_text == new.canonical_text:
        score += TEXT_WEIGHT
    if old.priority == new.priority:
        score += PRIORITY_WEIGHT
    if old.line_index == new.line_index:
        score += POSITION_WEIGHT
    return score


def match_tasks(
    old: Snapshot,
    new: Snapshot,
    scorer: Scorer = score_pair,
    threshold: int = MATCH_THRESHOLD,
) -> list[TaskMatch]:
    """Match every new task state to at most one old task state.

    New states are visited in line order; each takes the best old state not
    yet consumed. Ties go to the smaller line-index delta, then the lower
    old index.

    Args:
        old: Earlier snapshot.
        new: Later snapshot of the same document.
        scorer: Pair scoring function.
        threshold: Minimum score for a pair to qualify.

    Returns:
        One TaskMatch per new state, ordered by new line index. New states
        without a qualifying partner have ``old_state=None``.
    """
    available: dict[int, TaskState] = dict(old.items())
    matches: list[TaskMatch] = []
    for new_index, new_state in new.items():
        best: tuple[int, int, int] | None = None
        for old_index, candidate in available.items():
            score = scorer(candidate, new_state)
            if score < threshold:
                continue
            key = (score, -abs(old_index - new_index), -old_index)
            if best is None or key > best:
                best = key

        old_state: TaskState | None = None
        if best is not None:
            old_state = available.pop(-best[2])

        matches.append(
            TaskMatch(
                new_state=new_state,
                old_state=old_state,
                changed_completion=(
                    old_state is not None
                    and old_state.completed != new_state.completed
                ),
            )
        )
    return matches


def find_changed_tasks(
    old: Snapshot,
    new: Snapshot,
    scorer: Scorer = score_pair,
) -> list[CompletionChange]:
    """Find matched tasks whose checkbox state flipped."""
    return [
        CompletionChange(state=m.new_state, now_checked=m.new_state.completed)
        for m in match_tasks(old, new, scorer)
        if m.changed_completion
    ]
