"""Build task snapshots from document text."""

from tasksync.tasks.models import Snapshot, TaskState
from tasksync.tasks.parser import (
    Resolver,
    classify,
    extract_cross_doc_ref,
    normalize,
)


def parse_task_state(
    line: str,
    line_index: int,
    resolve: Resolver | None = None,
) -> TaskState | None:
    """Parse a single line into a TaskState.

    Args:
        line: Raw line text.
        line_index: Zero-based line number.
        resolve: Optional wikilink resolver.

    Returns:
        TaskState, or None if the line is not a task.
    """
    facts = classify(line)
    if not facts.is_task:
        return None

    return TaskState(
        line_index=line_index,
        canonical_text=normalize(line),
        priority=facts.priority,
        completed=facts.completed,
        cross_doc_ref=extract_cross_doc_ref(line, resolve),
        raw_text=line,
    )


def build_snapshot(content: str, resolve: Resolver | None = None) -> Snapshot:
    """Build a snapshot of every task line in a document.

    Args:
        content: Full document text.
        resolve: Optional wikilink resolver.

    Returns:
        Immutable Snapshot keyed by line index.
    """
    states = []
    for index, line in enumerate(content.split("\n")):
        state = parse_task_state(line, index, resolve)
        if state:
            states.append(state)
    return Snapshot(states)
