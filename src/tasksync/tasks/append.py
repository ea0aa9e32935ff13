"""Merge scanned tasks into the aggregator section."""

import re
from collections.abc import Callable

from tasksync.tasks.models import (
    PRIORITY_MARKERS,
    AppendResult,
    PriorityTier,
    ScanResult,
    SectionTask,
)
from tasksync.tasks.parser import classify, normalize

_HEADING = re.compile(r"^\s*#{1,6}(\s|$)")

LinkFormatter = Callable[[str], str]


def find_section(lines: list[str], header: str) -> int | None:
    """Find the line index of the section heading (exact trimmed match)."""
    target = header.strip()
    for index, line in enumerate(lines):
        if line.strip() == target:
            return index
    return None


def _section_end(lines: list[str], start: int) -> int:
    for index in range(start + 1, len(lines)):
        if _HEADING.match(lines[index]):
            return index
    return len(lines)


def read_section_tasks(content: str, header: str) -> list[SectionTask]:
    """Read checkbox lines inside the section, completed or not.

    Args:
        content: Aggregator document text.
        header: Section heading text.

    Returns:
        Section tasks in line order; empty if the section is missing.
    """
    lines = content.split("\n")
    start = find_section(lines, header)
    if start is None:
        return []

    tasks: list[SectionTask] = []
    for index in range(start + 1, _section_end(lines, start)):
        line = lines[index]
        facts = classify(line)
        if facts.is_task:
            tasks.append(
                SectionTask(
                    canonical_text=normalize(line),
                    line=line,
                    completed=facts.completed,
                    line_index=index,
                )
            )
    return tasks


def format_task(task: ScanResult, link: str) -> str:
    """Format a task line for the aggregator.

    Format: ``- [ ] {text} {priority} {link}``. The line is rebuilt from
    canonical text, never copied from the source.
    """
    marker = PRIORITY_MARKERS.get(
        task.priority, PRIORITY_MARKERS[PriorityTier.STANDARD]
    )
    return f"- [ ] {task.canonical_text} {marker} {link}".rstrip()


def merge_tasks(
    content: str,
    header: str,
    tasks: list[ScanResult],
    make_link: LinkFormatter,
) -> AppendResult:
    """Insert tasks not yet present right below the section heading.

    Existing tasks count for deduplication whether they are completed or
    not, so a task checked moments ago is not re-inserted by a scan that
    started before the check.

    Args:
        content: Aggregator document text.
        header: Section heading text.
        tasks: Candidate tasks, in insertion order.
        make_link: Maps a source path to link markup.

    Returns:
        AppendResult with the new content and the inserted count.
    """
    lines = content.split("\n")
    start = find_section(lines, header)
    if start is None:
        return AppendResult(content=content, inserted=0)

    seen = {t.canonical_text for t in read_section_tasks(content, header)}
    new_lines: list[str] = []
    for task in tasks:
        line = format_task(task, make_link(task.source_path))
        # The inserted line may normalize differently, e.g. an unclosed "[["
        # swallowing the link
        key = normalize(line)
        if task.canonical_text in seen or key in seen:
            continue
        seen.update((task.canonical_text, key))
        new_lines.append(line)

    if not new_lines:
        return AppendResult(content=content, inserted=0)

    merged = lines[: start + 1] + new_lines + lines[start + 1 :]
    return AppendResult(content="\n".join(merged), inserted=len(new_lines))
