"""Task line parsing: classification, normalization and link extraction."""

import re
from collections.abc import Callable

from tasksync.tasks.models import PRIORITY_MARKERS, LineClass, PriorityTier

# Group 1: leading whitespace + list marker, group 2: checkbox state
CHECKBOX_PATTERN = re.compile(r"^(\s*[-*+]\s*)\[([ xX])\]")

_CHECKBOX_PREFIX = re.compile(r"^\s*[-*+]\s*\[[ xX]\]\s*")
_PRIORITY_TAGS = re.compile("[⏫🔺🔼🔽⏬]")
# ✅ done, 📅 due, ⏳ scheduled, 🛫 start, 🔁 recurrence, ➕ created
_METADATA_TAGS = re.compile(r"[✅📅⏳🛫🔁➕]\s*\d{4}-\d{2}-\d{2}")
_DONE_TAG = re.compile("✅")
_WIKILINK = re.compile(r"\[\[[^\]]+\]\]")
_MARKDOWN_LINK = re.compile(r"\[[^\]]+\]\([^)]+\)")
_WHITESPACE = re.compile(r"\s+")

# Group 1: link target, alias after "|" is ignored
_WIKILINK_TARGET = re.compile(r"\[\[([^\]|]+)(?:\|[^\]]*)?\]\]")

Resolver = Callable[[str], str | None]


def is_checkbox(line: str) -> bool:
    """Check if a line is a checkbox list item, completed or not."""
    return CHECKBOX_PATTERN.match(line) is not None


def is_completed(line: str) -> bool:
    """Check if a line is a completed checkbox (``[x]`` or ``[X]``)."""
    match = CHECKBOX_PATTERN.match(line)
    return bool(match) and match.group(2).lower() == "x"


def is_uncompleted(line: str) -> bool:
    """Check if a line is an open checkbox (``[ ]``)."""
    match = CHECKBOX_PATTERN.match(line)
    return bool(match) and match.group(2) == " "


def parse_priority(line: str) -> PriorityTier:
    """Extract the priority tier from a line.

    Args:
        line: Raw line text.

    Returns:
        ELEVATED for ⏫, STANDARD for 🔺, NONE otherwise.
    """
    if PRIORITY_MARKERS[PriorityTier.ELEVATED] in line:
        return PriorityTier.ELEVATED
    if PRIORITY_MARKERS[PriorityTier.STANDARD] in line:
        return PriorityTier.STANDARD
    return PriorityTier.NONE


def classify(line: str) -> LineClass:
    """Classify a raw line.

    Args:
        line: Raw line text.

    Returns:
        LineClass with task flag, completion state and priority tier.
    """
    match = CHECKBOX_PATTERN.match(line)
    if not match:
        return LineClass(is_task=False)
    return LineClass(
        is_task=True,
        completed=match.group(2).lower() == "x",
        priority=parse_priority(line),
    )


def _normalize_once(text: str) -> str:
    text = _CHECKBOX_PREFIX.sub("", text)
    text = _PRIORITY_TAGS.sub("", text)
    text = _METADATA_TAGS.sub("", text)
    text = _DONE_TAG.sub("", text)
    text = _WIKILINK.sub("", text)
    text = _MARKDOWN_LINK.sub("", text)
    return _WHITESPACE.sub(" ", text).strip()


def normalize(line: str) -> str:
    """Reduce a line to its canonical comparison key.

    Strips the checkbox prefix, priority tags, Tasks plugin metadata
    (with dates), wikilinks and markdown links, then collapses whitespace.
    The pass repeats until the text is stable, so ``normalize`` is
    idempotent even when a removal exposes another removable token.

    Args:
        line: Raw line text.

    Returns:
        Canonical text (may be empty).
    """
    current = line
    while True:
        cleaned = _normalize_once(current)
        if cleaned == current:
            return cleaned
        current = cleaned


def extract_cross_doc_ref(line: str, resolve: Resolver | None = None) -> str | None:
    """Extract the document referenced by the first wikilink in a line.

    ``[[Work/Reports]]`` and ``[[Work/Reports|Reports]]`` both refer to
    ``Work/Reports.md``.

    Args:
        line: Line containing a wikilink.
        resolve: Optional resolver mapping link text to a vault path.

    Returns:
        Resolved path, the literal target as a fallback, or None if the line
        has no wikilink.
    """
    match = _WIKILINK_TARGET.search(line)
    if not match:
        return None

    target = match.group(1).split("#", 1)[0].strip()
    if not target:
        return None

    if resolve is not None:
        resolved = resolve(target)
        if resolved:
            return resolved

    if not target.endswith(".md"):
        target += ".md"
    return target


def set_checkbox(line: str, checked: bool) -> str:
    """Rewrite the checkbox state of a task line.

    Args:
        line: Task line.
        checked: Desired state.

    Returns:
        The rewritten line, or the input unchanged if it is not a task.
    """
    mark = "x" if checked else " "
    return CHECKBOX_PATTERN.sub(lambda m: f"{m.group(1)}[{mark}]", line, count=1)
