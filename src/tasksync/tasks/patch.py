"""Targeted checkbox rewrites for a task identified by canonical text."""

from tasksync.tasks.parser import (
    Resolver,
    classify,
    extract_cross_doc_ref,
    normalize,
    set_checkbox,
)


def patch_completion(
    content: str,
    canonical_text: str,
    checked: bool,
    *,
    ref: str | None = None,
    resolve: Resolver | None = None,
) -> str | None:
    """Set the checkbox of the first task line with the given canonical text.

    Args:
        content: Document text.
        canonical_text: Normalized text of the task to patch.
        checked: Desired completion state.
        ref: When given, only lines linking to this document qualify.
        resolve: Wikilink resolver used together with ``ref``.

    Returns:
        The patched document, or None if no line matched or the matching
        line is already in the requested state.
    """
    lines = content.split("\n")
    for index, line in enumerate(lines):
        facts = classify(line)
        if not facts.is_task or normalize(line) != canonical_text:
            continue
        if ref is not None and extract_cross_doc_ref(line, resolve) != ref:
            continue

        if facts.completed == checked:
            return None
        lines[index] = set_checkbox(line, checked)
        return "\n".join(lines)

    return None
