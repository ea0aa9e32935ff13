"""Task line parsing, reconciliation, scanning and merging."""

from tasksync.tasks.append import (
    find_section,
    format_task,
    merge_tasks,
    read_section_tasks,
)
from tasksync.tasks.models import (
    PRIORITY_MARKERS,
    AppendResult,
    CompletionChange,
    LineClass,
    PriorityTier,
    ScanResult,
    SectionTask,
    Snapshot,
    TaskMatch,
    TaskState,
)
from tasksync.tasks.parser import (
    classify,
    extract_cross_doc_ref,
    normalize,
    set_checkbox,
)
from tasksync.tasks.patch import patch_completion
from tasksync.tasks.reconcile import (
    MATCH_THRESHOLD,
    find_changed_tasks,
    match_tasks,
    score_pair,
)
from tasksync.tasks.scanner import (
    ExclusionRules,
    Scanner,
    apply_limit,
    filter_by_priority,
    parse_document,
)
from tasksync.tasks.snapshot import build_snapshot

__all__ = [
    # Models
    "PRIORITY_MARKERS",
    "PriorityTier",
    "LineClass",
    "TaskState",
    "Snapshot",
    "TaskMatch",
    "CompletionChange",
    "ScanResult",
    "SectionTask",
    "AppendResult",
    # Parsing
    "classify",
    "normalize",
    "extract_cross_doc_ref",
    "set_checkbox",
    "build_snapshot",
    # Reconciliation
    "MATCH_THRESHOLD",
    "score_pair",
    "match_tasks",
    "find_changed_tasks",
    # Scanning
    "ExclusionRules",
    "Scanner",
    "parse_document",
    "filter_by_priority",
    "apply_limit",
    # Aggregator
    "find_section",
    "read_section_tasks",
    "format_task",
    "merge_tasks",
    "patch_completion",
]
