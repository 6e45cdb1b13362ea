"""Services package for OkiDoki."""

from okidoki.services.markdown import (
    markdown_to_visible,
    strip_formatting,
)

from okidoki.services.documents import (
    initial_content,
    ensure_document_file,
    read_document,
    write_document,
    delete_document,
    list_documents,
)

from okidoki.services.resolver import (
    check_format_boundary,
    find_best_selection_match,
)

from okidoki.services.patch import (
    apply_replacement,
    VersionHistory,
)

from okidoki.services.selection import (
    PointerTarget,
    ReportedSelectionSource,
    SelectionTracker,
    ThreadingScheduler,
)

from okidoki.services.ai import (
    build_system_prompt,
    stream_completion,
)

from okidoki.services.improvement import (
    ImprovementSession,
    get_session,
    drop_session,
)

from okidoki.services.events import (
    broadcast_event,
    chunk_broadcaster,
)

__all__ = [
    # Markdown
    "markdown_to_visible",
    "strip_formatting",
    # Documents
    "initial_content",
    "ensure_document_file",
    "read_document",
    "write_document",
    "delete_document",
    "list_documents",
    # Resolver
    "check_format_boundary",
    "find_best_selection_match",
    # Patch
    "apply_replacement",
    "VersionHistory",
    # Selection
    "PointerTarget",
    "ReportedSelectionSource",
    "SelectionTracker",
    "ThreadingScheduler",
    # AI
    "build_system_prompt",
    "stream_completion",
    # Improvement
    "ImprovementSession",
    "get_session",
    "drop_session",
    # Events
    "broadcast_event",
    "chunk_broadcaster",
]
