"""Context window usage estimation from assistant usage records."""

from __future__ import annotations

from collections.abc import Sequence

from csm.models import ASSISTANT, COMPACT_BOUNDARY, MICROCOMPACT_BOUNDARY, LogEntry

# Context window size for Claude models
DEFAULT_CONTEXT_WINDOW = 200_000


def last_compaction_index(entries: Sequence[LogEntry]) -> int:
    """Index of the most recent compact/microcompact boundary, or -1."""
    for i in range(len(entries) - 1, -1, -1):
        if entries[i].is_system(COMPACT_BOUNDARY, MICROCOMPACT_BOUNDARY):
            return i
    return -1


def extract_context_usage(
    entries: Sequence[LogEntry],
    window: int = DEFAULT_CONTEXT_WINDOW,
) -> tuple[float, int]:
    """
    Return ``(percent, tokens)`` of the context window in use.

    Each usage record is an absolute snapshot, so only the most recent one
    after the last compaction boundary counts. Output tokens are excluded.
    Returns ``(0.0, 0)`` when there is no such record.
    """
    boundary = last_compaction_index(entries)

    for i in range(len(entries) - 1, boundary, -1):
        entry = entries[i]
        if entry.kind != ASSISTANT or entry.message is None or entry.message.usage is None:
            continue

        tokens = entry.message.usage.context_tokens
        if tokens == 0:
            continue
        return tokens / window * 100, tokens

    return 0.0, 0
