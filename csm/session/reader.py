"""Log reader — bounded tail and summary scan of a session's JSONL log."""

from __future__ import annotations

import logging
import re
from collections import deque
from collections.abc import Iterator
from pathlib import Path
from typing import BinaryIO

from pydantic import ValidationError

from csm.models import SUMMARY, LogEntry

logger = logging.getLogger(__name__)

DEFAULT_TAIL_ENTRIES = 100

# Single entries can be several MB (tool results with file contents)
MAX_LINE_BYTES = 10 * 1024 * 1024
MAX_SUMMARY_LINE_BYTES = 1024 * 1024

_CHUNK = 64 * 1024
_SUMMARY_MARKER = re.compile(rb'"type"\s*:\s*"summary"')


def iter_lines(f: BinaryIO, max_bytes: int) -> Iterator[bytes]:
    """
    Yield non-blank lines from a binary file, stripped of surrounding whitespace.

    Lines longer than ``max_bytes`` are skipped without being held in memory.
    """
    while True:
        line = f.readline(max_bytes + 1)
        if not line:
            return
        if len(line) > max_bytes:
            # Discard the rest of the oversized line
            while line and not line.endswith(b"\n"):
                line = f.readline(_CHUNK)
            continue
        line = line.strip()
        if line:
            yield line


def parse_line(line: bytes) -> LogEntry | None:
    """Parse one JSONL line, returning None if it isn't a valid entry."""
    try:
        return LogEntry.model_validate_json(line)
    except ValidationError:
        return None


def read_last_entries(
    path: str | Path, count: int = DEFAULT_TAIL_ENTRIES
) -> list[LogEntry]:
    """
    Read the last ``count`` valid entries of a JSONL log, in file order.

    Malformed lines (including a trailing line still being written) are
    dropped. Raises OSError if the file can't be opened.
    """
    entries: deque[LogEntry] = deque(maxlen=count)
    skipped = 0
    with open(path, "rb") as f:
        for line in iter_lines(f, MAX_LINE_BYTES):
            entry = parse_line(line)
            if entry is None:
                skipped += 1
                continue
            entries.append(entry)

    if skipped:
        logger.debug("Skipped %d malformed line(s) in %s", skipped, path)
    return list(entries)


def extract_summary(path: str | Path) -> str:
    """
    Return the text of the last summary entry in the whole file.

    Summaries are usually near the start of the file, so this scans all of it
    rather than the tail. Returns "" if there is none or the file can't be read.
    """
    last_summary = ""
    try:
        with open(path, "rb") as f:
            for line in iter_lines(f, MAX_SUMMARY_LINE_BYTES):
                # Quick check before full JSON parse
                if not _SUMMARY_MARKER.search(line):
                    continue
                entry = parse_line(line)
                if entry is not None and entry.kind == SUMMARY and entry.summary_text:
                    last_summary = entry.summary_text
    except OSError as e:
        logger.debug("Cannot read summary from %s: %s", path, e)
        return ""
    return last_summary
