"""Status classifier — infers what a session is doing from the tail of its log."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from csm.models import (
    ASSISTANT,
    TURN_DURATION,
    USER,
    LogEntry,
    SessionStatus,
    TextContent,
    ToolUseContent,
)

STALE_AFTER = timedelta(minutes=5)
WORKING_WITHIN = timedelta(seconds=30)
GHOST_AFTER = timedelta(hours=1)

MAX_TASK_LEN = 50
NO_TASK = "-"
PROCESSING_TASK = "Processing..."

# Stands in for a missing timestamp: older than anything real
_NEVER = datetime.min.replace(tzinfo=timezone.utc)


@dataclass(frozen=True)
class StatusResult:
    """Outcome of classifying one session."""

    status: SessionStatus
    task: str = NO_TASK
    is_ghost: bool = False


@dataclass
class _Latest:
    """Most recent entry of each kind the classifier cares about."""

    assistant: LogEntry | None = None
    user: LogEntry | None = None
    turn_end: LogEntry | None = None
    timestamp: datetime = _NEVER


def _ts(entry: LogEntry | None) -> datetime:
    if entry is None or entry.timestamp is None:
        return _NEVER
    return entry.timestamp


def _scan_latest(entries: Sequence[LogEntry]) -> _Latest:
    latest = _Latest()
    for entry in reversed(entries):
        if entry.timestamp is not None and entry.timestamp > latest.timestamp:
            latest.timestamp = entry.timestamp

        if entry.kind == ASSISTANT:
            if latest.assistant is None:
                latest.assistant = entry
        elif entry.kind == USER:
            if latest.user is None:
                latest.user = entry
        elif entry.is_system(TURN_DURATION):
            if latest.turn_end is None:
                latest.turn_end = entry

        if latest.assistant and latest.user and latest.turn_end:
            break
    return latest


def determine_status(
    entries: Sequence[LogEntry],
    is_running: bool,
    now: datetime | None = None,
    stale_after: timedelta = STALE_AFTER,
    working_within: timedelta = WORKING_WITHIN,
    ghost_after: timedelta = GHOST_AFTER,
) -> StatusResult:
    """
    Classify a session from its tailed log entries.

    Rules, first match wins:

    1. no entries: Waiting if the process runs (fresh session), else Inactive
    2. process not running: Inactive
    3. last assistant entry requested a tool:
       - answered, turn ended since: Waiting
       - answered, turn still open: Working ("Processing...")
       - unanswered: Needs Input ("Using: <tool>"), however old
    4. nothing logged for ``stale_after``: Waiting (ghost past ``ghost_after``)
    5. turn ended at or after the last assistant entry: Waiting
    6. assistant wrote within ``working_within``: Working
    7. otherwise: Waiting
    """
    if not entries:
        if is_running:
            return StatusResult(SessionStatus.WAITING)
        return StatusResult(SessionStatus.INACTIVE)

    if not is_running:
        return StatusResult(SessionStatus.INACTIVE)

    now = now or datetime.now(timezone.utc)
    latest = _scan_latest(entries)
    assistant, user, turn_end = latest.assistant, latest.user, latest.turn_end

    # Pending approval beats staleness: a session waiting on the user is never a ghost
    if assistant is not None and assistant.message is not None:
        tool_uses = assistant.message.tool_uses()
        if tool_uses:
            answered = (
                user is not None
                and user.message is not None
                and _ts(user) > _ts(assistant)
                and user.message.has_tool_result()
            )
            if not answered:
                return StatusResult(
                    SessionStatus.NEEDS_INPUT, f"Using: {tool_uses[0].name}"
                )
            if turn_end is not None and _ts(turn_end) > _ts(user):
                return StatusResult(SessionStatus.WAITING)
            return StatusResult(SessionStatus.WORKING, PROCESSING_TASK)

    # Running but quiet: the user may just be away
    idle = now - latest.timestamp
    if idle > stale_after:
        return StatusResult(SessionStatus.WAITING, is_ghost=idle > ghost_after)

    if turn_end is not None and (assistant is None or _ts(turn_end) >= _ts(assistant)):
        return StatusResult(SessionStatus.WAITING)

    if assistant is not None and now - _ts(assistant) < working_within:
        return StatusResult(SessionStatus.WORKING, extract_task(assistant))

    return StatusResult(SessionStatus.WAITING)


def extract_task(entry: LogEntry | None) -> str:
    """Short description of what an assistant entry is doing."""
    if entry is None or entry.message is None or not entry.message.content:
        return NO_TASK

    last = entry.message.content[-1]
    if isinstance(last, ToolUseContent) and last.name:
        return f"Using: {last.name}"

    for item in entry.message.content:
        if isinstance(item, TextContent) and item.text:
            return _first_line(item.text, MAX_TASK_LEN)
    return NO_TASK


def _first_line(text: str, limit: int) -> str:
    line = text.strip().split("\n", 1)[0].rstrip()
    if len(line) > limit:
        line = line[: limit - 3] + "..."
    return line


def extract_last_message(entries: Sequence[LogEntry]) -> str:
    """First line of the most recent assistant text, without heading markers."""
    for entry in reversed(entries):
        if entry.kind != ASSISTANT or entry.message is None:
            continue
        for item in entry.message.content:
            if not isinstance(item, TextContent):
                continue
            text = item.text.strip()
            if not text:
                continue
            text = text.split("\n", 1)[0]
            for marker in ("# ", "## ", "### "):
                text = text.removeprefix(marker)
            return text
    return ""


def extract_git_branch(entries: Sequence[LogEntry]) -> str:
    """Most recent non-empty git branch recorded in the log."""
    for entry in reversed(entries):
        if entry.git_branch:
            return entry.git_branch
    return ""


def detect_unsandboxed_commands(entries: Sequence[LogEntry]) -> bool:
    """True if any Bash tool call asked to bypass the sandbox."""
    for entry in entries:
        if entry.kind != ASSISTANT or entry.message is None:
            continue
        for tool in entry.message.tool_uses():
            if (
                tool.name == "Bash"
                and isinstance(tool.input, dict)
                and tool.input.get("dangerouslyDisableSandbox") is True
            ):
                return True
    return False
