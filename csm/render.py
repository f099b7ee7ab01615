"""Rendering of sessions and history as rich tables and JSON."""

from __future__ import annotations

import json
from collections.abc import Sequence
from datetime import datetime, timedelta, timezone

from rich.console import Group, RenderableType
from rich.table import Table
from rich.text import Text

from csm.models import GhostProcess, HistorySession, Session, SessionStatus
from csm.session.history import get_date_group

_STATUS_DISPLAY: dict[SessionStatus, tuple[str, str]] = {
    SessionStatus.WORKING: ("●", "green"),
    SessionStatus.NEEDS_INPUT: ("⚠", "yellow"),
    SessionStatus.WAITING: ("◉", "blue"),
    SessionStatus.INACTIVE: ("○", "bright_black"),
}

CONTEXT_BAR_WIDTH = 10


def status_display(status: SessionStatus) -> tuple[str, str]:
    """Symbol and rich style for a status."""
    return _STATUS_DISPLAY.get(status, ("○", ""))


def format_elapsed(d: timedelta) -> str:
    """Human-readable "time ago" string."""
    seconds = int(d.total_seconds())
    if seconds < 1:
        return "just now"
    if seconds < 60:
        return f"{seconds}s ago"
    if seconds < 3600:
        return f"{seconds // 60}m ago"
    if seconds < 86400:
        return f"{seconds // 3600}h ago"
    return f"{seconds // 86400}d ago"


def format_age(d: timedelta) -> str:
    """Compact age: 45s, 12m, 3h, 2d."""
    seconds = int(d.total_seconds())
    if seconds < 60:
        return f"{seconds}s"
    if seconds < 3600:
        return f"{seconds // 60}m"
    if seconds < 86400:
        return f"{seconds // 3600}h"
    return f"{seconds // 86400}d"


def format_duration(d: timedelta) -> str:
    """Session length: 45s, 12m, 2h, 2h 5m."""
    seconds = int(d.total_seconds())
    if seconds < 60:
        return f"{seconds}s"
    if seconds < 3600:
        return f"{seconds // 60}m"
    hours, minutes = seconds // 3600, (seconds % 3600) // 60
    if minutes == 0:
        return f"{hours}h"
    return f"{hours}h {minutes}m"


def truncate(s: str, max_len: int) -> str:
    """Cut a string to ``max_len`` characters, marking the cut with "..."."""
    if len(s) <= max_len:
        return s
    if max_len <= 3:
        return s[:max_len]
    return s[: max_len - 3] + "..."


def context_bar(session: Session, width: int = CONTEXT_BAR_WIDTH) -> Text:
    """Progress bar of context window usage, "-" when unknown."""
    if session.context_tokens == 0:
        return Text("-", style="dim")

    percent = min(max(session.context_percent, 0.0), 100.0)
    filled = round(percent / 100 * width)
    if percent >= 80:
        style = "red"
    elif percent >= 50:
        style = "yellow"
    else:
        style = "green"

    bar = Text()
    bar.append("█" * filled, style=style)
    bar.append("░" * (width - filled), style="dim")
    bar.append(f" {percent:3.0f}%")
    return bar


def status_counts(sessions: Sequence[Session]) -> dict[SessionStatus, int]:
    counts = {status: 0 for status in SessionStatus}
    for s in sessions:
        counts[s.status] += 1
    return counts


def build_summary_line(sessions: Sequence[Session]) -> Text:
    """One-line count of sessions per status."""
    line = Text()
    for status, count in status_counts(sessions).items():
        symbol, style = status_display(status)
        line.append(f"{symbol} {status.value}: {count}", style=style)
        line.append("  ")
    return line


def build_session_table(
    sessions: Sequence[Session],
    now: datetime | None = None,
    show_message: bool = True,
) -> Table:
    """Table of sessions: status, project, context, last activity, message/task."""
    now = now or datetime.now(timezone.utc)

    table = Table(box=None, pad_edge=False, header_style="bold")
    table.add_column("STATUS", no_wrap=True)
    table.add_column("PROJECT", style="cyan", overflow="ellipsis", no_wrap=True)
    table.add_column("CONTEXT", no_wrap=True)
    table.add_column("LAST ACTIVITY", style="dim", no_wrap=True)
    if show_message:
        table.add_column("LAST MESSAGE", overflow="ellipsis", no_wrap=True)

    for s in sessions:
        symbol, style = status_display(s.status)
        status = Text(f"{symbol} {s.status.value}", style=style)

        project = Text(s.project)
        if s.git_branch:
            project.append(f" ({s.git_branch})", style="dim")
        if s.has_unsandboxed:
            project.append(" !", style="bold red")
        if s.is_ghost:
            project.append(" ghost", style="dim red")

        row: list[RenderableType] = [
            status,
            project,
            context_bar(s),
            format_elapsed(now - s.last_activity),
        ]
        if show_message:
            if s.status in (SessionStatus.WORKING, SessionStatus.NEEDS_INPUT):
                row.append(Text(s.task, style=style))
            else:
                row.append(s.last_message or s.summary or "-")
        table.add_row(*row)

    return table


def build_live_view(sessions: Sequence[Session], now: datetime | None = None) -> Group:
    """Dashboard: heading, per-status counts and the session table."""
    parts: list[RenderableType] = [
        Text("Claude Code Sessions", style="bold"),
        build_summary_line(sessions),
        Text(""),
    ]
    if sessions:
        parts.append(build_session_table(sessions, now))
    else:
        parts.append(Text("No active Claude sessions found.", style="dim"))
    parts.append(Text("\nPress Ctrl+C to quit", style="dim"))
    return Group(*parts)


def build_history_view(
    sessions: Sequence[HistorySession],
    days: int,
    now: datetime | None = None,
) -> RenderableType:
    """History grouped by day, with a totals footer."""
    if not sessions:
        return Text(f"No sessions found in the past {days} days.")

    parts: list[RenderableType] = [
        Text.assemble(("Session History", "bold"), f" (past {days} days)")
    ]
    table: Table | None = None
    current_group = ""
    total = timedelta(0)

    for s in sessions:
        group = get_date_group(s.start_time, now)
        if group != current_group or table is None:
            table = Table(title=group, title_justify="left", title_style="dim", box=None, header_style="bold")
            table.add_column("PROJECT", style="cyan", overflow="ellipsis", no_wrap=True)
            table.add_column("BRANCH", style="bright_black", max_width=12, overflow="ellipsis", no_wrap=True)
            table.add_column("DURATION", no_wrap=True)
            table.add_column("MSGS", justify="right")
            table.add_column("CONTEXT", overflow="ellipsis", no_wrap=True)
            parts.append(table)
            current_group = group

        table.add_row(
            s.project,
            s.git_branch,
            format_duration(s.duration),
            str(s.message_count),
            s.first_prompt or "-",
        )
        total += s.duration

    parts.append(
        Text(f"Total: {len(sessions)} sessions, {format_duration(total)}", style="dim")
    )
    return Group(*parts)


def build_ghost_table(ghosts: Sequence[GhostProcess], title: str) -> Table:
    table = Table(title=title)
    table.add_column("PID", style="yellow", justify="right")
    table.add_column("Project", style="cyan")
    table.add_column("Idle", style="dim")
    for g in ghosts:
        table.add_row(str(g.pid), g.project, format_age(g.age))
    return table


def render_json(sessions: Sequence[Session]) -> str:
    """Sessions as an indented JSON array of output records."""
    return json.dumps([s.to_record() for s in sessions], indent=2)
