"""Tests for rendering helpers."""

import json
from datetime import datetime, timedelta, timezone

from rich.console import Console

from csm.models import GhostProcess, HistorySession, Session, SessionStatus
from csm.render import (
    build_ghost_table,
    build_history_view,
    build_live_view,
    build_session_table,
    context_bar,
    format_age,
    format_duration,
    format_elapsed,
    render_json,
    status_counts,
    truncate,
)

NOW = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)


def render(renderable) -> str:
    console = Console(width=160, record=True, color_system=None)
    console.print(renderable)
    return console.export_text()


def make_session(**kwargs):
    defaults = {"project": "acme/web", "last_activity": NOW - timedelta(minutes=3)}
    return Session(**{**defaults, **kwargs})


class TestFormatting:
    def test_format_elapsed(self):
        assert format_elapsed(timedelta(milliseconds=200)) == "just now"
        assert format_elapsed(timedelta(seconds=42)) == "42s ago"
        assert format_elapsed(timedelta(minutes=5)) == "5m ago"
        assert format_elapsed(timedelta(hours=3)) == "3h ago"
        assert format_elapsed(timedelta(days=2)) == "2d ago"

    def test_format_age(self):
        assert format_age(timedelta(seconds=9)) == "9s"
        assert format_age(timedelta(minutes=59)) == "59m"
        assert format_age(timedelta(hours=5)) == "5h"
        assert format_age(timedelta(days=3, hours=1)) == "3d"

    def test_format_duration(self):
        assert format_duration(timedelta(seconds=30)) == "30s"
        assert format_duration(timedelta(minutes=12)) == "12m"
        assert format_duration(timedelta(hours=2)) == "2h"
        assert format_duration(timedelta(hours=2, minutes=5)) == "2h 5m"

    def test_truncate(self):
        assert truncate("short", 10) == "short"
        assert truncate("a long project name", 10) == "a long ..."
        assert truncate("abcdef", 3) == "abc"


class TestContextBar:
    def test_unknown(self):
        assert context_bar(make_session()).plain == "-"

    def test_partial(self):
        bar = context_bar(make_session(context_percent=50.0, context_tokens=100_000))
        assert bar.plain == "█████░░░░░  50%"

    def test_clamped(self):
        bar = context_bar(make_session(context_percent=130.0, context_tokens=260_000))
        assert bar.plain.startswith("█" * 10)
        assert bar.plain.endswith("100%")


class TestSessionTable:
    def test_rows(self):
        sessions = [
            make_session(status=SessionStatus.NEEDS_INPUT, task="Using: Bash", git_branch="main"),
            make_session(project="acme/api", status=SessionStatus.WAITING, last_message="All tests pass"),
        ]
        text = render(build_session_table(sessions, NOW))
        assert "Needs Input" in text
        assert "Using: Bash" in text
        assert "acme/web (main)" in text
        assert "All tests pass" in text
        assert "3m ago" in text

    def test_status_counts(self):
        counts = status_counts([
            make_session(status=SessionStatus.WORKING),
            make_session(status=SessionStatus.WORKING),
            make_session(status=SessionStatus.INACTIVE),
        ])
        assert counts[SessionStatus.WORKING] == 2
        assert counts[SessionStatus.NEEDS_INPUT] == 0
        assert counts[SessionStatus.INACTIVE] == 1

    def test_live_view_empty(self):
        assert "No active Claude sessions found." in render(build_live_view([], NOW))

    def test_live_view_summary(self):
        text = render(build_live_view([make_session(status=SessionStatus.WORKING)], NOW))
        assert "Working: 1" in text
        assert "Needs Input: 0" in text


class TestHistoryView:
    def test_empty(self):
        assert render(build_history_view([], 7, NOW)) == "No sessions found in the past 7 days.\n"

    def test_grouped(self):
        sessions = [
            HistorySession(project="acme/web", start_time=NOW - timedelta(hours=2),
                           end_time=NOW - timedelta(hours=1), duration=timedelta(hours=1),
                           message_count=4, first_prompt="fix it"),
            HistorySession(project="acme/api", start_time=NOW - timedelta(days=1),
                           end_time=NOW - timedelta(days=1), duration=timedelta(minutes=5)),
        ]
        text = render(build_history_view(sessions, 7, NOW))
        assert "Today" in text
        assert "Yesterday" in text
        assert "fix it" in text
        assert "Total: 2 sessions, 1h 5m" in text


class TestGhostTable:
    def test_rows(self):
        text = render(build_ghost_table(
            [GhostProcess(pid=42, project="acme/web", age=timedelta(hours=3))], "Ghosts"
        ))
        assert "42" in text
        assert "acme/web" in text
        assert "3h" in text


class TestRenderJson:
    def test_records(self):
        data = json.loads(render_json([
            make_session(status=SessionStatus.WORKING, task="Processing...", ghost_pid=7),
        ]))
        assert data == [{
            "project": "acme/web",
            "status": "Working",
            "last_activity": "2026-01-01T11:57:00Z",
            "task": "Processing...",
            "ghost_pid": 7,
        }]

    def test_empty(self):
        assert json.loads(render_json([])) == []
