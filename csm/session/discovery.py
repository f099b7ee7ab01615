"""Session discovery — builds the session list from the log store and process table."""

from __future__ import annotations

import logging
import os
from datetime import datetime, timedelta, timezone
from pathlib import Path

from csm.config import CsmConfig, load_config
from csm.models import GhostProcess, Session
from csm.session.context import extract_context_usage
from csm.session.paths import decode_project_name
from csm.session.processes import (
    ProcessLister,
    SystemProcessLister,
    find_ghosts,
    get_running_dirs,
    kill_ghosts,
)
from csm.session.reader import extract_summary, read_last_entries
from csm.session.status import (
    detect_unsandboxed_commands,
    determine_status,
    extract_git_branch,
    extract_last_message,
)

logger = logging.getLogger(__name__)

SUBAGENT_PREFIX = "agent-"
LOG_SUFFIX = ".jsonl"


class ProjectsDirError(OSError):
    """The log store's projects directory can't be read."""


def is_desktop_session(project_dir: str) -> bool:
    """
    Whether a session comes from the desktop app.

    Always False: treating the home directory as "desktop" misfired on
    terminal sessions started there.
    """
    return False


def find_most_recent_log(directory: Path) -> Path | None:
    """
    Pick the log file that represents a project's current session.

    That's the most recently modified non-empty ``.jsonl`` file (sub-agent logs
    excluded), unless an even newer empty file exists, which means a new
    session has just started.
    """
    newest: Path | None = None
    newest_mtime = -1.0
    newest_nonempty: Path | None = None
    newest_nonempty_mtime = -1.0

    with os.scandir(directory) as it:
        for entry in it:
            if not entry.name.endswith(LOG_SUFFIX) or entry.name.startswith(SUBAGENT_PREFIX):
                continue
            try:
                if entry.is_dir():
                    continue
                st = entry.stat()
            except OSError:
                continue

            if st.st_mtime > newest_mtime:
                newest, newest_mtime = Path(entry.path), st.st_mtime
            if st.st_size > 0 and st.st_mtime > newest_nonempty_mtime:
                newest_nonempty, newest_nonempty_mtime = Path(entry.path), st.st_mtime

    if newest is not None and newest != newest_nonempty and newest_mtime > newest_nonempty_mtime:
        return newest
    return newest_nonempty


def parse_session(
    project_dir: str,
    log_file: Path,
    running_dirs: dict[str, int],
    config: CsmConfig | None = None,
    now: datetime | None = None,
) -> Session:
    """
    Build a Session for one project from its chosen log file.

    Raises OSError if the log file can't be stat'd. A log that can't be read
    is treated as having no entries.
    """
    config = config or CsmConfig()
    detection = config.detection
    now = now or datetime.now(timezone.utc)

    pid = running_dirs.get(project_dir, 0)
    is_running = project_dir in running_dirs

    mtime = datetime.fromtimestamp(log_file.stat().st_mtime, tz=timezone.utc)
    try:
        entries = read_last_entries(log_file, detection.tail_entries)
    except OSError as e:
        logger.debug("Cannot read %s: %s", log_file, e)
        entries = []

    result = determine_status(
        entries,
        is_running,
        now=now,
        stale_after=timedelta(seconds=detection.stale_seconds),
        working_within=timedelta(seconds=detection.working_seconds),
        ghost_after=timedelta(seconds=detection.ghost_threshold_seconds),
    )
    context_percent, context_tokens = extract_context_usage(
        entries, detection.context_window
    )

    last_activity = mtime
    for entry in reversed(entries):
        if entry.timestamp is not None:
            last_activity = max(last_activity, entry.timestamp)
            break

    return Session(
        project=decode_project_name(project_dir),
        status=result.status,
        task=result.task,
        is_ghost=result.is_ghost,
        ghost_pid=pid if is_running and pid > 0 else 0,
        last_activity=min(last_activity, now),
        summary=extract_summary(log_file) if entries else "",
        last_message=extract_last_message(entries),
        git_branch=extract_git_branch(entries),
        has_unsandboxed=detect_unsandboxed_commands(entries),
        context_percent=context_percent,
        context_tokens=context_tokens,
        is_desktop=is_desktop_session(project_dir),
        log_file=str(log_file),
        project_dir=project_dir,
    )


def sort_sessions(sessions: list[Session]) -> list[Session]:
    """Order by status priority, then most recent activity first."""
    return sorted(
        sessions,
        key=lambda s: (s.status.priority, -s.last_activity.timestamp()),
    )


def discover(
    config: CsmConfig | None = None,
    lister: ProcessLister | None = None,
    now: datetime | None = None,
) -> list[Session]:
    """
    Find all sessions under the projects directory.

    Raises ProjectsDirError if the projects directory can't be listed.
    Projects whose directory or log file can't be read are left out.
    """
    config = config or load_config()
    lister = lister or SystemProcessLister()
    now = now or datetime.now(timezone.utc)
    projects_dir = config.paths.projects_dir

    try:
        with os.scandir(projects_dir) as it:
            project_entries = sorted(it, key=lambda e: e.name)
    except OSError as e:
        raise ProjectsDirError(
            f"Cannot read projects directory {projects_dir}: {e.strerror or e}"
        ) from e

    running_dirs = get_running_dirs(lister, config.detection.process_name)

    sessions = []
    for entry in project_entries:
        if entry.name.startswith("."):
            continue
        try:
            if not entry.is_dir():
                continue
            log_file = find_most_recent_log(Path(entry.path))
            if log_file is None:
                continue
            sessions.append(
                parse_session(entry.name, log_file, running_dirs, config, now)
            )
        except OSError as e:
            logger.debug("Skipping project %s: %s", entry.name, e)
            continue

    return sort_sessions(sessions)


def find_ghost_processes(
    config: CsmConfig | None = None,
    lister: ProcessLister | None = None,
    now: datetime | None = None,
) -> list[GhostProcess]:
    """Discover sessions and return the ones eligible for termination."""
    config = config or load_config()
    now = now or datetime.now(timezone.utc)
    sessions = discover(config, lister, now)
    return find_ghosts(
        sessions,
        now=now,
        threshold=timedelta(seconds=config.detection.ghost_threshold_seconds),
    )


def kill_ghost_processes(
    config: CsmConfig | None = None,
    lister: ProcessLister | None = None,
    now: datetime | None = None,
) -> list[GhostProcess]:
    """Terminate all ghost processes. Returns the ones that were signalled."""
    return kill_ghosts(find_ghost_processes(config, lister, now))
