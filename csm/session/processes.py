"""Process correlator — ties running assistant processes to project logs."""

from __future__ import annotations

import logging
import os
import signal
from collections.abc import Callable, Iterable
from datetime import datetime, timedelta, timezone
from typing import Protocol

import psutil

from csm.models import GhostProcess, ProcessInfo, RunningProcess, Session
from csm.session.paths import encode_project_path

logger = logging.getLogger(__name__)

DEFAULT_PROCESS_NAME = "claude"
GHOST_THRESHOLD = timedelta(hours=1)


class ProcessLister(Protocol):
    """Anything that can enumerate processes by binary name."""

    def list_processes(self, name: str) -> list[ProcessInfo]: ...


class SystemProcessLister:
    """
    Lists processes through psutil.

    A process matches when its name equals the binary name. Processes that
    exit mid-scan, or whose working directory can't be read, are left out.
    """

    def list_processes(self, name: str) -> list[ProcessInfo]:
        processes = []
        for proc in psutil.process_iter(["pid", "name"]):
            try:
                if proc.info["name"] != name:
                    continue
                cwd = proc.cwd()
            except (psutil.NoSuchProcess, psutil.AccessDenied, psutil.ZombieProcess):
                continue
            if cwd:
                processes.append(ProcessInfo(pid=proc.info["pid"], cwd=cwd))
        return processes


def get_running_processes(
    lister: ProcessLister, name: str = DEFAULT_PROCESS_NAME
) -> list[RunningProcess]:
    """Running assistant processes keyed by their encoded working directory."""
    return [
        RunningProcess(pid=p.pid, encoded_dir=encode_project_path(p.cwd))
        for p in lister.list_processes(name)
    ]


def get_running_dirs(
    lister: ProcessLister, name: str = DEFAULT_PROCESS_NAME
) -> dict[str, int]:
    """Map of encoded project directory name -> PID of an assistant running there."""
    return {p.encoded_dir: p.pid for p in get_running_processes(lister, name)}


def find_ghosts(
    sessions: Iterable[Session],
    now: datetime | None = None,
    threshold: timedelta = GHOST_THRESHOLD,
) -> list[GhostProcess]:
    """Sessions with a running process and no log activity for over ``threshold``."""
    now = now or datetime.now(timezone.utc)
    ghosts = []
    for s in sessions:
        if s.ghost_pid <= 0:
            continue
        age = now - s.last_activity
        if age > threshold:
            ghosts.append(GhostProcess(pid=s.ghost_pid, project=s.project, age=age))
    return ghosts


def kill_ghosts(
    ghosts: Iterable[GhostProcess],
    send_signal: Callable[[int, int], None] | None = None,
) -> list[GhostProcess]:
    """
    Send SIGTERM to each ghost once. Returns the ones that were signalled.

    A process that has already exited (or can't be signalled) is logged and
    left out of the result.
    """
    send_signal = send_signal or os.kill
    killed = []
    signalled: set[int] = set()
    for ghost in ghosts:
        if ghost.pid in signalled:
            continue
        signalled.add(ghost.pid)
        try:
            send_signal(ghost.pid, signal.SIGTERM)
        except OSError as e:
            logger.warning("Could not terminate PID %d (%s): %s", ghost.pid, ghost.project, e)
            continue
        killed.append(ghost)
    return killed
