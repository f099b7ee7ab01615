"""Session history from the per-project sessions-index.json files."""

from __future__ import annotations

import json
import logging
from datetime import datetime, timedelta, timezone
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field

from csm.config import DEFAULT_PROJECTS_DIR
from csm.models import HistorySession

logger = logging.getLogger(__name__)

INDEX_FILE = "sessions-index.json"


class IndexEntry(BaseModel):
    """A single session entry in sessions-index.json."""

    model_config = ConfigDict(populate_by_name=True)

    session_id: str = Field(default="", alias="sessionId")
    full_path: str = Field(default="", alias="fullPath")
    created: str = ""
    modified: str = ""
    message_count: int = Field(default=0, alias="messageCount")
    first_prompt: str = Field(default="", alias="firstPrompt")
    git_branch: str = Field(default="", alias="gitBranch")
    project_path: str = Field(default="", alias="projectPath")
    is_sidechain: bool = Field(default=False, alias="isSidechain")


class SessionIndex(BaseModel):
    version: int = 0
    entries: list[IndexEntry] = Field(default_factory=list)


def parse_session_index(path: Path) -> list[IndexEntry]:
    """Read a sessions-index.json file. Raises OSError or ValueError."""
    with open(path) as f:
        data = json.load(f)
    return SessionIndex.model_validate(data).entries


def _parse_time(value: str) -> datetime | None:
    if not value:
        return None
    try:
        t = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if t.tzinfo is None:
        t = t.replace(tzinfo=timezone.utc)
    return t


def extract_project_name(full_path: str) -> str:
    """/Users/jane/Projects/org/project -> org/project; else the last two components."""
    marker = "/Projects/"
    idx = full_path.find(marker)
    if idx != -1:
        return full_path[idx + len(marker):]

    parts = full_path.split("/")
    if len(parts) >= 2:
        return f"{parts[-2]}/{parts[-1]}"
    return Path(full_path).name


def discover_history(
    days: int = 7,
    projects_dir: Path | None = None,
    now: datetime | None = None,
) -> list[HistorySession]:
    """All non-sidechain sessions started in the past ``days`` days, newest first."""
    projects_dir = projects_dir or DEFAULT_PROJECTS_DIR
    now = now or datetime.now(timezone.utc)
    cutoff = now - timedelta(days=days)

    sessions = []
    for index_file in sorted(projects_dir.glob(f"*/{INDEX_FILE}")):
        try:
            entries = parse_session_index(index_file)
        except (OSError, ValueError) as e:
            logger.debug("Skipping %s: %s", index_file, e)
            continue

        for entry in entries:
            if entry.is_sidechain:
                continue

            start = _parse_time(entry.created)
            if start is None or start < cutoff:
                continue
            end = _parse_time(entry.modified) or start

            sessions.append(
                HistorySession(
                    project=extract_project_name(entry.project_path),
                    git_branch=entry.git_branch,
                    start_time=start,
                    end_time=end,
                    duration=end - start,
                    message_count=entry.message_count,
                    first_prompt=entry.first_prompt,
                    log_file=entry.full_path,
                )
            )

    sessions.sort(key=lambda s: s.start_time, reverse=True)
    return sessions


def get_date_group(t: datetime, now: datetime | None = None) -> str:
    """
    Day heading for a session: "Today", "Yesterday" or e.g. "Jan 2".

    Days follow the calendar of ``now``'s timezone, local time by default.
    """
    now = now or datetime.now().astimezone()
    local = t.astimezone(now.tzinfo) if now.tzinfo else t
    days = (now.date() - local.date()).days
    if days == 0:
        return "Today"
    if days == 1:
        return "Yesterday"
    return f"{local.strftime('%b')} {local.day}"
