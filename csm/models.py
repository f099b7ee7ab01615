"""Shared data models for csm."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

# Log entry kinds
USER = "user"
ASSISTANT = "assistant"
SYSTEM = "system"
SUMMARY = "summary"

# System entry subtypes
TURN_DURATION = "turn_duration"
COMPACT_BOUNDARY = "compact_boundary"
MICROCOMPACT_BOUNDARY = "microcompact_boundary"

_CONTENT_TYPES = {"text", "tool_use", "tool_result"}


class SessionStatus(str, Enum):
    """Inferred activity state of a session."""

    WORKING = "Working"
    NEEDS_INPUT = "Needs Input"
    WAITING = "Waiting"
    INACTIVE = "Inactive"

    @property
    def priority(self) -> int:
        """Sort priority (lower sorts first)."""
        return _STATUS_PRIORITY[self]


_STATUS_PRIORITY = {
    SessionStatus.WORKING: 0,
    SessionStatus.NEEDS_INPUT: 1,
    SessionStatus.WAITING: 2,
    SessionStatus.INACTIVE: 3,
}


# ── Log line schema ─────────────────────────────────────────


class TextContent(BaseModel):
    type: Literal["text"] = "text"
    text: str = ""


class ToolUseContent(BaseModel):
    type: Literal["tool_use"] = "tool_use"
    name: str = ""
    input: Any = None


class ToolResultContent(BaseModel):
    type: Literal["tool_result"] = "tool_result"
    tool_use_id: str = ""


ContentItem = Annotated[
    Union[TextContent, ToolUseContent, ToolResultContent],
    Field(discriminator="type"),
]


class Usage(BaseModel):
    """Token usage reported with an assistant response (absolute, not deltas)."""

    input_tokens: int = Field(default=0, ge=0)
    cache_creation_input_tokens: int = Field(default=0, ge=0)
    cache_read_input_tokens: int = Field(default=0, ge=0)
    output_tokens: int = Field(default=0, ge=0)

    @field_validator("*", mode="before")
    @classmethod
    def _null_is_zero(cls, v: Any) -> Any:
        return 0 if v is None else v

    @property
    def context_tokens(self) -> int:
        """Tokens occupying the context window for the next turn."""
        return (
            self.input_tokens
            + self.cache_creation_input_tokens
            + self.cache_read_input_tokens
        )


class Message(BaseModel):
    role: str = ""
    model: str | None = None
    content: list[ContentItem] = Field(default_factory=list)
    usage: Usage | None = None

    @field_validator("content", mode="before")
    @classmethod
    def _normalize_content(cls, v: Any) -> Any:
        # User prompts are often logged as a bare string
        if v is None:
            return []
        if isinstance(v, str):
            return [{"type": "text", "text": v}]
        if isinstance(v, list):
            return [
                item for item in v
                if isinstance(item, dict) and item.get("type") in _CONTENT_TYPES
            ]
        return v

    def tool_uses(self) -> list[ToolUseContent]:
        return [c for c in self.content if isinstance(c, ToolUseContent)]

    def has_tool_result(self) -> bool:
        return any(isinstance(c, ToolResultContent) for c in self.content)


class LogEntry(BaseModel):
    """One line of a session's JSONL log."""

    model_config = ConfigDict(populate_by_name=True)

    kind: str = Field(alias="type")
    subtype: str | None = None
    timestamp: datetime | None = None
    message: Message | None = None
    summary_text: str | None = Field(default=None, alias="summary")
    git_branch: str | None = Field(default=None, alias="gitBranch")

    @field_validator("timestamp")
    @classmethod
    def _assume_utc(cls, v: datetime | None) -> datetime | None:
        if v is not None and v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v

    def is_system(self, *subtypes: str) -> bool:
        return self.kind == SYSTEM and self.subtype in subtypes


# ── Processes ───────────────────────────────────────────────


class ProcessInfo(BaseModel):
    """A process as reported by a process lister."""

    pid: int = Field(gt=0)
    cwd: str


class RunningProcess(BaseModel):
    """An assistant process correlated to a project directory key."""

    pid: int = Field(gt=0)
    encoded_dir: str


class GhostProcess(BaseModel):
    """A running assistant process whose log has gone stale."""

    pid: int
    project: str
    age: timedelta


# ── Sessions ────────────────────────────────────────────────


# Fields dropped from the serialized record when empty/zero/false
_OPTIONAL_RECORD_FIELDS = (
    "summary",
    "last_message",
    "git_branch",
    "is_desktop",
    "is_ghost",
    "ghost_pid",
    "has_unsandboxed",
    "context_percent",
    "context_tokens",
)


class Session(BaseModel):
    """Inferred state of one monitored project, rebuilt on every discovery pass."""

    project: str
    status: SessionStatus = SessionStatus.INACTIVE
    last_activity: datetime
    task: str = "-"
    summary: str = ""
    last_message: str = ""
    git_branch: str = ""
    context_percent: float = 0.0
    context_tokens: int = 0
    is_ghost: bool = False
    ghost_pid: int = 0
    has_unsandboxed: bool = False
    is_desktop: bool = False  # reserved, detection disabled
    log_file: str = Field(default="", exclude=True)
    project_dir: str = Field(default="", exclude=True)

    def to_record(self) -> dict[str, Any]:
        """Serialized output record with empty optional fields omitted."""
        data = self.model_dump(mode="json")
        for key in _OPTIONAL_RECORD_FIELDS:
            if not data.get(key):
                data.pop(key, None)
        return data


class HistorySession(BaseModel):
    """A past session listed in a project's sessions-index.json."""

    project: str
    git_branch: str = ""
    start_time: datetime
    end_time: datetime
    duration: timedelta = timedelta(0)
    message_count: int = 0
    first_prompt: str = ""
    log_file: str = Field(default="", exclude=True)
