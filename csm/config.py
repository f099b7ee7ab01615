"""Configuration management for csm."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, field_validator


CSM_DIR = Path.home() / ".csm"
CONFIG_FILE = CSM_DIR / "config.yaml"

DEFAULT_PROJECTS_DIR = Path.home() / ".claude" / "projects"


class PathsConfig(BaseModel):
    """Where the assistant keeps its per-project logs."""

    projects_dir: Path = DEFAULT_PROJECTS_DIR

    @field_validator("projects_dir", mode="after")
    @classmethod
    def _expand_user(cls, v: Path) -> Path:
        return v.expanduser()


class DetectionConfig(BaseModel):
    """Status inference settings."""

    tail_entries: int = Field(default=100, gt=0)
    context_window: int = Field(default=200_000, gt=0)
    stale_seconds: int = 300  # running but quiet -> Waiting
    working_seconds: int = 30  # assistant reply this fresh -> Working
    ghost_threshold_seconds: int = 3600  # running but quiet this long -> ghost
    process_name: str = "claude"


class WatchConfig(BaseModel):
    """Live view settings."""

    interval_seconds: float = Field(default=2.0, gt=0)


class HistoryConfig(BaseModel):
    """History view settings."""

    days: int = Field(default=7, gt=0)


class ServerConfig(BaseModel):
    """Server settings."""

    port: int = 9385
    bind: str = "127.0.0.1"


class CsmConfig(BaseModel):
    """Root configuration model."""

    paths: PathsConfig = Field(default_factory=PathsConfig)
    detection: DetectionConfig = Field(default_factory=DetectionConfig)
    watch: WatchConfig = Field(default_factory=WatchConfig)
    history: HistoryConfig = Field(default_factory=HistoryConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)


def ensure_dirs() -> None:
    """Create the csm directory if it doesn't exist."""
    CSM_DIR.mkdir(parents=True, exist_ok=True)


def load_config(path: Path | None = None) -> CsmConfig:
    """Load configuration from ~/.csm/config.yaml, falling back to defaults."""
    raw = load_yaml(path or CONFIG_FILE)
    return CsmConfig(**raw)


def save_default_config() -> Path:
    """Write default config to ~/.csm/config.yaml."""
    ensure_dirs()
    config = CsmConfig()
    with open(CONFIG_FILE, "w") as f:
        yaml.dump(
            config.model_dump(mode="json"),
            f,
            default_flow_style=False,
            sort_keys=False,
        )
    return CONFIG_FILE


def load_yaml(path: Path) -> dict[str, Any]:
    """Safely load a YAML file, returning empty dict if it doesn't exist."""
    if not path.exists():
        return {}
    with open(path) as f:
        return yaml.safe_load(f) or {}
