"""FastAPI server — read-only JSON view of discovered sessions."""

from __future__ import annotations

from datetime import timedelta
from typing import Optional

from fastapi import FastAPI, HTTPException, Query

from csm import __version__
from csm.config import CsmConfig, load_config
from csm.session.discovery import ProjectsDirError, discover
from csm.session.history import discover_history
from csm.session.processes import ProcessLister, find_ghosts


def create_app(
    config: Optional[CsmConfig] = None,
    lister: Optional[ProcessLister] = None,
) -> FastAPI:
    """Create the app. Every request runs a fresh discovery pass."""
    config = config or load_config()

    app = FastAPI(
        title="csm Server",
        description="Status of Claude Code sessions inferred from their logs",
        version=__version__,
    )
    app.state.config = config

    def _sessions():
        try:
            return discover(config, lister)
        except ProjectsDirError as e:
            raise HTTPException(status_code=503, detail=str(e))

    # ── REST Endpoints ──────────────────────────────────────

    @app.get("/api/health")
    async def health():
        """Health check endpoint."""
        return {
            "status": "ok",
            "version": __version__,
            "projects_dir": str(config.paths.projects_dir),
        }

    @app.get("/api/sessions")
    def list_sessions():
        """All sessions, highest priority first."""
        return {"sessions": [s.to_record() for s in _sessions()]}

    @app.get("/api/history")
    def list_history(days: int = Query(default=config.history.days, gt=0)):
        """Past sessions from the last ``days`` days, newest first."""
        sessions = discover_history(days, config.paths.projects_dir)
        return {
            "days": days,
            "sessions": [s.model_dump(mode="json") for s in sessions],
        }

    @app.get("/api/ghosts")
    def list_ghosts():
        """Running processes whose sessions have gone quiet past the ghost threshold."""
        ghosts = find_ghosts(
            _sessions(),
            threshold=timedelta(seconds=config.detection.ghost_threshold_seconds),
        )
        return {
            "ghosts": [
                {"pid": g.pid, "project": g.project, "age_seconds": int(g.age.total_seconds())}
                for g in ghosts
            ]
        }

    return app
