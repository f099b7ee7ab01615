"""Tests for the HTTP server."""

import json
import os
from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

from csm import __version__
from csm.config import CsmConfig, PathsConfig
from csm.models import ProcessInfo
from csm.server.app import create_app


class FakeLister:
    def __init__(self, processes=()):
        self.processes = list(processes)

    def list_processes(self, name):
        return self.processes


def write_project(root, cwd, entries, age: timedelta):
    log = root / cwd.replace("/", "-") / "session.jsonl"
    log.parent.mkdir(parents=True)
    log.write_text("".join(json.dumps(e) + "\n" for e in entries))
    ts = (datetime.now(timezone.utc) - age).timestamp()
    os.utime(log, (ts, ts))


def tool_use(t, name):
    return {
        "type": "assistant",
        "timestamp": t.isoformat(),
        "message": {"role": "assistant", "content": [{"type": "tool_use", "name": name, "input": {}}]},
    }


@pytest.fixture
def config(tmp_path):
    return CsmConfig(paths=PathsConfig(projects_dir=tmp_path))


class TestHealth:
    def test_health(self, config, tmp_path):
        client = TestClient(create_app(config, FakeLister()))
        data = client.get("/api/health").json()
        assert data == {"status": "ok", "version": __version__, "projects_dir": str(tmp_path)}


class TestSessions:
    def test_empty(self, config):
        client = TestClient(create_app(config, FakeLister()))
        response = client.get("/api/sessions")
        assert response.status_code == 200
        assert response.json() == {"sessions": []}

    def test_running_session(self, config, tmp_path):
        now = datetime.now(timezone.utc)
        write_project(tmp_path, "/srv/acme", [tool_use(now, "Bash")], timedelta(0))
        lister = FakeLister([ProcessInfo(pid=77, cwd="/srv/acme")])

        client = TestClient(create_app(config, lister))
        (session,) = client.get("/api/sessions").json()["sessions"]
        assert session["status"] == "Needs Input"
        assert session["task"] == "Using: Bash"
        assert session["ghost_pid"] == 77
        assert "log_file" not in session

    def test_missing_projects_dir(self, tmp_path):
        config = CsmConfig(paths=PathsConfig(projects_dir=tmp_path / "missing"))
        client = TestClient(create_app(config, FakeLister()))
        response = client.get("/api/sessions")
        assert response.status_code == 503
        assert "detail" in response.json()


class TestGhosts:
    def test_quiet_running_session(self, config, tmp_path):
        then = datetime.now(timezone.utc) - timedelta(hours=2)
        write_project(tmp_path, "/srv/acme", [tool_use(then, "Bash")], timedelta(hours=2))
        lister = FakeLister([ProcessInfo(pid=77, cwd="/srv/acme")])

        client = TestClient(create_app(config, lister))
        (ghost,) = client.get("/api/ghosts").json()["ghosts"]
        assert ghost["pid"] == 77
        assert ghost["age_seconds"] >= 7200

    def test_none(self, config):
        client = TestClient(create_app(config, FakeLister()))
        assert client.get("/api/ghosts").json() == {"ghosts": []}


class TestHistory:
    def test_history(self, config, tmp_path):
        created = datetime.now(timezone.utc) - timedelta(hours=1)
        index = tmp_path / "-srv-acme" / "sessions-index.json"
        index.parent.mkdir()
        index.write_text(json.dumps({
            "version": 1,
            "entries": [{
                "sessionId": "s1",
                "created": created.isoformat(),
                "messageCount": 3,
                "projectPath": "/srv/acme",
            }],
        }))

        client = TestClient(create_app(config, FakeLister()))
        data = client.get("/api/history", params={"days": 2}).json()
        assert data["days"] == 2
        (session,) = data["sessions"]
        assert session["project"] == "srv/acme"
        assert session["message_count"] == 3

    def test_days_must_be_positive(self, config):
        client = TestClient(create_app(config, FakeLister()))
        assert client.get("/api/history", params={"days": 0}).status_code == 422
