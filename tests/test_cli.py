"""Tests for the command-line interface."""

import json
import os
from datetime import datetime, timedelta, timezone

import pytest
import yaml
from typer.testing import CliRunner

import csm.config as config_module
import csm.session.discovery as discovery_module
from csm import __version__
from csm.cli import app
from csm.models import ProcessInfo

runner = CliRunner()


class FakeLister:
    processes: list = []

    def list_processes(self, name):
        return self.processes


@pytest.fixture
def projects_dir(tmp_path, monkeypatch):
    """Point the CLI at a temp config whose projects_dir is a temp directory."""
    projects = tmp_path / "projects"
    projects.mkdir()
    config_file = tmp_path / "config.yaml"
    config_file.write_text(yaml.safe_dump({"paths": {"projects_dir": str(projects)}}))
    monkeypatch.setattr(config_module, "CONFIG_FILE", config_file)
    monkeypatch.setattr(discovery_module, "SystemProcessLister", FakeLister)
    monkeypatch.setattr(FakeLister, "processes", [])
    return projects


def add_session(projects, cwd, pid, age: timedelta):
    """A project whose log ends in a pending Bash call ``age`` ago, run by ``pid``."""
    when = datetime.now(timezone.utc) - age
    log = projects / cwd.replace("/", "-") / "session.jsonl"
    log.parent.mkdir()
    log.write_text(json.dumps({
        "type": "assistant",
        "timestamp": when.isoformat(),
        "message": {"role": "assistant", "content": [{"type": "tool_use", "name": "Bash", "input": {}}]},
    }) + "\n")
    os.utime(log, (when.timestamp(), when.timestamp()))
    FakeLister.processes = [*FakeLister.processes, ProcessInfo(pid=pid, cwd=cwd)]


class TestVersion:
    def test_version(self):
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert f"v{__version__}" in result.output


class TestList:
    def test_empty(self, projects_dir):
        result = runner.invoke(app, ["list"])
        assert result.exit_code == 0
        assert "No active Claude sessions found." in result.output

    def test_json(self, projects_dir):
        add_session(projects_dir, "/srv/acme", 4242, timedelta(0))
        result = runner.invoke(app, ["list", "--json"])
        assert result.exit_code == 0
        (record,) = json.loads(result.output)
        assert record["status"] == "Needs Input"
        assert record["task"] == "Using: Bash"
        assert record["ghost_pid"] == 4242

    def test_json_empty(self, projects_dir):
        result = runner.invoke(app, ["list", "--json"])
        assert json.loads(result.output) == []

    def test_table(self, projects_dir):
        add_session(projects_dir, "/srv/acme", 4242, timedelta(0))
        result = runner.invoke(app, ["list"])
        assert result.exit_code == 0
        assert "Needs Input" in result.output

    def test_missing_projects_dir(self, projects_dir):
        projects_dir.rmdir()
        result = runner.invoke(app, ["list"])
        assert result.exit_code == 1
        assert "Error discovering sessions" in result.output


class TestHistory:
    def test_json_empty(self, projects_dir):
        result = runner.invoke(app, ["history", "--json", "--days", "3"])
        assert result.exit_code == 0
        assert json.loads(result.output) == []

    def test_empty(self, projects_dir):
        result = runner.invoke(app, ["history"])
        assert "No sessions found in the past 7 days." in result.output


class TestGhosts:
    def test_none(self, projects_dir):
        add_session(projects_dir, "/srv/acme", 4242, timedelta(minutes=1))
        result = runner.invoke(app, ["ghosts"])
        assert result.exit_code == 0
        assert "No ghost processes found." in result.output

    def test_list(self, projects_dir):
        add_session(projects_dir, "/srv/acme", 4242, timedelta(hours=2))
        result = runner.invoke(app, ["ghosts"])
        assert result.exit_code == 0
        assert "4242" in result.output
        assert "csm ghosts --kill" in result.output

    def test_kill(self, projects_dir, monkeypatch):
        add_session(projects_dir, "/srv/acme", 4242, timedelta(hours=2))
        signalled = []
        monkeypatch.setattr("os.kill", lambda pid, sig: signalled.append(pid))

        result = runner.invoke(app, ["ghosts", "--kill"])
        assert result.exit_code == 0
        assert signalled == [4242]
        assert "Killed 1 of 1" in result.output


class TestConfig:
    def test_show(self, projects_dir):
        result = runner.invoke(app, ["config", "show"])
        assert result.exit_code == 0
        assert '"projects_dir"' in result.output
        assert "9385" in result.output

    def test_init(self, tmp_path, monkeypatch):
        monkeypatch.setattr(config_module, "CSM_DIR", tmp_path / ".csm")
        monkeypatch.setattr(config_module, "CONFIG_FILE", tmp_path / ".csm" / "config.yaml")

        result = runner.invoke(app, ["config", "init"])
        assert result.exit_code == 0
        assert (tmp_path / ".csm" / "config.yaml").exists()

        result = runner.invoke(app, ["config", "init"])
        assert "Config already exists" in result.output
