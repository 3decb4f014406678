"""Shared fakes and builders for the test-suite."""

from __future__ import annotations

import logging
import shutil
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import pytest

from release_deployer.config import (
    CommandsConfig,
    ConnectionConfig,
    DeployConfig,
    RepositoryConfig,
)
from release_deployer.execution import RemoteExecutor, StepRunner
from release_deployer.releases import ProjectLayout, ReleaseManager
from release_deployer.utils.logging import DeployLogger

GIT = shutil.which("git")
requires_git = pytest.mark.skipif(GIT is None, reason="git binary not available")


@dataclass
class FakeResult:
    command: str
    stdout: str = ""
    stderr: str = ""
    exit_status: int = 0

    @property
    def ok(self) -> bool:
        return self.exit_status == 0


class FakeSession:
    """Records commands; answers the first response whose key is a substring of the command."""

    label = "deploy@example.com"

    def __init__(self, responses: Optional[Dict[str, Tuple[int, str, str]]] = None) -> None:
        self.responses = dict(responses or {})
        self.commands: List[str] = []
        self.files: Dict[str, bytes] = {}
        self.dirs: set = set()
        self.connected = False
        self.closed = False

    def connect(self) -> None:
        self.connected = True

    def close(self) -> None:
        self.closed = True

    def __enter__(self) -> "FakeSession":
        self.connect()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def run(self, command: str, *, on_stdout=None, on_stderr=None) -> FakeResult:
        self.commands.append(command)
        exit_status, stdout, stderr = 0, "", ""
        for needle, response in self.responses.items():
            if needle in command:
                exit_status, stdout, stderr = response
                break
        for line in stdout.splitlines():
            if on_stdout:
                on_stdout(line)
        for line in stderr.splitlines():
            if on_stderr:
                on_stderr(line)
        return FakeResult(command, stdout, stderr, exit_status)

    def exists(self, path: str) -> bool:
        return path in self.dirs or path in self.files

    def makedirs(self, path: str) -> None:
        self.dirs.add(path)

    def put_file(self, local_path: str, remote_path: str) -> None:
        self.files[remote_path] = Path(local_path).read_bytes()


def make_log() -> DeployLogger:
    return DeployLogger(logging.getLogger("release_deployer.tests"))


def make_runner(session) -> StepRunner:
    log = make_log()
    return StepRunner(RemoteExecutor(session, log), log)


def make_manager(session, root: str = "/srv/app", username: str = "deploy") -> ReleaseManager:
    runner = make_runner(session)
    return ReleaseManager(runner, ProjectLayout(root), runner.log, username=username)


def make_config(project_folder: str = "/srv/app", **overrides) -> DeployConfig:
    config = DeployConfig(
        application="shop",
        project_folder=project_folder,
        deploy_via=overrides.pop("deploy_via", "git"),
        runtime_version="20.11.0",
        keep_releases=overrides.pop("keep_releases", 5),
        connection=ConnectionConfig(host="example.com", username="deploy", agent_forward=False),
        repository=RepositoryConfig(
            repo_url=overrides.pop("repo_url", "git@github.com:acme/shop.git"),
            branch=overrides.pop("branch", "main"),
            local_source=overrides.pop("local_source", "."),
        ),
        commands=CommandsConfig(
            install=overrides.pop("install", "true"),
            restart=overrides.pop("restart", "true"),
        ),
    )
    for key, value in overrides.items():
        setattr(config, key, value)
    return config


def git(*args: str, cwd: Path) -> str:
    completed = subprocess.run(
        [GIT or "git", "-c", "user.email=dev@example.com", "-c", "user.name=Dev",
         "-c", "commit.gpgsign=false", *args],
        cwd=str(cwd),
        check=True,
        capture_output=True,
        text=True,
    )
    return completed.stdout.strip()


def make_origin(base: Path) -> Path:
    """Create a local git repository with one commit on ``main``."""
    origin = base / "origin"
    origin.mkdir()
    git("init", "-q", cwd=origin)
    git("checkout", "-q", "-b", "main", cwd=origin)
    (origin / "package.json").write_text('{"name": "shop"}\n', encoding="utf-8")
    (origin / "server.js").write_text("console.log('hi')\n", encoding="utf-8")
    git("add", ".", cwd=origin)
    git("commit", "-q", "-m", "initial", cwd=origin)
    return origin
