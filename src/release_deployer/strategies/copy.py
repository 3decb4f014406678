"""Copy strategy: upload a local working tree file by file."""

from __future__ import annotations

import posixpath
from pathlib import Path

import paramiko

from ..config import DeployVia
from ..errors import DeploymentError
from ..paths import BASE_DIR
from .base import DeploymentStrategy

EXCLUDED_NAMES = frozenset({BASE_DIR.name})


class CopyStrategy(DeploymentStrategy):
    """Walks ``repository.local_source`` and streams every file to the release.

    Carries no VCS identity of its own: the revision hint is empty. If the
    source contains a ``.git`` directory it is copied too, and the revision
    stamp then reads HEAD from it.
    """

    deploy_via = DeployVia.COPY
    task = "copy:upload"

    def materialize(self, release_dir: str) -> str:
        source = Path(self.config.repository.local_source).expanduser().resolve()
        self.runner.section(self.task)
        if not source.is_dir():
            raise DeploymentError(f"Local source {source} is not a directory", self.task, 1)

        self.log.command(1, f"copy {source} -> {release_dir}")
        try:
            if not self.transfer.exists(release_dir):
                self.transfer.makedirs(release_dir)
            copied = self._copy_tree(source, release_dir)
        except (OSError, paramiko.SSHException) as exc:
            self.log.error(f"Copy failed: {exc}")
            raise DeploymentError(f"Copy failed: {exc}", self.task, 1) from exc

        self.log.success(1, self.runner.label)
        self.log.info(f"Repository copied to the target ({copied} files).")
        return ""

    def _copy_tree(self, source: Path, destination: str) -> int:
        copied = 0
        for entry in sorted(source.iterdir()):
            if entry.name in EXCLUDED_NAMES:
                continue
            target = posixpath.join(destination, entry.name)
            if entry.is_dir():
                self.transfer.makedirs(target)
                copied += self._copy_tree(entry, target)
            elif entry.is_file():
                self.transfer.put_file(str(entry), target)
                copied += 1
        return copied
