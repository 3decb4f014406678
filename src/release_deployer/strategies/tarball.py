"""Tarball strategy: download a branch archive locally, upload and extract it."""

from __future__ import annotations

import posixpath
import shlex
from pathlib import Path
from typing import Optional

import paramiko
import requests

from ..config import DeployVia
from ..errors import DeploymentError
from ..paths import get_downloads_dir
from .base import DeploymentStrategy

ARCHIVE_NAME = "repo.tar.gz"
DOWNLOAD_TIMEOUT = 60
CHUNK_SIZE = 64 * 1024


def archive_url(repo_url: str, branch: str) -> str:
    """Build the forge archive URL for ``branch``.

    ``git@host:owner/repo.git`` is rewritten to ``https://host/owner/repo``.
    """
    base = repo_url.strip().rstrip("/")
    if base.startswith("git@") and ":" in base:
        host, path = base[len("git@"):].split(":", 1)
        base = f"https://{host}/{path}"
    if base.endswith(".git"):
        base = base[: -len(".git")]
    return f"{base}/archive/refs/heads/{branch}.tar.gz"


class TarballSyncStrategy(DeploymentStrategy):
    """No VCS metadata reaches the target, so the revision hint is empty."""

    deploy_via = DeployVia.TARBALL_SYNC

    http: Optional[requests.Session] = None
    download_dir: Optional[Path] = None

    def materialize(self, release_dir: str) -> str:
        token = posixpath.basename(release_dir.rstrip("/"))
        local_path = self._download(token)
        try:
            self._upload(local_path, release_dir)
        finally:
            local_path.unlink(missing_ok=True)
        self._extract(release_dir)
        return ""

    def _download(self, token: str) -> Path:
        task = "tarball:download"
        self.runner.section(task)
        repository = self.config.repository
        url = archive_url(repository.repo_url or "", repository.branch)
        target_dir = self.download_dir or get_downloads_dir()
        local_path = target_dir / f"{self.config.application or 'app'}-{token}.tar.gz"

        self.log.command(1, f"GET {url}")
        http = self.http or requests.Session()
        try:
            with http.get(url, stream=True, timeout=DOWNLOAD_TIMEOUT) as response:
                if not response.ok:
                    raise DeploymentError(
                        f"Failed to download {url}: HTTP {response.status_code} {response.reason}",
                        task,
                        1,
                    )
                with local_path.open("wb") as handle:
                    for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
                        if chunk:
                            handle.write(chunk)
        except requests.RequestException as exc:
            self.log.error(f"Download failed: {exc}")
            raise DeploymentError(f"Failed to download {url}: {exc}", task, 1) from exc
        except OSError as exc:
            raise DeploymentError(f"Could not write {local_path}: {exc}", task, 1) from exc

        self.log.success(1, "localhost")
        self.log.info(f"Tarball saved to {local_path}")
        return local_path

    def _upload(self, local_path: Path, release_dir: str) -> None:
        task = "tarball:upload"
        self.runner.section(task)
        remote_path = posixpath.join(release_dir, ARCHIVE_NAME)
        self.log.command(1, f"upload {local_path} -> {remote_path}")
        try:
            if not self.transfer.exists(release_dir):
                self.transfer.makedirs(release_dir)
            self.transfer.put_file(str(local_path), remote_path)
        except (OSError, paramiko.SSHException) as exc:
            self.log.error(f"Upload failed: {exc}")
            raise DeploymentError(f"Failed to upload tarball: {exc}", task, 1) from exc
        self.log.success(1, self.runner.label)

    def _extract(self, release_dir: str) -> None:
        task = "tarball:extract"
        self.runner.section(task)
        self.runner.run_step(
            task,
            1,
            f"cd {shlex.quote(release_dir)} && tar -xzf {ARCHIVE_NAME} "
            f"--strip-components=1 && rm {ARCHIVE_NAME}",
        )
