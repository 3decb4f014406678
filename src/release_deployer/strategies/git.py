"""Git strategy: clone or pull the configured branch on the target host."""

from __future__ import annotations

import posixpath
import shlex

from ..config import DeployVia
from .base import DeploymentStrategy


class GitStrategy(DeploymentStrategy):
    """Clones into a fresh release; pulls when the release already has a checkout."""

    deploy_via = DeployVia.GIT

    def materialize(self, release_dir: str) -> str:
        repository = self.config.repository
        branch = shlex.quote(repository.branch)

        self.log.info("Starting Git deployment...")
        self.runner.section("git:check")
        has_checkout = self.releases.path_exists(
            "git:check", 1, posixpath.join(release_dir, ".git")
        )

        if has_checkout:
            task = "git:pull"
            command = f"cd {shlex.quote(release_dir)} && git pull origin {branch}"
        else:
            task = "git:clone"
            command = (
                f"git clone --branch {branch} "
                f"{shlex.quote(repository.repo_url or '')} {shlex.quote(release_dir)}"
            )
        self.runner.section(task)
        self.runner.run_step(task, 1, command)
        # REVISION is read from the checkout by ReleaseManager.stamp_revision.
        return ""
