"""Release lifecycle: directories, shared links, promotion and history."""

from __future__ import annotations

import posixpath
import shlex
from typing import TYPE_CHECKING, List, Optional

from ..errors import DeploymentError
from .models import (
    SHARED_DIRS,
    SHARED_FILES,
    SHARED_PUBLIC_DIR,
    SHARED_RESOURCE_DIRS,
    ProjectLayout,
    Release,
    SharedLink,
    token_from_listing,
)

if TYPE_CHECKING:
    from ..execution.step_runner import StepRunner
    from ..utils.logging import DeployLogger


def _q(value: str) -> str:
    return shlex.quote(value)


class ReleaseManager:
    """Owns the project folder layout on the target host.

    Release History is whatever ``releases/`` holds on disk; the Current
    Pointer is the ``current`` symlink. Every command goes through the step
    runner, so failures surface as DeploymentError.
    """

    def __init__(
        self,
        runner: "StepRunner",
        layout: ProjectLayout,
        log: "DeployLogger",
        *,
        username: str = "",
    ) -> None:
        self.runner = runner
        self.layout = layout
        self.log = log
        self.username = username

    # -- directory preparation ---------------------------------------------

    def ensure_directories(self) -> None:
        task = "deploy:check:directories"
        self.runner.section(task)
        self.runner.run_step(
            task, 1, f"mkdir -p {_q(self.layout.shared_dir)} {_q(self.layout.releases_dir)}"
        )

    def ensure_linked_directories(self) -> None:
        task = "deploy:check:linked_dirs"
        self.runner.section(task)
        self.runner.run_step(
            task, 1, f"mkdir -p {_q(self.layout.shared_path(SHARED_PUBLIC_DIR))}"
        )

    def ensure_linked_resource_dirs(self) -> None:
        task = "deploy:check:make_linked_dirs"
        self.runner.section(task)
        paths = " ".join(_q(self.layout.shared_path(name)) for name in SHARED_RESOURCE_DIRS)
        self.runner.run_step(task, 1, f"mkdir -p {paths}")

    def create_release(self, token: str) -> str:
        task = "deploy:create:release_dir"
        release_dir = self.layout.release_dir(token)
        self.runner.section(task)
        self.runner.run_step(task, 1, f"mkdir -p {_q(release_dir)}")
        return release_dir

    # -- revision markers ----------------------------------------------------

    def stamp_revision(self, release_dir: str, token: str, revision_hint: str = "") -> str:
        """Write REVISION and REVISION_TIME into the release.

        The revision is read from ``git rev-parse HEAD`` when the release
        carries git metadata; otherwise ``revision_hint`` (possibly empty)
        is recorded.
        """
        task = "deploy:set_current_revision"
        self.runner.section(task)
        git_dir = posixpath.join(release_dir, ".git")
        if self.path_exists(task, 1, git_dir):
            revision = self.runner.run_step_capture(
                task, 2, f"cd {_q(release_dir)} && git rev-parse HEAD"
            ).strip()
        else:
            self.log.info("No git metadata in release, recording the strategy revision hint")
            revision = revision_hint.strip()
        self.runner.run_step(
            task, 3, f"echo {_q(revision)} > {_q(posixpath.join(release_dir, 'REVISION'))}"
        )

        task = "deploy:set_current_revision_time"
        self.runner.section(task)
        self.runner.run_step(
            task, 1, f"echo {_q(token)} > {_q(posixpath.join(release_dir, 'REVISION_TIME'))}"
        )
        return revision

    # -- shared resources ----------------------------------------------------

    def link_shared_files(self, release_dir: str) -> None:
        self._link_all("deploy:symlink:linked_files", release_dir, SHARED_FILES)

    def link_shared_dirs(self, release_dir: str) -> None:
        self._link_all("deploy:symlink:linked_dirs", release_dir, SHARED_DIRS)

    def link_public_resources(self, release_dir: str) -> List[str]:
        """Link every entry of shared/public into the release's public dir."""
        task = "deploy:symlink:public_resources"
        self.runner.section(task)
        shared_public = self.layout.shared_path(SHARED_PUBLIC_DIR)
        listing = self.runner.run_step_capture(
            task, 1, f"find {_q(shared_public)} -mindepth 1 -maxdepth 1"
        )
        resources = [line.strip() for line in listing.splitlines() if line.strip()]
        if not resources:
            self.log.info(f"No resources in {shared_public}")
            return []

        release_public = posixpath.join(release_dir, SHARED_PUBLIC_DIR)
        self.runner.run_step(task, 2, f"mkdir -p {_q(release_public)}")
        linked = []
        for step, resource in enumerate(resources, start=3):
            name = posixpath.basename(resource.rstrip("/"))
            link = posixpath.join(release_public, name)
            self.runner.run_step(task, step, f"ln -sfn {_q(resource)} {_q(link)}")
            linked.append(name)
        return linked

    def _link_all(self, task: str, release_dir: str, links: tuple) -> None:
        self.runner.section(task)
        for step, shared in enumerate(links, start=1):
            self.runner.run_step(task, step, self._link_command(release_dir, shared))

    def _link_command(self, release_dir: str, shared: SharedLink) -> str:
        target = self.layout.shared_path(shared.target)
        link = posixpath.join(release_dir, shared.link)
        command = f"ln -sfn {_q(target)} {_q(link)}"
        parent = posixpath.dirname(shared.link)
        if parent:
            command = f"mkdir -p {_q(posixpath.join(release_dir, parent))} && {command}"
        return command

    # -- current pointer ---------------------------------------------------

    def promote(self, release_dir: str) -> None:
        """Point ``current`` at ``release_dir`` with a single rename.

        A temporary symlink is created next to ``current`` and renamed over
        it, so ``current`` is never missing.
        """
        task = "deploy:symlink:release"
        self.runner.section(task)
        current = self.layout.current_link
        staging = posixpath.join(self.layout.root, ".current.tmp")
        self.runner.run_step(
            task,
            1,
            f"ln -sfn {_q(release_dir)} {_q(staging)} && mv -Tf {_q(staging)} {_q(current)}",
        )

    def current_release(self) -> Optional[str]:
        task = "deploy:current_release"
        self.runner.section(task)
        token = self._read_current_token(task, 1)
        if token is None:
            self.log.info("No current release")
            return None
        self.log.info(f"Current release: {token}")
        return token

    # -- history ---------------------------------------------------------------

    def get_release_ids(self) -> List[str]:
        task = "deploy:get_releases"
        self.runner.section(task)
        releases = self._list_release_ids(task, 1)
        self.log.info(f"Releases: {', '.join(releases) if releases else '(none)'}")
        return releases

    def history(self) -> List[Release]:
        return [
            Release(token=token, path=self.layout.release_dir(token))
            for token in self.get_release_ids()
        ]

    def _list_release_ids(self, task: str, step: int) -> List[str]:
        listing = self.runner.run_step_capture(
            task, step, f"ls -d {_q(self.layout.releases_dir)}/*/ 2>/dev/null || true"
        )
        tokens = [token_from_listing(line) for line in listing.splitlines()]
        return sorted(token for token in tokens if token)

    def cleanup(self, keep: int) -> List[str]:
        """Delete every release except the ``keep`` newest; return the removed tokens.

        The active release is not protected: a retention of 0 removes it too.
        """
        task = "deploy:cleanup"
        self.runner.section(task)
        newest_first = sorted(self._list_release_ids(task, 1), reverse=True)
        stale = newest_first[max(keep, 0):]
        if not stale:
            self.log.info(f"Keeping {len(newest_first)} release(s), nothing to remove")
            return []

        current = self._read_current_token(task, 2)
        if current in stale:
            self.log.warning(f"Removing the active release {current}; current will dangle")

        names = " ".join(_q(token) for token in stale)
        self.runner.run_step(task, 3, f"cd {_q(self.layout.releases_dir)} && rm -rf -- {names}")
        self.log.info(f"Removed releases: {', '.join(stale)}")
        return stale

    def _read_current_token(self, task: str, step: int) -> Optional[str]:
        target = self.runner.run_step_capture(
            task, step, f"readlink {_q(self.layout.current_link)} || true"
        ).strip()
        return posixpath.basename(target.rstrip("/")) if target else None

    # -- revision log ------------------------------------------------------

    def append_revision_log(self, message: str) -> None:
        task = "deploy:log_revision"
        self.runner.section(task)
        self.runner.run_step(
            task, 1, f"echo {_q(message)} >> {_q(self.layout.revision_log)}"
        )

    def log_deploy(self, branch: str, revision: str, token: str) -> None:
        self.append_revision_log(
            f"Branch {branch} (at {revision}) deployed as release {token} by {self.username}"
        )

    def _append_revision_log_safely(self, message: str) -> None:
        try:
            self.append_revision_log(message)
        except DeploymentError as exc:
            self.log.error(f"Error writing revisions log: {exc}")

    # -- rollback / switch ---------------------------------------------------

    def rollback(self) -> Optional[str]:
        """Re-promote the release right before the active one.

        Returns the token now active, or None when there is nothing to roll
        back to or the active release is not part of the history.
        """
        task = "deploy:rollback"
        current = self.current_release()
        releases = self.get_release_ids()
        self.runner.section(task)

        if current is None or current not in releases:
            self.log.warning(f"Current release {current!r} not found in the list of releases")
            return None
        index = releases.index(current)
        if index == 0:
            self.log.info("Current release is the oldest release available. Nothing to roll back to.")
            return None

        previous = releases[index - 1]
        self.log.info(f"Current release: {current}, previous release: {previous}")
        self.promote(self.layout.release_dir(previous))
        self._append_revision_log_safely(
            f"Rolled back release {current} to release {previous} by {self.username}"
        )
        return previous

    def switch_release(self, token: str, *, strict: bool = False) -> Optional[str]:
        """Point ``current`` at ``releases/<token>``; return the previous token.

        Without ``strict`` a token missing from the history is only warned
        about and ``current`` ends up dangling.
        """
        task = "deploy:switch_release"
        if not token or "/" in token:
            raise DeploymentError(f"Invalid release id: {token!r}", task, 1)

        current = self.current_release()
        releases = self.get_release_ids()
        self.runner.section(task)
        if token not in releases:
            if strict:
                raise DeploymentError(f"Release {token} does not exist", task, 1)
            self.log.warning(f"Release {token} is not in the release history")

        self.log.info(f"Current release: {current}, target release: {token}")
        self.promote(self.layout.release_dir(token))
        self._append_revision_log_safely(
            f"Switched from release {current} to release {token} by {self.username}"
        )
        return current

    # -- helpers -----------------------------------------------------------------

    def path_exists(self, task: str, step: int, path: str) -> bool:
        answer = self.runner.run_step_capture(
            task, step, f"if [ -e {_q(path)} ]; then echo yes; else echo no; fi"
        )
        return answer.strip() == "yes"
