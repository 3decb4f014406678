"""High-level workflow: deploy, list, rollback and switch."""

from __future__ import annotations

import getpass
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Iterator, List, Optional, Union

from .config import DeployConfig
from .execution import RemoteExecutor, StepRunner
from .interaction import (
    CLIInteractionHandler,
    InputType,
    InteractionRequest,
    QuestionCategory,
    UserInteractionHandler,
)
from .local import LocalSession
from .orchestrator import DeploymentPipeline, PipelineResult
from .releases import ProjectLayout, ReleaseManager
from .ssh import AgentForwardingProbe, SSHCredentials, SSHSession
from .utils.logging import DeployLogger, get_logger

logger = get_logger(__name__)

Session = Union[SSHSession, LocalSession]


@dataclass
class ReleaseListing:
    """Release History of the project plus the active token."""

    releases: List[str] = field(default_factory=list)
    current: Optional[str] = None


class DeploymentWorkflow:
    """Entry points behind the CLI commands.

    Every operation validates the configuration before opening a session
    and closes the session when it is done.
    """

    def __init__(
        self,
        config: DeployConfig,
        *,
        local: bool = False,
        session_factory: Optional[Callable[[], Session]] = None,
        log: Optional[DeployLogger] = None,
        clock: Optional[Callable[[], datetime]] = None,
        interaction_handler: Optional[UserInteractionHandler] = None,
    ) -> None:
        self.config = config
        self.local = local
        self.session_factory = session_factory or self._default_session_factory()
        self.log = log or DeployLogger()
        self.clock = clock
        # 用户交互处理器 - 默认使用 CLI
        self.interaction_handler = interaction_handler or CLIInteractionHandler()

    def deploy(self) -> PipelineResult:
        """Run the release pipeline once."""
        self._validate()
        logger.info("Deploying %s to %s", self.config.application, self.config.project_folder)
        kwargs = {"clock": self.clock} if self.clock else {}
        pipeline = DeploymentPipeline(
            self.config,
            self.session_factory,
            self.log,
            agent_probe=None if self.local else AgentForwardingProbe(),
            username=self._username(),
            **kwargs,
        )
        return pipeline.run()

    def list_releases(self) -> ReleaseListing:
        self._validate()
        with self._release_manager() as releases:
            return ReleaseListing(
                releases=releases.get_release_ids(),
                current=releases.current_release(),
            )

    def rollback(self) -> Optional[str]:
        """Re-promote the previous release; None when nothing changed."""
        self._validate()
        with self._release_manager() as releases:
            return releases.rollback()

    def switch(self, release_id: Optional[str] = None, *, strict: bool = False) -> Optional[str]:
        """
        Point current at ``release_id``.

        Without an id the releases are listed and the operator picks one.

        Returns:
            The token now active, or None when the operator cancelled
        """
        self._validate()
        with self._release_manager() as releases:
            if not release_id:
                release_id = self._choose_release(releases)
                if release_id is None:
                    self.interaction_handler.notify("Switch cancelled", "warning")
                    return None
            releases.switch_release(release_id, strict=strict)
            return release_id

    def _choose_release(self, releases: ReleaseManager) -> Optional[str]:
        available = releases.get_release_ids()
        if not available:
            self.interaction_handler.notify("No releases to switch to", "warning")
            return None
        current = releases.current_release()
        request = InteractionRequest(
            question="Which release should become current?",
            input_type=InputType.CHOICE,
            options=list(reversed(available)),
            category=QuestionCategory.DECISION,
            context=f"Current release: {current or '(none)'}",
        )
        response = self.interaction_handler.ask(request)
        if response.cancelled or not response.value:
            return None
        return response.value

    @contextmanager
    def _release_manager(self) -> Iterator[ReleaseManager]:
        with self.session_factory() as session:
            runner = StepRunner(RemoteExecutor(session, self.log), self.log)
            yield ReleaseManager(
                runner,
                ProjectLayout(self.config.project_folder),
                self.log,
                username=self._username(),
            )

    def _validate(self) -> None:
        self.config.validate(require_connection=not self.local)

    def _username(self) -> str:
        if self.config.connection.username:
            return self.config.connection.username
        return getpass.getuser() if self.local else ""

    def _default_session_factory(self) -> Callable[[], Session]:
        if self.local:
            return lambda: LocalSession(working_dir="/")
        return lambda: SSHSession(SSHCredentials.from_config(self.config.connection))
