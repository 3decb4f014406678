"""Deployment pipeline: the ordered release steps of one deploy run."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Callable, List, Optional, Union

from ..config import DeployVia
from ..errors import DeployerError, SSHConnectionError
from ..execution import RemoteExecutor, StepRunner
from ..releases import ProjectLayout, ReleaseManager, make_release_token
from ..strategies import DeploymentStrategy, resolve_strategy
from .models import (
    DeployContext,
    DeployState,
    PipelineResult,
    PipelineStatus,
    PipelineStep,
    StepRecord,
    StepStatus,
)

if TYPE_CHECKING:
    from ..config import DeployConfig
    from ..local import LocalSession
    from ..ssh import AgentForwardingProbe, SSHSession
    from ..utils.logging import DeployLogger

    Session = Union[SSHSession, LocalSession]

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class DeploymentPipeline:
    """
    Runs one deploy from Connect to Disconnect.

    Steps execute strictly in order through a single step runner. Fatal
    steps stop the run; best-effort steps are logged and the next step still
    runs. A connection error stops the run from any step. The session is
    closed on every exit path.
    """

    def __init__(
        self,
        config: "DeployConfig",
        session_factory: Callable[[], "Session"],
        log: "DeployLogger",
        *,
        clock: Callable[[], datetime] = _utcnow,
        agent_probe: Optional["AgentForwardingProbe"] = None,
        username: Optional[str] = None,
    ) -> None:
        self.config = config
        self.session_factory = session_factory
        self.log = log
        self.clock = clock
        self.agent_probe = agent_probe
        self.username = username if username is not None else config.connection.username or ""

    def run(self) -> PipelineResult:
        """
        Execute the pipeline.

        Raises:
            ConfigurationError: Before connecting, if the strategy cannot be used

        Returns:
            PipelineResult; COMPLETED even when best-effort steps failed
        """
        strategy_cls = resolve_strategy(self.config)
        layout = ProjectLayout(self.config.project_folder)
        token = make_release_token(self.clock())
        context = DeployContext(token=token, release_dir=layout.release_dir(token))
        result = PipelineResult(
            status=PipelineStatus.FAILED, token=token, release_dir=context.release_dir
        )

        self.log.info(f"Deploying {self.config.application} as release {token}")
        session: Optional["Session"] = None
        try:
            session = self._connect(result)
            executor = RemoteExecutor(session, self.log)
            runner = StepRunner(executor, self.log)
            releases = ReleaseManager(runner, layout, self.log, username=self.username)
            strategy = strategy_cls(self.config, runner, releases, session, self.log)

            for step in self.build_steps(runner, releases, strategy):
                self._execute(step, context, result)

            result.status = PipelineStatus.COMPLETED
        except DeployerError as exc:
            result.error = str(exc)
            self.log.error(f"Deployment failed: {exc}")
        finally:
            if session is not None:
                self._disconnect(session, result)

        result.revision = context.revision
        if result.success:
            if result.warnings:
                failed = ", ".join(record.state.value for record in result.warnings)
                self.log.warning(f"Release {token} deployed with failed steps: {failed}")
            else:
                self.log.info(f"Release {token} deployed")
        return result

    def build_steps(
        self,
        runner: StepRunner,
        releases: ReleaseManager,
        strategy: DeploymentStrategy,
    ) -> List[PipelineStep]:
        """The ordered step table; ``fatal`` marks the abort-on-failure steps."""
        commands = self.config.commands
        repository = self.config.repository

        def materialize(ctx: DeployContext) -> None:
            ctx.revision_hint = strategy.materialize(ctx.release_dir)

        def stamp(ctx: DeployContext) -> None:
            ctx.revision = releases.stamp_revision(ctx.release_dir, ctx.token, ctx.revision_hint)

        def command(task: str, template: Optional[str]) -> Callable[[DeployContext], None]:
            def action(ctx: DeployContext) -> None:
                runner.section(task)
                rendered = self.config.render_command(template or "", ctx.release_dir)
                runner.run_step(task, 1, rendered)
            return action

        return [
            PipelineStep(
                DeployState.PREPARE_DIRECTORIES,
                lambda ctx: releases.ensure_directories(),
                fatal=True,
            ),
            PipelineStep(
                DeployState.PREPARE_LINKED_DIRECTORIES,
                lambda ctx: releases.ensure_linked_directories(),
                fatal=True,
            ),
            PipelineStep(
                DeployState.PREPARE_LINKED_RESOURCE_DIRS,
                lambda ctx: releases.ensure_linked_resource_dirs(),
                fatal=True,
            ),
            PipelineStep(
                DeployState.CREATE_RELEASE_DIR,
                lambda ctx: releases.create_release(ctx.token),
                fatal=True,
            ),
            PipelineStep(DeployState.MATERIALIZE_SOURCE, materialize, fatal=True),
            PipelineStep(DeployState.STAMP_REVISION, stamp, fatal=True),
            PipelineStep(
                DeployState.LINK_SHARED_FILES,
                lambda ctx: releases.link_shared_files(ctx.release_dir),
            ),
            PipelineStep(
                DeployState.LINK_SHARED_DIRS,
                lambda ctx: releases.link_shared_dirs(ctx.release_dir),
            ),
            PipelineStep(
                DeployState.INSTALL_DEPENDENCIES,
                command("deploy:install_dependencies", commands.install),
                enabled=commands.install is not None,
            ),
            PipelineStep(
                DeployState.PRECOMPILE_ASSETS,
                command("deploy:assets:precompile", commands.precompile),
                enabled=commands.precompile is not None,
            ),
            PipelineStep(
                DeployState.BACKUP_MANIFEST,
                command("deploy:assets:backup_manifest", commands.backup_manifest),
                enabled=commands.backup_manifest is not None,
            ),
            PipelineStep(
                DeployState.RUN_MIGRATIONS,
                command("deploy:migrate", commands.migrate),
                enabled=commands.migrate is not None,
            ),
            # 发布切换失败时 current 仍指向旧版本，后续步骤没有意义
            PipelineStep(
                DeployState.PROMOTE,
                lambda ctx: releases.promote(ctx.release_dir),
                fatal=True,
            ),
            PipelineStep(
                DeployState.RESTART_SERVICE,
                command("deploy:restart", commands.restart),
                enabled=commands.restart is not None,
            ),
            PipelineStep(
                DeployState.CLEANUP,
                lambda ctx: releases.cleanup(self.config.keep_releases),
            ),
            PipelineStep(
                DeployState.APPEND_AUDIT_LOG,
                lambda ctx: releases.log_deploy(repository.branch, ctx.revision, ctx.token),
            ),
            PipelineStep(
                DeployState.LINK_PUBLIC_RESOURCES,
                lambda ctx: releases.link_public_resources(ctx.release_dir),
            ),
        ]

    def _connect(self, result: PipelineResult) -> "Session":
        record = self._start(DeployState.CONNECT, fatal=True, result=result)
        try:
            session = self.session_factory()
            session.connect()
            self.log.info(f"Connected to {session.label}")
        except SSHConnectionError as exc:
            self._finish(record, StepStatus.FAILED, str(exc))
            raise

        try:
            if self._should_probe_agent():
                assert self.agent_probe is not None
                self.agent_probe.collect(session, self.log)
        except SSHConnectionError as exc:
            self._finish(record, StepStatus.FAILED, str(exc))
            session.close()
            raise
        self._finish(record, StepStatus.SUCCESS)
        return session

    def _should_probe_agent(self) -> bool:
        return (
            self.agent_probe is not None
            and self.config.connection.agent_forward
            and self.config.strategy is DeployVia.GIT
        )

    def _execute(self, step: PipelineStep, ctx: DeployContext, result: PipelineResult) -> None:
        record = self._start(step.state, fatal=step.fatal, result=result)
        if not step.enabled:
            self.log.info(f"No command configured for {step.state.value}, skipping")
            self._finish(record, StepStatus.SKIPPED)
            return

        try:
            step.action(ctx)
        except SSHConnectionError as exc:
            self._finish(record, StepStatus.FAILED, str(exc))
            raise
        except DeployerError as exc:
            self._finish(record, StepStatus.FAILED, str(exc))
            if step.fatal:
                raise
            self.log.error(f"{step.state.value} failed, continuing: {exc}")
            return
        self._finish(record, StepStatus.SUCCESS)

    def _disconnect(self, session: "Session", result: PipelineResult) -> None:
        record = self._start(DeployState.DISCONNECT, fatal=False, result=result)
        session.close()
        self.log.info(f"Disconnected from {session.label}")
        self._finish(record, StepStatus.SUCCESS)

    def _start(self, state: DeployState, *, fatal: bool, result: PipelineResult) -> StepRecord:
        record = StepRecord(
            state=state, fatal=fatal, status=StepStatus.RUNNING, started_at=self.clock()
        )
        result.steps.append(record)
        logger.debug("Entering %s", state.value)
        return record

    def _finish(self, record: StepRecord, status: StepStatus, error: Optional[str] = None) -> None:
        record.status = status
        record.error = error
        record.finished_at = self.clock()
