"""Step runner: the single choke point for every pipeline command."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from ..errors import DeploymentError, ExecutionError

if TYPE_CHECKING:
    from ..utils.logging import DeployLogger
    from .executor import RemoteExecutor

logger = logging.getLogger(__name__)


class StepRunner:
    """Runs numbered task steps through the executor.

    The command is logged before it runs and a success marker afterwards.
    An ExecutionError is re-raised as DeploymentError carrying the task name
    and step index; connection errors pass through untouched.
    """

    def __init__(self, executor: "RemoteExecutor", log: "DeployLogger") -> None:
        self.executor = executor
        self.log = log

    @property
    def label(self) -> str:
        return self.executor.label

    def section(self, task: str) -> None:
        self.log.section(task)

    def run_step(self, task: str, step: int, command: str) -> None:
        self.run_step_capture(task, step, command)

    def run_step_capture(self, task: str, step: int, command: str) -> str:
        self.log.command(step, command)
        try:
            output = self.executor.run(command)
        except ExecutionError as exc:
            self.log.error(f"Command failed: {exc}")
            raise DeploymentError(str(exc), task, step) from exc
        self.log.success(step, self.label)
        logger.debug("%s #%02d finished: %s", task, step, command)
        return output
