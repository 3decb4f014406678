"""Logging helpers."""

from __future__ import annotations

import logging
import time
from typing import Callable, Optional

_LOGGING_CONFIGURED = False


def get_logger(name: Optional[str] = None) -> logging.Logger:
    global _LOGGING_CONFIGURED
    if not _LOGGING_CONFIGURED:
        logging.basicConfig(
            level=logging.INFO,
            format="[%(asctime)s] %(levelname)s %(name)s - %(message)s",
        )
        _LOGGING_CONFIGURED = True
    return logging.getLogger(name)


class DeployLogger:
    """Progress log for one deployer invocation.

    Every component receives the same instance so sections, step numbers and
    the elapsed-time prefix stay consistent across a run.
    """

    def __init__(
        self,
        logger: Optional[logging.Logger] = None,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.logger = logger or get_logger("release_deployer")
        self._clock = clock
        self._started = clock()

    def elapsed(self) -> str:
        seconds = int(self._clock() - self._started)
        return f"{seconds // 60:02d}:{seconds % 60:02d}"

    def section(self, task: str) -> None:
        self.logger.info("%s %s", self.elapsed(), task)

    def command(self, step: int, command: str) -> None:
        self.logger.info("  %02d %s", step, command)

    def success(self, step: int, label: str) -> None:
        self.logger.info("  ✔ %02d %s", step, label)

    def info(self, message: str) -> None:
        for line in message.splitlines() or [""]:
            self.logger.info("      %s", line)

    def warning(self, message: str) -> None:
        self.logger.warning("      %s", message)

    def error(self, message: str) -> None:
        self.logger.error("  ✗ %s", message)
