"""Error types raised while deploying releases."""

from __future__ import annotations

from datetime import datetime
from typing import Optional


class DeployerError(RuntimeError):
    """Base class for every error raised by release-deployer."""

    pass


class ConfigurationError(DeployerError):
    """Raised when the deployment configuration is unusable.

    Always raised before a connection to the target host is opened.
    """

    pass


class SSHConnectionError(DeployerError):
    """Raised when the transport to the target host cannot be used."""

    def __init__(
        self,
        message: str,
        *,
        host: Optional[str] = None,
        port: Optional[int] = None,
        username: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.host = host
        self.port = port
        self.username = username
        self.timestamp = datetime.now()


class ExecutionError(DeployerError):
    """Raised when a remote command exits with a non-zero status."""

    def __init__(self, command: str, exit_code: int, stderr: str) -> None:
        self.command = command
        self.exit_code = exit_code
        self.stderr = stderr
        detail = f": {stderr}" if stderr else ""
        super().__init__(f"Command failed with code {exit_code}{detail}")


class DeploymentError(DeployerError):
    """A named deployment task failed at a given step."""

    def __init__(self, message: str, task: str, step: int) -> None:
        super().__init__(message)
        self.message = message
        self.task = task
        self.step = step
        self.timestamp = datetime.now()

    def __str__(self) -> str:
        return f"[{self.task} #{self.step:02d}] {self.message}"
