"""Remote executor: one shell command at a time over an open session."""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional, Protocol

from ..errors import ExecutionError

if TYPE_CHECKING:
    from ..utils.logging import DeployLogger
    from ..utils.streams import LineCallback


class CommandResult(Protocol):
    command: str
    stdout: str
    stderr: str
    exit_status: int

    @property
    def ok(self) -> bool: ...


class CommandSession(Protocol):
    """What the executor needs from SSHSession / LocalSession."""

    @property
    def label(self) -> str: ...

    def run(
        self,
        command: str,
        *,
        on_stdout: Optional["LineCallback"] = None,
        on_stderr: Optional["LineCallback"] = None,
    ) -> CommandResult: ...


class RemoteExecutor:
    """Runs commands and turns non-zero exits into ExecutionError.

    stdout lines are logged as info. stderr lines mentioning "error" are
    logged as errors and everything else on stderr as warnings; git and npm
    write progress to stderr, so this is only a heuristic.
    """

    def __init__(self, session: CommandSession, log: "DeployLogger") -> None:
        self.session = session
        self.log = log
        self._in_flight: Optional[str] = None

    @property
    def label(self) -> str:
        return self.session.label

    def run(self, command: str) -> str:
        if self._in_flight is not None:
            raise RuntimeError(
                f"Cannot run {command!r} while {self._in_flight!r} is still running"
            )
        self._in_flight = command
        try:
            result = self.session.run(
                command,
                on_stdout=self.log.info,
                on_stderr=self._log_stderr,
            )
        finally:
            self._in_flight = None

        if not result.ok:
            raise ExecutionError(command, result.exit_status, result.stderr.strip())
        return result.stdout.strip()

    def _log_stderr(self, line: str) -> None:
        if "error" in line.lower():
            self.log.error(line)
        else:
            self.log.warning(line)
