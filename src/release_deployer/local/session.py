"""Local command execution session."""

from __future__ import annotations

import getpass
import os
import selectors
import shutil
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from ..utils.streams import LineBuffer, LineCallback


@dataclass
class LocalCommandResult:
    """Result of executing a local command."""
    command: str
    stdout: str
    stderr: str
    exit_status: int

    @property
    def ok(self) -> bool:
        return self.exit_status == 0


class LocalSession:
    """
    Local command execution session.

    Provides the same interface as SSHSession but executes commands through
    bash on this machine, and copies files with shutil instead of SFTP.
    """

    def __init__(self, working_dir: Optional[str] = None) -> None:
        """
        Initialize local session.

        Args:
            working_dir: Working directory for commands. Defaults to home directory.
        """
        self.working_dir = working_dir or os.path.expanduser("~")
        self._connected = False

    @property
    def label(self) -> str:
        return f"{getpass.getuser()}@localhost"

    def connect(self) -> None:
        """No-op for local session (for API compatibility with SSHSession)."""
        self._connected = True

    def close(self) -> None:
        """No-op for local session (for API compatibility with SSHSession)."""
        self._connected = False

    def __enter__(self) -> "LocalSession":
        self.connect()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def run(
        self,
        command: str,
        *,
        on_stdout: Optional[LineCallback] = None,
        on_stderr: Optional[LineCallback] = None,
    ) -> LocalCommandResult:
        """Run ``command`` with bash, streaming output lines to the callbacks."""
        process = subprocess.Popen(
            command,
            shell=True,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            cwd=self.working_dir,
            executable="/bin/bash",
        )
        assert process.stdout is not None and process.stderr is not None

        buffers = {
            process.stdout: LineBuffer(on_stdout),
            process.stderr: LineBuffer(on_stderr),
        }
        sel = selectors.DefaultSelector()
        try:
            for stream in buffers:
                sel.register(stream, selectors.EVENT_READ)
            open_streams = len(buffers)
            while open_streams:
                for key, _ in sel.select():
                    data = os.read(key.fileobj.fileno(), 4096)  # type: ignore[union-attr]
                    if data:
                        buffers[key.fileobj].feed(data)  # type: ignore[index]
                    else:
                        sel.unregister(key.fileobj)
                        open_streams -= 1
            exit_status = process.wait()
        finally:
            sel.close()
            process.stdout.close()
            process.stderr.close()

        stdout, stderr = buffers[process.stdout], buffers[process.stderr]
        stdout.flush()
        stderr.flush()
        return LocalCommandResult(
            command=command,
            stdout=stdout.text().strip(),
            stderr=stderr.text().strip(),
            exit_status=exit_status,
        )

    # -- file transfer -------------------------------------------------

    def exists(self, path: str) -> bool:
        return os.path.lexists(self._resolve(path))

    def makedirs(self, path: str) -> None:
        os.makedirs(self._resolve(path), exist_ok=True)

    def put_file(self, local_path: str, remote_path: str) -> None:
        shutil.copyfile(local_path, self._resolve(remote_path))

    def _resolve(self, path: str) -> str:
        return str(Path(self.working_dir) / path)
