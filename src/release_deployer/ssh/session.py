"""SSH session management built on Paramiko."""

from __future__ import annotations

import posixpath
import socket
import time
from dataclasses import dataclass
from typing import Callable, Optional

import paramiko
from paramiko.agent import AgentRequestHandler

from ..errors import SSHConnectionError
from ..utils.streams import LineBuffer, LineCallback
from .credentials import SSHCredentials


@dataclass
class SSHCommandResult:
    command: str
    stdout: str
    stderr: str
    exit_status: int

    @property
    def ok(self) -> bool:
        return self.exit_status == 0


class SSHSession:
    """High-level wrapper around paramiko.SSHClient.

    Runs one command at a time on a dedicated channel and exposes the small
    SFTP surface the copy and tarball strategies need.
    """

    def __init__(
        self,
        credentials: SSHCredentials,
        *,
        client_factory: Callable[[], paramiko.SSHClient] | None = None,
        poll_interval: float = 0.05,
    ) -> None:
        self.credentials = credentials
        self._client_factory = client_factory or paramiko.SSHClient
        self._client: Optional[paramiko.SSHClient] = None
        self._sftp: Optional[paramiko.SFTPClient] = None
        self._poll_interval = poll_interval

    @property
    def label(self) -> str:
        return self.credentials.label

    def __enter__(self) -> "SSHSession":
        self.connect()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:  # type: ignore[override]
        self.close()

    def connect(self) -> None:
        if self._client:
            return
        client = self._client_factory()
        client.set_missing_host_key_policy(paramiko.AutoAddPolicy())
        try:
            connect_kwargs = {
                "hostname": self.credentials.host,
                "port": self.credentials.port,
                "username": self.credentials.username,
                "timeout": self.credentials.timeout,
                "look_for_keys": False,
                "allow_agent": False,
            }
            if self.credentials.auth_method == "password":
                connect_kwargs["password"] = self.credentials.password
            elif self.credentials.auth_method == "key":
                connect_kwargs["key_filename"] = self.credentials.key_path
                if self.credentials.passphrase:
                    connect_kwargs["passphrase"] = self.credentials.passphrase
            else:
                connect_kwargs["allow_agent"] = True
                connect_kwargs["look_for_keys"] = True
            client.connect(**connect_kwargs)
        except Exception as exc:  # pragma: no cover - network errors hard to simulate
            client.close()
            raise self._connection_error(f"SSH Connection Error: {exc}") from exc
        self._client = client

    def close(self) -> None:
        if self._sftp:
            self._sftp.close()
            self._sftp = None
        if self._client:
            self._client.close()
            self._client = None

    def run(
        self,
        command: str,
        *,
        on_stdout: Optional[LineCallback] = None,
        on_stderr: Optional[LineCallback] = None,
    ) -> SSHCommandResult:
        """
        Execute a command on the remote server.

        Output is delivered line by line to ``on_stdout``/``on_stderr`` while
        the command runs. There is no timeout: a command that never exits
        blocks the caller.
        """
        if not self._client:
            self.connect()
        assert self._client is not None

        stdout = LineBuffer(on_stdout)
        stderr = LineBuffer(on_stderr)
        try:
            transport = self._client.get_transport()
            if transport is None or not transport.is_active():
                raise self._connection_error("SSH transport is not active")
            channel = transport.open_session()
            try:
                if self.credentials.agent_forward:
                    AgentRequestHandler(channel)
                channel.exec_command(command)

                while not channel.exit_status_ready():
                    has_activity = self._drain(channel, stdout, stderr)
                    if not has_activity:
                        time.sleep(self._poll_interval)

                # 读取剩余输出
                self._drain(channel, stdout, stderr)
                exit_status = channel.recv_exit_status()
            finally:
                channel.close()
        except (paramiko.SSHException, socket.error) as exc:
            raise self._connection_error(f"SSH channel failed: {exc}") from exc

        stdout.flush()
        stderr.flush()
        return SSHCommandResult(
            command=command,
            stdout=stdout.text().strip(),
            stderr=stderr.text().strip(),
            exit_status=exit_status,
        )

    # -- file transfer -------------------------------------------------

    def exists(self, remote_path: str) -> bool:
        try:
            self._open_sftp().stat(remote_path)
        except FileNotFoundError:
            return False
        return True

    def makedirs(self, remote_path: str) -> None:
        sftp = self._open_sftp()
        current = "/" if remote_path.startswith("/") else ""
        for part in [p for p in remote_path.split("/") if p]:
            current = posixpath.join(current, part) if current else part
            if not self.exists(current):
                sftp.mkdir(current)

    def put_file(self, local_path: str, remote_path: str) -> None:
        self._open_sftp().put(local_path, remote_path)

    def _open_sftp(self) -> paramiko.SFTPClient:
        if not self._client:
            self.connect()
        assert self._client is not None
        if self._sftp is None:
            self._sftp = self._client.open_sftp()
        return self._sftp

    @staticmethod
    def _drain(channel: paramiko.Channel, stdout: LineBuffer, stderr: LineBuffer) -> bool:
        has_activity = False
        while channel.recv_ready():
            stdout.feed(channel.recv(4096))
            has_activity = True
        while channel.recv_stderr_ready():
            stderr.feed(channel.recv_stderr(4096))
            has_activity = True
        return has_activity

    def _connection_error(self, message: str) -> SSHConnectionError:
        return SSHConnectionError(
            message,
            host=self.credentials.host,
            port=self.credentials.port,
            username=self.credentials.username,
        )
