"""SSH credential helpers."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from ..config import ConnectionConfig


@dataclass
class SSHCredentials:
    """Normalized credential payload from CLI/config."""

    host: str
    username: str
    port: int = 22
    auth_method: str = "agent"
    password: Optional[str] = None
    key_path: Optional[str] = None
    passphrase: Optional[str] = None
    agent_forward: bool = False
    timeout: int = 20

    @classmethod
    def from_config(cls, connection: "ConnectionConfig") -> "SSHCredentials":
        return cls(
            host=connection.host or "",
            username=connection.username or "",
            port=connection.port,
            auth_method=connection.auth_method,
            password=connection.password,
            key_path=connection.key_path,
            passphrase=connection.passphrase,
            agent_forward=connection.agent_forward,
            timeout=connection.timeout,
        )

    @property
    def label(self) -> str:
        return f"{self.username}@{self.host}"

    def validate(self) -> None:
        if self.auth_method == "password" and not self.password:
            raise ValueError("Password authentication selected but no password provided")
        if self.auth_method == "key" and not self.key_path:
            raise ValueError("Key authentication selected but no key_path provided")
