"""SSH utilities for release-deployer."""

from ..errors import SSHConnectionError
from .credentials import SSHCredentials
from .session import SSHCommandResult, SSHSession
from .probe import AgentFacts, AgentForwardingProbe

__all__ = [
    "SSHCredentials",
    "SSHCommandResult",
    "SSHConnectionError",
    "SSHSession",
    "AgentFacts",
    "AgentForwardingProbe",
]
