"""Remote host probing utilities."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, List

from ..errors import SSHConnectionError

if TYPE_CHECKING:
    from ..execution.executor import CommandSession
    from ..utils.logging import DeployLogger


@dataclass
class AgentFacts:
    identities: List[str]

    def to_payload(self) -> dict:
        return {"identities": list(self.identities)}


class AgentForwardingProbe:
    """Checks that a forwarded SSH agent exposes at least one identity.

    Git clones over SSH on the target host rely on the forwarded agent, so a
    missing identity is reported as a connection problem before any remote
    state is touched.
    """

    command = "ssh-add -l"

    def collect(self, session: "CommandSession", log: "DeployLogger") -> AgentFacts:
        log.info(f"Testing agent forwarding on {session.label}")
        result = session.run(self.command)
        output = f"{result.stdout}\n{result.stderr}"
        if not result.ok or "no identities" in output.lower():
            detail = (result.stdout or result.stderr or f"exit code {result.exit_status}").strip()
            log.error(f"Agent forwarding test failed on {session.label}: {detail}")
            raise SSHConnectionError(f"Agent forwarding test failed: {detail}")

        identities = [line.strip() for line in result.stdout.splitlines() if line.strip()]
        log.info(f"Agent forwarding test passed ({len(identities)} identities)")
        return AgentFacts(identities=identities)
