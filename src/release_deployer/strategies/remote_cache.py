"""Remote cache strategy placeholder."""

from __future__ import annotations

from ..config import DeployVia
from .base import DeploymentStrategy


class RemoteCacheStrategy(DeploymentStrategy):
    """Would reuse a source cache kept on the target host.

    Registered so the key resolves, but rejected by ``resolve_strategy``
    before any connection is opened.
    """

    deploy_via = DeployVia.REMOTE_CACHE
    implemented = False

    def materialize(self, release_dir: str) -> str:
        raise NotImplementedError("The remote_cache deploy method is not implemented")
