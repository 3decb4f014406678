"""Base class and factory for deployment strategies."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, ClassVar, Protocol, Type

from ..config import DeployVia
from ..errors import ConfigurationError

if TYPE_CHECKING:
    from ..config import DeployConfig
    from ..execution.step_runner import StepRunner
    from ..releases.manager import ReleaseManager
    from ..utils.logging import DeployLogger


class FileTransfer(Protocol):
    """Bulk file transfer to the target host (SFTP or local copy)."""

    def exists(self, path: str) -> bool: ...

    def makedirs(self, path: str) -> None: ...

    def put_file(self, local_path: str, remote_path: str) -> None: ...


class DeploymentStrategy(ABC):
    """Materializes application source code into a release directory.

    Strategies share the step runner and release manager of the run rather
    than inheriting deployment helpers.
    """

    deploy_via: ClassVar[DeployVia]
    implemented: ClassVar[bool] = True

    def __init__(
        self,
        config: "DeployConfig",
        runner: "StepRunner",
        releases: "ReleaseManager",
        transfer: FileTransfer,
        log: "DeployLogger",
    ) -> None:
        self.config = config
        self.runner = runner
        self.releases = releases
        self.transfer = transfer
        self.log = log

    @property
    def name(self) -> str:
        return self.deploy_via.value

    @abstractmethod
    def materialize(self, release_dir: str) -> str:
        """
        Put the application source into ``release_dir``.

        Returns:
            A revision hint; empty when the strategy carries no VCS identity.
        """
        pass


def strategy_class(deploy_via: DeployVia) -> Type[DeploymentStrategy]:
    """Map a DeployVia value to its strategy implementation."""
    if deploy_via is DeployVia.GIT:
        from .git import GitStrategy
        return GitStrategy
    elif deploy_via is DeployVia.COPY:
        from .copy import CopyStrategy
        return CopyStrategy
    elif deploy_via is DeployVia.TARBALL_SYNC:
        from .tarball import TarballSyncStrategy
        return TarballSyncStrategy
    elif deploy_via is DeployVia.REMOTE_CACHE:
        from .remote_cache import RemoteCacheStrategy
        return RemoteCacheStrategy
    raise ConfigurationError(f"Unsupported deploy method: {deploy_via}")


def resolve_strategy(config: "DeployConfig") -> Type[DeploymentStrategy]:
    """
    Pick the strategy class for ``config`` without touching the target host.

    Raises:
        ConfigurationError: If the key is unknown or the strategy is not implemented
    """
    cls = strategy_class(config.strategy)
    if not cls.implemented:
        raise ConfigurationError(
            f"Deploy method '{cls.deploy_via.value}' is not implemented yet"
        )
    return cls


def create_strategy(
    config: "DeployConfig",
    runner: "StepRunner",
    releases: "ReleaseManager",
    transfer: FileTransfer,
    log: "DeployLogger",
) -> DeploymentStrategy:
    return resolve_strategy(config)(config, runner, releases, transfer, log)
