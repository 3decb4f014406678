"""Source materialization strategies."""

from .base import (
    DeploymentStrategy,
    FileTransfer,
    create_strategy,
    resolve_strategy,
    strategy_class,
)

__all__ = [
    "DeploymentStrategy",
    "FileTransfer",
    "create_strategy",
    "resolve_strategy",
    "strategy_class",
]
