"""Command execution: remote executor and step runner."""

from .executor import CommandResult, CommandSession, RemoteExecutor
from .step_runner import StepRunner

__all__ = [
    "CommandResult",
    "CommandSession",
    "RemoteExecutor",
    "StepRunner",
]
