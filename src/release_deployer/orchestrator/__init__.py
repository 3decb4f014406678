"""Orchestrator module: the deploy pipeline state machine.

- DeploymentPipeline: runs the ordered release steps over one session
- PipelineStep/StepRecord: step table entries and their outcome
- PipelineResult: terminal status, release token and per-step records
"""

from .models import (
    DeployContext,
    DeployState,
    PipelineResult,
    PipelineStatus,
    PipelineStep,
    StepRecord,
    StepStatus,
)
from .pipeline import DeploymentPipeline

__all__ = [
    "DeployContext",
    "DeployState",
    "PipelineResult",
    "PipelineStatus",
    "PipelineStep",
    "StepRecord",
    "StepStatus",
    "DeploymentPipeline",
]
