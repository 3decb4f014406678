"""Data models for the deployment pipeline."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Callable, List, Optional


class DeployState(Enum):
    """Pipeline states, in execution order."""
    CONNECT = "connect"
    PREPARE_DIRECTORIES = "prepare_directories"
    PREPARE_LINKED_DIRECTORIES = "prepare_linked_directories"
    PREPARE_LINKED_RESOURCE_DIRS = "prepare_linked_resource_dirs"
    CREATE_RELEASE_DIR = "create_release_dir"
    MATERIALIZE_SOURCE = "materialize_source"
    STAMP_REVISION = "stamp_revision"
    LINK_SHARED_FILES = "link_shared_files"
    LINK_SHARED_DIRS = "link_shared_dirs"
    INSTALL_DEPENDENCIES = "install_dependencies"
    PRECOMPILE_ASSETS = "precompile_assets"
    BACKUP_MANIFEST = "backup_manifest"
    RUN_MIGRATIONS = "run_migrations"
    PROMOTE = "promote"
    RESTART_SERVICE = "restart_service"
    CLEANUP = "cleanup"
    APPEND_AUDIT_LOG = "append_audit_log"
    LINK_PUBLIC_RESOURCES = "link_public_resources"
    DISCONNECT = "disconnect"


class PipelineStatus(Enum):
    """Terminal states of a run."""
    COMPLETED = "completed"
    FAILED = "failed"


class StepStatus(Enum):
    """步骤执行状态"""
    PENDING = "pending"
    RUNNING = "running"
    SUCCESS = "success"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass
class DeployContext:
    """Values produced while a run advances."""
    token: str
    release_dir: str
    revision_hint: str = ""
    revision: str = ""


@dataclass
class PipelineStep:
    """One state of the pipeline.

    ``fatal`` steps abort the run on failure; the others are logged and the
    run moves on. A disabled step is recorded as skipped.
    """
    state: DeployState
    action: Callable[[DeployContext], object]
    fatal: bool = False
    enabled: bool = True


@dataclass
class StepRecord:
    """What happened to one step."""
    state: DeployState
    fatal: bool
    status: StepStatus = StepStatus.PENDING
    error: Optional[str] = None
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None

    @property
    def duration_seconds(self) -> Optional[float]:
        if self.started_at and self.finished_at:
            return (self.finished_at - self.started_at).total_seconds()
        return None


@dataclass
class PipelineResult:
    """Outcome of one deploy run."""
    status: PipelineStatus
    token: str
    release_dir: str
    revision: str = ""
    steps: List[StepRecord] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.status is PipelineStatus.COMPLETED

    @property
    def warnings(self) -> List[StepRecord]:
        """Best-effort steps that failed without aborting the run."""
        return [
            record for record in self.steps
            if record.status is StepStatus.FAILED and not record.fatal
        ]

    def record_for(self, state: DeployState) -> Optional[StepRecord]:
        for record in self.steps:
            if record.state is state:
                return record
        return None
