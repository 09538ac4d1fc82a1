from enum import StrEnum
from datetime import datetime
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field
from .utils import CamelModel


class SandboxStatus(StrEnum):
    COMPLETED = "completed"
    TIMED_OUT = "timed_out"
    FAILED = "failed"


class SandboxSpec(BaseModel):
    """Everything needed to run one CI command in a fresh container.

    Frozen: the manager never mutates a spec after execution starts.
    """

    model_config = ConfigDict(frozen=True)

    project_id: str
    trace_id: str
    tool_name: str = "run_ci"
    image: str
    command: tuple[str, ...]
    workdir: str = "/app"
    memory_limit: str = "512m"
    cpu_limit: float = 0.5
    timeout_seconds: float = 900
    artifact_patterns: tuple[str, ...] = ()
    environment: dict[str, str] = Field(default_factory=dict)
    labels: dict[str, str] = Field(default_factory=dict)


class Artifact(CamelModel):
    name: str
    path: str
    size: int
    size_formatted: str
    last_modified: datetime


class SandboxMetadata(CamelModel):
    image: str
    working_dir: str
    command: str
    timeout_sec: float
    memory_limit: str
    cpu_limit: float


class SandboxResult(CamelModel):
    status: SandboxStatus
    exit_code: Optional[int] = None
    logs: str = ""
    artifacts: list[Artifact] = Field(default_factory=list)
    duration_ms: int
    container_id: str
    metadata: SandboxMetadata
