from .artifacts import collect_artifacts, format_file_size, matches_pattern
from .manager import SandboxManager
from .models import ContainerRunOptions
from .runtime import ContainerRuntime, DockerContainerRuntime

__all__ = [
    "collect_artifacts",
    "format_file_size",
    "matches_pattern",
    "SandboxManager",
    "ContainerRunOptions",
    "ContainerRuntime",
    "DockerContainerRuntime",
]
