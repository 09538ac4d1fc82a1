from .base import ContainerRuntime
from .docker import DockerContainerRuntime

__all__ = [
    "ContainerRuntime",
    "DockerContainerRuntime",
]
