from abc import ABC, abstractmethod
from typing import Optional

from ..models import ContainerRunOptions


class ContainerRuntime(ABC):
    """Container operations the sandbox manager depends on.

    Implementations must be safe to share between concurrent ``run_ci`` calls.
    Create/start failures are reported as ``SandboxCreateError`` /
    ``SandboxStartError``.
    """

    @abstractmethod
    async def create(self, options: ContainerRunOptions) -> str:
        """Create (but do not start) a container and return its id."""
        raise NotImplementedError

    @abstractmethod
    async def start(self, container_id: str) -> None:
        raise NotImplementedError

    @abstractmethod
    async def wait(self, container_id: str) -> int:
        """Block until the container exits and return its exit code.

        Callers bound this with ``asyncio.wait_for``.
        """
        raise NotImplementedError

    @abstractmethod
    async def kill(self, container_id: str) -> None:
        raise NotImplementedError

    @abstractmethod
    async def logs(self, container_id: str, tail: Optional[int] = None) -> str:
        """Combined stdout/stderr, limited to the last ``tail`` lines."""
        raise NotImplementedError

    @abstractmethod
    async def remove(self, container_id: str, force: bool = True) -> None:
        raise NotImplementedError
