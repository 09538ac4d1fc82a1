import asyncio
from typing import Optional, Type

import docker  # type: ignore
from docker.errors import DockerException, NotFound  # type: ignore

from ....env import LOG, DEFAULT_CORE_CONFIG
from ....errors import SandboxCreateError, SandboxStartError
from ....schema.config import CoreConfig
from ..models import ContainerRunOptions
from .base import ContainerRuntime


class DockerContainerRuntime(ContainerRuntime):
    """Docker backend for the sandbox manager.

    The docker SDK is blocking, so every call runs in a worker thread. One
    instance (and its client) is shared by all concurrent sandboxes.
    """

    def __init__(
        self,
        client: Optional["docker.DockerClient"] = None,  # type: ignore[name-defined]
        base_url: Optional[str] = None,
    ) -> None:
        self._client = client
        self._base_url = base_url

    @classmethod
    def from_default(
        cls: Type["DockerContainerRuntime"], config: Optional[CoreConfig] = None
    ) -> "DockerContainerRuntime":
        config = config or DEFAULT_CORE_CONFIG
        return cls(base_url=config.docker_base_url)

    def _get_client(self) -> "docker.DockerClient":  # type: ignore[name-defined]
        if self._client is None:
            if self._base_url:
                self._client = docker.DockerClient(base_url=self._base_url)
            else:
                self._client = docker.from_env()
        return self._client

    async def _run_in_thread(self, func, *args, **kwargs):
        return await asyncio.to_thread(func, *args, **kwargs)

    def _get_container(self, container_id: str):
        return self._get_client().containers.get(container_id)

    async def create(self, options: ContainerRunOptions) -> str:
        def _create() -> str:
            container = self._get_client().containers.create(
                **options.to_docker_kwargs()
            )
            return container.id

        try:
            return await self._run_in_thread(_create)
        except DockerException as e:
            raise SandboxCreateError(
                f"Failed to create container from image {options.image}: {e}"
            ) from e

    async def start(self, container_id: str) -> None:
        def _start() -> None:
            self._get_container(container_id).start()

        try:
            await self._run_in_thread(_start)
        except DockerException as e:
            raise SandboxStartError(
                f"Failed to start container {container_id}: {e}",
                container_id=container_id,
            ) from e

    async def wait(self, container_id: str) -> int:
        def _wait() -> int:
            # {"StatusCode": <int>, "Error": ...}
            result = self._get_container(container_id).wait()
            return int(result.get("StatusCode", -1))

        return await self._run_in_thread(_wait)

    async def kill(self, container_id: str) -> None:
        def _kill() -> None:
            try:
                self._get_container(container_id).kill()
            except NotFound:
                LOG.debug(f"Container {container_id} already gone, nothing to kill")

        await self._run_in_thread(_kill)

    async def logs(self, container_id: str, tail: Optional[int] = None) -> str:
        def _logs() -> str:
            raw = self._get_container(container_id).logs(
                stdout=True, stderr=True, tail=tail if tail is not None else "all"
            )
            return raw.decode("utf-8", errors="replace")

        return await self._run_in_thread(_logs)

    async def remove(self, container_id: str, force: bool = True) -> None:
        def _remove() -> None:
            # Equivalent to `docker rm -fv <container>`
            self._get_container(container_id).remove(v=True, force=force)

        await self._run_in_thread(_remove)
