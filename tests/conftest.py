"""
Shared test fixtures.

Provides a ``FakeRuntime`` that implements the container runtime ABC in memory,
so sandbox tests never need a Docker daemon.
"""

import asyncio
from pathlib import Path
from typing import Optional

import pytest

from insighttest_core.infra.sandbox.manager import SandboxManager
from insighttest_core.infra.sandbox.models import ContainerRunOptions
from insighttest_core.infra.sandbox.runtime.base import ContainerRuntime
from insighttest_core.schema.config import CoreConfig
from insighttest_core.schema.sandbox import SandboxSpec


class FakeRuntime(ContainerRuntime):
    """In-memory container runtime recording every call."""

    def __init__(
        self,
        exit_code: int = 0,
        wait_seconds: float = 0.0,
        log_text: str = "",
        files: Optional[dict[str, str]] = None,
        fail_create: Optional[Exception] = None,
        fail_start: Optional[Exception] = None,
        fail_wait: Optional[Exception] = None,
        fail_remove: Optional[Exception] = None,
    ):
        self.exit_code = exit_code
        self.wait_seconds = wait_seconds
        self.log_text = log_text
        self.files = files or {}
        self.fail_create = fail_create
        self.fail_start = fail_start
        self.fail_wait = fail_wait
        self.fail_remove = fail_remove

        self.created: list[ContainerRunOptions] = []
        self.started: list[str] = []
        self.killed: list[str] = []
        self.removed: list[str] = []
        self._hosts: dict[str, Path] = {}

    async def create(self, options: ContainerRunOptions) -> str:
        if self.fail_create is not None:
            raise self.fail_create
        self.created.append(options)
        container_id = f"fake-{len(self.created)}"
        self._hosts[container_id] = Path(next(iter(options.volumes)))
        return container_id

    async def start(self, container_id: str) -> None:
        if self.fail_start is not None:
            raise self.fail_start
        self.started.append(container_id)
        # Simulate the command writing its outputs to the bind mount.
        host_dir = self._hosts[container_id]
        for relative, content in self.files.items():
            target = host_dir / relative
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(content)

    async def wait(self, container_id: str) -> int:
        await asyncio.sleep(self.wait_seconds)
        if self.fail_wait is not None:
            raise self.fail_wait
        return self.exit_code

    async def kill(self, container_id: str) -> None:
        self.killed.append(container_id)

    async def logs(self, container_id: str, tail: Optional[int] = None) -> str:
        return self.log_text

    async def remove(self, container_id: str, force: bool = True) -> None:
        self.removed.append(container_id)
        if self.fail_remove is not None:
            raise self.fail_remove


@pytest.fixture
def artifacts_root(tmp_path) -> Path:
    root = tmp_path / "artifacts"
    root.mkdir()
    return root


@pytest.fixture
def core_config(artifacts_root) -> CoreConfig:
    return CoreConfig(artifacts_root=str(artifacts_root))


@pytest.fixture
def fake_runtime() -> FakeRuntime:
    return FakeRuntime(log_text="PASS all tests\n")


@pytest.fixture
def sandbox_manager(fake_runtime, core_config) -> SandboxManager:
    return SandboxManager(fake_runtime, config=core_config)


def make_spec(**overrides) -> SandboxSpec:
    values = dict(
        project_id="demo-project",
        trace_id="trace-123",
        image="node:20-alpine",
        command=("npm", "test"),
        timeout_seconds=30,
        artifact_patterns=("coverage/", "junit.xml"),
    )
    values.update(overrides)
    return SandboxSpec(**values)


@pytest.fixture
def spec_factory():
    return make_spec


@pytest.fixture
def runtime_factory():
    return FakeRuntime
