import asyncio
import time
from pathlib import Path
from typing import Optional

from ...env import LOG, DEFAULT_CORE_CONFIG
from ...errors import SandboxCreateError, SandboxError, SandboxStartError
from ...schema.config import CoreConfig
from ...schema.sandbox import (
    SandboxMetadata,
    SandboxResult,
    SandboxSpec,
    SandboxStatus,
)
from ...util.generate_ids import generate_run_token
from .artifacts import collect_artifacts
from .models import ContainerRunOptions
from .runtime.base import ContainerRuntime


class SandboxManager:
    """Runs one command per call in a fresh, locked-down container.

    Every call gets its own output directory under
    ``<artifacts_root>/<project_id>/<run_token>`` and its own container. The
    container is force-removed on every exit path, including timeouts,
    start failures and cancellation of the calling task.
    """

    def __init__(
        self,
        runtime: ContainerRuntime,
        config: Optional[CoreConfig] = None,
    ) -> None:
        self.runtime = runtime
        self.config = config or DEFAULT_CORE_CONFIG

    # -------------------------- internal helpers -------------------------- #

    def _make_output_dir(self, project_id: str) -> Path:
        output_dir = (
            Path(self.config.artifacts_root) / project_id / generate_run_token()
        )
        try:
            output_dir.mkdir(parents=True, exist_ok=False)
        except OSError as e:
            raise SandboxCreateError(
                f"Failed to create artifacts directory {output_dir}: {e}"
            ) from e
        return output_dir.resolve()

    def _container_options(
        self, spec: SandboxSpec, output_dir: Path
    ) -> ContainerRunOptions:
        prefix = self.config.sandbox_label_prefix
        mount = self.config.sandbox_artifacts_mount

        labels = dict(spec.labels)
        labels.update(
            {
                f"{prefix}.project": spec.project_id,
                f"{prefix}.trace": spec.trace_id,
                f"{prefix}.tool": spec.tool_name,
            }
        )
        environment = {"CI": "true", "ARTIFACTS_DIR": mount}
        environment.update(spec.environment)

        return ContainerRunOptions(
            image=spec.image,
            command=list(spec.command),
            working_dir=spec.workdir,
            labels=labels,
            environment=environment,
            volumes={str(output_dir): {"bind": mount, "mode": "rw"}},
            mem_limit=spec.memory_limit,
            cpu_period=self.config.sandbox_cpu_period,
            cpu_quota=int(spec.cpu_limit * self.config.sandbox_cpu_period),
            ulimits=[
                {
                    "name": "nofile",
                    "soft": self.config.sandbox_nofile_soft,
                    "hard": self.config.sandbox_nofile_hard,
                }
            ],
        )

    async def _wait(
        self, container_id: str, timeout_seconds: float
    ) -> tuple[SandboxStatus, Optional[int]]:
        try:
            exit_code = await asyncio.wait_for(
                self.runtime.wait(container_id), timeout=timeout_seconds
            )
        except asyncio.TimeoutError:
            LOG.warning(
                f"Container {container_id} exceeded {timeout_seconds}s, killing it"
            )
            await self._kill(container_id)
            return SandboxStatus.TIMED_OUT, None
        except Exception as e:
            LOG.error(f"Waiting for container {container_id} failed: {e}")
            return SandboxStatus.FAILED, None

        status = SandboxStatus.COMPLETED if exit_code == 0 else SandboxStatus.FAILED
        return status, exit_code

    async def _kill(self, container_id: str) -> None:
        try:
            await self.runtime.kill(container_id)
        except Exception as e:
            LOG.warning(f"Failed to kill timed out container {container_id}: {e}")

    async def _fetch_logs(self, container_id: str) -> str:
        try:
            return await self.runtime.logs(
                container_id, tail=self.config.sandbox_log_tail_lines
            )
        except Exception as e:
            LOG.warning(f"Failed to fetch logs of container {container_id}: {e}")
            return ""

    async def _cleanup(self, container_id: str) -> None:
        try:
            await self.runtime.remove(container_id, force=True)
            LOG.info(f"Container {container_id} cleaned up")
        except Exception as e:
            LOG.warning(f"Container cleanup failed for {container_id}: {e}")

    # -------------------------- lifecycle API -------------------------- #

    async def run(self, spec: SandboxSpec) -> SandboxResult:
        """
        Execute ``spec`` and return its terminal result.

        A timeout is a normal ``timed_out`` result. Failures before the
        container runs raise ``SandboxCreateError`` or ``SandboxStartError``.
        Cleanup errors are logged and never raised.
        """
        started = time.monotonic()
        output_dir = self._make_output_dir(spec.project_id)
        options = self._container_options(spec, output_dir)

        container_id: Optional[str] = None
        try:
            try:
                container_id = await self.runtime.create(options)
            except SandboxError:
                raise
            except Exception as e:
                raise SandboxCreateError(f"Failed to create container: {e}") from e
            LOG.info(f"Container {container_id} created for project {spec.project_id}")

            try:
                await self.runtime.start(container_id)
            except SandboxError:
                raise
            except Exception as e:
                raise SandboxStartError(
                    f"Failed to start container {container_id}: {e}",
                    container_id=container_id,
                ) from e

            status, exit_code = await self._wait(container_id, spec.timeout_seconds)
            logs = await self._fetch_logs(container_id)
            artifacts = await asyncio.to_thread(
                collect_artifacts,
                str(output_dir),
                spec.artifact_patterns,
                self.config.sandbox_artifacts_mount,
            )
        finally:
            if container_id is not None:
                await asyncio.shield(self._cleanup(container_id))

        duration_ms = int((time.monotonic() - started) * 1000)
        LOG.info(
            f"Container {container_id} finished with status {status} "
            f"(exit_code={exit_code}, duration={duration_ms}ms)"
        )
        return SandboxResult(
            status=status,
            exit_code=exit_code,
            logs=logs,
            artifacts=artifacts,
            duration_ms=duration_ms,
            container_id=container_id,
            metadata=SandboxMetadata(
                image=spec.image,
                working_dir=spec.workdir,
                command=" ".join(spec.command),
                timeout_sec=spec.timeout_seconds,
                memory_limit=spec.memory_limit,
                cpu_limit=spec.cpu_limit,
            ),
        )
