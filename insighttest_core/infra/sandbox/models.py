from typing import Any, Dict, List, Optional

from pydantic import BaseModel


class ContainerRunOptions(BaseModel):
    """Strongly-typed options for creating a sandbox container.

    This mirrors the subset of docker-py ``containers.create(...)`` arguments
    used for CI sandboxes. The hardening fields default to the locked-down
    values every sandbox must run with.
    """

    image: str
    command: List[str]
    working_dir: str
    labels: Dict[str, str]
    environment: Dict[str, str]

    # host directory -> {"bind": <container path>, "mode": "rw"}
    volumes: Dict[str, Dict[str, str]]

    # Resource limits
    mem_limit: str
    cpu_period: int = 100000
    cpu_quota: int
    ulimits: List[Dict[str, Any]]

    # Isolation
    network_mode: str = "none"
    security_opt: List[str] = ["no-new-privileges"]
    cap_drop: List[str] = ["ALL"]

    name: Optional[str] = None

    def to_docker_kwargs(self) -> Dict[str, Any]:
        """Convert into kwargs suitable for docker-py, dropping None values."""
        return self.model_dump(exclude_none=True)
