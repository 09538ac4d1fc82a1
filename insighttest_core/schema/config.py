import os
import yaml
from pydantic import BaseModel
from typing import Literal, Optional, Any, Type


class CoreConfig(BaseModel):
    # Core Configuration
    logging_format: Literal["text", "json"] = "text"
    logging_level: str = "INFO"

    # Artifacts are laid out as <artifacts_root>/<project_id>/<run_token>/
    artifacts_root: str = "./artifacts"

    # Sandbox (docker) Configuration
    docker_base_url: Optional[str] = None  # None means docker.from_env()
    sandbox_default_timeout_seconds: int = 900
    sandbox_memory_limit: str = "512m"
    sandbox_cpu_limit: float = 0.5  # number of CPUs
    sandbox_cpu_period: int = 100000
    sandbox_nofile_soft: int = 1024
    sandbox_nofile_hard: int = 2048
    sandbox_log_tail_lines: int = 2000
    sandbox_default_workdir: str = "/app"
    sandbox_artifacts_mount: str = "/artifacts"
    sandbox_label_prefix: str = "insighttest"

    # GitHub Configuration
    github_api_base_url: str = "https://api.github.com"
    github_metadata_timeout_seconds: float = 10
    github_diff_timeout_seconds: float = 15
    github_user_agent: str = "InsightTestAI-MCP-Server"
    github_min_token_length: int = 10

    # Diff Configuration
    diff_default_max_patch_bytes: int = 256 * 1024


def filter_value_from_env(CLS: Type[BaseModel]) -> dict[str, Any]:
    config_keys = CLS.model_fields.keys()
    env_already_keys = {}
    for key in config_keys:
        value = os.getenv(key, os.getenv(key.upper(), None))
        if value is None:
            continue
        env_already_keys[key] = value
    return env_already_keys


def filter_value_from_yaml(yaml_string, CLS: Type[BaseModel]) -> dict[str, Any]:
    yaml_config_data: dict | None = yaml.safe_load(yaml_string)
    if yaml_config_data is None:
        return {}

    yaml_already_keys = {}
    config_keys = CLS.model_fields.keys()
    for key in config_keys:
        value = yaml_config_data.get(key, None)
        if value is None:
            continue
        yaml_already_keys[key] = value
    return yaml_already_keys


def post_validate_core_config_sanity(config: CoreConfig) -> None:
    """Raises an assertion error if the config is invalid."""
    assert (
        config.sandbox_default_timeout_seconds > 0
    ), "sandbox_default_timeout_seconds must be positive"
    assert config.sandbox_cpu_limit > 0, "sandbox_cpu_limit must be positive"
    assert (
        config.sandbox_nofile_soft <= config.sandbox_nofile_hard
    ), "sandbox_nofile_soft must not exceed sandbox_nofile_hard"
    assert (
        config.sandbox_log_tail_lines > 0
    ), "sandbox_log_tail_lines must be positive"
    assert (
        config.diff_default_max_patch_bytes > 0
    ), "diff_default_max_patch_bytes must be positive"
