import os
from ..schema.config import (
    filter_value_from_env,
    filter_value_from_yaml,
    post_validate_core_config_sanity,
    CoreConfig,
)


def read_config_yaml_string() -> str:
    CONFIG_FILE_PATH = os.getenv("CONFIG_FILE_PATH", "config.yaml")

    if not os.path.isfile(CONFIG_FILE_PATH):
        return ""
    with open(CONFIG_FILE_PATH) as f:
        return f.read()


def get_local_core_config() -> CoreConfig:
    CONFIG_YAML_STRING = read_config_yaml_string()

    _ENV_VARS = filter_value_from_env(CoreConfig)
    _YAML_VARS = filter_value_from_yaml(CONFIG_YAML_STRING, CoreConfig)

    VARS = {**_ENV_VARS, **_YAML_VARS}
    config = CoreConfig(**VARS)
    post_validate_core_config_sanity(config)
    return config
