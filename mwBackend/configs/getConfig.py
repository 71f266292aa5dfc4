"""
YAML configuration loader for the Medium Writer backend.

The file named by ``MW_CONFIG_PATH`` (or ``configs/config.yaml`` beside this
module) is merged onto built-in defaults, so a partial file is enough.
"""

import logging
import os
from copy import deepcopy
from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "MW_CONFIG_PATH"
DEFAULT_CONFIG_PATH = Path(__file__).parent / "config.yaml"

DEFAULTS: dict[str, Any] = {
    "server": {
        "host": "0.0.0.0",
        "port": 8000,
        "reload": False,
        "workers": 1,
    },
    "cors": {
        "allow_origins": [
            "http://localhost:3000",
            "http://127.0.0.1:3000",
        ],
    },
    "providers": {
        "request_timeout": 120,
        "model_cache_ttl": 600,
    },
}


def _deep_merge(base: dict, override: dict) -> dict:
    merged = deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_config(path=None) -> dict:
    """Read one YAML file and merge it onto DEFAULTS.

    An explicitly named file that does not exist raises FileNotFoundError;
    a missing default file just yields the defaults.
    """
    explicit = path or os.getenv(CONFIG_ENV_VAR)
    config_path = Path(explicit) if explicit else DEFAULT_CONFIG_PATH

    if not config_path.exists():
        if explicit:
            raise FileNotFoundError(f"Config file not found: {config_path}")
        logger.warning(f"No config file at {config_path}; using defaults")
        return deepcopy(DEFAULTS)

    with config_path.open("r", encoding="utf-8") as f:
        user_cfg = yaml.safe_load(f) or {}
    if not isinstance(user_cfg, dict):
        raise ValueError(f"Config file {config_path} must contain a mapping")

    logger.info(f"Loaded configuration from {config_path}")
    return _deep_merge(DEFAULTS, user_cfg)


@lru_cache(maxsize=1)
def getConfig() -> dict:
    return load_config()
