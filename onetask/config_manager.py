"""
Configuration Manager for the OneTask client.

Central place for endpoints, timeouts and the tuning constants of the
context builder and chat pipeline. Every tunable value is declared here
and can be overridden.

Usage:
    from onetask.config_manager import config
    timeout = config.REQUEST_TIMEOUT_SECONDS
"""
import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml

from onetask.exceptions import ConfigError

CONFIG_DIR = Path(__file__).parent.parent / "config"
RUNTIME_CONFIG_PATH = CONFIG_DIR / "runtime.yaml"

# env var -> config field
ENV_OVERRIDES = {
    "ONETASK_BASE_URL": "BASE_URL",
    "ONETASK_CHAT_BASE_URL": "CHAT_BASE_URL",
    "ONETASK_TIMEZONE": "TIMEZONE",
    "ONETASK_USER_ID": "DEMO_USER_ID",
}


@dataclass
class AppConfig:
    """
    Runtime constants.

    Values are defaults taken from the production client and may be
    tuned through config/runtime.yaml or environment variables.
    """

    # === Endpoints ===

    # REST API for tasks, habits, goals and projects
    BASE_URL: str = "https://1task-backend-api-gse0fsgngtfxhjc6.southcentralus-01.azurewebsites.net/api"

    # Chat assistant service, deployed separately from the data API
    CHAT_BASE_URL: str = "https://1task-backend-api-gse0fsgngtfxhjc6.southcentralus-01.azurewebsites.net/api"

    # === Timeouts (seconds) ===

    REQUEST_TIMEOUT_SECONDS: float = 30.0

    # RAG prompts take longer to answer; keep within 30-45
    CHAT_TIMEOUT_SECONDS: float = 45.0

    # === Chat retry ===

    # One bounded retry on transport failure, never more
    CHAT_MAX_RETRIES: int = 1
    CHAT_RETRY_DELAY_SECONDS: float = 2.0

    # === Identity ===

    DEMO_USER_ID: str = "demo-user"
    DEMO_USER_NAME: str = "Demo User"

    # Show bundled sample data until the first successful sync
    FALLBACK_TO_SAMPLE_DATA: bool = True

    # === Context summary limits ===

    PENDING_TASK_LIMIT: int = 5
    IN_PROGRESS_TASK_LIMIT: int = 3
    COMPLETED_TASK_LIMIT: int = 3
    PROJECT_LIMIT: int = 5
    GOAL_LIMIT: int = 5
    HABIT_LIMIT: int = 5

    # Cap per collection in the structured context payload
    MAX_STRUCTURED_ITEMS: int = 50

    # IANA zone name; None uses the system local zone
    TIMEZONE: Optional[str] = None

    def __post_init__(self):
        if not 30.0 <= float(self.CHAT_TIMEOUT_SECONDS) <= 45.0:
            raise ConfigError(
                f"CHAT_TIMEOUT_SECONDS must be between 30 and 45, got {self.CHAT_TIMEOUT_SECONDS}"
            )
        if int(self.CHAT_MAX_RETRIES) not in (0, 1):
            raise ConfigError(f"CHAT_MAX_RETRIES must be 0 or 1, got {self.CHAT_MAX_RETRIES}")
        self.BASE_URL = self.BASE_URL.rstrip("/")
        self.CHAT_BASE_URL = self.CHAT_BASE_URL.rstrip("/")


def _load_runtime_config(path: Path) -> Dict[str, Any]:
    """Load runtime overrides, if the file exists."""
    if not path.exists():
        return {}

    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Malformed YAML: {e}", config_path=str(path))
    except OSError as e:
        raise ConfigError(f"Cannot read config: {e}", config_path=str(path))

    if not isinstance(data, dict):
        raise ConfigError("Top level must be a mapping", config_path=str(path))
    return data


def get_config(config_path: Optional[Union[str, Path]] = None) -> AppConfig:
    """
    Build a configuration instance.

    Priority: environment variables > runtime.yaml > defaults
    """
    # 1. runtime.yaml
    path = Path(config_path) if config_path else RUNTIME_CONFIG_PATH
    overrides = _load_runtime_config(path)

    # 2. environment
    for env_key, field_name in ENV_OVERRIDES.items():
        value = os.environ.get(env_key)
        if value:
            overrides[field_name] = value

    # 3. unknown keys are dropped
    known = {f.name for f in fields(AppConfig)}
    return AppConfig(**{k: v for k, v in overrides.items() if k in known})


# default instance
config = get_config()
