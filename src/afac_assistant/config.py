"""
Runtime settings: `.env` file, optional YAML file, then environment variables.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, fields
from typing import Any, Dict, Optional

import yaml
from dotenv import load_dotenv

ENV_VARS: Dict[str, tuple] = {
    "supabase_url": ("SUPABASE_URL",),
    "supabase_key": ("SUPABASE_KEY", "SUPABASE_ANON_KEY"),
    "request_timeout": ("AFAC_REQUEST_TIMEOUT",),
    "site_data_ttl": ("AFAC_SITE_DATA_TTL",),
    "learning_interval": ("AFAC_LEARNING_INTERVAL",),
    "pattern_max_idle_days": ("AFAC_PATTERN_MAX_IDLE_DAYS",),
    "pattern_confidence_floor": ("AFAC_PATTERN_CONFIDENCE_FLOOR",),
    "log_level": ("AFAC_LOG_LEVEL",),
}


@dataclass
class Settings:
    supabase_url: Optional[str] = None
    supabase_key: Optional[str] = None
    request_timeout: float = 5.0
    site_data_ttl: float = 300.0
    learning_interval: float = 3600.0
    pattern_max_idle_days: int = 90
    pattern_confidence_floor: float = 0.7
    log_level: str = "INFO"

    @property
    def has_supabase(self) -> bool:
        return bool(self.supabase_url and self.supabase_key)


def _read_yaml(config_path: Optional[str]) -> Dict[str, Any]:
    if not config_path or not os.path.exists(config_path):
        return {}
    with open(config_path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Config file {config_path} must contain a mapping")
    return data.get("afac_assistant", data)


def _coerce(name: str, value: Any) -> Any:
    default = Settings.__dataclass_fields__[name].default
    if value is None or isinstance(default, str) or default is None:
        return value
    return type(default)(value)


def load_settings(config_path: Optional[str] = None) -> Settings:
    """
    Build Settings from (lowest to highest priority) defaults, YAML, environment.

    Inputs:
        config_path: Optional YAML file; falls back to $AFAC_CONFIG_FILE.

    Outputs:
        Settings with every field coerced to its declared type.
    """

    load_dotenv()
    values: Dict[str, Any] = {}
    file_values = _read_yaml(config_path or os.getenv("AFAC_CONFIG_FILE"))
    for field_info in fields(Settings):
        name = field_info.name
        if name in file_values:
            values[name] = file_values[name]
        for env_name in ENV_VARS.get(name, ()):
            env_value = os.getenv(env_name)
            if env_value:
                values[name] = env_value
                break

    return Settings(**{name: _coerce(name, value) for name, value in values.items()})


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
