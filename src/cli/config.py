"""YAML configuration loader with env var resolution and Pydantic validation.

Loads config from (priority order):
1. --config <path> CLI flag
2. ./orderdesk.yaml (working directory)
3. ~/.orderdesk/config.yaml (user home)

Environment variables override YAML: ORDERDESK_<SECTION>_<KEY>.
${VAR} references in YAML values resolve from environment at load time.
"""

import logging
import os
import re
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, field_validator

logger = logging.getLogger(__name__)

_ENV_VAR_PATTERN = re.compile(r"\$\{([^}]+)\}")


def resolve_env_vars(value: str) -> str:
    """Resolve ${VAR} references in a string from environment variables.

    Missing env vars resolve to empty string.
    """
    def _replace(match: re.Match) -> str:
        return os.environ.get(match.group(1), "")

    return _ENV_VAR_PATTERN.sub(_replace, value)


def _resolve_env_vars_recursive(data: Any) -> Any:
    """Recursively resolve ${VAR} references in a nested data structure."""
    if isinstance(data, str):
        return resolve_env_vars(data)
    elif isinstance(data, dict):
        return {k: _resolve_env_vars_recursive(v) for k, v in data.items()}
    elif isinstance(data, list):
        return [_resolve_env_vars_recursive(item) for item in data]
    return data


class RemoteConfig(BaseModel):
    """Connection to the order platform backend."""

    base_url: str = "http://127.0.0.1:3000"
    timeout_seconds: float = Field(default=30.0, gt=0)
    api_key: str | None = None

    @field_validator("api_key", mode="before")
    @classmethod
    def _empty_key_is_none(cls, v: Any) -> Any:
        return str(v) if v else None


class WorkflowConfig(BaseModel):
    """Order workflow tuning.

    Timing values are seconds; the defaults are the production values.
    """

    default_making_days: int = Field(default=7, ge=0)
    timezone_offset_hours: float = Field(default=3, ge=-12, le=14)
    status_grace_seconds: float = Field(default=3.0, ge=0)
    refetch_debounce_seconds: float = Field(default=0.3, ge=0)


class DaemonConfig(BaseModel):
    """Configuration for the OrderDesk API server process."""

    host: str = "127.0.0.1"
    port: int = 8000
    log_level: str = "info"


class OrderDeskConfig(BaseModel):
    """Top-level OrderDesk configuration."""

    remote: RemoteConfig = RemoteConfig()
    workflow: WorkflowConfig = WorkflowConfig()
    daemon: DaemonConfig = DaemonConfig()


def _find_config_file() -> Path | None:
    """Search for config file in standard locations."""
    candidates = [
        Path.cwd() / "orderdesk.yaml",
        Path.cwd() / "orderdesk.yml",
        Path.home() / ".orderdesk" / "config.yaml",
        Path.home() / ".orderdesk" / "config.yml",
    ]
    for candidate in candidates:
        if candidate.exists():
            return candidate
    return None


def _coerce_env_value(value: str) -> Any:
    try:
        return int(value)
    except ValueError:
        pass
    try:
        return float(value)
    except ValueError:
        pass
    if value.lower() in ("true", "false"):
        return value.lower() == "true"
    return value


def _apply_env_overrides(data: dict[str, Any]) -> dict[str, Any]:
    """Apply ORDERDESK_<SECTION>_<KEY> env var overrides to config data.

    For example, ``ORDERDESK_WORKFLOW_STATUS_GRACE_SECONDS`` maps to section
    ``workflow``, field ``status_grace_seconds``.
    """
    prefix = "ORDERDESK_"
    # Longest-first so a section name never shadows a longer one.
    known_sections = sorted(
        OrderDeskConfig.model_fields.keys(), key=len, reverse=True
    )
    for key, value in os.environ.items():
        if not key.startswith(prefix):
            continue
        suffix = key[len(prefix):].lower()
        matched_section = None
        matched_field = None
        for section in known_sections:
            section_prefix = section + "_"
            if suffix.startswith(section_prefix):
                matched_section = section
                matched_field = suffix[len(section_prefix):]
                break
        if matched_section is None or not matched_field:
            continue
        if data.get(matched_section) is None:
            data[matched_section] = {}
        if isinstance(data[matched_section], dict):
            data[matched_section][matched_field] = _coerce_env_value(value)
    return data


def load_config(config_path: str | None = None) -> OrderDeskConfig:
    """Load OrderDesk configuration.

    Args:
        config_path: Explicit path to config file. If None, searches
            standard locations (cwd, then ~/.orderdesk/).

    Returns:
        Validated OrderDeskConfig. Defaults (plus env overrides) are used
        when no file is found.

    Raises:
        FileNotFoundError: If an explicit config path does not exist.
    """
    if config_path:
        path = Path(config_path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")
    else:
        path = _find_config_file()

    raw_data: dict[str, Any] = {}
    if path is not None:
        logger.info("Loading config from %s", path)
        with open(path) as f:
            raw_data = yaml.safe_load(f) or {}

    data = _resolve_env_vars_recursive(raw_data)
    data = _apply_env_overrides(data)
    return OrderDeskConfig(**data)
