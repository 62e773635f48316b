"""YAML configuration loader with env var resolution and Pydantic validation.

Loads config from (priority order):
1. --config <path> CLI flag
2. ./autoflow.yaml (working directory)
3. <user config dir>/config.yaml (platformdirs)

Environment variables override YAML: AUTOFLOW_<SECTION>_<KEY>.
${VAR} references in YAML values resolve from environment at load time.
"""

import logging
import os
import re
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, model_validator

from src.orchestrator.nl_engine.config import DEFAULT_GENERATION_TIMEOUT, get_model
from src.orchestrator.nl_engine.graph_validator import DEFAULT_AUTO_FIX_BUDGET
from src.services.deployment_manager import (
    DEFAULT_ENGINE_TIMEOUT,
    DEFAULT_HEALTH_RETRIES,
    DEFAULT_HEALTH_THRESHOLD,
    DEFAULT_RETRY_BACKOFF,
)
from src.services.namespace_allocator import DEFAULT_BUCKETS, DEFAULT_SLOTS_PER_BUCKET
from src.utils.paths import get_config_dir

logger = logging.getLogger(__name__)

_ENV_VAR_PATTERN = re.compile(r"\$\{([^}]+)\}")


def resolve_env_vars(value: str) -> str:
    """Resolve ${VAR} references in a string from environment variables.

    Args:
        value: String potentially containing ${VAR} references.

    Returns:
        String with all ${VAR} references replaced by their env values.
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


class DaemonConfig(BaseModel):
    """Configuration for the AutoFlow API server."""

    host: str = "127.0.0.1"
    port: int = 8000
    log_level: str = "info"


class EngineConfig(BaseModel):
    """Automation engine (n8n) connection."""

    base_url: str = "http://localhost:5678"
    api_key: str = ""
    timeout: float = Field(default=DEFAULT_ENGINE_TIMEOUT, gt=0)


class GenerationConfig(BaseModel):
    """Text generation backend used for intent extraction."""

    model: str = Field(default_factory=get_model)
    timeout: float = Field(default=DEFAULT_GENERATION_TIMEOUT, gt=0)
    max_tokens: int = 1024


class NamespaceConfig(BaseModel):
    """Namespace slot pool dimensions."""

    buckets: int = Field(default=DEFAULT_BUCKETS, ge=1, le=99)
    slots_per_bucket: int = Field(default=DEFAULT_SLOTS_PER_BUCKET, ge=1)


class DeploymentConfig(BaseModel):
    """Deployment protocol tuning."""

    health_threshold: int = Field(default=DEFAULT_HEALTH_THRESHOLD, ge=0, le=100)
    health_retries: int = Field(default=DEFAULT_HEALTH_RETRIES, ge=0)
    retry_backoff: float = Field(default=DEFAULT_RETRY_BACKOFF, ge=0)


class ValidationConfig(BaseModel):
    """Graph validator settings."""

    auto_fix_budget: int = Field(default=DEFAULT_AUTO_FIX_BUDGET, ge=0)


class SessionsConfig(BaseModel):
    """Session lifecycle settings."""

    idle_timeout_hours: float = Field(default=24.0, gt=0)

    @model_validator(mode="after")
    def at_least_one_minute(self) -> "SessionsConfig":
        """Reject idle timeouts too short to hold a conversation."""
        if self.idle_timeout_hours * 60 < 1:
            raise ValueError("idle_timeout_hours must be at least one minute")
        return self


class AutoFlowConfig(BaseModel):
    """Top-level configuration for AutoFlow."""

    daemon: DaemonConfig = DaemonConfig()
    engine: EngineConfig = EngineConfig()
    generation: GenerationConfig = Field(default_factory=GenerationConfig)
    namespace: NamespaceConfig = NamespaceConfig()
    deployment: DeploymentConfig = DeploymentConfig()
    validation: ValidationConfig = ValidationConfig()
    sessions: SessionsConfig = SessionsConfig()


def _find_config_file() -> Path | None:
    """Search for config file in standard locations.

    Returns:
        Path to config file if found, None otherwise.
    """
    candidates = [
        Path.cwd() / "autoflow.yaml",
        Path.cwd() / "autoflow.yml",
        get_config_dir() / "config.yaml",
        get_config_dir() / "config.yml",
    ]
    for candidate in candidates:
        if candidate.exists():
            return candidate
    return None


def _apply_env_overrides(data: dict[str, Any]) -> dict[str, Any]:
    """Apply AUTOFLOW_<SECTION>_<KEY> env var overrides to config data.

    For example, ``AUTOFLOW_DEPLOYMENT_HEALTH_THRESHOLD`` maps to section
    ``deployment``, field ``health_threshold``.

    Args:
        data: Parsed YAML config dict.

    Returns:
        Config dict with env var overrides applied.
    """
    prefix = "AUTOFLOW_"
    known_sections = sorted(
        AutoFlowConfig.model_fields.keys(), key=len, reverse=True
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
        if matched_section not in data or data[matched_section] is None:
            data[matched_section] = {}
        if isinstance(data[matched_section], dict):
            # Strings are coerced to field types by pydantic validation.
            data[matched_section][matched_field] = value
    return data


def load_config(config_path: str | None = None) -> AutoFlowConfig:
    """Load AutoFlow configuration from YAML file with env var resolution.

    Args:
        config_path: Explicit path to config file. If None, searches
            standard locations (cwd, then the user config dir).

    Returns:
        Parsed and validated AutoFlowConfig. Defaults plus env overrides
        when no file is found.

    Raises:
        FileNotFoundError: If an explicit config_path does not exist.
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
    else:
        logger.debug("No config file found, using defaults")

    data = _resolve_env_vars_recursive(raw_data)
    data = _apply_env_overrides(data)
    return AutoFlowConfig(**data)
