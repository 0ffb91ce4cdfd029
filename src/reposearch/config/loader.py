"""Configuration loading from files and environment.

Supports:
- TOML config files with optional [profiles.<name>] overrides
- ${VAR} / ${VAR:-default} substitution inside string values
- Environment variables (REPOSEARCH_* prefix)
- .env files
"""

import os
import re
import tomllib
from pathlib import Path
from typing import Any, Optional

from dotenv import load_dotenv

from reposearch.config.schema import AppConfig
from reposearch.observability.logging import get_logger

logger = get_logger(__name__)

_ENV_VAR_PATTERN = re.compile(r"\$\{([^}]+)\}")


def _expand_env_value(match: re.Match) -> str:
    expression = match.group(1)
    name, has_default, default = expression.partition(":-")
    value = os.getenv(name.strip())
    if value is not None:
        return value
    if has_default:
        return default
    logger.warning("env_var_not_found", var_name=name.strip())
    return match.group(0)


def _substitute_env_vars(obj: Any) -> Any:
    """Recursively substitute ${VAR} and ${VAR:-default} in a loaded TOML tree."""
    if isinstance(obj, dict):
        return {key: _substitute_env_vars(value) for key, value in obj.items()}
    if isinstance(obj, list):
        return [_substitute_env_vars(item) for item in obj]
    if isinstance(obj, str):
        return _ENV_VAR_PATTERN.sub(_expand_env_value, obj)
    return obj


def _merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_config(
    config_path: Optional[Path] = None,
    profile: Optional[str] = None,
    env_file: Optional[Path] = None,
    **overrides: Any,
) -> AppConfig:
    """Load application configuration.

    Priority (highest to lowest):
    1. Keyword overrides
    2. Environment variables
    3. Config file (profile section over base section)
    4. Defaults

    Args:
        config_path: Path to TOML config file
        profile: Config profile to apply (e.g. "local", "server")
        env_file: Path to .env file
        **overrides: Top-level AppConfig fields set explicitly by the caller

    Returns:
        Loaded and validated configuration
    """
    if env_file and env_file.exists():
        load_dotenv(env_file)
        logger.info("loaded_env_file", path=str(env_file))

    config_data: dict[str, Any] = {}
    if config_path and config_path.exists():
        with open(config_path, "rb") as f:
            config_data = tomllib.load(f)
        logger.info("loaded_config_file", path=str(config_path))

        profiles = config_data.pop("profiles", {})
        if profile:
            if profile in profiles:
                config_data = _merge(config_data, profiles[profile])
                logger.info("applied_profile", profile=profile)
            else:
                logger.warning("profile_not_found", profile=profile, available=sorted(profiles))

        config_data = _substitute_env_vars(config_data)

    config_data = _merge(config_data, overrides)

    # Init kwargs win over environment variables in pydantic-settings, so
    # only pass sections the file actually defines.
    config = AppConfig(**config_data)
    logger.debug(
        "config_loaded",
        embedding_provider=config.embedding.provider.value,
        store_type=config.storage.store_type.value,
        source_provider=config.sources.provider.value,
    )
    return config


def get_default_config_path() -> Path:
    """Get the default config file path.

    Searches in order:
    1. ./reposearch.toml
    2. ~/.reposearch/config.toml
    3. /etc/reposearch/config.toml
    """
    search_paths = [
        Path.cwd() / "reposearch.toml",
        Path.home() / ".reposearch" / "config.toml",
        Path("/etc/reposearch/config.toml"),
    ]

    for path in search_paths:
        if path.exists():
            return path

    return search_paths[0]
