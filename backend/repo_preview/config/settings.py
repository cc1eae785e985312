"""
Configuration Module

Provides centralized configuration management for the application.
Supports YAML config files.
"""

import os
import yaml
from pathlib import Path
from typing import Dict, Any, List
from functools import lru_cache
from pydantic_settings import BaseSettings


def deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """
    Deep merge two dictionaries. Override values take precedence.

    Args:
        base: Base configuration dictionary
        override: Override configuration dictionary

    Returns:
        Merged configuration dictionary
    """
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def load_yaml_config() -> Dict[str, Any]:
    """
    Load configuration from YAML files with local override support.

    Loading order:
    1. Load config.yaml (or config.example.yaml as fallback) as base configuration
    2. If config.local.yaml exists, merge it with base (local values override base)
    3. Return merged configuration

    Returns:
        Dictionary containing all configuration values
    """
    config_dir = Path(__file__).parent
    config_path = config_dir / "config.yaml"

    # Load base configuration
    if not config_path.exists():
        config_path = config_dir / "config.example.yaml"
        if not config_path.exists():
            raise FileNotFoundError(
                f"Configuration file not found. Please create {config_dir / 'config.yaml'} "
                f"based on {config_dir / 'config.example.yaml'}"
            )

    try:
        with open(config_path, 'r', encoding='utf-8') as f:
            base_config = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ValueError(f"Error parsing YAML configuration: {e}")

    local_config_path = config_dir / "config.local.yaml"
    if local_config_path.exists():
        try:
            with open(local_config_path, 'r', encoding='utf-8') as f:
                local_config = yaml.safe_load(f) or {}
            return deep_merge(base_config, local_config)
        except yaml.YAMLError as e:
            raise ValueError(f"Error parsing local YAML configuration: {e}")

    return base_config


# Load configuration
_config = load_yaml_config()


# ============================================================================
# Server Configuration
# ============================================================================

class ServerConfig:
    """Server configuration management"""

    _server_config = _config.get("server", {})

    HOST = _server_config.get("host", "0.0.0.0")
    PORT = _server_config.get("port", 8000)
    RELOAD = _server_config.get("reload", False)
    DEBUG = _server_config.get("debug", False)
    CORS_ORIGINS = _server_config.get("cors_origins", ["http://localhost:5173", "http://localhost:3000"])
    # Host used when building preview URLs returned to clients
    PREVIEW_HOST = _server_config.get("preview_host", "localhost")


# ============================================================================
# GitHub Configuration
# ============================================================================

class GitHubConfig:
    """GitHub configuration management"""

    _github_config = _config.get("github", {})

    TOKEN = os.environ.get("GITHUB_TOKEN") or _github_config.get("token", "")
    REQUEST_TIMEOUT = _github_config.get("request_timeout", 30)
    RETRIES = _github_config.get("retries", 2)
    # Seconds a fetched file list stays cached per owner/repo (0 disables)
    CACHE_TTL = _github_config.get("cache_ttl_seconds", 0)
    EXCLUDED_DIRS = _github_config.get("excluded_dirs", [".git", "node_modules"])


# ============================================================================
# Preview Configuration
# ============================================================================

class PreviewConfig:
    """Ephemeral preview configuration"""

    _preview_config = _config.get("preview", {})
    _reaper_config = _preview_config.get("reaper", {})

    ROOT_PATH = Path(_preview_config.get("root_path", "./previews"))
    NAME_PREFIX = _preview_config.get("name_prefix", "preview-")
    OWNER_LABEL = _preview_config.get("owner_label", "repo_preview")

    # Host port range handed to preview containers
    PORT_RANGE_START = _preview_config.get("port_range_start", 3001)
    PORT_RANGE_END = _preview_config.get("port_range_end", 9000)

    # Health polling: attempts x interval seconds
    HEALTH_CHECK_RETRIES = _preview_config.get("health_check_retries", 30)
    HEALTH_CHECK_INTERVAL = _preview_config.get("health_check_interval", 2.0)
    HEALTH_CHECK_TIMEOUT = _preview_config.get("health_check_timeout", 5.0)

    TTL_SECONDS = _preview_config.get("ttl_seconds", 2 * 60 * 60)

    # "cli" shells out to the docker binary, "sdk" talks to the daemon API
    RUNTIME_BACKEND = _preview_config.get("runtime_backend", "cli")
    STOP_TIMEOUT = _preview_config.get("stop_timeout", 10)

    REAPER_ENABLED = _reaper_config.get("enabled", False)
    REAPER_INTERVAL = _reaper_config.get("interval_seconds", 300)

    @classmethod
    def ensure_exists(cls):
        """Ensure previews root directory exists"""
        cls.ROOT_PATH.mkdir(parents=True, exist_ok=True)


# ============================================================================
# Pydantic Settings
# ============================================================================

class Settings(BaseSettings):
    """Application settings with validation"""

    # Application
    app_name: str = "Repository Preview Service"
    debug: bool = ServerConfig.DEBUG

    # GitHub Configuration
    github_token: str = GitHubConfig.TOKEN
    github_request_timeout: int = GitHubConfig.REQUEST_TIMEOUT
    github_retries: int = GitHubConfig.RETRIES
    github_cache_ttl: int = GitHubConfig.CACHE_TTL
    github_excluded_dirs: List[str] = GitHubConfig.EXCLUDED_DIRS

    # Preview Configuration
    preview_root_path: Path = PreviewConfig.ROOT_PATH
    preview_host: str = ServerConfig.PREVIEW_HOST
    preview_name_prefix: str = PreviewConfig.NAME_PREFIX
    preview_owner_label: str = PreviewConfig.OWNER_LABEL
    preview_port_range_start: int = PreviewConfig.PORT_RANGE_START
    preview_port_range_end: int = PreviewConfig.PORT_RANGE_END
    preview_health_check_retries: int = PreviewConfig.HEALTH_CHECK_RETRIES
    preview_health_check_interval: float = PreviewConfig.HEALTH_CHECK_INTERVAL
    preview_health_check_timeout: float = PreviewConfig.HEALTH_CHECK_TIMEOUT
    preview_ttl_seconds: int = PreviewConfig.TTL_SECONDS
    preview_runtime_backend: str = PreviewConfig.RUNTIME_BACKEND
    preview_stop_timeout: int = PreviewConfig.STOP_TIMEOUT
    preview_reaper_enabled: bool = PreviewConfig.REAPER_ENABLED
    preview_reaper_interval: int = PreviewConfig.REAPER_INTERVAL

    # Server
    host: str = ServerConfig.HOST
    port: int = ServerConfig.PORT
    cors_origins: List[str] = ServerConfig.CORS_ORIGINS

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    PreviewConfig.ensure_exists()
    return Settings()


__all__ = [
    "load_yaml_config",
    "deep_merge",
    "ServerConfig",
    "GitHubConfig",
    "PreviewConfig",
    "Settings",
    "get_settings",
]
