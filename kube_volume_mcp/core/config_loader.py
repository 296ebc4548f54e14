"""Configuration management for Kube Volume MCP server."""

import asyncio
import os
import re
from pathlib import Path
from typing import Any

import structlog
import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError
from pydantic_settings import BaseSettings

from .exceptions import ConfigurationError
from .settings import VolumeTimeoutSettings

logger = structlog.get_logger()

DEFAULT_CONFIG_FILE = "config/config.yml"
USER_CONFIG_PATH = Path.home() / ".config" / "kube-volume-mcp" / "config.yml"


class KubeConnection(BaseModel):
    """How to reach the cluster."""

    kubeconfig: str | None = None  # None -> default kubeconfig lookup
    context: str | None = None
    in_cluster: bool = False


class ServerConfig(BaseModel):
    """Server configuration."""

    host: str = Field(default="127.0.0.1", alias="FASTMCP_HOST")
    port: int = Field(default=8000, alias="FASTMCP_PORT")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    model_config = {"populate_by_name": True}


class KubeVolumeConfig(BaseSettings):
    """Main configuration for Kube Volume MCP server."""

    kube: KubeConnection = Field(default_factory=KubeConnection)
    server: ServerConfig = Field(default_factory=ServerConfig)
    timeouts: VolumeTimeoutSettings = Field(default_factory=VolumeTimeoutSettings)
    allow_destructive: bool = True
    protected_namespaces: list[str] = Field(default_factory=lambda: ["kube-system"])
    config_file: str = Field(default=DEFAULT_CONFIG_FILE, alias="KUBE_VOLUME_CONFIG")

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}

    def is_protected(self, namespace: str) -> bool:
        return namespace in self.protected_namespaces


def load_config(config_path: str | None = None) -> KubeVolumeConfig:
    """Load configuration from multiple sources (synchronous interface).

    Args:
        config_path: Optional path to YAML config file

    Returns:
        Loaded configuration

    Note:
        Must not be called from a running event loop; use load_config_async().
    """
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return asyncio.run(load_config_async(config_path))
    raise RuntimeError(
        "load_config() cannot be called from within an async context. "
        "Use 'await load_config_async()' instead."
    )


async def load_config_async(config_path: str | None = None) -> KubeVolumeConfig:
    """Load configuration from multiple sources (async interface).

    Priority (lowest first): defaults, user config, project config, environment.
    """
    load_dotenv()

    config = KubeVolumeConfig()

    await _load_config_file(config, USER_CONFIG_PATH)

    default_config_file = os.getenv("KUBE_VOLUME_CONFIG", DEFAULT_CONFIG_FILE)
    project_config_path = Path(config_path or default_config_file)
    await _load_config_file(config, project_config_path)

    config.config_file = str(project_config_path)

    _apply_env_overrides(config)

    return config


async def _load_config_file(config: KubeVolumeConfig, config_path: Path) -> None:
    """Load and apply configuration from a YAML file."""
    if not config_path.exists():
        return

    yaml_config = await _load_yaml_config(config_path)
    try:
        _apply_kube_config(config, yaml_config)
        _apply_server_config(config, yaml_config)
        _apply_timeouts(config, yaml_config)
        _apply_policy(config, yaml_config)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration in {config_path}: {e}") from e

    logger.debug("Configuration file applied", path=str(config_path))


def _apply_kube_config(config: KubeVolumeConfig, yaml_config: dict[str, Any]) -> None:
    """Apply cluster connection settings from YAML data."""
    if kube := yaml_config.get("kube"):
        merged = config.kube.model_dump()
        merged.update(kube)
        config.kube = KubeConnection(**merged)


def _apply_server_config(config: KubeVolumeConfig, yaml_config: dict[str, Any]) -> None:
    """Apply server configuration from YAML data."""
    if "server" in yaml_config and yaml_config["server"]:
        for key, value in yaml_config["server"].items():
            if hasattr(config.server, key):
                setattr(config.server, key, value)


def _apply_timeouts(config: KubeVolumeConfig, yaml_config: dict[str, Any]) -> None:
    """Apply polling/worker overrides from YAML data."""
    if timeouts := yaml_config.get("timeouts"):
        merged = config.timeouts.model_dump()
        merged.update(timeouts)
        config.timeouts = VolumeTimeoutSettings(**merged)


def _apply_policy(config: KubeVolumeConfig, yaml_config: dict[str, Any]) -> None:
    """Apply safety policy from YAML data."""
    if "allow_destructive" in yaml_config:
        config.allow_destructive = bool(yaml_config["allow_destructive"])
    if "protected_namespaces" in yaml_config:
        config.protected_namespaces = list(yaml_config["protected_namespaces"] or [])


def _apply_env_overrides(config: KubeVolumeConfig) -> None:
    """Apply environment variable overrides."""
    if os.getenv("FASTMCP_HOST"):
        config.server.host = os.getenv("FASTMCP_HOST", config.server.host)
    if port_env := os.getenv("FASTMCP_PORT"):
        try:
            config.server.port = int(port_env)
        except ValueError as e:
            raise ConfigurationError(f"FASTMCP_PORT must be an integer, got {port_env!r}") from e
    if os.getenv("LOG_LEVEL"):
        config.server.log_level = os.getenv("LOG_LEVEL", config.server.log_level)
    if os.getenv("KUBECONFIG") and not config.kube.kubeconfig:
        # KUBECONFIG may hold several paths; the client loader takes the first
        config.kube.kubeconfig = os.environ["KUBECONFIG"].split(os.pathsep)[0]
    if kube_context := os.getenv("KUBE_CONTEXT"):
        config.kube.context = kube_context


async def _load_yaml_config(config_path: Path) -> dict[str, Any]:
    """Load YAML configuration file."""
    try:
        content = await asyncio.to_thread(config_path.read_text)
        content = _expand_yaml_config(content)
        loaded = yaml.safe_load(content)
    except (OSError, yaml.YAMLError) as e:
        raise ConfigurationError(f"Failed to load config from {config_path}: {e}") from e

    # yaml.safe_load can return None, str, list...
    if not isinstance(loaded, dict):
        return {}
    return loaded


def _expand_yaml_config(content: str) -> str:
    """Expand ${VAR} references restricted to an allowlist."""

    allowed_env_vars = {
        "HOME",
        "USER",
        "XDG_CONFIG_HOME",
        "KUBECONFIG",
        "KUBE_CONTEXT",
        "KUBE_VOLUME_CONFIG",
        "FASTMCP_HOST",
        "FASTMCP_PORT",
        "LOG_LEVEL",
        "WORKER_IMAGE",
    }

    def replace_var(match):
        var_name = match.group(1)
        if var_name in allowed_env_vars:
            return os.getenv(var_name, match.group(0))
        logger.warning(
            "Environment variable not in allowlist, skipping expansion",
            variable=var_name,
        )
        return match.group(0)

    return re.sub(r"\$\{([^}]+)\}", replace_var, content)
