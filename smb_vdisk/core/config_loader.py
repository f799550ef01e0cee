"""Configuration management for the SMB virtual disk server."""

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

from ..constants import (
    DEFAULT_CIM_CLASS,
    DEFAULT_CIM_NAMESPACE,
    DEFAULT_MANAGEMENT_PORT,
    DEFAULT_NAME_PROPERTY,
    DEFAULT_SHARE_PROPERTY,
)
from .exceptions import ConfigurationError

logger = structlog.get_logger()

DEFAULT_CONFIG_FILE = "config/smb-vdisk.yml"


class ManagementHost(BaseModel):
    """Connection overrides for one management endpoint.

    Addresses name hosts directly; an entry here only changes how the
    session to that host is opened.
    """

    hostname: str | None = None  # Connect target when it differs from the address host
    user: str | None = None
    port: int = Field(default=DEFAULT_MANAGEMENT_PORT, ge=1, le=65535)
    description: str = ""


class QueryConfig(BaseModel):
    """CIM namespace/class used to look up virtual disks."""

    namespace: str = DEFAULT_CIM_NAMESPACE
    class_name: str = DEFAULT_CIM_CLASS
    share_property: str = DEFAULT_SHARE_PROPERTY
    name_property: str = DEFAULT_NAME_PROPERTY


class ValidationConfig(BaseModel):
    """Address validation options."""

    require_share: bool = False


class ServerConfig(BaseModel):
    """Server configuration."""

    host: str = Field(default="127.0.0.1", alias="FASTMCP_HOST")
    port: int = Field(default=8000, alias="FASTMCP_PORT")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    model_config = {"populate_by_name": True}


class SmbVdiskConfig(BaseSettings):
    """Main configuration for the SMB virtual disk server."""

    hosts: dict[str, ManagementHost] = Field(default_factory=dict)
    query: QueryConfig = Field(default_factory=QueryConfig)
    validation: ValidationConfig = Field(default_factory=ValidationConfig)
    single_flight: bool = False
    server: ServerConfig = Field(default_factory=ServerConfig)
    config_file: str = Field(default=DEFAULT_CONFIG_FILE, alias="SMB_VDISK_CONFIG")

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}

    def host_for(self, hostname: str) -> ManagementHost:
        """Return connection settings for a host, case-insensitively."""
        wanted = hostname.lower()
        for name, host in self.hosts.items():
            if name.lower() == wanted:
                return host
        return ManagementHost()


def load_config(config_path: str | None = None) -> SmbVdiskConfig:
    """Load configuration from multiple sources (synchronous interface).

    Args:
        config_path: Optional path to YAML config file

    Returns:
        Loaded configuration

    Note:
        For async code, use load_config_async() instead.
    """
    try:
        asyncio.get_running_loop()
        raise RuntimeError(
            "load_config() cannot be called from within an async context. "
            "Use 'await load_config_async()' instead."
        )
    except RuntimeError as e:
        if "no running event loop" in str(e).lower():
            return asyncio.run(load_config_async(config_path))
        raise


async def load_config_async(config_path: str | None = None) -> SmbVdiskConfig:
    """Load configuration from multiple sources (async interface).

    Order: .env, user config, project config, environment overrides.
    """
    load_dotenv()

    config = SmbVdiskConfig()

    user_config_path = Path.home() / ".config" / "smb-vdisk" / "config.yml"
    await _load_config_file(config, user_config_path)

    project_config_path = Path(
        config_path or os.getenv("SMB_VDISK_CONFIG", DEFAULT_CONFIG_FILE)
    )
    await _load_config_file(config, project_config_path)
    config.config_file = str(project_config_path)

    _apply_env_overrides(config)

    return config


async def _load_config_file(config: SmbVdiskConfig, config_path: Path) -> None:
    """Load and apply configuration from a YAML file."""
    if not config_path.exists():
        return

    yaml_config = await _load_yaml_config(config_path)
    try:
        _apply_host_config(config, yaml_config)
        _apply_section(config, yaml_config, "query", QueryConfig)
        _apply_section(config, yaml_config, "validation", ValidationConfig)
        _apply_server_config(config, yaml_config)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration in {config_path}: {e}") from e

    if "single_flight" in yaml_config:
        config.single_flight = bool(yaml_config["single_flight"])

    logger.debug("Configuration file applied", path=str(config_path), hosts=len(config.hosts))


def _apply_host_config(config: SmbVdiskConfig, yaml_config: dict[str, Any]) -> None:
    """Apply per-host connection overrides from YAML data."""
    if yaml_config.get("hosts"):
        for host_id, host_data in yaml_config["hosts"].items():
            config.hosts[host_id] = ManagementHost(**(host_data or {}))


def _apply_section(
    config: SmbVdiskConfig, yaml_config: dict[str, Any], key: str, model: type[BaseModel]
) -> None:
    """Merge a nested YAML section over the current section values."""
    section = yaml_config.get(key)
    if not section:
        return
    current = getattr(config, key).model_dump()
    current.update(section)
    setattr(config, key, model(**current))


def _apply_server_config(config: SmbVdiskConfig, yaml_config: dict[str, Any]) -> None:
    """Apply server configuration from YAML data."""
    if "server" in yaml_config and yaml_config["server"]:
        for key, value in yaml_config["server"].items():
            if hasattr(config.server, key):
                setattr(config.server, key, value)


def _apply_env_overrides(config: SmbVdiskConfig) -> None:
    """Apply environment variable overrides."""
    if os.getenv("FASTMCP_HOST"):
        config.server.host = os.getenv("FASTMCP_HOST", config.server.host)
    if port_env := os.getenv("FASTMCP_PORT"):
        config.server.port = int(port_env)
    if os.getenv("LOG_LEVEL"):
        config.server.log_level = os.getenv("LOG_LEVEL", config.server.log_level)


async def _load_yaml_config(config_path: Path) -> dict[str, Any]:
    """Load YAML configuration file."""
    try:
        content = await asyncio.to_thread(config_path.read_text)
        content = _expand_yaml_config(content)
        loaded = yaml.safe_load(content)
        if not isinstance(loaded, dict):
            return {}
        return loaded
    except Exception as e:
        raise ConfigurationError(f"Failed to load config from {config_path}: {e}") from e


def _expand_yaml_config(content: str) -> str:
    """Expand ${VAR} references, restricted to an allowlist."""
    allowed_env_vars = {
        "HOME",
        "USER",
        "XDG_CONFIG_HOME",
        "SMB_VDISK_CONFIG",
        "FASTMCP_HOST",
        "FASTMCP_PORT",
        "LOG_LEVEL",
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
