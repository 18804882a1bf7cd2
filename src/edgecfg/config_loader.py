"""
Configuration file loader for edgecfg.

Supports loading configuration from:
- edgecfg.toml / .edgecfg.toml
- edgecfg.yaml / .edgecfg.yaml / edgecfg.yml / .edgecfg.yml

CLI flags override config file values.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from .config import SecretsMode
from .errors import ConfigError
from .scanner import SecretsConfig

try:
    import tomllib  # Python 3.11+
except ImportError:
    import tomli as tomllib  # type: ignore


# Config file search order (first found wins)
CONFIG_FILE_NAMES = [
    "edgecfg.toml",
    ".edgecfg.toml",
    "edgecfg.yaml",
    ".edgecfg.yaml",
    "edgecfg.yml",
    ".edgecfg.yml",
]

SECTION = "edgecfg"


@dataclass
class EnvConfig:
    """Per-environment settings (``env.<name>`` in the config file)."""

    service_id: str | None = None

    # Legacy rename map: production domain -> domain in this environment
    domains: dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, name: str, data: Any) -> EnvConfig:
        if not isinstance(data, dict):
            raise ConfigError(f"env.{name} must be a mapping")
        domains = data.get("domains") or {}
        if not isinstance(domains, dict):
            raise ConfigError(f"env.{name}.domains must map production domains to {name} domains")
        service_id = data.get("service_id")
        return cls(
            service_id=str(service_id) if service_id is not None else None,
            domains={str(k): str(v) for k, v in domains.items()},
        )


@dataclass
class ProjectConfig:
    """
    Project-level configuration loaded from config files.

    All fields are optional - CLI flags will override any values set here.
    """

    # Raw secrets section, validated by get_secrets_config()
    secrets: dict[str, Any] = field(default_factory=dict)

    env: dict[str, EnvConfig] = field(default_factory=dict)

    verbose: bool | None = None

    # Source file path (for debugging)
    _config_file: Path | None = field(default=None, repr=False)

    def get_secrets_config(self) -> SecretsConfig:
        """Get the SecretsConfig object from config data."""
        return SecretsConfig.from_dict(self.secrets)


@dataclass
class SyncSettings:
    """
    Effective settings of one edgecfg invocation.

    Built once from config file and CLI flags and handed to every component
    that needs configuration.
    """

    secrets: SecretsConfig = field(default_factory=SecretsConfig)
    env: dict[str, EnvConfig] = field(default_factory=dict)
    verbose: bool = False

    def domain_map(self, env_name: str) -> dict[str, str]:
        env = self.env.get(env_name)
        return env.domains if env else {}


def find_config_file(root: Path) -> Path | None:
    """
    Find a configuration file in the working directory.

    Args:
        root: Working directory

    Returns:
        Path to the config file, or None if not found
    """
    for name in CONFIG_FILE_NAMES:
        config_path = root / name
        if config_path.exists() and config_path.is_file():
            return config_path
    return None


def _parse_toml(path: Path) -> dict[str, Any]:
    """Parse a TOML config file."""
    with open(path, "rb") as f:
        data = tomllib.load(f)

    # Support both flat and nested [edgecfg] section
    if SECTION in data:
        return data[SECTION]
    return data


def _parse_yaml(path: Path) -> dict[str, Any]:
    """Parse a YAML config file."""
    with open(path, encoding="utf-8") as f:
        data = yaml.safe_load(f)

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"{path.name} must contain a mapping")

    if SECTION in data:
        return data[SECTION]
    return data


def load_config(root: Path, config_path: Path | None = None) -> ProjectConfig:
    """
    Load configuration from a config file.

    Args:
        root: Working directory
        config_path: Explicit path to config file (optional)

    Returns:
        ProjectConfig with loaded values (unset values remain None)

    Raises:
        ConfigError: If the file cannot be parsed or has invalid values
    """
    if config_path is None:
        config_path = find_config_file(root)
    elif not config_path.exists():
        raise ConfigError(f"Config file not found: {config_path}")

    if config_path is None:
        return ProjectConfig()

    suffix = config_path.suffix.lower()
    try:
        if suffix == ".toml":
            data = _parse_toml(config_path)
        elif suffix in (".yml", ".yaml"):
            data = _parse_yaml(config_path)
        else:
            raise ConfigError(f"Unsupported config file type: {config_path.name}")
    except (tomllib.TOMLDecodeError, yaml.YAMLError, OSError) as e:
        raise ConfigError(f"Failed to parse {config_path.name}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"{config_path.name}: [{SECTION}] must be a table")

    config = ProjectConfig(_config_file=config_path)

    secrets_data = data.get("secrets") or {}
    if not isinstance(secrets_data, dict):
        raise ConfigError(f"{config_path.name}: 'secrets' must be a mapping")
    config.secrets = secrets_data

    env_data = data.get("env") or {}
    if not isinstance(env_data, dict):
        raise ConfigError(f"{config_path.name}: 'env' must be a mapping")
    config.env = {str(name): EnvConfig.from_dict(str(name), value) for name, value in env_data.items()}

    if "verbose" in data:
        config.verbose = bool(data["verbose"])

    # fail early on bad secrets settings
    config.get_secrets_config()

    return config


def merge_cli_with_config(
    config: ProjectConfig,
    *,
    # CLI arguments (None means not specified on CLI)
    secrets_mode: SecretsMode | str | None = None,
    no_secrets: bool = False,
    verbose: bool | None = None,
) -> SyncSettings:
    """
    Merge CLI arguments with config file values.

    CLI arguments take precedence over config file values.
    """
    secrets = config.get_secrets_config()

    if secrets_mode is not None:
        try:
            secrets.mode = SecretsMode(secrets_mode)
        except ValueError as e:
            raise ConfigError(f"Unknown secrets mode: {secrets_mode!r}") from e

    if no_secrets:
        secrets.enabled = False

    if verbose:
        effective_verbose = True
    elif config.verbose is not None:
        effective_verbose = config.verbose
    else:
        effective_verbose = False

    return SyncSettings(secrets=secrets, env=dict(config.env), verbose=effective_verbose)
