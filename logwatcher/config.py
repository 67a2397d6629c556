import os
from dataclasses import dataclass
from typing import Any, Dict, Optional

import toml
import yaml

from logwatcher.errors import ConfigError

DEFAULT_CONFIG_FILENAME = "application.yml"
DEFAULT_CONFIG_PATH = os.path.join(".", DEFAULT_CONFIG_FILENAME)
ENV_CONFIG_DIR_VAR = "LOGWATCHER_CONFIG_DIR"


@dataclass(frozen=True)
class Settings:
    """Immutable settings loaded once at startup."""

    log_id: str
    log_path: str
    username: str
    password: str
    smtp: str
    target: str
    count_threshold: int
    time_threshold: int
    log_level: str = "INFO"
    log_dir: Optional[str] = None
    config_path: Optional[str] = None

    def masked(self) -> Dict[str, Any]:
        """Return the settings as a dict with the password hidden."""
        return {
            "log": {"id": self.log_id, "path": self.log_path},
            "email": {
                "username": self.username,
                "password": "********" if self.password else "",
                "smtp": self.smtp,
                "target": self.target,
                "count_threshold": self.count_threshold,
                "time_threshold": self.time_threshold,
            },
            "logging": {"level": self.log_level, "log_dir": self.log_dir},
        }


def resolve_config_path(cli_config_path=None):
    """
    Work out which configuration file to read.

    Precedence:
      1. cli_config_path if provided.
      2. Environment variable LOGWATCHER_CONFIG_DIR (looking for application.yml).
      3. Default to ./application.yml.
    """
    if cli_config_path:
        return cli_config_path
    if os.environ.get(ENV_CONFIG_DIR_VAR):
        return os.path.join(os.environ[ENV_CONFIG_DIR_VAR], DEFAULT_CONFIG_FILENAME)
    return DEFAULT_CONFIG_PATH


def read_config_document(config_path):
    """
    Parse the raw configuration document.

    Files ending in .toml are read with toml, everything else as YAML.

    Returns:
        dict: The parsed document.
    """
    if not os.path.exists(config_path):
        raise ConfigError(f"Configuration file not found: {config_path}")

    try:
        with open(config_path, "r") as f:
            if config_path.endswith(".toml"):
                data = toml.load(f)
            else:
                data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError, toml.TomlDecodeError) as e:
        raise ConfigError(f"Failed to parse {config_path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"Configuration in {config_path} must be a mapping")
    return data


def _section(data, name):
    section = data.get(name)
    if not isinstance(section, dict):
        raise ConfigError(f"Missing or invalid '{name}' section")
    return section


def _string(section, section_name, key, aliases=()):
    for candidate in (key,) + tuple(aliases):
        if candidate in section:
            value = section[candidate]
            if not isinstance(value, str):
                raise ConfigError(f"'{section_name}.{key}' must be a string")
            return value
    raise ConfigError(f"Missing required key '{section_name}.{key}'")


def _integer(section, section_name, key, minimum):
    if key not in section:
        raise ConfigError(f"Missing required key '{section_name}.{key}'")
    value = section[key]
    # bool is an int subclass; reject it explicitly.
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigError(f"'{section_name}.{key}' must be an integer")
    if value < minimum:
        raise ConfigError(f"'{section_name}.{key}' must be >= {minimum}, got {value}")
    return value


def parse_settings(data: Dict[str, Any], config_path: Optional[str] = None) -> Settings:
    """Validate a parsed configuration document and build Settings."""
    log_section = _section(data, "log")
    email_section = _section(data, "email")
    logging_section = data.get("logging") or {}
    if not isinstance(logging_section, dict):
        raise ConfigError("Invalid 'logging' section")

    log_dir = logging_section.get("log_dir")
    if log_dir is not None and config_path and not os.path.isabs(log_dir):
        log_dir = os.path.join(os.path.dirname(os.path.abspath(config_path)), log_dir)

    return Settings(
        log_id=_string(log_section, "log", "id"),
        log_path=_string(log_section, "log", "path"),
        username=_string(email_section, "email", "username"),
        password=_string(email_section, "email", "password"),
        # Older configuration files spell the key "stmp".
        smtp=_string(email_section, "email", "smtp", aliases=("stmp",)),
        target=_string(email_section, "email", "target"),
        count_threshold=_integer(email_section, "email", "count_threshold", 1),
        time_threshold=_integer(email_section, "email", "time_threshold", 0),
        log_level=str(logging_section.get("level", "INFO")).upper(),
        log_dir=log_dir,
        config_path=config_path,
    )


def load_config(cli_config_path=None):
    """
    Load and validate the configuration file.

    Args:
        cli_config_path (str): Optional explicit path from the command line.

    Returns:
        Settings: The validated settings.

    Raises:
        ConfigError: If the file is missing, unreadable or malformed.
    """
    config_path = resolve_config_path(cli_config_path)
    data = read_config_document(config_path)
    return parse_settings(data, config_path)
