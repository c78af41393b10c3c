"""
Configuration Management for DemoTables

Provides configuration loading from multiple sources:
- Default values
- Configuration files (YAML, TOML, JSON)
- Environment variables
- Command line arguments

Configuration precedence (highest to lowest):
1. Command line arguments
2. Environment variables (DEMOTABLES_*)
3. Configuration file
4. Default values
"""

import json
import logging
import os
import tomllib
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any, get_args

import yaml

from demotables.core.constants import DEFAULT_DELIMITER
from demotables.core.exceptions import ConfigError

logger = logging.getLogger(__name__)


# ============================================================================
# Configuration Dataclasses
# ============================================================================


@dataclass
class ParserConfig:
    """Configuration for demo conversion."""

    # Output directory; defaults to the demo file's directory
    staging_directory: str | None = None
    # Write the demo's game event list to events_dump.csv
    dump_events: bool = False


@dataclass
class ExportConfig:
    """Configuration for table output."""

    # 'csv' (text, one file per table) or 'parquet' (columnar)
    format: str = "csv"
    csv_delimiter: str = DEFAULT_DELIMITER

    # Compression for Parquet files ('zstd', 'lz4', 'snappy', 'gzip', 'uncompressed')
    compression: str = "zstd"


@dataclass
class LoggingConfig:
    """Configuration for logging."""

    level: str = "WARNING"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    file: str | None = None
    file_max_bytes: int = 10 * 1024 * 1024  # 10MB
    file_backup_count: int = 5


@dataclass
class DemoTablesConfig:
    """Main configuration container."""

    parser: ParserConfig = field(default_factory=ParserConfig)
    export: ExportConfig = field(default_factory=ExportConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    # Version of the config format
    config_version: str = "1.0"


EXPORT_FORMATS = ("csv", "parquet")
PARQUET_COMPRESSIONS = ("zstd", "lz4", "snappy", "gzip", "brotli", "uncompressed")


# ============================================================================
# Configuration Loading
# ============================================================================


def get_default_config_paths() -> list[Path]:
    """Get the default paths to search for configuration files."""
    paths = []

    # Current directory
    paths.append(Path.cwd() / "demotables.yaml")
    paths.append(Path.cwd() / "demotables.toml")
    paths.append(Path.cwd() / "demotables.json")
    paths.append(Path.cwd() / ".demotables.yaml")

    # User home directory
    home = Path.home()
    paths.append(home / ".demotables.yaml")

    # XDG config directory
    xdg_config = os.environ.get("XDG_CONFIG_HOME", str(home / ".config"))
    paths.append(Path(xdg_config) / "demotables" / "config.yaml")
    paths.append(Path(xdg_config) / "demotables" / "config.toml")

    return paths


def load_yaml_config(path: Path) -> dict[str, Any]:
    """Load configuration from a YAML file."""
    with open(path) as f:
        return yaml.safe_load(f) or {}


def load_toml_config(path: Path) -> dict[str, Any]:
    """Load configuration from a TOML file."""
    with open(path, "rb") as f:
        return tomllib.load(f)


def load_json_config(path: Path) -> dict[str, Any]:
    """Load configuration from a JSON file."""
    with open(path) as f:
        return json.load(f)


def load_config_file(path: Path) -> dict[str, Any]:
    """Load configuration from a file, detecting format from extension."""
    if not path.exists():
        return {}

    suffix = path.suffix.lower()
    if suffix in (".yaml", ".yml"):
        return load_yaml_config(path)
    elif suffix == ".toml":
        return load_toml_config(path)
    elif suffix == ".json":
        return load_json_config(path)
    else:
        logger.warning(f"Unknown config file format: {suffix}")
        return {}


def load_env_config() -> dict[str, Any]:
    """Load configuration from environment variables."""
    config: dict[str, Any] = {}

    env_mappings = {
        "DEMOTABLES_STAGING_DIRECTORY": ("parser", "staging_directory"),
        "DEMOTABLES_DUMP_EVENTS": ("parser", "dump_events"),
        "DEMOTABLES_FORMAT": ("export", "format"),
        "DEMOTABLES_CSV_DELIMITER": ("export", "csv_delimiter"),
        "DEMOTABLES_COMPRESSION": ("export", "compression"),
        "DEMOTABLES_LOG_LEVEL": ("logging", "level"),
        "DEMOTABLES_LOG_FILE": ("logging", "file"),
    }

    for env_var, (section, key) in env_mappings.items():
        value: Any = os.environ.get(env_var)
        if value is not None:
            if section not in config:
                config[section] = {}

            # Every mapped setting is a string or a flag
            if value.lower() in ("true", "false"):
                value = value.lower() == "true"

            config[section][key] = value

    return config


def merge_configs(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge two configuration dictionaries."""
    result = base.copy()

    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = merge_configs(result[key], value)
        else:
            result[key] = value

    return result


def dict_to_config(data: dict[str, Any]) -> DemoTablesConfig:
    """Convert a dictionary to DemoTablesConfig."""
    config = DemoTablesConfig()

    for section_name in ("parser", "export", "logging"):
        section = getattr(config, section_name)
        for key, value in (data.get(section_name) or {}).items():
            if hasattr(section, key):
                setattr(section, key, value)
            else:
                logger.warning(f"Ignoring unknown config key: {section_name}.{key}")

    return config


def _check_field_types(section_name: str, section: Any) -> None:
    """Reject values whose type does not match the field annotation."""
    for f in fields(section):
        value = getattr(section, f.name)
        expected = get_args(f.type) or (f.type,)
        # bool is an int subclass
        if (isinstance(value, bool) and bool not in expected) or not isinstance(value, expected):
            names = " or ".join("None" if t is type(None) else t.__name__ for t in expected)
            raise ConfigError(
                f"{section_name}.{f.name} must be {names}, got {type(value).__name__}: {value!r}"
            )


def validate_config(config: DemoTablesConfig) -> DemoTablesConfig:
    """
    Check config values that the rest of the code relies on.

    Raises:
        ConfigError: On the first invalid value
    """
    for section_name in ("parser", "export", "logging"):
        _check_field_types(section_name, getattr(config, section_name))
    if config.export.format not in EXPORT_FORMATS:
        raise ConfigError(
            f"Unknown output format: {config.export.format} (expected one of {EXPORT_FORMATS})"
        )
    if config.export.compression not in PARQUET_COMPRESSIONS:
        raise ConfigError(f"Unknown parquet compression: {config.export.compression}")
    if len(str(config.export.csv_delimiter)) != 1:
        raise ConfigError("CSV delimiter must be a single character")
    return config


def load_config(config_file: Path | None = None, include_env: bool = True) -> DemoTablesConfig:
    """
    Load configuration from all sources.

    Args:
        config_file: Explicit path to a config file (optional)
        include_env: Whether to include environment variables

    Returns:
        Merged, validated DemoTablesConfig
    """
    config_data: dict[str, Any] = {}

    # Try to find and load a config file
    if config_file:
        if not config_file.exists():
            raise ConfigError(f"Config file not found: {config_file}")
        config_data = load_config_file(config_file)
        logger.info(f"Loaded config from: {config_file}")
    else:
        for path in get_default_config_paths():
            if path.exists():
                config_data = load_config_file(path)
                logger.info(f"Loaded config from: {path}")
                break

    # Merge environment variables
    if include_env:
        env_config = load_env_config()
        config_data = merge_configs(config_data, env_config)

    return validate_config(dict_to_config(config_data))


# ============================================================================
# Configuration Saving
# ============================================================================


def config_to_dict(config: DemoTablesConfig) -> dict[str, Any]:
    """Convert DemoTablesConfig to a dictionary."""
    return asdict(config)


def save_config(config: DemoTablesConfig, path: Path) -> None:
    """
    Save configuration to a file.

    Args:
        config: Configuration to save
        path: Path to save to (YAML or JSON, detected from extension)
    """
    data = config_to_dict(config)
    suffix = path.suffix.lower()

    if suffix in (".yaml", ".yml"):
        with open(path, "w") as f:
            yaml.safe_dump(data, f, default_flow_style=False, sort_keys=False)
    elif suffix == ".json":
        with open(path, "w") as f:
            json.dump(data, f, indent=2)
    else:
        raise ConfigError(f"Unsupported config format for saving: {suffix}")

    logger.info(f"Saved config to: {path}")


# ============================================================================
# Configuration Templates
# ============================================================================

DEFAULT_CONFIG_YAML = """# DemoTables Configuration

# Conversion settings
parser:
  # staging_directory: /path/to/output  # default: next to the demo file
  dump_events: false

# Table output settings
export:
  format: csv            # csv or parquet
  csv_delimiter: ";"
  compression: zstd      # zstd, lz4, snappy, gzip, brotli, uncompressed (parquet only)

# Logging settings (the CLI --verboseness option overrides the level)
logging:
  level: WARNING
  # file: /path/to/demotables.log
"""


def generate_default_config(path: Path) -> None:
    """Generate a default configuration file."""
    suffix = path.suffix.lower()

    if suffix in (".yaml", ".yml"):
        path.write_text(DEFAULT_CONFIG_YAML)
    else:
        save_config(DemoTablesConfig(), path)

    logger.info(f"Generated default config at: {path}")
