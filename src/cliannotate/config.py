"""Configuration management module.

This module loads the TOML configuration naming the CLIs whose command
lines should be annotated, and the environment-tunable oracle settings.

Config file layout (cliannotate.toml):

    enable_blocks = true
    enable_inline = true
    languages = ["bash", "sh", "shell"]

    [clis.git]
    path = "./target/debug/git-demo"
    base_url = "https://example.com/docs"

Relative oracle paths are resolved against the config file's directory.
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

try:
    import tomli  # type: ignore[import]
except ImportError:
    # Fallback for newer Python versions
    try:
        import tomllib as tomli  # type: ignore[import]
    except ImportError as e:
        raise ImportError("toml library not available. Install with: pip install tomli") from e

try:
    import tomlkit
except ImportError as e:
    raise ImportError("tomlkit library not available. Install with: pip install tomlkit") from e

from cliannotate.errors import ConfigError

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE = "cliannotate.toml"
DEFAULT_LANGUAGES = ("bash", "sh", "shell")


@dataclass
class OracleSettings:
    """Oracle process settings.

    These settings control how oracle binaries are invoked and retried.
    """

    timeout: float = 10.0
    max_concurrent: int = 4
    max_attempts: int = 2
    initial_delay: float = 0.2
    max_delay: float = 2.0
    jitter_enabled: bool = True

    @classmethod
    def from_environment(cls) -> "OracleSettings":
        """Load oracle settings from environment variables.

        Environment variables (all optional):
            CLIANNOTATE_ORACLE_TIMEOUT: Per-call timeout in seconds (default: 10.0)
            CLIANNOTATE_ORACLE_MAX_CONCURRENT: Concurrent processes per oracle (default: 4)
            CLIANNOTATE_ORACLE_MAX_ATTEMPTS: Attempts per call (default: 2)
            CLIANNOTATE_ORACLE_INITIAL_DELAY: First retry delay in seconds (default: 0.2)
            CLIANNOTATE_ORACLE_MAX_DELAY: Maximum retry delay in seconds (default: 2.0)
            CLIANNOTATE_ORACLE_JITTER_ENABLED: Enable jitter (default: true)

        Returns:
            OracleSettings with values from environment or defaults

        Raises:
            ConfigError: If a variable cannot be parsed
        """
        try:
            return cls(
                timeout=float(os.getenv("CLIANNOTATE_ORACLE_TIMEOUT", "10.0")),
                max_concurrent=int(os.getenv("CLIANNOTATE_ORACLE_MAX_CONCURRENT", "4")),
                max_attempts=int(os.getenv("CLIANNOTATE_ORACLE_MAX_ATTEMPTS", "2")),
                initial_delay=float(os.getenv("CLIANNOTATE_ORACLE_INITIAL_DELAY", "0.2")),
                max_delay=float(os.getenv("CLIANNOTATE_ORACLE_MAX_DELAY", "2.0")),
                jitter_enabled=os.getenv("CLIANNOTATE_ORACLE_JITTER_ENABLED", "true").lower()
                == "true",
            )
        except ValueError as e:
            raise ConfigError(f"Invalid oracle setting in environment: {e}") from e


@dataclass
class CliConfig:
    """One annotated CLI: the name used on command lines and its oracle binary."""

    name: str
    path: Path
    base_url: str | None = None

    @classmethod
    def from_dict(cls, name: str, data: Any, base_dir: Path) -> "CliConfig":
        """Create from a [clis.<name>] table.

        Raises:
            ConfigError: If the table is missing a path or has wrong types
        """
        if not isinstance(data, dict):
            raise ConfigError(f"[clis.{name}] must be a table")

        path = data.get("path")
        if not isinstance(path, str) or not path:
            raise ConfigError(f"[clis.{name}] requires a 'path' string")

        base_url = data.get("base_url", data.get("baseUrl"))
        if base_url is not None and not isinstance(base_url, str):
            raise ConfigError(f"[clis.{name}] 'base_url' must be a string")

        resolved = Path(path).expanduser()
        if not resolved.is_absolute():
            resolved = base_dir / resolved

        return cls(name=name, path=resolved, base_url=base_url or None)


@dataclass
class AnnotateConfig:
    """Top-level annotation configuration."""

    clis: dict[str, CliConfig] = field(default_factory=dict)
    enable_blocks: bool = True
    enable_inline: bool = True
    languages: tuple[str, ...] = DEFAULT_LANGUAGES

    @classmethod
    def from_dict(cls, data: dict[str, Any], base_dir: Path | None = None) -> "AnnotateConfig":
        """Create from a parsed TOML document.

        Raises:
            ConfigError: If any value has the wrong type
        """
        base_dir = base_dir or Path.cwd()

        clis_data = data.get("clis", {})
        if not isinstance(clis_data, dict):
            raise ConfigError("'clis' must be a table of CLI definitions")

        for key in ("enable_blocks", "enable_inline"):
            if not isinstance(data.get(key, True), bool):
                raise ConfigError(f"'{key}' must be a boolean")

        languages = data.get("languages", list(DEFAULT_LANGUAGES))
        if not isinstance(languages, list) or not all(isinstance(lang, str) for lang in languages):
            raise ConfigError("'languages' must be a list of strings")

        return cls(
            clis={
                name: CliConfig.from_dict(name, cli_data, base_dir)
                for name, cli_data in clis_data.items()
            },
            enable_blocks=data.get("enable_blocks", True),
            enable_inline=data.get("enable_inline", True),
            languages=tuple(languages),
        )

    @classmethod
    def load(cls, path: Path | str | None = None) -> "AnnotateConfig":
        """Load configuration from a TOML file.

        Args:
            path: Config file (default: ./cliannotate.toml)

        Returns:
            Parsed configuration

        Raises:
            ConfigError: If the file is missing or invalid
        """
        config_path = Path(path or DEFAULT_CONFIG_FILE).expanduser()

        try:
            with open(config_path, "rb") as f:
                data = tomli.load(f)
        except FileNotFoundError as e:
            raise ConfigError(f"Config file not found: {config_path}") from e
        except OSError as e:
            raise ConfigError(f"Cannot read config file {config_path}: {e}") from e
        except tomli.TOMLDecodeError as e:
            raise ConfigError(f"Invalid TOML in {config_path}: {e}") from e

        logger.debug(f"Loaded config from {config_path}")
        return cls.from_dict(data, base_dir=config_path.resolve().parent)


def write_default_config(path: Path | str, overwrite: bool = False) -> Path:
    """Write a commented template configuration file.

    Args:
        path: Destination file
        overwrite: Replace an existing file

    Returns:
        Path written

    Raises:
        ConfigError: If the file exists and overwrite is False
    """
    config_path = Path(path).expanduser()
    if config_path.exists() and not overwrite:
        raise ConfigError(f"Config file already exists: {config_path}")

    doc = tomlkit.document()
    doc.add(tomlkit.comment("cliannotate configuration"))
    doc.add(tomlkit.nl())
    doc["enable_blocks"] = True
    doc["enable_inline"] = True
    doc["languages"] = list(DEFAULT_LANGUAGES)

    example = tomlkit.table()
    example.add(tomlkit.comment("Oracle binary, relative to this file"))
    example["path"] = "./target/debug/my-cli"
    example["base_url"] = "https://example.com/docs"

    clis = tomlkit.table(is_super_table=True)
    clis["my-cli"] = example
    doc["clis"] = clis

    config_path.parent.mkdir(parents=True, exist_ok=True)
    config_path.write_text(tomlkit.dumps(doc))
    logger.info(f"Wrote default config to {config_path}")
    return config_path


__all__ = [
    "DEFAULT_CONFIG_FILE",
    "DEFAULT_LANGUAGES",
    "AnnotateConfig",
    "CliConfig",
    "OracleSettings",
    "write_default_config",
]
