"""Explicit registry mapping CLI names to oracles.

The pipeline receives a registry from its caller instead of consulting a
process-wide table, so tests can inject in-memory oracles.
"""

import logging
import os
from collections.abc import Iterator
from dataclasses import dataclass

from cliannotate.binary_oracle import BinaryOracle
from cliannotate.config import AnnotateConfig, OracleSettings
from cliannotate.errors import ConfigError
from cliannotate.oracle import Oracle

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CliBinding:
    """A CLI name bound to its oracle and optional documentation base URL."""

    name: str
    oracle: Oracle
    base_url: str | None = None


class OracleRegistry:
    """Maps the leading word of a command line to the oracle describing it.

    Example:
        >>> registry = OracleRegistry()
        >>> registry.register("git", BinaryOracle("./bin/git-demo"), "https://example.com/docs")
        >>> registry.lookup("git").base_url
        'https://example.com/docs'
    """

    def __init__(self, bindings: list[CliBinding] | None = None):
        self._bindings: dict[str, CliBinding] = {}
        for binding in bindings or []:
            self._add(binding)

    def _add(self, binding: CliBinding) -> CliBinding:
        if not binding.name:
            raise ConfigError("CLI name cannot be empty")
        if binding.name in self._bindings:
            raise ConfigError(f"CLI '{binding.name}' is already registered")
        self._bindings[binding.name] = binding
        return binding

    def register(self, name: str, oracle: Oracle, base_url: str | None = None) -> CliBinding:
        """Bind a CLI name to an oracle.

        Raises:
            ConfigError: If the name is empty or already registered
        """
        return self._add(CliBinding(name=name, oracle=oracle, base_url=base_url))

    def lookup(self, name: str) -> CliBinding | None:
        return self._bindings.get(name)

    def bindings(self) -> list[CliBinding]:
        return list(self._bindings.values())

    def __contains__(self, name: object) -> bool:
        return name in self._bindings

    def __iter__(self) -> Iterator[str]:
        return iter(self._bindings)

    def __len__(self) -> int:
        return len(self._bindings)

    @classmethod
    def from_config(
        cls, config: AnnotateConfig, settings: OracleSettings | None = None
    ) -> "OracleRegistry":
        """Build a registry of BinaryOracles from configuration.

        Raises:
            ConfigError: If an oracle path does not exist or is not executable
        """
        settings = settings or OracleSettings.from_environment()
        registry = cls()

        for name, cli in config.clis.items():
            if not cli.path.is_file():
                raise ConfigError(f"Oracle for '{name}' not found: {cli.path}")
            if not os.access(cli.path, os.X_OK):
                raise ConfigError(f"Oracle for '{name}' is not executable: {cli.path}")

            registry.register(name, BinaryOracle(cli.path, name=name, settings=settings), cli.base_url)
            logger.debug(f"Registered oracle '{name}' at {cli.path}")

        return registry


__all__ = ["CliBinding", "OracleRegistry"]
