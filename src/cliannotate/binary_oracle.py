"""Oracle backed by an introspection-capable CLI binary.

The binary is spawned once per request:

    <path> --cli-introspect=commands              -> JSON list of command specs
    <path> --cli-introspect=describe -- ARGV...   -> JSON describe result or null

Every request runs in its own process, so no request can observe another's
argument vector, and a crashed process never affects the next call.
Concurrency per binary is bounded by a semaphore. Transient failures (spawn
errors, timeouts, non-zero exits) are retried with exponential backoff
before OracleUnavailableError is raised.

Usage:
    oracle = BinaryOracle("./target/debug/git-demo", name="git")
    result = await oracle.describe(["commit", "-m", "msg"])
"""

import asyncio
import json
import logging
from collections.abc import Sequence
from pathlib import Path
from typing import Any, Callable

from cliannotate.config import OracleSettings
from cliannotate.errors import MalformedOracleResponseError, OracleUnavailableError
from cliannotate.models import CommandSpec, DescribeResult, command_specs_from_list
from cliannotate.oracle import CommandSpecCache, UpdateCallback, UpdateNotifier, find_command
from cliannotate.retry_handler import async_retry_with_exponential_backoff

logger = logging.getLogger(__name__)

COMMANDS_ARGS = ("--cli-introspect=commands",)
DESCRIBE_ARGS = ("--cli-introspect=describe", "--")

# Bound on stderr echoed into error messages
STDERR_EXCERPT = 500


class BinaryOracle:
    """Oracle that queries a CLI binary through its introspection flags.

    Example:
        >>> oracle = BinaryOracle(Path("./bin/demo"), name="demo")
        >>> specs = await oracle.list_commands()
        >>> result = await oracle.describe(["ssh", "-p", "80", "localhost"])
    """

    def __init__(
        self,
        path: Path | str,
        name: str | None = None,
        settings: OracleSettings | None = None,
        cache_commands: bool = True,
    ):
        """Initialize binary oracle.

        Args:
            path: Oracle executable
            name: Name used to address the CLI from command lines
                (default: executable file name)
            settings: Process settings (default: from environment)
            cache_commands: Cache list_commands until invalidated
        """
        self.path = Path(path)
        self.name = name or self.path.name
        self.settings = settings or OracleSettings.from_environment()
        self.cache_commands = cache_commands

        self._semaphore = asyncio.Semaphore(max(1, self.settings.max_concurrent))
        self._cache = CommandSpecCache()
        self._notifier = UpdateNotifier()

    def __repr__(self) -> str:
        return f"BinaryOracle(name={self.name!r}, path={str(self.path)!r})"

    async def _invoke(self, args: Sequence[str]) -> Any:
        """Run the binary once and decode its JSON output.

        Raises:
            OracleUnavailableError: If the process cannot run, times out or fails
            MalformedOracleResponseError: If stdout is not valid JSON
        """
        cmd = [str(self.path), *args]

        async with self._semaphore:
            logger.debug(f"Invoking oracle {self.name}: {cmd}")

            try:
                process = await asyncio.create_subprocess_exec(
                    *cmd,
                    stdout=asyncio.subprocess.PIPE,
                    stderr=asyncio.subprocess.PIPE,
                )
            except OSError as e:
                raise OracleUnavailableError(f"Cannot start oracle {self.path}: {e}") from e

            try:
                stdout, stderr = await asyncio.wait_for(
                    process.communicate(), timeout=self.settings.timeout
                )
            except asyncio.TimeoutError as e:
                await self._kill(process)
                raise OracleUnavailableError(
                    f"Oracle {self.name} timed out after {self.settings.timeout}s"
                ) from e
            except asyncio.CancelledError:
                await self._kill(process)
                raise

        if process.returncode != 0:
            excerpt = stderr.decode(errors="replace").strip()[:STDERR_EXCERPT]
            raise OracleUnavailableError(
                f"Oracle {self.name} exited with code {process.returncode}: {excerpt}"
            )

        try:
            return json.loads(stdout.decode())
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise MalformedOracleResponseError(
                f"Oracle {self.name} returned invalid JSON: {e}"
            ) from e

    @staticmethod
    async def _kill(process: asyncio.subprocess.Process) -> None:
        if process.returncode is None:
            try:
                process.kill()
            except ProcessLookupError:
                pass
            await process.wait()

    async def _request(self, args: Sequence[str]) -> Any:
        """Invoke the binary with retry on transient failures."""

        @async_retry_with_exponential_backoff(
            max_attempts=max(1, self.settings.max_attempts),
            initial_delay=self.settings.initial_delay,
            max_delay=self.settings.max_delay,
            jitter=self.settings.jitter_enabled,
            retryable_exceptions=(OracleUnavailableError,),
        )
        async def _run() -> Any:
            return await self._invoke(args)

        return await _run()

    async def _fetch_commands(self) -> tuple[CommandSpec, ...]:
        payload = await self._request(COMMANDS_ARGS)
        specs = command_specs_from_list(payload)
        logger.debug(f"Oracle {self.name} reported {len(specs)} commands")
        return specs

    async def list_commands(self) -> tuple[CommandSpec, ...]:
        """Enumerate command specifications (cached until invalidated).

        Raises:
            OracleUnavailableError: If the binary cannot be queried
            MalformedOracleResponseError: If the output has the wrong shape
        """
        if not self.cache_commands:
            return await self._fetch_commands()
        return await self._cache.get_or_fetch(self._fetch_commands)

    async def describe(self, argv: Sequence[str]) -> DescribeResult | None:
        """Describe an argument vector.

        Args:
            argv: Arguments following the binary name

        Returns:
            DescribeResult, or None if the arguments resolve to no command

        Raises:
            OracleUnavailableError: If the binary cannot be queried
            MalformedOracleResponseError: If the output has the wrong shape
        """
        payload = await self._request([*DESCRIBE_ARGS, *argv])
        return DescribeResult.from_dict(payload)

    async def find_command(self, path: Sequence[str]) -> CommandSpec | None:
        """Resolve a command path (primary or alias) to its specification."""
        return find_command(await self.list_commands(), path)

    def invalidate(self) -> None:
        """Forget cached command specifications."""
        self._cache.invalidate()

    def on_updated(self, callback: UpdateCallback) -> Callable[[], None]:
        """Register a callback run after notify_updated; returns an unsubscribe function."""
        return self._notifier.subscribe(callback)

    async def notify_updated(self) -> None:
        """Invalidate cached specs, then run every update callback."""
        logger.info(f"Oracle {self.name} updated, invalidating command cache")
        self.invalidate()
        await self._notifier.notify()


__all__ = ["COMMANDS_ARGS", "DESCRIBE_ARGS", "BinaryOracle"]
