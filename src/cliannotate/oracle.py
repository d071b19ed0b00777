"""Oracle capability interface, command-spec cache and update notifications.

An oracle answers two questions about one CLI: which commands exist, and
what a concrete argument vector means. The transport (spawned process,
in-memory fake) lives behind the Oracle protocol.

Public API (the "studs"):
    Oracle: Capability protocol (list_commands, describe)
    CommandSpecCache: Generation-tagged snapshot cache for list_commands
    UpdateNotifier: Callback registry fired when an oracle changes
    find_command: Resolve a command path (primary or alias) in a spec list
"""

import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable, Iterable, Sequence
from typing import Protocol

from cliannotate.models import CommandSpec, DescribeResult
from cliannotate.retry_handler import safe_error_message

logger = logging.getLogger(__name__)

UpdateCallback = Callable[[], Awaitable[None] | None]


class Oracle(Protocol):
    """Describes the grammar of one CLI."""

    async def list_commands(self) -> tuple[CommandSpec, ...]:
        """Enumerate every command specification."""
        ...

    async def describe(self, argv: Sequence[str]) -> DescribeResult | None:
        """Describe an argument vector; None when it resolves to no command."""
        ...


def find_command(specs: Iterable[CommandSpec], path: Sequence[str]) -> CommandSpec | None:
    """Return the spec whose primary path or one of its aliases equals path."""
    key = tuple(path)
    for spec in specs:
        if spec.matches(key):
            return spec
    return None


class CommandSpecCache:
    """Snapshot cache for an oracle's command list.

    The cached value is an immutable tuple replaced as a whole, so readers
    see either the old or the new list. Each invalidation bumps a
    generation counter; a fetch that started under an older generation
    returns its result to its caller but never stores it.

    Example:
        >>> cache = CommandSpecCache()
        >>> specs = await cache.get_or_fetch(oracle_fetch)  # Cache miss
        >>> specs = await cache.get_or_fetch(oracle_fetch)  # Cache hit
    """

    def __init__(self):
        self._snapshot: tuple[CommandSpec, ...] | None = None
        self._generation = 0
        self._lock = asyncio.Lock()
        self._hit_count = 0
        self._miss_count = 0

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def snapshot(self) -> tuple[CommandSpec, ...] | None:
        return self._snapshot

    async def get_or_fetch(
        self, fetch: Callable[[], Awaitable[tuple[CommandSpec, ...]]]
    ) -> tuple[CommandSpec, ...]:
        """Return the cached list, fetching it once if absent.

        Concurrent callers share a single fetch.
        """
        snapshot = self._snapshot
        if snapshot is not None:
            self._hit_count += 1
            return snapshot

        async with self._lock:
            if self._snapshot is not None:
                self._hit_count += 1
                return self._snapshot

            self._miss_count += 1
            generation = self._generation
            specs = await fetch()

            if generation == self._generation:
                self._snapshot = specs
            else:
                logger.debug("Command list changed during fetch, result not cached")

            return specs

    def invalidate(self) -> None:
        """Drop the snapshot; the next read fetches again."""
        self._snapshot = None
        self._generation += 1

    def get_stats(self) -> dict[str, int]:
        return {
            "hits": self._hit_count,
            "misses": self._miss_count,
            "generation": self._generation,
        }


class UpdateNotifier:
    """Registry of callbacks to run after an oracle reports an update.

    Callbacks may be plain functions or coroutine functions. A failing
    callback is logged and does not prevent the others from running.
    """

    def __init__(self):
        self._callbacks: list[UpdateCallback] = []

    def subscribe(self, callback: UpdateCallback) -> Callable[[], None]:
        """Register a callback.

        Returns:
            Function that unregisters the callback
        """
        self._callbacks.append(callback)

        def unsubscribe() -> None:
            if callback in self._callbacks:
                self._callbacks.remove(callback)

        return unsubscribe

    async def notify(self) -> None:
        for callback in list(self._callbacks):
            try:
                result = callback()
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.warning(
                    f"Update callback {getattr(callback, '__name__', callback)!r} failed: "
                    f"{safe_error_message(e)}"
                )

    def __len__(self) -> int:
        return len(self._callbacks)


__all__ = [
    "CommandSpecCache",
    "Oracle",
    "UpdateCallback",
    "UpdateNotifier",
    "find_command",
]
