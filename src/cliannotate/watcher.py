"""Oracle binary watcher - invalidates caches when a binary is rebuilt.

Philosophy:
- File modification detection (mtime) for invalidation
- Polling, no platform-specific file system APIs
- Notification errors never stop the watch loop

Public API (the "studs"):
    BinaryWatcher: Polls oracle binaries, fires notify_updated on change and
        one on_change callback per poll
"""

import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable, Iterable
from typing import Any

from cliannotate.binary_oracle import BinaryOracle
from cliannotate.retry_handler import safe_error_message

logger = logging.getLogger(__name__)

ChangeCallback = Callable[[list[BinaryOracle]], Awaitable[Any] | Any]


def _mtime(oracle: BinaryOracle) -> float | None:
    try:
        return oracle.path.stat().st_mtime
    except (FileNotFoundError, OSError):
        return None


class BinaryWatcher:
    """Detects rebuilt oracle binaries by modification time.

    A binary that disappears is not reported; it is reported once it
    reappears with a different modification time.

    Example:
        >>> watcher = BinaryWatcher([oracle])
        >>> changed = await watcher.check()  # [] until the binary is rebuilt
    """

    def __init__(self, oracles: Iterable[BinaryOracle], on_change: ChangeCallback | None = None):
        """Initialize watcher.

        Args:
            oracles: Oracles whose binaries are polled
            on_change: Called once per poll with the changed oracles, after
                each of them was notified
        """
        self._oracles = list(oracles)
        self._on_change = on_change
        self._mtimes: dict[int, float | None] = {id(o): _mtime(o) for o in self._oracles}

    async def check(self) -> list[BinaryOracle]:
        """Notify every oracle whose binary changed since the last check.

        Returns:
            Oracles that were notified
        """
        changed = []
        for oracle in self._oracles:
            current = _mtime(oracle)
            previous = self._mtimes[id(oracle)]
            if current is None or current == previous:
                continue

            self._mtimes[id(oracle)] = current
            changed.append(oracle)

        for oracle in changed:
            await oracle.notify_updated()

        if changed and self._on_change is not None:
            try:
                result = self._on_change(changed)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.warning(f"Change callback failed: {safe_error_message(e)}")

        return changed

    async def watch(self, interval: float = 1.0, stop_event: asyncio.Event | None = None) -> None:
        """Poll until stop_event is set (forever if None)."""
        stop_event = stop_event or asyncio.Event()
        logger.info(f"Watching {len(self._oracles)} oracle binaries (interval: {interval}s)")

        while not stop_event.is_set():
            await self.check()
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=interval)
            except asyncio.TimeoutError:
                pass


__all__ = ["BinaryWatcher"]
