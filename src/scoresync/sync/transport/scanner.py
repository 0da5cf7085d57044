"""Exclusive access to the payload scanner.

This module provides:
- Scanner: Protocol of a decoding device (camera, file reader, ...)
- ScannerResource: Mutually exclusive, always-released scan sessions
- FileScanner: Scanner that reads a payload saved to disk

A scan session:
    1. acquires the scanner (ScannerBusyError if another scan holds it)
    2. starts it and waits for the first decoded text
    3. stops it on every exit path (result, cancel, timeout, error)

Each session bumps a generation counter; decode callbacks tagged with an
older generation are discarded, so a result arriving after cancel() is
never delivered.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from pathlib import Path
from typing import Protocol

from scoresync.sync.types import ScannerBusyError, TransportError

logger = logging.getLogger(__name__)

DecodedCallback = Callable[[str], None]


class Scanner(Protocol):
    """A device that decodes transferred payloads."""

    async def start(self, on_decoded: DecodedCallback) -> None:
        """Begin decoding; call on_decoded for each decoded text."""
        ...

    async def stop(self) -> None:
        """Release the device."""
        ...


class ScannerResource:
    """Owns one Scanner and serializes access to it."""

    def __init__(self, scanner: Scanner) -> None:
        self._scanner = scanner
        self._lock = asyncio.Lock()
        self._generation = 0
        self._pending: asyncio.Future[str | None] | None = None

    @property
    def busy(self) -> bool:
        """Check if a scan currently holds the scanner."""
        return self._lock.locked()

    @property
    def generation(self) -> int:
        return self._generation

    async def scan(self, timeout: float | None = None) -> str | None:
        """Run one scan session.

        Args:
            timeout: Seconds to wait for a decoded payload (None = forever).

        Returns:
            The decoded text, or None if the scan was cancelled.

        Raises:
            ScannerBusyError: If another scan holds the scanner.
            TransportError: If the scanner fails to start.
            TimeoutError: If nothing was decoded in time.
        """
        if self._lock.locked():
            raise ScannerBusyError("Scanner is already in use")

        async with self._lock:
            self._generation += 1
            generation = self._generation
            future: asyncio.Future[str | None] = asyncio.get_running_loop().create_future()
            self._pending = future

            def on_decoded(text: str) -> None:
                if generation != self._generation or future.done():
                    logger.debug("Discarding stale scan result (generation %d)", generation)
                    return
                future.set_result(text)

            try:
                try:
                    await self._scanner.start(on_decoded)
                except (OSError, RuntimeError) as e:
                    raise TransportError(f"Unable to start scanner: {e}") from e
                return await asyncio.wait_for(future, timeout)
            finally:
                self._pending = None
                self._generation += 1
                await self._release()

    def cancel(self) -> bool:
        """Cancel the running scan; it returns None.

        Returns:
            True if a scan was waiting for a result.
        """
        future = self._pending
        if future is None or future.done():
            return False
        self._generation += 1
        future.set_result(None)
        logger.info("Scan cancelled")
        return True

    async def _release(self) -> None:
        try:
            await self._scanner.stop()
        except (OSError, RuntimeError) as e:
            logger.warning("Failed to stop scanner: %s", e)


class FileScanner:
    """Decodes a payload previously saved to a file."""

    def __init__(self, path: Path) -> None:
        self._path = Path(path)
        self.started = False

    async def start(self, on_decoded: DecodedCallback) -> None:
        self.started = True
        text = await asyncio.to_thread(self._path.read_text, encoding="utf-8")
        on_decoded(text)

    async def stop(self) -> None:
        self.started = False
