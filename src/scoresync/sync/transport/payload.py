"""One-shot payload transport (generate / scan).

This module provides:
- PayloadTransport: Exchange of a full snapshot as a single transferable
  text (rendered e.g. as a QR code by the presentation layer)

There is no persistent link: "send" produces the payload for display, and
"request_data" scans the peer's payload and treats it as one complete
inbound message. Nothing is chunked.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import TYPE_CHECKING

from scoresync.core.records import GameRecord
from scoresync.sync.codec import decode_records
from scoresync.sync.transport.base import TransportAdapter, platform_label
from scoresync.sync.types import (
    CapabilityUnsupportedError,
    Compatibility,
    DecodeError,
    RecordValidationError,
    ScanCancelledError,
    SyncChannel,
    SyncEvent,
    TransportError,
)

if TYPE_CHECKING:
    from scoresync.sync.events import EventBus
    from scoresync.sync.transport.scanner import ScannerResource

logger = logging.getLogger(__name__)

PAYLOAD_DEVICE = "payload"


class PayloadTransport(TransportAdapter):
    """Snapshot exchange without a link.

    Usage:
        transport = PayloadTransport(bus, ScannerResource(camera), on_payload=render)
        await transport.connect()
        await transport.send_records(store.read_all())   # render() gets the text
        await transport.request_data()                   # scans, publishes records
        await transport.disconnect()
    """

    name = "payload"

    def __init__(
        self,
        bus: EventBus[SyncEvent],
        scanner: ScannerResource | None = None,
        on_payload: Callable[[str], None] | None = None,
        scan_timeout: float | None = None,
    ) -> None:
        """Initialize the transport.

        Args:
            bus: Transport bus.
            scanner: Scanner used by request_data (None: receive() only).
            on_payload: Called with each generated payload text.
            scan_timeout: Seconds to wait for a scan.
        """
        super().__init__(bus)
        self._scanner = scanner
        self._on_payload = on_payload
        self._scan_timeout = scan_timeout
        self._outbound: str | None = None

    @property
    def outbound(self) -> str | None:
        """Last generated payload text."""
        return self._outbound

    def is_supported(self) -> bool:
        return True

    def compatibility(self) -> Compatibility:
        return Compatibility(
            is_supported=True,
            platform_label=platform_label(),
            advisory_message="Snapshot transfer works on every platform",
        )

    def receive(self, text: str | bytes) -> list[GameRecord]:
        """Treat a scanned payload as a completed inbound message.

        Args:
            text: Decoded payload text.

        Returns:
            The decoded records (also published as DATA_RECEIVED).

        Raises:
            DecodeError: If the payload is not a valid record array.
        """
        try:
            records = decode_records(text)
        except (DecodeError, RecordValidationError) as e:
            error = DecodeError(f"Invalid scanned data: {e}")
            self._report(error)
            raise error from e

        logger.info("Received %d games from payload", len(records))
        self._bus.publish(SyncEvent.data_received(records))
        return records

    async def _open(self) -> SyncChannel:
        return SyncChannel(supported=True, connected=True, device_name=PAYLOAD_DEVICE)

    async def _close(self) -> None:
        if self._scanner is not None:
            self._scanner.cancel()
        self._outbound = None

    async def _send(self, data: bytes) -> None:
        self._outbound = data.decode("utf-8")
        logger.info("Generated payload: %d bytes", len(data))
        if self._on_payload is not None:
            self._on_payload(self._outbound)

    async def _request_data(self) -> None:
        if self._scanner is None:
            raise CapabilityUnsupportedError("No scanner available on this device")

        try:
            text = await self._scanner.scan(timeout=self._scan_timeout)
        except TimeoutError as e:
            raise TransportError("Timed out waiting for a scanned payload") from e
        if not self.connected:
            logger.info("Scan ended by disconnect")
            return
        if text is None:
            raise ScanCancelledError("Scan cancelled before a payload was read")
        self.receive(text)
