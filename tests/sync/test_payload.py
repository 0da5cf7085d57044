"""Tests for the scanner resource and the one-shot payload transport."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

import pytest

from scoresync.core.records import GameRecord, encode_records
from scoresync.sync.events import EventBus
from scoresync.sync.transport.payload import PayloadTransport
from scoresync.sync.transport.scanner import DecodedCallback, FileScanner, ScannerResource
from scoresync.sync.types import (
    CapabilityUnsupportedError,
    DecodeError,
    NotConnectedError,
    ScanCancelledError,
    ScannerBusyError,
    SyncEvent,
    SyncEventType,
    TransportError,
)


class FakeScanner:
    """Scanner that decodes a fixed text, or waits for decode() calls."""

    def __init__(
        self,
        text: str | None = None,
        fail_start: bool = False,
        fail_stop: bool = False,
    ) -> None:
        self.text = text
        self.fail_start = fail_start
        self.fail_stop = fail_stop
        self.starts = 0
        self.stops = 0
        self.callbacks: list[DecodedCallback] = []

    async def start(self, on_decoded: DecodedCallback) -> None:
        self.starts += 1
        if self.fail_start:
            raise OSError("camera unavailable")
        self.callbacks.append(on_decoded)
        if self.text is not None:
            on_decoded(self.text)

    async def stop(self) -> None:
        self.stops += 1
        if self.fail_stop:
            raise RuntimeError("camera stuck")


async def wait_until_started(scanner: FakeScanner, count: int = 1) -> None:
    while len(scanner.callbacks) < count:
        await asyncio.sleep(0)


class TestScannerResource:
    """Tests for ScannerResource."""

    @pytest.mark.asyncio
    async def test_scan_returns_text_and_stops(self) -> None:
        """A decoded payload is returned and the scanner released."""
        scanner = FakeScanner(text="[]")
        resource = ScannerResource(scanner)

        assert await resource.scan() == "[]"
        assert scanner.stops == 1
        assert not resource.busy

    @pytest.mark.asyncio
    async def test_second_scan_is_rejected(self) -> None:
        """The scanner is mutually exclusive."""
        scanner = FakeScanner()
        resource = ScannerResource(scanner)
        first = asyncio.create_task(resource.scan())
        await wait_until_started(scanner)

        assert resource.busy
        with pytest.raises(ScannerBusyError):
            await resource.scan()

        assert resource.cancel()
        assert await first is None
        assert scanner.starts == 1
        assert scanner.stops == 1

    @pytest.mark.asyncio
    async def test_timeout_releases(self) -> None:
        """A scan that times out still stops the scanner."""
        scanner = FakeScanner()
        resource = ScannerResource(scanner)

        with pytest.raises(TimeoutError):
            await resource.scan(timeout=0.05)

        assert scanner.stops == 1
        assert not resource.busy

    @pytest.mark.asyncio
    async def test_start_failure_releases(self) -> None:
        """A scanner that cannot start is still stopped."""
        scanner = FakeScanner(fail_start=True)
        resource = ScannerResource(scanner)

        with pytest.raises(TransportError, match="camera unavailable"):
            await resource.scan()

        assert scanner.stops == 1
        assert not resource.busy

    @pytest.mark.asyncio
    async def test_task_cancellation_releases(self) -> None:
        """Cancelling the scanning task stops the scanner."""
        scanner = FakeScanner()
        resource = ScannerResource(scanner)
        task = asyncio.create_task(resource.scan())
        await wait_until_started(scanner)

        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert scanner.stops == 1
        assert not resource.busy

    @pytest.mark.asyncio
    async def test_stop_failure_is_logged(self, caplog: pytest.LogCaptureFixture) -> None:
        """A failing stop does not lose the scanned result."""
        resource = ScannerResource(FakeScanner(text="[]", fail_stop=True))

        with caplog.at_level(logging.WARNING, logger="scoresync.sync.transport.scanner"):
            assert await resource.scan() == "[]"

        assert "Failed to stop scanner" in caplog.text

    @pytest.mark.asyncio
    async def test_stale_result_discarded(self) -> None:
        """A decode from an earlier session never reaches a later one."""
        scanner = FakeScanner()
        resource = ScannerResource(scanner)

        first = asyncio.create_task(resource.scan())
        await wait_until_started(scanner)
        resource.cancel()
        assert await first is None

        second = asyncio.create_task(resource.scan())
        await wait_until_started(scanner, count=2)
        stale, fresh = scanner.callbacks
        stale("stale")
        fresh("fresh")

        assert await second == "fresh"
        assert resource.generation >= 4

    def test_cancel_without_scan(self) -> None:
        """Cancel is a no-op when nothing is scanning."""
        assert not ScannerResource(FakeScanner()).cancel()

    @pytest.mark.asyncio
    async def test_file_scanner(self, tmp_path: Path) -> None:
        """FileScanner decodes the file contents."""
        path = tmp_path / "payload.json"
        path.write_text('[{"x": "é"}]', encoding="utf-8")
        scanner = FileScanner(path)

        assert await ScannerResource(scanner).scan() == '[{"x": "é"}]'
        assert not scanner.started


class TestPayloadTransport:
    """Tests for PayloadTransport."""

    @pytest.mark.asyncio
    async def test_send_generates_payload(self, bus: EventBus[SyncEvent], alice_bob: GameRecord) -> None:
        """Sending produces the wire text for display."""
        shown: list[str] = []
        transport = PayloadTransport(bus, on_payload=shown.append)
        await transport.connect()

        await transport.send_records([alice_bob])

        assert shown == [encode_records([alice_bob])]
        assert transport.outbound == shown[0]

    @pytest.mark.asyncio
    async def test_not_connected(self, bus: EventBus[SyncEvent]) -> None:
        """Sending requires connect()."""
        with pytest.raises(NotConnectedError):
            await PayloadTransport(bus).send(b"[]")

    def test_receive_publishes_records(
        self, bus: EventBus[SyncEvent], events: list[SyncEvent], alice_bob: GameRecord
    ) -> None:
        """A valid payload is one complete inbound message."""
        records = PayloadTransport(bus).receive(encode_records([alice_bob]))

        assert records == [alice_bob]
        assert events == [SyncEvent.data_received([alice_bob])]

    def test_receive_invalid(self, bus: EventBus[SyncEvent], events: list[SyncEvent]) -> None:
        """An invalid payload is reported and raised."""
        with pytest.raises(DecodeError, match="Invalid scanned data"):
            PayloadTransport(bus).receive("not a payload")

        assert event_types(events) == [SyncEventType.ERROR]

    @pytest.mark.asyncio
    async def test_request_data_scans(
        self, bus: EventBus[SyncEvent], events: list[SyncEvent], alice_bob: GameRecord
    ) -> None:
        """request_data scans the peer's payload and publishes it."""
        scanner = FakeScanner(text=encode_records([alice_bob]))
        transport = PayloadTransport(bus, ScannerResource(scanner))
        await transport.connect()

        await transport.request_data()

        assert events[-1] == SyncEvent.data_received([alice_bob])
        assert scanner.stops == 1

    @pytest.mark.asyncio
    async def test_request_data_without_scanner(
        self, bus: EventBus[SyncEvent], events: list[SyncEvent]
    ) -> None:
        """Without a scanner there is no way to receive."""
        transport = PayloadTransport(bus)
        await transport.connect()

        with pytest.raises(CapabilityUnsupportedError):
            await transport.request_data()
        assert events[-1].type is SyncEventType.ERROR

    @pytest.mark.asyncio
    async def test_scan_timeout(self, bus: EventBus[SyncEvent]) -> None:
        """A scan timeout is a transport error."""
        transport = PayloadTransport(bus, ScannerResource(FakeScanner()), scan_timeout=0.05)
        await transport.connect()

        with pytest.raises(TransportError, match="Timed out"):
            await transport.request_data()

    @pytest.mark.asyncio
    async def test_stopped_scan_fails_request(
        self, bus: EventBus[SyncEvent], events: list[SyncEvent]
    ) -> None:
        """Stopping the scan while connected ends request_data with an error."""
        scanner = FakeScanner()
        resource = ScannerResource(scanner)
        transport = PayloadTransport(bus, resource)
        await transport.connect()
        task = asyncio.create_task(transport.request_data())
        await wait_until_started(scanner)

        assert resource.cancel()
        with pytest.raises(ScanCancelledError):
            await task

        assert events[-1] == SyncEvent.failed("Scan cancelled before a payload was read")
        assert transport.connected
        assert scanner.stops == 1

    @pytest.mark.asyncio
    async def test_disconnect_cancels_scan(
        self, bus: EventBus[SyncEvent], events: list[SyncEvent]
    ) -> None:
        """Disconnecting mid-scan ends the scan without data."""
        scanner = FakeScanner()
        transport = PayloadTransport(bus, ScannerResource(scanner))
        await transport.connect()
        task = asyncio.create_task(transport.request_data())
        await wait_until_started(scanner)

        await transport.disconnect()
        await task

        assert event_types(events) == [SyncEventType.CONNECTED, SyncEventType.DISCONNECTED]
        assert scanner.stops == 1
        assert transport.outbound is None

    def test_always_supported(self, bus: EventBus[SyncEvent]) -> None:
        compat = PayloadTransport(bus).compatibility()
        assert compat.is_supported
        assert compat.advisory_message


def event_types(events: list[SyncEvent]) -> list[SyncEventType]:
    return [event.type for event in events]
