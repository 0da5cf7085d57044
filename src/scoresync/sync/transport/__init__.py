"""Transports - links to a remote device."""

from scoresync.sync.transport.base import TransportAdapter, platform_label
from scoresync.sync.transport.host import PeerHost
from scoresync.sync.transport.link import DEVICE_HEADER, SUBPROTOCOL, FramedLink
from scoresync.sync.transport.payload import PayloadTransport
from scoresync.sync.transport.scanner import FileScanner, Scanner, ScannerResource
from scoresync.sync.transport.stream import StreamTransport

__all__ = [
    "DEVICE_HEADER",
    "SUBPROTOCOL",
    "FileScanner",
    "FramedLink",
    "PayloadTransport",
    "PeerHost",
    "Scanner",
    "ScannerResource",
    "StreamTransport",
    "TransportAdapter",
    "platform_label",
]
