"""Shared configuration classes for scoresync."""

from __future__ import annotations

from dataclasses import dataclass

DEFAULT_CHUNK_SIZE = 512
DEFAULT_PORT = 8765


@dataclass
class PeerConfig:
    """Configuration for the stream link to a remote device.

    Attributes:
        peer_url: Address of the remote device (e.g., "ws://192.168.1.20:8765").
            Empty when no peer is configured.
        timeout: Handshake timeout in seconds.
        chunk_size: Maximum size of a single link write, in bytes.
        device_name: Label this device presents to peers.
    """

    peer_url: str = ""
    timeout: float = 10.0
    chunk_size: int = DEFAULT_CHUNK_SIZE
    device_name: str = ""

    def __post_init__(self) -> None:
        """Normalize peer URL and validate chunk size."""
        self.peer_url = self.peer_url.strip().rstrip("/")
        if self.chunk_size <= 0:
            raise ValueError(f"chunk_size must be positive, got {self.chunk_size}")

    @property
    def ws_url(self) -> str:
        """Get the WebSocket URL of the peer.

        Returns:
            WebSocket URL (http(s) schemes converted to ws(s)).
        """
        url = self.peer_url
        if url.startswith("https://"):
            url = "wss://" + url[8:]
        elif url.startswith("http://"):
            url = "ws://" + url[7:]
        return url

    @property
    def is_secure(self) -> bool:
        """Check if the link uses TLS."""
        return self.ws_url.startswith("wss://")

    @property
    def has_peer(self) -> bool:
        """Check if a usable peer address is configured."""
        return self.ws_url.startswith(("ws://", "wss://")) and len(self.ws_url.split("://", 1)[1]) > 0
