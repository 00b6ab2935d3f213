"""Peer descriptions, connection state and network configuration."""

from __future__ import annotations

import time
from dataclasses import dataclass, field

from citrea_net.types import PeerId


def _unix_now() -> int:
    return int(time.time())


@dataclass(unsafe_hash=True)
class PeerInfo:
    """What is known about a peer."""

    id: PeerId
    address: str
    last_seen: int = field(default_factory=_unix_now)
    version: int = 1
    capabilities: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        self.capabilities = tuple(self.capabilities)

    def update_last_seen(self) -> None:
        """Set the last-seen time to now."""
        self.last_seen = _unix_now()

    def to_dict(self) -> dict:
        """Return a JSON-ready mapping."""
        return {
            "id": self.id.to_hex(),
            "address": self.address,
            "last_seen": self.last_seen,
            "version": self.version,
            "capabilities": list(self.capabilities),
        }

    @classmethod
    def from_dict(cls, data: dict) -> PeerInfo:
        """Build peer info from a mapping produced by to_dict."""
        return cls(
            id=PeerId.from_hex(data["id"]),
            address=str(data["address"]),
            last_seen=int(data["last_seen"]),
            version=int(data["version"]),
            capabilities=tuple(str(item) for item in data["capabilities"]),
        )


@dataclass
class P2PConfig:
    """Configuration of the peer-to-peer network."""

    port: int = 30303
    max_connections: int = 50
    bootstrap_nodes: list[str] = field(default_factory=list)
    enable_discovery: bool = True
    ping_interval: int = 30
    connection_timeout: int = 120
    enable_encryption: bool = True
    protocol_version: int = 1
    capabilities: list[str] = field(default_factory=lambda: ["basic"])


@dataclass
class PeerConnection:
    """State of a connection with one peer."""

    info: PeerInfo
    outbound: bool
    connected: bool = True
    last_activity: int = field(default_factory=_unix_now)
    failure_count: int = 0
    last_ping_nonce: int | None = None
    ping_rtt_ms: int | None = None

    def update_activity(self) -> None:
        """Set the last-activity time to now."""
        self.last_activity = _unix_now()

    def record_failure(self) -> int:
        """Count one more failure and return the total."""
        self.failure_count += 1
        return self.failure_count

    def is_timed_out(self, timeout_seconds: int) -> bool:
        """Whether more than timeout_seconds passed since the last activity."""
        return _unix_now() - self.last_activity > timeout_seconds