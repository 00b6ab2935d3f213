"""Periodic peer upkeep and the inbound connection listener."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import secrets
import time
from collections.abc import Iterable, MutableMapping

from citrea_net.message import Ping, TimestampedMessage
from citrea_net.peers import P2PConfig, PeerConnection, PeerInfo
from citrea_net.types import PeerId

logger = logging.getLogger(__name__)

Peers = MutableMapping[PeerId, PeerConnection]


def sweep_peers(
    peers: Peers, connection_timeout: int, ping_interval: int
) -> tuple[list[tuple[PeerId, PeerInfo]], list[PeerId]]:
    """Find connected peers to ping and peers that timed out.

    Each peer chosen for a ping gets a fresh random 64-bit nonce.
    Returns (peers to ping, peers to disconnect).
    """
    to_ping: list[tuple[PeerId, PeerInfo]] = []
    to_disconnect: list[PeerId] = []
    for peer_id, connection in peers.items():
        if not connection.connected:
            continue
        if connection.is_timed_out(connection_timeout):
            logger.warning(
                "Peer connection timed out: peer=%s address=%s last_seen=%d timeout=%d",
                peer_id,
                connection.info.address,
                connection.last_activity,
                connection_timeout,
            )
            to_disconnect.append(peer_id)
            continue
        now = int(time.time())
        if now - connection.last_activity > ping_interval // 2:
            to_ping.append((peer_id, connection.info))
            connection.last_ping_nonce = secrets.randbits(64)
    return to_ping, to_disconnect


def disconnect_timed_out(peers: Peers, peer_ids: Iterable[PeerId]) -> list[PeerId]:
    """Mark the given peers disconnected; return those that were present."""
    disconnected = []
    for peer_id in peer_ids:
        connection = peers.get(peer_id)
        if connection is None:
            continue
        connection.connected = False
        disconnected.append(peer_id)
        logger.info(
            "Disconnected timed-out peer: peer=%s address=%s",
            peer_id,
            connection.info.address,
        )
    return disconnected


def build_pings(
    peers: Peers,
    to_ping: Iterable[tuple[PeerId, PeerInfo]],
    local_id: PeerId,
) -> list[tuple[PeerId, TimestampedMessage]]:
    """Build a timestamped ping for each peer that has a pending nonce."""
    pings = []
    for peer_id, info in to_ping:
        connection = peers.get(peer_id)
        nonce = connection.last_ping_nonce if connection is not None else None
        if nonce is None:
            continue
        ping = Ping(nonce=nonce, timestamp=int(time.time()))
        pings.append((peer_id, TimestampedMessage.create(ping, local_id)))
        logger.debug(
            "Sending ping to peer: peer=%s address=%s nonce=%d",
            peer_id,
            info.address,
            nonce,
        )
    return pings


async def _wait_for_shutdown(shutdown: asyncio.Event, seconds: float) -> bool:
    try:
        await asyncio.wait_for(shutdown.wait(), timeout=seconds)
    except asyncio.TimeoutError:
        return False
    return True


async def maintenance_loop(
    peers: Peers,
    lock: asyncio.Lock,
    config: P2PConfig,
    local_id: PeerId,
    shutdown: asyncio.Event,
) -> None:
    """Every ping interval, drop timed-out peers and ping idle ones, until shutdown."""
    logger.info("Starting maintenance tasks")
    while not shutdown.is_set():
        if await _wait_for_shutdown(shutdown, config.ping_interval):
            break
        async with lock:
            to_ping, to_disconnect = sweep_peers(
                peers, config.connection_timeout, config.ping_interval
            )
            disconnect_timed_out(peers, to_disconnect)
            build_pings(peers, to_ping, local_id)
    logger.info("Maintenance tasks stopped")


async def listener_loop(
    port: int,
    peers: Peers,
    lock: asyncio.Lock,
    max_connections: int,
    shutdown: asyncio.Event,
) -> bool:
    """Accept TCP connections on all interfaces until shutdown.

    Inbound connections are logged and closed; they are rejected when the
    peer table is full. Returns False if the port could not be bound and
    True after a clean shutdown.
    """
    logger.info("Starting TCP listener on port %d", port)

    async def on_connect(
        reader: asyncio.StreamReader, writer: asyncio.StreamWriter
    ) -> None:
        address = writer.get_extra_info("peername")
        logger.info("Accepted new connection from %s", address)
        try:
            async with lock:
                peer_count = len(peers)
            if peer_count >= max_connections:
                logger.warning(
                    "Maximum connections reached, rejecting %s (current=%d max=%d)",
                    address,
                    peer_count,
                    max_connections,
                )
            else:
                logger.info("Handling new inbound connection from %s", address)
        finally:
            writer.close()
            with contextlib.suppress(ConnectionError):
                await writer.wait_closed()

    address = f"0.0.0.0:{port}"
    try:
        server = await asyncio.start_server(on_connect, host="0.0.0.0", port=port)
    except OSError as exc:
        logger.error("Failed to bind TCP listener on %s: %s", address, exc)
        return False

    logger.info("TCP listener bound on %s", address)
    async with server:
        await shutdown.wait()
    logger.info("TCP listener stopped")
    return True