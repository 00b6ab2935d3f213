"""The peer table and the message handling of a network node."""

from __future__ import annotations

import asyncio
import dataclasses
import logging
import time
from collections.abc import Sequence

from citrea_net.errors import (
    AlreadyConnectedError,
    MaxConnectionsReachedError,
    NetworkError,
    P2PError,
    PeerNotFoundError,
)
from citrea_net.maintenance import listener_loop, maintenance_loop
from citrea_net.message import (
    DirectMessage,
    Gossip,
    Handshake,
    Message,
    MessageHandler,
    PeerList,
    Pong,
    TimestampedMessage,
)
from citrea_net.peers import P2PConfig, PeerConnection, PeerInfo
from citrea_net.types import PeerId

logger = logging.getLogger(__name__)


class Network(MessageHandler):
    """A node's view of its peers, with connect, send and message handling."""

    def __init__(self, local_id: PeerId, config: P2PConfig | None = None) -> None:
        self.local_id = local_id
        self.config = config if config is not None else P2PConfig()
        self._peers: dict[PeerId, PeerConnection] = {}
        self._known_peers: set[PeerInfo] = set()
        self._lock = asyncio.Lock()
        self._shutdown = asyncio.Event()
        self._running = False
        self._tasks: list[asyncio.Task] = []
        logger.info(
            "Creating new p2p network: local_id=%s port=%d max_connections=%d",
            local_id,
            self.config.port,
            self.config.max_connections,
        )

    async def connect(self, peer_info: PeerInfo) -> None:
        """Add an outbound connection to a peer."""
        logger.info(
            "Attempting to connect to peer %s at %s", peer_info.id, peer_info.address
        )
        async with self._lock:
            if peer_info.id in self._peers:
                logger.warning("Already connected to peer %s", peer_info.id)
                raise AlreadyConnectedError(peer_info.id)
            if len(self._peers) >= self.config.max_connections:
                logger.warning(
                    "Maximum connections reached: current=%d max=%d",
                    len(self._peers),
                    self.config.max_connections,
                )
                raise MaxConnectionsReachedError()
            self._peers[peer_info.id] = PeerConnection(
                info=dataclasses.replace(peer_info), outbound=True
            )
            self._known_peers.add(dataclasses.replace(peer_info))
        logger.info(
            "Successfully connected to peer %s at %s", peer_info.id, peer_info.address
        )

    async def disconnect(self, peer_id: PeerId) -> None:
        """Mark a peer as disconnected."""
        logger.info("Disconnecting from peer %s", peer_id)
        async with self._lock:
            connection = self._peers.get(peer_id)
            if connection is None:
                logger.warning("Attempted to disconnect from unknown peer %s", peer_id)
                raise PeerNotFoundError(peer_id)
            connection.connected = False
            logger.info(
                "Peer %s at %s disconnected", peer_id, connection.info.address
            )

    async def send_message(self, peer_id: PeerId, message: Message) -> bytes:
        """Stamp and encode a message for a connected peer; return the wire bytes."""
        async with self._lock:
            connection = self._peers.get(peer_id)
            if connection is None:
                logger.warning("Attempted to send message to unknown peer %s", peer_id)
                raise PeerNotFoundError(peer_id)
            if not connection.connected:
                logger.warning("Cannot send message to disconnected peer %s", peer_id)
                raise NetworkError("Peer not connected")
            address = connection.info.address
        raw = TimestampedMessage.create(message, self.local_id).serialize()
        logger.info(
            "Message sent to peer %s at %s: %r (%d bytes)",
            peer_id,
            address,
            message,
            len(raw),
        )
        return raw

    async def broadcast(self, message: Message) -> int:
        """Encode a message once for all connected peers; return how many there are."""
        async with self._lock:
            targets = [
                (peer_id, connection.info.address)
                for peer_id, connection in self._peers.items()
                if connection.connected
            ]
            total = len(self._peers)
        logger.info(
            "Broadcasting %r: total_peers=%d connected_peers=%d",
            message,
            total,
            len(targets),
        )
        raw = TimestampedMessage.create(message, self.local_id).serialize()
        for peer_id, address in targets:
            logger.debug(
                "Broadcasting message to peer %s at %s (%d bytes)",
                peer_id,
                address,
                len(raw),
            )
        logger.info("Message broadcast complete: connected_peers=%d", len(targets))
        return len(targets)

    async def get_connected_peers(self) -> list[PeerInfo]:
        """Return the info of every connected peer."""
        async with self._lock:
            connected = [
                connection.info
                for connection in self._peers.values()
                if connection.connected
            ]
            logger.debug(
                "Retrieved connected peers: total=%d connected=%d",
                len(self._peers),
                len(connected),
            )
        return connected

    async def get_known_peers(self) -> list[PeerInfo]:
        """Return every peer ever learned of."""
        async with self._lock:
            known = list(self._known_peers)
        logger.debug("Retrieved known peers: count=%d", len(known))
        return known

    async def get_connection(self, peer_id: PeerId) -> PeerConnection:
        """Return the connection state for a peer."""
        async with self._lock:
            connection = self._peers.get(peer_id)
        if connection is None:
            raise PeerNotFoundError(peer_id)
        return connection

    async def start(self) -> None:
        """Start the listener and upkeep tasks and connect to bootstrap nodes."""
        logger.info(
            "Starting p2p network: local_id=%s port=%d", self.local_id, self.config.port
        )
        if self._running:
            logger.warning("Network already started")
            return
        self._shutdown.clear()
        self._running = True
        self._tasks = [
            asyncio.create_task(
                listener_loop(
                    self.config.port,
                    self._peers,
                    self._lock,
                    self.config.max_connections,
                    self._shutdown,
                )
            ),
            asyncio.create_task(
                maintenance_loop(
                    self._peers, self._lock, self.config, self.local_id, self._shutdown
                )
            ),
        ]
        await self._connect_to_bootstrap_nodes()
        logger.info("P2P network started successfully")

    async def stop(self) -> None:
        """Stop background tasks and disconnect every peer."""
        logger.info("Stopping p2p network")
        if not self._running:
            logger.warning("Network not started")
            return
        self._shutdown.set()
        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks = []

        async with self._lock:
            peer_ids = list(self._peers)
        for peer_id in peer_ids:
            try:
                await self.disconnect(peer_id)
            except P2PError as exc:
                logger.warning(
                    "Failed to disconnect from peer %s during shutdown: %s",
                    peer_id,
                    exc,
                )
        self._running = False
        logger.info("P2P network stopped successfully")

    async def _connect_to_bootstrap_nodes(self) -> None:
        nodes = self.config.bootstrap_nodes
        if not nodes:
            logger.info("No bootstrap nodes configured")
            return
        logger.info("Connecting to %d bootstrap nodes", len(nodes))
        for address in nodes:
            peer_info = PeerInfo(id=PeerId.random(), address=address)
            try:
                await self.connect(peer_info)
            except P2PError as exc:
                logger.warning(
                    "Failed to connect to bootstrap node %s: %s", address, exc
                )
            else:
                logger.info("Successfully connected to bootstrap node %s", address)

    async def handle_message(self, peer_id: PeerId, message: Message):
        """Record activity for the peer, then dispatch the message."""
        logger.debug("Handling incoming message from %s: %r", peer_id, message)
        async with self._lock:
            connection = self._peers.get(peer_id)
            if connection is not None:
                connection.update_activity()
        return await super().handle_message(peer_id, message)

    async def handle_ping(self, peer_id: PeerId, nonce: int, timestamp: int) -> bytes:
        """Answer a ping with a pong carrying the same nonce."""
        logger.debug(
            "Handling ping from %s: nonce=%d timestamp=%d", peer_id, nonce, timestamp
        )
        pong = Pong(nonce=nonce, timestamp=int(time.time()))
        return await self.send_message(peer_id, pong)

    async def handle_pong(self, peer_id: PeerId, nonce: int, timestamp: int) -> None:
        """Record the round-trip time when the pong matches the pending ping."""
        logger.debug(
            "Handling pong from %s: nonce=%d timestamp=%d", peer_id, nonce, timestamp
        )
        async with self._lock:
            connection = self._peers.get(peer_id)
            if connection is None:
                return
            expected = connection.last_ping_nonce
            if expected is None:
                logger.debug("Received pong from %s but no ping was sent", peer_id)
                return
            if expected != nonce:
                logger.warning(
                    "Received pong from %s with unexpected nonce %d (expected %d)",
                    peer_id,
                    nonce,
                    expected,
                )
                return
            rtt_ms = max(int(time.time()) - timestamp, 0) * 1000
            connection.ping_rtt_ms = rtt_ms
            connection.last_ping_nonce = None
            logger.debug("Pong from %s matches ping, rtt_ms=%d", peer_id, rtt_ms)

    async def handle_discover_peers(self, peer_id: PeerId) -> bytes:
        """Reply with the list of connected peers."""
        logger.debug("Handling discover peers request from %s", peer_id)
        peers = await self.get_connected_peers()
        return await self.send_message(peer_id, PeerList(peers=tuple(peers)))

    async def handle_peer_list(self, peer_id: PeerId, peers: Sequence[PeerInfo]) -> int:
        """Add unseen peers other than ourselves; return how many were added."""
        logger.debug("Handling peer list from %s: %d peers", peer_id, len(peers))
        added = 0
        async with self._lock:
            for peer in peers:
                if peer.id != self.local_id and peer not in self._known_peers:
                    self._known_peers.add(peer)
                    added += 1
            total = len(self._known_peers)
        logger.debug(
            "Added %d new peers from %s, %d known in total", added, peer_id, total
        )
        return added

    async def handle_custom(self, peer_id: PeerId, data: bytes) -> None:
        """Log application data as text when it is UTF-8, else by size."""
        try:
            text = bytes(data).decode("utf-8")
        except UnicodeDecodeError:
            logger.info(
                "Received binary message from %s: %d bytes", peer_id, len(data)
            )
        else:
            logger.info("Received text message from %s: %s", peer_id, text)

    async def handle_direct_message(
        self, peer_id: PeerId, target: PeerId, data: bytes
    ) -> bytes | None:
        """Handle data addressed to us, or forward it to its target."""
        if target == self.local_id:
            logger.info("Received direct message from %s", peer_id)
            await self.handle_custom(peer_id, data)
            return None
        logger.debug("Forwarding direct message from %s to %s", peer_id, target)
        return await self.send_message(target, DirectMessage(target=target, data=data))

    async def handle_handshake(
        self,
        peer_id: PeerId,
        version: int,
        sender_id: PeerId,
        listen_port: int,
        capabilities: Sequence[str],
    ) -> bytes | None:
        """Update the peer's identity and info; answer inbound handshakes."""
        logger.debug(
            "Handling handshake from %s: sender=%s version=%d port=%d capabilities=%s",
            peer_id,
            sender_id,
            version,
            listen_port,
            list(capabilities),
        )
        if version != self.config.protocol_version:
            logger.warning(
                "Protocol version mismatch with %s: theirs=%d ours=%d",
                peer_id,
                version,
                self.config.protocol_version,
            )

        async with self._lock:
            connection = self._peers.get(peer_id)
            if connection is not None:
                info = PeerInfo(
                    id=sender_id,
                    address=connection.info.address,
                    version=version,
                    capabilities=tuple(capabilities),
                )
                if peer_id != sender_id:
                    del self._peers[peer_id]
                    self._peers[sender_id] = PeerConnection(
                        info=info,
                        outbound=connection.outbound,
                        connected=connection.connected,
                        last_activity=connection.last_activity,
                    )
                    logger.info(
                        "Updated peer ID after handshake: %s -> %s", peer_id, sender_id
                    )
                else:
                    connection.info = info
                    logger.info("Updated peer info after handshake for %s", peer_id)
                self._known_peers.add(dataclasses.replace(info))
            responder = self._peers.get(sender_id)
            reply = responder is not None and not responder.outbound

        if not reply:
            return None
        handshake = Handshake(
            version=self.config.protocol_version,
            peer_id=self.local_id,
            listen_port=self.config.port,
            capabilities=tuple(self.config.capabilities),
        )
        return await self.send_message(sender_id, handshake)

    async def handle_gossip(
        self, peer_id: PeerId, topic: str, data: bytes, ttl: int
    ) -> list[PeerId]:
        """Forward gossip with a decremented ttl; return the peers it reached."""
        logger.info("Received gossip from %s on topic %s (ttl=%d)", peer_id, topic, ttl)
        if ttl <= 0:
            return []
        gossip = Gossip(topic=topic, data=data, ttl=ttl - 1)
        async with self._lock:
            targets = [
                other
                for other, connection in self._peers.items()
                if other != peer_id and connection.connected
            ]
        forwarded = []
        for target in targets:
            try:
                await self.send_message(target, gossip)
            except P2PError as exc:
                logger.warning("Failed to forward gossip to %s: %s", target, exc)
            else:
                forwarded.append(target)
        return forwarded

    async def handle_subscribe(self, peer_id: PeerId, topic: str) -> None:
        """Note a topic subscription."""
        logger.info("Peer %s subscribed to topic %s", peer_id, topic)

    async def handle_unsubscribe(self, peer_id: PeerId, topic: str) -> None:
        """Note a topic unsubscription."""
        logger.info("Peer %s unsubscribed from topic %s", peer_id, topic)