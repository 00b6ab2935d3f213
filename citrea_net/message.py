"""Peer-to-peer protocol messages, their JSON encoding, and handler interfaces."""

from __future__ import annotations

import json
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, ClassVar

from citrea_net.errors import InvalidMessageError, SerializationError
from citrea_net.peers import PeerInfo
from citrea_net.types import PeerId

_DECODE_ERRORS = (KeyError, TypeError, ValueError, AttributeError)


def _check_uint(value: object, bits: int, name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError(f"{name} must be an integer, got {type(value).__name__}")
    if not 0 <= value < 1 << bits:
        raise ValueError(f"{name} must fit in {bits} unsigned bits, got {value}")
    return value


def _to_bytes(value: object, name: str) -> bytes:
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value)
    if isinstance(value, (list, tuple)):
        return bytes(value)
    raise TypeError(f"{name} must be bytes or a list of byte values")


def _check_str(value: object, name: str) -> str:
    if not isinstance(value, str):
        raise TypeError(f"{name} must be a string, got {type(value).__name__}")
    return value


def _encode(obj: Any) -> bytes:
    return json.dumps(obj, separators=(",", ":")).encode("utf-8")


def _decode(data: bytes) -> Any:
    text = bytes(data).decode("utf-8", errors="replace")
    try:
        return json.loads(text)
    except json.JSONDecodeError as exc:
        raise SerializationError(str(exc)) from exc


class SignedMessage(ABC):
    """A message that carries a signature."""

    @abstractmethod
    def verify_signature(self) -> None:
        """Check the signature; raise VerificationError if it is invalid."""


class VerifiableMessage(ABC):
    """A message whose contents can be checked."""

    @abstractmethod
    def verify(self) -> None:
        """Check the contents; raise VerificationError if they are invalid."""


class Message(ABC):
    """Base of the basic peer-to-peer message variants.

    The JSON form is externally tagged: ``{"Ping": {...}}``, or the bare
    variant name for variants without fields.
    """

    _registry: ClassVar[dict[str, type[Message]]] = {}

    def __init_subclass__(cls, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)
        Message._registry[cls.__name__] = cls

    @abstractmethod
    def _body(self) -> dict[str, Any] | None:
        """Return the JSON body of the variant, or None if it has no fields."""

    @classmethod
    @abstractmethod
    def _from_body(cls, body: Any) -> Message:
        """Build the variant from its JSON body."""

    def to_dict(self) -> dict[str, Any] | str:
        """Return the JSON-ready, externally tagged form of the message."""
        body = self._body()
        name = type(self).__name__
        if body is None:
            return name
        return {name: body}

    @classmethod
    def from_dict(cls, data: Any) -> Message:
        """Build a message from the form produced by to_dict."""
        if isinstance(data, str):
            name, body = data, None
        elif isinstance(data, dict) and len(data) == 1:
            ((name, body),) = data.items()
        else:
            raise SerializationError(f"expected a tagged message, got {data!r}")
        variant = Message._registry.get(name)
        if variant is None or not issubclass(variant, cls):
            raise SerializationError(f"unknown message variant: {name!r}")
        try:
            return variant._from_body(body)
        except _DECODE_ERRORS as exc:
            raise SerializationError(f"invalid {name} message: {exc}") from exc

    def serialize(self) -> bytes:
        """Encode the message as JSON bytes."""
        return _encode(self.to_dict())

    @classmethod
    def deserialize(cls, data: bytes) -> Message:
        """Decode a message from JSON bytes; invalid UTF-8 is replaced."""
        return cls.from_dict(_decode(data))


@dataclass(frozen=True)
class Ping(Message):
    """Check whether a peer is alive."""

    nonce: int
    timestamp: int

    def __post_init__(self) -> None:
        _check_uint(self.nonce, 64, "nonce")
        _check_uint(self.timestamp, 64, "timestamp")

    def _body(self) -> dict[str, Any]:
        return {"nonce": self.nonce, "timestamp": self.timestamp}

    @classmethod
    def _from_body(cls, body: Any) -> Ping:
        return cls(nonce=body["nonce"], timestamp=body["timestamp"])


@dataclass(frozen=True)
class Pong(Message):
    """Answer to a ping."""

    nonce: int
    timestamp: int

    def __post_init__(self) -> None:
        _check_uint(self.nonce, 64, "nonce")
        _check_uint(self.timestamp, 64, "timestamp")

    def _body(self) -> dict[str, Any]:
        return {"nonce": self.nonce, "timestamp": self.timestamp}

    @classmethod
    def _from_body(cls, body: Any) -> Pong:
        return cls(nonce=body["nonce"], timestamp=body["timestamp"])


@dataclass(frozen=True)
class DiscoverPeers(Message):
    """Ask a peer for the peers it knows."""

    def _body(self) -> None:
        return None

    @classmethod
    def _from_body(cls, body: Any) -> DiscoverPeers:
        if body is not None:
            raise ValueError("DiscoverPeers carries no fields")
        return cls()


@dataclass(frozen=True)
class PeerList(Message):
    """A list of known peers."""

    peers: tuple[PeerInfo, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "peers", tuple(self.peers))

    def _body(self) -> dict[str, Any]:
        return {"peers": [peer.to_dict() for peer in self.peers]}

    @classmethod
    def _from_body(cls, body: Any) -> PeerList:
        return cls(peers=tuple(PeerInfo.from_dict(item) for item in body["peers"]))


@dataclass(frozen=True)
class Custom(Message):
    """Application-specific data."""

    data: bytes

    def __post_init__(self) -> None:
        object.__setattr__(self, "data", _to_bytes(self.data, "data"))

    def _body(self) -> dict[str, Any]:
        return {"data": list(self.data)}

    @classmethod
    def _from_body(cls, body: Any) -> Custom:
        return cls(data=_to_bytes(body["data"], "data"))


@dataclass(frozen=True)
class DirectMessage(Message):
    """Data addressed to one peer."""

    target: PeerId
    data: bytes

    def __post_init__(self) -> None:
        if not isinstance(self.target, PeerId):
            raise TypeError("target must be a PeerId")
        object.__setattr__(self, "data", _to_bytes(self.data, "data"))

    def _body(self) -> dict[str, Any]:
        return {"target": self.target.to_hex(), "data": list(self.data)}

    @classmethod
    def _from_body(cls, body: Any) -> DirectMessage:
        return cls(
            target=PeerId.from_hex(_check_str(body["target"], "target")),
            data=_to_bytes(body["data"], "data"),
        )


@dataclass(frozen=True)
class Handshake(Message):
    """First message on a new connection."""

    version: int
    peer_id: PeerId
    listen_port: int
    capabilities: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        _check_uint(self.version, 32, "version")
        _check_uint(self.listen_port, 16, "listen_port")
        if not isinstance(self.peer_id, PeerId):
            raise TypeError("peer_id must be a PeerId")
        object.__setattr__(self, "capabilities", tuple(self.capabilities))

    def _body(self) -> dict[str, Any]:
        return {
            "version": self.version,
            "peer_id": self.peer_id.to_hex(),
            "listen_port": self.listen_port,
            "capabilities": list(self.capabilities),
        }

    @classmethod
    def _from_body(cls, body: Any) -> Handshake:
        return cls(
            version=body["version"],
            peer_id=PeerId.from_hex(_check_str(body["peer_id"], "peer_id")),
            listen_port=body["listen_port"],
            capabilities=tuple(
                _check_str(item, "capability") for item in body["capabilities"]
            ),
        )


@dataclass(frozen=True)
class Gossip(Message):
    """Data propagated across the network; ttl drops by one at each hop."""

    topic: str
    data: bytes
    ttl: int

    def __post_init__(self) -> None:
        _check_str(self.topic, "topic")
        object.__setattr__(self, "data", _to_bytes(self.data, "data"))
        _check_uint(self.ttl, 8, "ttl")

    def _body(self) -> dict[str, Any]:
        return {"topic": self.topic, "data": list(self.data), "ttl": self.ttl}

    @classmethod
    def _from_body(cls, body: Any) -> Gossip:
        return cls(
            topic=body["topic"],
            data=_to_bytes(body["data"], "data"),
            ttl=body["ttl"],
        )


@dataclass(frozen=True)
class Subscribe(Message):
    """Subscribe to a topic."""

    topic: str

    def __post_init__(self) -> None:
        _check_str(self.topic, "topic")

    def _body(self) -> dict[str, Any]:
        return {"topic": self.topic}

    @classmethod
    def _from_body(cls, body: Any) -> Subscribe:
        return cls(topic=body["topic"])


@dataclass(frozen=True)
class Unsubscribe(Message):
    """Unsubscribe from a topic."""

    topic: str

    def __post_init__(self) -> None:
        _check_str(self.topic, "topic")

    def _body(self) -> dict[str, Any]:
        return {"topic": self.topic}

    @classmethod
    def _from_body(cls, body: Any) -> Unsubscribe:
        return cls(topic=body["topic"])


@dataclass(frozen=True)
class TimestampedMessage:
    """A message with its creation time and sender."""

    message: Message
    timestamp: int
    sender: PeerId

    @classmethod
    def create(cls, message: Message, sender: PeerId) -> TimestampedMessage:
        """Stamp a message with the current Unix time."""
        return cls(message=message, timestamp=int(time.time()), sender=sender)

    def serialize(self) -> bytes:
        """Encode as JSON bytes."""
        return _encode(
            {
                "message": self.message.to_dict(),
                "timestamp": self.timestamp,
                "sender": self.sender.to_hex(),
            }
        )

    @classmethod
    def deserialize(cls, data: bytes) -> TimestampedMessage:
        """Decode from JSON bytes; invalid UTF-8 is replaced."""
        obj = _decode(data)
        try:
            return cls(
                message=Message.from_dict(obj["message"]),
                timestamp=_check_uint(obj["timestamp"], 64, "timestamp"),
                sender=PeerId.from_hex(_check_str(obj["sender"], "sender")),
            )
        except _DECODE_ERRORS as exc:
            raise SerializationError(f"invalid timestamped message: {exc}") from exc


class MessageHandler(ABC):
    """Receives incoming messages and dispatches them by variant."""

    async def handle_message(self, peer_id: PeerId, message: Message) -> Any:
        """Route a message from a peer to the matching handler."""
        match message:
            case Ping(nonce=nonce, timestamp=timestamp):
                return await self.handle_ping(peer_id, nonce, timestamp)
            case Pong(nonce=nonce, timestamp=timestamp):
                return await self.handle_pong(peer_id, nonce, timestamp)
            case DiscoverPeers():
                return await self.handle_discover_peers(peer_id)
            case PeerList(peers=peers):
                return await self.handle_peer_list(peer_id, list(peers))
            case Custom(data=data):
                return await self.handle_custom(peer_id, data)
            case DirectMessage(target=target, data=data):
                return await self.handle_direct_message(peer_id, target, data)
            case Handshake(
                version=version,
                peer_id=sender_id,
                listen_port=listen_port,
                capabilities=capabilities,
            ):
                return await self.handle_handshake(
                    peer_id, version, sender_id, listen_port, list(capabilities)
                )
            case Gossip(topic=topic, data=data, ttl=ttl):
                return await self.handle_gossip(peer_id, topic, data, ttl)
            case Subscribe(topic=topic):
                return await self.handle_subscribe(peer_id, topic)
            case Unsubscribe(topic=topic):
                return await self.handle_unsubscribe(peer_id, topic)
            case _:
                raise InvalidMessageError(f"unsupported message: {message!r}")

    @abstractmethod
    async def handle_ping(self, peer_id: PeerId, nonce: int, timestamp: int) -> Any:
        """Handle a ping."""

    @abstractmethod
    async def handle_pong(self, peer_id: PeerId, nonce: int, timestamp: int) -> Any:
        """Handle a pong."""

    @abstractmethod
    async def handle_discover_peers(self, peer_id: PeerId) -> Any:
        """Handle a request for known peers."""

    @abstractmethod
    async def handle_peer_list(self, peer_id: PeerId, peers: list[PeerInfo]) -> Any:
        """Handle a list of peers."""

    @abstractmethod
    async def handle_custom(self, peer_id: PeerId, data: bytes) -> Any:
        """Handle application data."""

    @abstractmethod
    async def handle_direct_message(
        self, peer_id: PeerId, target: PeerId, data: bytes
    ) -> Any:
        """Handle a message addressed to one peer."""

    @abstractmethod
    async def handle_handshake(
        self,
        peer_id: PeerId,
        version: int,
        sender_id: PeerId,
        listen_port: int,
        capabilities: list[str],
    ) -> Any:
        """Handle a handshake."""

    @abstractmethod
    async def handle_gossip(
        self, peer_id: PeerId, topic: str, data: bytes, ttl: int
    ) -> Any:
        """Handle a gossip message."""

    @abstractmethod
    async def handle_subscribe(self, peer_id: PeerId, topic: str) -> Any:
        """Handle a topic subscription."""

    @abstractmethod
    async def handle_unsubscribe(self, peer_id: PeerId, topic: str) -> Any:
        """Handle a topic unsubscription."""