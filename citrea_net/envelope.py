"""The envelope that carries every Citrea message type over the network."""

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass
from typing import Any, Union

from citrea_net.blocks import (
    BlockAnnouncementMessage,
    BlockRangeRequestMessage,
    BlockRangeResponseMessage,
    BlockRequestMessage,
    BlockResponseMessage,
    L2BlockMessage,
)
from citrea_net.errors import (
    InvalidProtocolVersionError,
    SerializationError,
    VerificationError,
)
from citrea_net.proofs import (
    BatchProofMessage,
    LightClientProofMessage,
    SequencerCommitmentMessage,
)
from citrea_net.transactions import EVMTransactionMessage
from citrea_net.types import PeerId

logger = logging.getLogger(__name__)

PROTOCOL_VERSION = 1
DEFAULT_CHAIN_ID = 2424

_DECODE_ERRORS = (KeyError, TypeError, ValueError, AttributeError)


def _uint(value: object, bits: int, name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError(f"{name} must be an integer, got {type(value).__name__}")
    if not 0 <= value < 1 << bits:
        raise ValueError(f"{name} must fit in {bits} unsigned bits, got {value}")
    return value


@dataclass(frozen=True)
class CustomPayload:
    """Application-specific data tagged with a message type name."""

    message_type: str
    data: bytes

    def __post_init__(self) -> None:
        if not isinstance(self.message_type, str):
            raise TypeError("message_type must be a string")
        data = self.data
        if isinstance(data, (list, tuple)):
            data = bytes(data)
        if not isinstance(data, (bytes, bytearray, memoryview)):
            raise TypeError("data must be bytes or a list of byte values")
        object.__setattr__(self, "data", bytes(data))

    def to_dict(self) -> dict[str, Any]:
        """Return a JSON-ready mapping."""
        return {"message_type": self.message_type, "data": list(self.data)}

    @classmethod
    def from_dict(cls, data: dict) -> CustomPayload:
        """Build a custom payload from a mapping produced by to_dict."""
        try:
            return cls(message_type=data["message_type"], data=data["data"])
        except _DECODE_ERRORS as exc:
            raise SerializationError(f"invalid custom message: {exc}") from exc


CitreaMessage = Union[
    L2BlockMessage,
    BlockAnnouncementMessage,
    BlockRequestMessage,
    BlockRangeRequestMessage,
    BlockResponseMessage,
    BlockRangeResponseMessage,
    SequencerCommitmentMessage,
    BatchProofMessage,
    LightClientProofMessage,
    EVMTransactionMessage,
    CustomPayload,
]

_PAYLOAD_TYPES: dict[str, type] = {
    "L2Block": L2BlockMessage,
    "BlockAnnouncement": BlockAnnouncementMessage,
    "BlockRequest": BlockRequestMessage,
    "BlockRangeRequest": BlockRangeRequestMessage,
    "BlockResponse": BlockResponseMessage,
    "BlockRangeResponse": BlockRangeResponseMessage,
    "SequencerCommitment": SequencerCommitmentMessage,
    "BatchProof": BatchProofMessage,
    "LightClientProof": LightClientProofMessage,
    "EVMTransaction": EVMTransactionMessage,
    "Custom": CustomPayload,
}
_TYPE_NAMES = {cls: name for name, cls in _PAYLOAD_TYPES.items()}


def message_type(payload: CitreaMessage) -> str:
    """Name of the payload's message type, as used on the wire and in logs."""
    try:
        return _TYPE_NAMES[type(payload)]
    except KeyError:
        raise TypeError(
            f"unsupported message payload: {type(payload).__name__}"
        ) from None


def verify_message(payload: CitreaMessage) -> None:
    """Verify a payload according to its type; raise VerificationError on failure."""
    kind = message_type(payload)
    if kind in ("L2Block", "LightClientProof"):
        payload.verify()
    elif kind == "BlockResponse":
        payload.block.verify()
    elif kind == "BlockRangeResponse":
        for block in payload.blocks:
            block.verify()
    elif kind in ("SequencerCommitment", "BatchProof"):
        payload.verify_signature()
    elif kind == "EVMTransaction":
        if not payload.verify_format():
            raise VerificationError("Invalid EVM transaction format")


def _payload_to_dict(payload: CitreaMessage) -> dict[str, Any]:
    return {message_type(payload): payload.to_dict()}


def _payload_from_dict(data: object) -> CitreaMessage:
    if not isinstance(data, dict) or len(data) != 1:
        raise SerializationError("payload must be an object with exactly one key")
    ((tag, body),) = data.items()
    cls = _PAYLOAD_TYPES.get(tag)
    if cls is None:
        raise SerializationError(f"unknown message type: {tag!r}")
    return cls.from_dict(body)


@dataclass(frozen=True)
class MessageEnvelope:
    """A payload with protocol version, chain ID, sender and creation time."""

    version: int
    payload: CitreaMessage
    sender: PeerId | None
    chain_id: int
    timestamp: int

    def __post_init__(self) -> None:
        _uint(self.version, 16, "version")
        _uint(self.chain_id, 64, "chain_id")
        _uint(self.timestamp, 64, "timestamp")
        message_type(self.payload)
        if self.sender is not None and not isinstance(self.sender, PeerId):
            raise TypeError("sender must be a PeerId or None")

    @classmethod
    def create(
        cls, payload: CitreaMessage, chain_id: int, sender: PeerId | None = None
    ) -> MessageEnvelope:
        """Wrap a payload with the current protocol version and time."""
        return cls(
            version=PROTOCOL_VERSION,
            payload=payload,
            sender=sender,
            chain_id=chain_id,
            timestamp=int(time.time()),
        )

    def is_for_chain(self, expected_chain_id: int) -> bool:
        """Whether the envelope targets the expected chain."""
        if self.chain_id != expected_chain_id:
            logger.warning(
                "Message for wrong chain received: type=%s expected=%d actual=%d",
                message_type(self.payload),
                expected_chain_id,
                self.chain_id,
            )
            return False
        return True

    def is_compatible(self) -> bool:
        """Whether the envelope's version is exactly our protocol version."""
        if self.version != PROTOCOL_VERSION:
            logger.warning(
                "Incompatible message version received: type=%s ours=%d theirs=%d",
                message_type(self.payload),
                PROTOCOL_VERSION,
                self.version,
            )
            return False
        return True

    def to_dict(self) -> dict[str, Any]:
        """Return a JSON-ready mapping."""
        return {
            "version": self.version,
            "payload": _payload_to_dict(self.payload),
            "sender": None if self.sender is None else self.sender.to_hex(),
            "chain_id": self.chain_id,
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_dict(cls, data: dict) -> MessageEnvelope:
        """Build an envelope from a mapping produced by to_dict."""
        try:
            sender = data["sender"]
            return cls(
                version=data["version"],
                payload=_payload_from_dict(data["payload"]),
                sender=None if sender is None else PeerId.from_hex(sender),
                chain_id=data["chain_id"],
                timestamp=data["timestamp"],
            )
        except _DECODE_ERRORS as exc:
            raise SerializationError(f"invalid message envelope: {exc}") from exc

    def serialize(self) -> bytes:
        """Encode the envelope as JSON bytes."""
        kind = message_type(self.payload)
        logger.debug("Serializing MessageEnvelope: type=%s version=%d", kind, self.version)
        raw = json.dumps(self.to_dict(), separators=(",", ":")).encode("utf-8")
        logger.debug("Serialized %s message: %d bytes", kind, len(raw))
        return raw

    @classmethod
    def deserialize(cls, data: bytes) -> MessageEnvelope:
        """Decode JSON bytes; raise if malformed or of another protocol version."""
        logger.debug("Attempting to deserialize MessageEnvelope: %d bytes", len(data))
        try:
            decoded = json.loads(bytes(data))
        except (ValueError, TypeError) as exc:
            logger.error("Failed to deserialize message envelope: %s", exc)
            raise SerializationError(str(exc)) from exc
        if not isinstance(decoded, dict):
            raise SerializationError("message envelope must be a JSON object")
        envelope = cls.from_dict(decoded)
        if not envelope.is_compatible():
            raise InvalidProtocolVersionError(envelope.version)
        return envelope


def create_message(
    message: CitreaMessage, sender: PeerId | None = None
) -> MessageEnvelope:
    """Wrap a message for the default chain."""
    return MessageEnvelope.create(message, DEFAULT_CHAIN_ID, sender)


def create_message_for_chain(
    message: CitreaMessage, chain_id: int, sender: PeerId | None = None
) -> MessageEnvelope:
    """Wrap a message for a specific chain."""
    return MessageEnvelope.create(message, chain_id, sender)