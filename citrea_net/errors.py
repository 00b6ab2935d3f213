"""Errors raised by the peer-to-peer system."""

from __future__ import annotations


class P2PError(Exception):
    """Base class for every error of the peer-to-peer system."""


class _DetailError(P2PError):
    _prefix = "Error"

    def __init__(self, detail: object) -> None:
        self.detail = detail
        super().__init__(f"{self._prefix}: {detail}")


class _PeerError(P2PError):
    _prefix = "Peer error"

    def __init__(self, peer_id: object) -> None:
        self.peer_id = peer_id
        super().__init__(f"{self._prefix}: {peer_id}")


class NetworkError(_DetailError):
    """A failure in the network layer."""

    _prefix = "Network error"


class SerializationError(_DetailError):
    """A message could not be encoded or decoded."""

    _prefix = "Serialization error"


class P2PIOError(_DetailError):
    """An input/output failure."""

    _prefix = "I/O error"


class VerificationError(_DetailError):
    """A message failed verification."""

    _prefix = "Verification error"


class InvalidMessageError(_DetailError):
    """A message was malformed."""

    _prefix = "Invalid message"


class PeerNotFoundError(_PeerError):
    """The peer is not known."""

    _prefix = "Peer not found"


class AlreadyConnectedError(_PeerError):
    """A connection to the peer already exists."""

    _prefix = "Already connected to peer"


class ConnectionTimeoutError(_PeerError):
    """The connection with the peer timed out."""

    _prefix = "Connection timeout with peer"


class HandshakeFailedError(_PeerError):
    """The handshake with the peer failed."""

    _prefix = "Handshake failed with peer"


class MaxConnectionsReachedError(P2PError):
    """No more connections can be accepted."""

    def __init__(self) -> None:
        super().__init__("Maximum connections reached")


class InvalidProtocolVersionError(P2PError):
    """A peer or message used an unsupported protocol version."""

    def __init__(self, version: int) -> None:
        self.version = version
        super().__init__(f"Invalid protocol version: {version}")


class ProtocolError(_DetailError):
    """The protocol was violated."""

    _prefix = "Protocol error"


class EncryptionError(_DetailError):
    """Encrypting a message failed."""

    _prefix = "Encryption error"


class DecryptionError(_DetailError):
    """Decrypting a message failed."""

    _prefix = "Decryption error"


class AddressInUseError(_DetailError):
    """The listen address is already taken."""

    _prefix = "Address already in use"