import pytest

from citrea_net.errors import (
    AddressInUseError,
    AlreadyConnectedError,
    ConnectionTimeoutError,
    DecryptionError,
    EncryptionError,
    HandshakeFailedError,
    InvalidMessageError,
    InvalidProtocolVersionError,
    MaxConnectionsReachedError,
    NetworkError,
    P2PError,
    P2PIOError,
    PeerNotFoundError,
    ProtocolError,
    SerializationError,
    VerificationError,
)
from citrea_net.types import PeerId


@pytest.mark.parametrize(
    "kind, prefix",
    [
        (NetworkError, "Network error"),
        (SerializationError, "Serialization error"),
        (P2PIOError, "I/O error"),
        (VerificationError, "Verification error"),
        (InvalidMessageError, "Invalid message"),
        (ProtocolError, "Protocol error"),
        (EncryptionError, "Encryption error"),
        (DecryptionError, "Decryption error"),
        (AddressInUseError, "Address already in use"),
    ],
)
def test_detail_errors_format(kind, prefix):
    error = kind("details here")
    assert str(error) == f"{prefix}: details here"
    assert error.detail == "details here"
    assert isinstance(error, P2PError)


@pytest.mark.parametrize(
    "kind, prefix",
    [
        (PeerNotFoundError, "Peer not found"),
        (AlreadyConnectedError, "Already connected to peer"),
        (ConnectionTimeoutError, "Connection timeout with peer"),
        (HandshakeFailedError, "Handshake failed with peer"),
    ],
)
def test_peer_errors_show_hex_id(kind, prefix):
    peer = PeerId(bytes(32))
    error = kind(peer)
    assert str(error) == f"{prefix}: {peer.to_hex()}"
    assert error.peer_id == peer


def test_max_connections_message():
    assert str(MaxConnectionsReachedError()) == "Maximum connections reached"


def test_invalid_protocol_version():
    error = InvalidProtocolVersionError(7)
    assert error.version == 7
    assert str(error) == "Invalid protocol version: 7"


def test_errors_caught_as_base():
    error = VerificationError("Empty ZK proof")
    assert isinstance(error, P2PError)
    assert str(error) == "Verification error: Empty ZK proof"
    assert error.detail == "Empty ZK proof"


def test_network_error_wraps_exception_text():
    cause = OSError("Peer not connected")
    assert str(NetworkError(cause)) == "Network error: Peer not connected"