"""Fixed-size identifiers, hashes and signatures used across the network."""

from __future__ import annotations

import hashlib
import secrets
from dataclasses import dataclass

HASH_LENGTH = 32


def _fixed_bytes(value: object, length: int, name: str) -> bytes:
    if not isinstance(value, (bytes, bytearray, memoryview)):
        raise TypeError(f"{name} must be bytes-like, got {type(value).__name__}")
    data = bytes(value)
    if len(data) != length:
        raise ValueError(f"{name} must be {length} bytes, got {len(data)}")
    return data


def _parse_hex(text: str, name: str) -> bytes:
    try:
        return bytes.fromhex(text)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"invalid hex for {name}: {text!r}") from exc


@dataclass(frozen=True)
class PeerId:
    """A unique 32-byte identifier for a peer in the network."""

    value: bytes

    def __post_init__(self) -> None:
        object.__setattr__(self, "value", _fixed_bytes(self.value, HASH_LENGTH, "PeerId"))

    @classmethod
    def random(cls) -> PeerId:
        """Generate a random peer ID."""
        return cls(secrets.token_bytes(HASH_LENGTH))

    @classmethod
    def from_public_key(cls, public_key: bytes) -> PeerId:
        """Derive a peer ID as the SHA-256 digest of a public key."""
        return cls(hashlib.sha256(bytes(public_key)).digest())

    @classmethod
    def from_hex(cls, text: str) -> PeerId:
        """Parse a peer ID from its hex form."""
        return cls(_parse_hex(text, "PeerId"))

    def to_hex(self) -> str:
        """Return the lower-case hex form of the ID."""
        return self.value.hex()

    def __str__(self) -> str:
        return self.to_hex()

    def __bytes__(self) -> bytes:
        return self.value


@dataclass(frozen=True)
class _Hash32:
    value: bytes

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "value", _fixed_bytes(self.value, HASH_LENGTH, type(self).__name__)
        )

    @classmethod
    def from_hex(cls, text: str):
        """Parse the value from its hex form."""
        return cls(_parse_hex(text, cls.__name__))

    def to_hex(self) -> str:
        """Return the lower-case hex form of the value."""
        return self.value.hex()

    def __str__(self) -> str:
        return self.to_hex()

    def __bytes__(self) -> bytes:
        return self.value


class BitcoinTxid(_Hash32):
    """A Bitcoin transaction ID."""


class StateRoot(_Hash32):
    """A state root hash."""


class MerkleRoot(_Hash32):
    """A Merkle root hash."""


@dataclass(frozen=True)
class EcdsaSignature:
    """An ECDSA signature over secp256k1."""

    r: bytes
    s: bytes
    v: int

    def __post_init__(self) -> None:
        object.__setattr__(self, "r", _fixed_bytes(self.r, HASH_LENGTH, "signature r"))
        object.__setattr__(self, "s", _fixed_bytes(self.s, HASH_LENGTH, "signature s"))
        if isinstance(self.v, bool) or not isinstance(self.v, int):
            raise TypeError("signature v must be an integer")
        if not 0 <= self.v <= 0xFF:
            raise ValueError(f"signature v must fit in one byte, got {self.v}")

    def to_dict(self) -> dict:
        """Return a JSON-ready mapping."""
        return {"r": self.r.hex(), "s": self.s.hex(), "v": self.v}

    @classmethod
    def from_dict(cls, data: dict) -> EcdsaSignature:
        """Build a signature from a mapping produced by to_dict."""
        return cls(
            r=_parse_hex(data["r"], "signature r"),
            s=_parse_hex(data["s"], "signature s"),
            v=int(data["v"]),
        )