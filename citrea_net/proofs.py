"""Sequencer commitments, batch proofs and light client proofs."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from citrea_net.errors import SerializationError, VerificationError
from citrea_net.message import SignedMessage, VerifiableMessage
from citrea_net.types import BitcoinTxid, EcdsaSignature, MerkleRoot, StateRoot

logger = logging.getLogger(__name__)

_DECODE_ERRORS = (KeyError, TypeError, ValueError, AttributeError)
_MAX_RECOVERY_ID = 1


def _uint(value: object, bits: int, name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError(f"{name} must be an integer, got {type(value).__name__}")
    if not 0 <= value < 1 << bits:
        raise ValueError(f"{name} must fit in {bits} unsigned bits, got {value}")
    return value


def _data(value: object, name: str) -> bytes:
    if isinstance(value, (bytes, bytearray, memoryview, list, tuple)):
        return bytes(value)
    raise TypeError(f"{name} must be bytes or a list of byte values")


def _check_signature(signature: EcdsaSignature | None) -> None:
    if signature is not None and not isinstance(signature, EcdsaSignature):
        raise TypeError("signature must be an EcdsaSignature or None")


def _signature_dict(signature: EcdsaSignature | None) -> dict | None:
    return None if signature is None else signature.to_dict()


def _signature_from(data: Any) -> EcdsaSignature | None:
    return None if data is None else EcdsaSignature.from_dict(data)


@dataclass(frozen=True)
class SequencerCommitmentMessage(SignedMessage):
    """A batch of L2 blocks committed to Bitcoin."""

    index: int
    l2_end: int
    merkle_root: MerkleRoot
    bitcoin_txid: BitcoinTxid
    signature: EcdsaSignature | None = None

    def __post_init__(self) -> None:
        _uint(self.index, 64, "index")
        _uint(self.l2_end, 64, "l2_end")
        if not isinstance(self.merkle_root, MerkleRoot):
            raise TypeError("merkle_root must be a MerkleRoot")
        if not isinstance(self.bitcoin_txid, BitcoinTxid):
            raise TypeError("bitcoin_txid must be a BitcoinTxid")
        _check_signature(self.signature)

    def verify_signature(self) -> None:
        """Check the signature's recovery ID; a missing signature is only logged."""
        if self.signature is None:
            logger.warning(
                "Missing signature in SequencerCommitmentMessage: index=%d", self.index
            )
        elif self.signature.v > _MAX_RECOVERY_ID:
            logger.error(
                "Signature verification failed: index=%d recovery_id=%d",
                self.index,
                self.signature.v,
            )
            raise VerificationError("Invalid signature recovery ID")
        logger.debug(
            "SequencerCommitmentMessage signature verification successful: index=%d",
            self.index,
        )

    def to_dict(self) -> dict[str, Any]:
        """Return a JSON-ready mapping."""
        return {
            "index": self.index,
            "l2_end": self.l2_end,
            "merkle_root": self.merkle_root.to_hex(),
            "bitcoin_txid": self.bitcoin_txid.to_hex(),
            "signature": _signature_dict(self.signature),
        }

    @classmethod
    def from_dict(cls, data: dict) -> SequencerCommitmentMessage:
        """Build a commitment from a mapping produced by to_dict."""
        try:
            return cls(
                index=data["index"],
                l2_end=data["l2_end"],
                merkle_root=MerkleRoot.from_hex(data["merkle_root"]),
                bitcoin_txid=BitcoinTxid.from_hex(data["bitcoin_txid"]),
                signature=_signature_from(data["signature"]),
            )
        except _DECODE_ERRORS as exc:
            raise SerializationError(f"invalid sequencer commitment: {exc}") from exc


@dataclass(frozen=True)
class BatchProofMessage(SignedMessage):
    """A Groth16 proof for the batch committed in a Bitcoin transaction."""

    bitcoin_txid: BitcoinTxid
    groth16_proof: bytes
    signature: EcdsaSignature | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.bitcoin_txid, BitcoinTxid):
            raise TypeError("bitcoin_txid must be a BitcoinTxid")
        object.__setattr__(
            self, "groth16_proof", _data(self.groth16_proof, "groth16_proof")
        )
        _check_signature(self.signature)

    def verify_signature(self) -> None:
        """Check the signature's recovery ID; a missing signature is only logged."""
        if self.signature is None:
            logger.warning(
                "Missing signature in BatchProofMessage: txid=%s", self.bitcoin_txid
            )
        elif self.signature.v > _MAX_RECOVERY_ID:
            logger.error(
                "Signature verification failed: txid=%s recovery_id=%d",
                self.bitcoin_txid,
                self.signature.v,
            )
            raise VerificationError("Invalid signature recovery ID")
        logger.debug(
            "BatchProofMessage signature verification successful: txid=%s",
            self.bitcoin_txid,
        )

    def to_dict(self) -> dict[str, Any]:
        """Return a JSON-ready mapping."""
        return {
            "bitcoin_txid": self.bitcoin_txid.to_hex(),
            "groth16_proof": list(self.groth16_proof),
            "signature": _signature_dict(self.signature),
        }

    @classmethod
    def from_dict(cls, data: dict) -> BatchProofMessage:
        """Build a batch proof from a mapping produced by to_dict."""
        try:
            return cls(
                bitcoin_txid=BitcoinTxid.from_hex(data["bitcoin_txid"]),
                groth16_proof=_data(data["groth16_proof"], "groth16_proof"),
                signature=_signature_from(data["signature"]),
            )
        except _DECODE_ERRORS as exc:
            raise SerializationError(f"invalid batch proof: {exc}") from exc


@dataclass(frozen=True)
class LightClientProofMessage(VerifiableMessage):
    """A zero-knowledge proof of a state root for light clients."""

    zk_proof: bytes
    state_root: StateRoot

    def __post_init__(self) -> None:
        object.__setattr__(self, "zk_proof", _data(self.zk_proof, "zk_proof"))
        if not isinstance(self.state_root, StateRoot):
            raise TypeError("state_root must be a StateRoot")

    def verify(self) -> None:
        """Check the proof is present; raise VerificationError if it is empty."""
        if not self.zk_proof:
            logger.error(
                "Proof verification failed: state_root=%s error=Empty ZK proof",
                self.state_root,
            )
            raise VerificationError("Empty ZK proof")
        logger.debug(
            "LightClientProofMessage verification successful: %d bytes",
            len(self.zk_proof),
        )

    def to_dict(self) -> dict[str, Any]:
        """Return a JSON-ready mapping."""
        return {"zk_proof": list(self.zk_proof), "state_root": self.state_root.to_hex()}

    @classmethod
    def from_dict(cls, data: dict) -> LightClientProofMessage:
        """Build a light client proof from a mapping produced by to_dict."""
        try:
            return cls(
                zk_proof=_data(data["zk_proof"], "zk_proof"),
                state_root=StateRoot.from_hex(data["state_root"]),
            )
        except _DECODE_ERRORS as exc:
            raise SerializationError(f"invalid light client proof: {exc}") from exc