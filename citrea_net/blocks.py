"""L2 block messages: blocks, headers, announcements, requests and responses."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from citrea_net.errors import SerializationError, VerificationError
from citrea_net.message import VerifiableMessage
from citrea_net.types import MerkleRoot, StateRoot

logger = logging.getLogger(__name__)

HASH_LENGTH = 32
_ZERO_HASH = bytes(HASH_LENGTH)
_DECODE_ERRORS = (KeyError, TypeError, ValueError, AttributeError)


def _hash32(value: object, name: str) -> bytes:
    if isinstance(value, (list, tuple)):
        value = bytes(value)
    if not isinstance(value, (bytes, bytearray, memoryview)):
        raise TypeError(f"{name} must be bytes-like, got {type(value).__name__}")
    data = bytes(value)
    if len(data) != HASH_LENGTH:
        raise ValueError(f"{name} must be {HASH_LENGTH} bytes, got {len(data)}")
    return data


def _uint(value: object, bits: int, name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError(f"{name} must be an integer, got {type(value).__name__}")
    if not 0 <= value < 1 << bits:
        raise ValueError(f"{name} must fit in {bits} unsigned bits, got {value}")
    return value


def _flag(value: object, name: str) -> bool:
    if not isinstance(value, bool):
        raise TypeError(f"{name} must be a bool, got {type(value).__name__}")
    return value


def _hash_from_hex(text: object, name: str) -> bytes:
    if not isinstance(text, str):
        raise TypeError(f"{name} must be a hex string")
    return _hash32(bytes.fromhex(text), name)


@dataclass(frozen=True)
class L2BlockHeader:
    """Metadata of an L2 block."""

    block_number: int
    timestamp: int
    parent_hash: bytes
    state_root: StateRoot

    def __post_init__(self) -> None:
        _uint(self.block_number, 64, "block_number")
        _uint(self.timestamp, 64, "timestamp")
        object.__setattr__(self, "parent_hash", _hash32(self.parent_hash, "parent_hash"))
        if not isinstance(self.state_root, StateRoot):
            raise TypeError("state_root must be a StateRoot")

    def to_dict(self) -> dict[str, Any]:
        """Return a JSON-ready mapping."""
        return {
            "block_number": self.block_number,
            "timestamp": self.timestamp,
            "parent_hash": self.parent_hash.hex(),
            "state_root": self.state_root.to_hex(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> L2BlockHeader:
        """Build a header from a mapping produced by to_dict."""
        try:
            return cls(
                block_number=data["block_number"],
                timestamp=data["timestamp"],
                parent_hash=_hash_from_hex(data["parent_hash"], "parent_hash"),
                state_root=StateRoot.from_hex(data["state_root"]),
            )
        except _DECODE_ERRORS as exc:
            raise SerializationError(f"invalid L2 block header: {exc}") from exc


@dataclass(frozen=True)
class L2BlockMessage(VerifiableMessage):
    """An L2 block; the transaction list may be left out for light announcements."""

    header: L2BlockHeader
    transactions_merkle_root: MerkleRoot
    transactions: tuple[bytes, ...] | None = None
    receipts_root: MerkleRoot | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.header, L2BlockHeader):
            raise TypeError("header must be an L2BlockHeader")
        if not isinstance(self.transactions_merkle_root, MerkleRoot):
            raise TypeError("transactions_merkle_root must be a MerkleRoot")
        if self.receipts_root is not None and not isinstance(self.receipts_root, MerkleRoot):
            raise TypeError("receipts_root must be a MerkleRoot or None")
        if self.transactions is not None:
            object.__setattr__(
                self, "transactions", tuple(bytes(tx) for tx in self.transactions)
            )

    @classmethod
    def with_transactions(
        cls,
        header: L2BlockHeader,
        transactions_merkle_root: MerkleRoot,
        transactions,
        receipts_root: MerkleRoot | None = None,
    ) -> L2BlockMessage:
        """Create a full block carrying its transactions."""
        block = cls(
            header=header,
            transactions_merkle_root=transactions_merkle_root,
            transactions=tuple(transactions),
            receipts_root=receipts_root,
        )
        logger.debug(
            "Creating L2BlockMessage with transactions: block=%d tx_count=%d",
            header.block_number,
            len(block.transactions),
        )
        return block

    @property
    def block_number(self) -> int:
        """Number of this block."""
        return self.header.block_number

    @property
    def parent_hash(self) -> bytes:
        """Hash of the parent block."""
        return self.header.parent_hash

    def is_full_block(self) -> bool:
        """Whether the block carries its transactions."""
        return self.transactions is not None

    def _fail(self, reason: str) -> VerificationError:
        logger.error(
            "Block verification failed: block=%d error=%s",
            self.header.block_number,
            reason,
        )
        return VerificationError(reason)

    def verify(self) -> None:
        """Check basic block consistency; raise VerificationError if it fails."""
        header = self.header
        logger.debug(
            "Verifying L2BlockMessage: block=%d timestamp=%d",
            header.block_number,
            header.timestamp,
        )
        if header.timestamp == 0:
            raise self._fail("Block timestamp cannot be zero")
        if header.block_number == 0 and header.parent_hash != _ZERO_HASH:
            raise self._fail("Invalid parent hash for genesis block")
        if self.transactions is not None and not self.transactions:
            raise self._fail("Block with transactions has empty transaction list")
        logger.debug("L2BlockMessage verification successful: block=%d", header.block_number)

    def to_dict(self) -> dict[str, Any]:
        """Return a JSON-ready mapping."""
        return {
            "header": self.header.to_dict(),
            "transactions_merkle_root": self.transactions_merkle_root.to_hex(),
            "transactions": None
            if self.transactions is None
            else [list(tx) for tx in self.transactions],
            "receipts_root": None
            if self.receipts_root is None
            else self.receipts_root.to_hex(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> L2BlockMessage:
        """Build a block from a mapping produced by to_dict."""
        try:
            transactions = data["transactions"]
            receipts = data["receipts_root"]
            return cls(
                header=L2BlockHeader.from_dict(data["header"]),
                transactions_merkle_root=MerkleRoot.from_hex(
                    data["transactions_merkle_root"]
                ),
                transactions=None
                if transactions is None
                else tuple(bytes(tx) for tx in transactions),
                receipts_root=None if receipts is None else MerkleRoot.from_hex(receipts),
            )
        except _DECODE_ERRORS as exc:
            raise SerializationError(f"invalid L2 block: {exc}") from exc


@dataclass(frozen=True)
class BlockAnnouncementMessage:
    """Lightweight notice that a block exists."""

    block_number: int
    parent_hash: bytes
    block_hash: bytes
    has_block: bool

    def __post_init__(self) -> None:
        _uint(self.block_number, 64, "block_number")
        object.__setattr__(self, "parent_hash", _hash32(self.parent_hash, "parent_hash"))
        object.__setattr__(self, "block_hash", _hash32(self.block_hash, "block_hash"))
        _flag(self.has_block, "has_block")

    @classmethod
    def from_block(cls, block: L2BlockMessage, block_hash: bytes) -> BlockAnnouncementMessage:
        """Announce a block; has_block tells whether it is a full block."""
        return cls(
            block_number=block.header.block_number,
            parent_hash=block.header.parent_hash,
            block_hash=block_hash,
            has_block=block.is_full_block(),
        )

    def to_dict(self) -> dict[str, Any]:
        """Return a JSON-ready mapping."""
        return {
            "block_number": self.block_number,
            "parent_hash": self.parent_hash.hex(),
            "block_hash": self.block_hash.hex(),
            "has_block": self.has_block,
        }

    @classmethod
    def from_dict(cls, data: dict) -> BlockAnnouncementMessage:
        """Build an announcement from a mapping produced by to_dict."""
        try:
            return cls(
                block_number=data["block_number"],
                parent_hash=_hash_from_hex(data["parent_hash"], "parent_hash"),
                block_hash=_hash_from_hex(data["block_hash"], "block_hash"),
                has_block=data["has_block"],
            )
        except _DECODE_ERRORS as exc:
            raise SerializationError(f"invalid block announcement: {exc}") from exc


@dataclass(frozen=True)
class BlockRequestMessage:
    """Request for one block by hash."""

    block_hash: bytes
    include_transactions: bool

    def __post_init__(self) -> None:
        object.__setattr__(self, "block_hash", _hash32(self.block_hash, "block_hash"))
        _flag(self.include_transactions, "include_transactions")

    def to_dict(self) -> dict[str, Any]:
        """Return a JSON-ready mapping."""
        return {
            "block_hash": self.block_hash.hex(),
            "include_transactions": self.include_transactions,
        }

    @classmethod
    def from_dict(cls, data: dict) -> BlockRequestMessage:
        """Build a request from a mapping produced by to_dict."""
        try:
            return cls(
                block_hash=_hash_from_hex(data["block_hash"], "block_hash"),
                include_transactions=data["include_transactions"],
            )
        except _DECODE_ERRORS as exc:
            raise SerializationError(f"invalid block request: {exc}") from exc


@dataclass(frozen=True)
class BlockRangeRequestMessage:
    """Request for a range of sequential blocks, both ends inclusive."""

    start_block: int
    end_block: int
    max_blocks: int
    include_transactions: bool
    request_id: int

    def __post_init__(self) -> None:
        _uint(self.start_block, 64, "start_block")
        _uint(self.end_block, 64, "end_block")
        _uint(self.max_blocks, 32, "max_blocks")
        _flag(self.include_transactions, "include_transactions")
        _uint(self.request_id, 64, "request_id")

    def to_dict(self) -> dict[str, Any]:
        """Return a JSON-ready mapping."""
        return {
            "start_block": self.start_block,
            "end_block": self.end_block,
            "max_blocks": self.max_blocks,
            "include_transactions": self.include_transactions,
            "request_id": self.request_id,
        }

    @classmethod
    def from_dict(cls, data: dict) -> BlockRangeRequestMessage:
        """Build a range request from a mapping produced by to_dict."""
        try:
            return cls(
                start_block=data["start_block"],
                end_block=data["end_block"],
                max_blocks=data["max_blocks"],
                include_transactions=data["include_transactions"],
                request_id=data["request_id"],
            )
        except _DECODE_ERRORS as exc:
            raise SerializationError(f"invalid block range request: {exc}") from exc


@dataclass(frozen=True)
class BlockResponseMessage:
    """A block sent in answer to a request."""

    block: L2BlockMessage
    request_id: int | None
    is_last: bool

    def __post_init__(self) -> None:
        if not isinstance(self.block, L2BlockMessage):
            raise TypeError("block must be an L2BlockMessage")
        if self.request_id is not None:
            _uint(self.request_id, 64, "request_id")
        _flag(self.is_last, "is_last")

    def to_dict(self) -> dict[str, Any]:
        """Return a JSON-ready mapping."""
        return {
            "block": self.block.to_dict(),
            "request_id": self.request_id,
            "is_last": self.is_last,
        }

    @classmethod
    def from_dict(cls, data: dict) -> BlockResponseMessage:
        """Build a response from a mapping produced by to_dict."""
        try:
            return cls(
                block=L2BlockMessage.from_dict(data["block"]),
                request_id=data["request_id"],
                is_last=data["is_last"],
            )
        except _DECODE_ERRORS as exc:
            raise SerializationError(f"invalid block response: {exc}") from exc


@dataclass(frozen=True)
class BlockRangeResponseMessage:
    """Blocks sent in answer to a range request."""

    blocks: tuple[L2BlockMessage, ...]
    request_id: int
    is_last: bool
    next_block: int | None = None

    def __post_init__(self) -> None:
        blocks = tuple(self.blocks)
        if not all(isinstance(block, L2BlockMessage) for block in blocks):
            raise TypeError("blocks must be L2BlockMessage instances")
        object.__setattr__(self, "blocks", blocks)
        _uint(self.request_id, 64, "request_id")
        _flag(self.is_last, "is_last")
        if self.next_block is not None:
            _uint(self.next_block, 64, "next_block")

    def highest_block_number(self) -> int | None:
        """Highest block number in the response, or None if it is empty."""
        return max((block.header.block_number for block in self.blocks), default=None)

    def lowest_block_number(self) -> int | None:
        """Lowest block number in the response, or None if it is empty."""
        return min((block.header.block_number for block in self.blocks), default=None)

    def to_dict(self) -> dict[str, Any]:
        """Return a JSON-ready mapping."""
        return {
            "blocks": [block.to_dict() for block in self.blocks],
            "request_id": self.request_id,
            "is_last": self.is_last,
            "next_block": self.next_block,
        }

    @classmethod
    def from_dict(cls, data: dict) -> BlockRangeResponseMessage:
        """Build a range response from a mapping produced by to_dict."""
        try:
            return cls(
                blocks=tuple(L2BlockMessage.from_dict(item) for item in data["blocks"]),
                request_id=data["request_id"],
                is_last=data["is_last"],
                next_block=data["next_block"],
            )
        except _DECODE_ERRORS as exc:
            raise SerializationError(f"invalid block range response: {exc}") from exc