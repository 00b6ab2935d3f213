"""EVM transaction messages and their builder."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum

from citrea_net.errors import SerializationError

logger = logging.getLogger(__name__)

ADDRESS_LENGTH = 20
_HEX_PREFIX_BYTES = 8
_LEGACY_FIRST_BYTES = range(0xC0, 0xF8)


def _address(value: object, name: str) -> bytes | None:
    if value is None:
        return None
    if isinstance(value, (list, tuple)):
        value = bytes(value)
    if not isinstance(value, (bytes, bytearray, memoryview)):
        raise TypeError(f"{name} must be bytes-like")
    data = bytes(value)
    if len(data) != ADDRESS_LENGTH:
        raise ValueError(f"{name} must be {ADDRESS_LENGTH} bytes, got {len(data)}")
    return data


class EVMTransactionType(Enum):
    """Kinds of EVM transaction."""

    LEGACY = "Legacy"
    ACCESS_LIST = "AccessList"
    FEE_MARKET = "FeeMarket"

    def type_byte(self) -> int | None:
        """The envelope type byte, or None for legacy transactions."""
        return _TYPE_BYTES.get(self)

    @classmethod
    def from_first_byte(cls, data: bytes) -> EVMTransactionType:
        """Infer the type from the first byte of a raw payload."""
        if not data:
            return cls.LEGACY
        return _BYTE_TYPES.get(data[0], cls.LEGACY)


_TYPE_BYTES = {
    EVMTransactionType.ACCESS_LIST: 0x01,
    EVMTransactionType.FEE_MARKET: 0x02,
}
_BYTE_TYPES = {byte: tx_type for tx_type, byte in _TYPE_BYTES.items()}


@dataclass(frozen=True)
class GasPricing:
    """Gas limit and fees of a transaction."""

    gas_limit: int
    max_fee_per_gas: int
    max_priority_fee_per_gas: int | None = None


@dataclass(frozen=True)
class EVMTransactionMessage:
    """A raw EVM transaction with optional extracted metadata."""

    payload: bytes
    tx_type: EVMTransactionType
    sender: bytes | None = None
    recipient: bytes | None = None
    gas_info: GasPricing | None = None
    nonce: int | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "payload", bytes(self.payload))
        object.__setattr__(self, "sender", _address(self.sender, "sender"))
        object.__setattr__(self, "recipient", _address(self.recipient, "recipient"))
        if not isinstance(self.tx_type, EVMTransactionType):
            raise TypeError("tx_type must be an EVMTransactionType")

    @classmethod
    def from_payload(cls, payload: bytes) -> EVMTransactionMessage:
        """Wrap a raw payload, inferring its type from the first byte."""
        payload = bytes(payload)
        logger.debug("Creating new EVMTransactionMessage: %d bytes", len(payload))
        return cls(payload=payload, tx_type=EVMTransactionType.from_first_byte(payload))

    @classmethod
    def builder(cls, payload: bytes) -> EVMTransactionMessageBuilder:
        """Start building a message with metadata."""
        return EVMTransactionMessageBuilder(payload)

    def verify_format(self) -> bool:
        """Whether the payload is non-empty and starts as its type requires."""
        if not self.payload:
            logger.error("EVM transaction format verification failed: empty payload")
            return False
        first = self.payload[0]
        if self.tx_type is EVMTransactionType.LEGACY:
            valid = first in _LEGACY_FIRST_BYTES
        else:
            valid = first == self.tx_type.type_byte()
        if not valid:
            logger.error("Invalid %s transaction format", self.tx_type.value)
            return False
        logger.debug("EVM transaction format verification successful")
        return True

    def size(self) -> int:
        """Payload length in bytes."""
        return len(self.payload)

    def hex_prefix(self) -> str:
        """Hex of the first eight payload bytes, for log lines."""
        if not self.payload:
            return "empty"
        return f"0x{self.payload[:_HEX_PREFIX_BYTES].hex()}..."

    def to_dict(self) -> dict:
        """Return a JSON-ready mapping."""
        gas = self.gas_info
        return {
            "payload": list(self.payload),
            "tx_type": self.tx_type.value,
            "from": list(self.sender) if self.sender is not None else None,
            "to": list(self.recipient) if self.recipient is not None else None,
            "gas_info": None
            if gas is None
            else {
                "gas_limit": gas.gas_limit,
                "max_fee_per_gas": gas.max_fee_per_gas,
                "max_priority_fee_per_gas": gas.max_priority_fee_per_gas,
            },
            "nonce": self.nonce,
        }

    @classmethod
    def from_dict(cls, data: dict) -> EVMTransactionMessage:
        """Build a message from a mapping produced by to_dict."""
        try:
            gas = data["gas_info"]
            return cls(
                payload=bytes(data["payload"]),
                tx_type=EVMTransactionType(data["tx_type"]),
                sender=data["from"],
                recipient=data["to"],
                gas_info=None
                if gas is None
                else GasPricing(
                    gas_limit=int(gas["gas_limit"]),
                    max_fee_per_gas=int(gas["max_fee_per_gas"]),
                    max_priority_fee_per_gas=gas["max_priority_fee_per_gas"],
                ),
                nonce=data["nonce"],
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise SerializationError(f"invalid EVM transaction: {exc}") from exc


class EVMTransactionMessageBuilder:
    """Collects metadata for an EVMTransactionMessage."""

    def __init__(self, payload: bytes) -> None:
        self._payload = bytes(payload)
        self._tx_type = EVMTransactionType.from_first_byte(self._payload)
        self._sender: bytes | None = None
        self._recipient: bytes | None = None
        self._gas_limit: int | None = None
        self._max_fee_per_gas: int | None = None
        self._max_priority_fee_per_gas: int | None = None
        self._nonce: int | None = None

    def with_type(self, tx_type: EVMTransactionType) -> EVMTransactionMessageBuilder:
        """Override the inferred transaction type."""
        self._tx_type = tx_type
        return self

    def with_from(self, sender: bytes) -> EVMTransactionMessageBuilder:
        """Set the sender address."""
        self._sender = _address(sender, "sender")
        return self

    def with_to(self, recipient: bytes) -> EVMTransactionMessageBuilder:
        """Set the recipient address."""
        self._recipient = _address(recipient, "recipient")
        return self

    def with_gas(
        self, gas_limit: int, max_fee_per_gas: int
    ) -> EVMTransactionMessageBuilder:
        """Set the gas limit and the (max) fee per gas."""
        self._gas_limit = gas_limit
        self._max_fee_per_gas = max_fee_per_gas
        return self

    def with_priority_fee(
        self, max_priority_fee_per_gas: int
    ) -> EVMTransactionMessageBuilder:
        """Set the max priority fee per gas."""
        self._max_priority_fee_per_gas = max_priority_fee_per_gas
        return self

    def with_nonce(self, nonce: int) -> EVMTransactionMessageBuilder:
        """Set the transaction nonce."""
        self._nonce = nonce
        return self

    def build(self) -> EVMTransactionMessage:
        """Create the message; gas info is kept only if limit and fee are both set."""
        gas_info = None
        if self._gas_limit is not None and self._max_fee_per_gas is not None:
            gas_info = GasPricing(
                gas_limit=self._gas_limit,
                max_fee_per_gas=self._max_fee_per_gas,
                max_priority_fee_per_gas=self._max_priority_fee_per_gas,
            )
        logger.info(
            "Building EVMTransactionMessage: %d bytes, type=%s, nonce=%s",
            len(self._payload),
            self._tx_type.value,
            self._nonce,
        )
        return EVMTransactionMessage(
            payload=self._payload,
            tx_type=self._tx_type,
            sender=self._sender,
            recipient=self._recipient,
            gas_info=gas_info,
            nonce=self._nonce,
        )