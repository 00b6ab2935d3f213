import pytest

from citrea_net.errors import SerializationError
from citrea_net.transactions import (
    EVMTransactionMessage,
    EVMTransactionType,
    GasPricing,
)

SENDER = bytes(range(20))
RECIPIENT = bytes(range(20, 40))


@pytest.mark.parametrize(
    "tx_type, expected",
    [
        (EVMTransactionType.LEGACY, None),
        (EVMTransactionType.ACCESS_LIST, 1),
        (EVMTransactionType.FEE_MARKET, 2),
    ],
)
def test_type_byte(tx_type, expected):
    assert tx_type.type_byte() == expected


@pytest.mark.parametrize(
    "data, expected",
    [
        (b"", EVMTransactionType.LEGACY),
        (b"\x01\xaa", EVMTransactionType.ACCESS_LIST),
        (b"\x02", EVMTransactionType.FEE_MARKET),
        (b"\xf8\x01", EVMTransactionType.LEGACY),
        (b"\x03", EVMTransactionType.LEGACY),
    ],
)
def test_from_first_byte(data, expected):
    assert EVMTransactionType.from_first_byte(data) is expected


def test_from_payload_infers_type_and_leaves_metadata_empty():
    message = EVMTransactionMessage.from_payload(b"\x02\x10")
    assert message.tx_type is EVMTransactionType.FEE_MARKET
    assert message.sender is None
    assert message.gas_info is None
    assert message.size() == 2


@pytest.mark.parametrize(
    "payload, tx_type, expected",
    [
        (b"\xc0", EVMTransactionType.LEGACY, True),
        (b"\xf7\x00", EVMTransactionType.LEGACY, True),
        (b"\xf8\x00", EVMTransactionType.LEGACY, False),
        (b"\x01\x00", EVMTransactionType.ACCESS_LIST, True),
        (b"\x02\x00", EVMTransactionType.ACCESS_LIST, False),
        (b"\x02\x00", EVMTransactionType.FEE_MARKET, True),
        (b"\x01\x00", EVMTransactionType.FEE_MARKET, False),
        (b"", EVMTransactionType.LEGACY, False),
    ],
)
def test_verify_format(payload, tx_type, expected):
    message = EVMTransactionMessage(payload=payload, tx_type=tx_type)
    assert message.verify_format() is expected


def test_hex_prefix_of_empty_payload():
    assert EVMTransactionMessage.from_payload(b"").hex_prefix() == "empty"


def test_hex_prefix_short_payload_shows_all_bytes():
    payload = b"\xab\xcd"
    prefix = EVMTransactionMessage.from_payload(payload).hex_prefix()
    assert prefix == "0x" + payload.hex() + "..."


def test_hex_prefix_long_payload_is_cut_to_eight_bytes():
    payload = bytes(range(1, 13))
    prefix = EVMTransactionMessage.from_payload(payload).hex_prefix()
    assert prefix == "0x" + payload[:8].hex() + "..."


def test_builder_collects_metadata():
    message = (
        EVMTransactionMessage.builder(b"\x02\x01")
        .with_from(SENDER)
        .with_to(RECIPIENT)
        .with_gas(21000, 100)
        .with_priority_fee(5)
        .with_nonce(9)
        .build()
    )
    assert message.tx_type is EVMTransactionType.FEE_MARKET
    assert message.sender == SENDER
    assert message.recipient == RECIPIENT
    assert message.gas_info == GasPricing(21000, 100, 5)
    assert message.nonce == 9


def test_builder_without_gas_has_no_gas_info():
    message = (
        EVMTransactionMessage.builder(b"\xc1").with_priority_fee(5).build()
    )
    assert message.gas_info is None
    assert message.tx_type is EVMTransactionType.LEGACY


def test_builder_type_override():
    message = (
        EVMTransactionMessage.builder(b"\xc1")
        .with_type(EVMTransactionType.ACCESS_LIST)
        .build()
    )
    assert message.tx_type is EVMTransactionType.ACCESS_LIST
    assert message.verify_format() is False


def test_builder_rejects_short_address():
    with pytest.raises(ValueError):
        EVMTransactionMessage.builder(b"\x02").with_from(b"\x00" * 19)


def test_to_dict_uses_wire_names():
    message = EVMTransactionMessage.builder(b"\x02").with_to(RECIPIENT).build()
    data = message.to_dict()
    assert data["tx_type"] == "FeeMarket"
    assert data["from"] is None
    assert data["to"] == list(RECIPIENT)


def test_dict_round_trip():
    message = (
        EVMTransactionMessage.builder(b"\x01\x02\x03")
        .with_from(SENDER)
        .with_gas(50000, 7)
        .with_nonce(3)
        .build()
    )
    assert EVMTransactionMessage.from_dict(message.to_dict()) == message


def test_from_dict_rejects_unknown_type():
    data = EVMTransactionMessage.from_payload(b"\xc0").to_dict()
    data["tx_type"] = "Blob"
    with pytest.raises(SerializationError):
        EVMTransactionMessage.from_dict(data)