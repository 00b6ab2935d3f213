import json

import pytest

from citrea_net.blocks import (
    BlockAnnouncementMessage,
    BlockRangeRequestMessage,
    BlockRangeResponseMessage,
    BlockRequestMessage,
    BlockResponseMessage,
    L2BlockHeader,
    L2BlockMessage,
)
from citrea_net.errors import SerializationError, VerificationError
from citrea_net.types import MerkleRoot, StateRoot

ZERO = bytes(32)
ONES = bytes([1] * 32)


def make_header(number=5, timestamp=1700000000, parent=ONES):
    return L2BlockHeader(
        block_number=number,
        timestamp=timestamp,
        parent_hash=parent,
        state_root=StateRoot(bytes([7] * 32)),
    )


def make_block(number=5, timestamp=1700000000, parent=ONES, transactions=None):
    header = make_header(number, timestamp, parent)
    root = MerkleRoot(bytes([9] * 32))
    if transactions is None:
        return L2BlockMessage(header, root)
    return L2BlockMessage.with_transactions(header, root, transactions, None)


def test_light_block_is_not_full():
    block = make_block()
    assert block.is_full_block() is False
    assert block.transactions is None
    assert block.receipts_root is None


def test_block_with_transactions_is_full():
    block = make_block(transactions=[b"\x02abc", b"\xc1"])
    assert block.is_full_block() is True
    assert block.transactions == (b"\x02abc", b"\xc1")


def test_block_number_and_parent_hash():
    block = make_block(number=42, parent=ONES)
    assert block.block_number == 42
    assert block.parent_hash == ONES


def test_verify_accepts_valid_block():
    block = make_block(transactions=[b"\x01"])
    block.verify()
    assert block.header.timestamp == 1700000000


def test_verify_rejects_zero_timestamp():
    with pytest.raises(VerificationError, match="Block timestamp cannot be zero"):
        make_block(timestamp=0).verify()


def test_verify_rejects_genesis_with_parent():
    with pytest.raises(VerificationError, match="Invalid parent hash for genesis block"):
        make_block(number=0, parent=ONES).verify()


def test_verify_accepts_genesis_with_zero_parent():
    block = make_block(number=0, parent=ZERO)
    block.verify()
    assert block.parent_hash == ZERO


def test_verify_rejects_empty_transaction_list():
    block = make_block(transactions=[])
    with pytest.raises(
        VerificationError, match="Block with transactions has empty transaction list"
    ):
        block.verify()


def test_verification_error_detail():
    with pytest.raises(VerificationError) as info:
        make_block(timestamp=0).verify()
    assert info.value.detail == "Block timestamp cannot be zero"


def test_header_rejects_bad_parent_length():
    with pytest.raises(ValueError):
        make_header(parent=bytes(31))


def test_header_round_trip():
    header = make_header()
    assert L2BlockHeader.from_dict(header.to_dict()) == header


def test_header_parent_hash_is_hex():
    assert make_header(parent=ONES).to_dict()["parent_hash"] == ONES.hex()


def test_block_round_trip_through_json():
    block = L2BlockMessage.with_transactions(
        make_header(),
        MerkleRoot(bytes([3] * 32)),
        [b"\x02\x00", b"\xc0"],
        MerkleRoot(bytes([4] * 32)),
    )
    text = json.dumps(block.to_dict())
    assert L2BlockMessage.from_dict(json.loads(text)) == block


def test_light_block_round_trip():
    block = make_block()
    restored = L2BlockMessage.from_dict(block.to_dict())
    assert restored == block
    assert restored.is_full_block() is False


def test_block_from_dict_invalid():
    with pytest.raises(SerializationError):
        L2BlockMessage.from_dict({"header": {}})


def test_announcement_from_full_block():
    block = make_block(number=8, transactions=[b"\x01"])
    hash_ = bytes([5] * 32)
    announcement = BlockAnnouncementMessage.from_block(block, hash_)
    assert announcement.block_number == 8
    assert announcement.parent_hash == block.parent_hash
    assert announcement.block_hash == hash_
    assert announcement.has_block is True


def test_announcement_from_light_block():
    announcement = BlockAnnouncementMessage.from_block(make_block(), bytes([5] * 32))
    assert announcement.has_block is False


def test_announcement_round_trip():
    announcement = BlockAnnouncementMessage(3, ONES, bytes([2] * 32), True)
    assert BlockAnnouncementMessage.from_dict(announcement.to_dict()) == announcement


def test_block_request_round_trip():
    request = BlockRequestMessage(bytes([6] * 32), True)
    assert BlockRequestMessage.from_dict(request.to_dict()) == request


def test_block_request_rejects_short_hash():
    with pytest.raises(ValueError):
        BlockRequestMessage(b"\x01", False)


def test_block_range_request_round_trip():
    request = BlockRangeRequestMessage(10, 20, 5, False, 77)
    assert BlockRangeRequestMessage.from_dict(request.to_dict()) == request


def test_block_range_request_rejects_large_max_blocks():
    with pytest.raises(ValueError):
        BlockRangeRequestMessage(0, 1, 1 << 32, False, 1)


def test_block_response_round_trip():
    response = BlockResponseMessage(make_block(transactions=[b"\x02"]), None, True)
    restored = BlockResponseMessage.from_dict(response.to_dict())
    assert restored == response
    assert restored.request_id is None


def test_block_range_response_bounds():
    blocks = [make_block(number=n) for n in (12, 4, 9)]
    response = BlockRangeResponseMessage(blocks, 3, False, 13)
    assert response.highest_block_number() == 12
    assert response.lowest_block_number() == 4


def test_empty_range_response_bounds():
    response = BlockRangeResponseMessage([], 3, True)
    assert response.highest_block_number() is None
    assert response.lowest_block_number() is None


def test_block_range_response_round_trip():
    response = BlockRangeResponseMessage(
        [make_block(number=1), make_block(number=2, transactions=[b"\x01"])], 9, True
    )
    assert BlockRangeResponseMessage.from_dict(response.to_dict()) == response


def test_block_range_response_from_dict_invalid():
    with pytest.raises(SerializationError):
        BlockRangeResponseMessage.from_dict({"blocks": [], "request_id": "x"})