import json
import time

import pytest

from citrea_net.errors import SerializationError
from citrea_net.message import (
    Custom,
    DirectMessage,
    DiscoverPeers,
    Gossip,
    Handshake,
    Message,
    MessageHandler,
    PeerList,
    Ping,
    Pong,
    Subscribe,
    TimestampedMessage,
    Unsubscribe,
    VerifiableMessage,
)
from citrea_net.peers import PeerInfo
from citrea_net.types import PeerId

PEER = PeerId(bytes(range(32)))
OTHER = PeerId(bytes([7]) * 32)

VARIANTS = [
    Ping(nonce=1, timestamp=2),
    Pong(nonce=2**64 - 1, timestamp=0),
    DiscoverPeers(),
    PeerList(
        peers=(
            PeerInfo(
                id=OTHER,
                address="127.0.0.1:30303",
                last_seen=5,
                version=1,
                capabilities=("basic",),
            ),
        )
    ),
    Custom(data=b"hello"),
    DirectMessage(target=OTHER, data=b"\x00\xff"),
    Handshake(version=1, peer_id=PEER, listen_port=30303, capabilities=("basic",)),
    Gossip(topic="blocks", data=b"x", ttl=3),
    Subscribe(topic="blocks"),
    Unsubscribe(topic="blocks"),
]


@pytest.mark.parametrize("message", VARIANTS, ids=lambda m: type(m).__name__)
def test_serialize_round_trip(message):
    assert Message.deserialize(message.serialize()) == message


@pytest.mark.parametrize("message", VARIANTS, ids=lambda m: type(m).__name__)
def test_dict_round_trip(message):
    assert Message.from_dict(message.to_dict()) == message


def test_ping_wire_form():
    assert Ping(nonce=1, timestamp=2).serialize() == b'{"Ping":{"nonce":1,"timestamp":2}}'


def test_unit_variant_is_bare_name():
    assert DiscoverPeers().to_dict() == "DiscoverPeers"
    assert Message.from_dict({"DiscoverPeers": None}) == DiscoverPeers()


def test_bytes_encode_as_number_lists():
    encoded = json.loads(Custom(data=b"hi").serialize())
    assert encoded == {"Custom": {"data": list(b"hi")}}


def test_handshake_peer_id_is_hex():
    body = Handshake(version=1, peer_id=PEER, listen_port=1, capabilities=()).to_dict()
    assert body["Handshake"]["peer_id"] == PEER.to_hex()


def test_invalid_json_raises():
    with pytest.raises(SerializationError):
        Message.deserialize(b"\xff not json")


def test_unknown_variant_raises():
    with pytest.raises(SerializationError):
        Message.from_dict({"Nope": {}})


def test_two_tags_raise():
    with pytest.raises(SerializationError):
        Message.from_dict({"Subscribe": {"topic": "a"}, "Unsubscribe": {"topic": "a"}})


def test_missing_field_raises():
    with pytest.raises(SerializationError):
        Message.from_dict({"Ping": {"nonce": 1}})


def test_wrong_field_type_raises():
    with pytest.raises(SerializationError):
        Message.from_dict({"Ping": {"nonce": "1", "timestamp": 2}})


def test_variant_class_rejects_other_variant():
    with pytest.raises(SerializationError):
        Ping.from_dict(Pong(nonce=1, timestamp=1).to_dict())


def test_gossip_ttl_must_fit_byte():
    with pytest.raises(ValueError):
        Gossip(topic="t", data=b"", ttl=256)


def test_handshake_port_range():
    with pytest.raises(ValueError):
        Handshake(version=1, peer_id=PEER, listen_port=70000, capabilities=())


def test_out_of_range_gossip_ttl_on_decode():
    with pytest.raises(SerializationError):
        Message.from_dict({"Gossip": {"topic": "t", "data": [], "ttl": 300}})


def test_timestamped_create_uses_current_time():
    before = int(time.time())
    stamped = TimestampedMessage.create(Subscribe(topic="a"), PEER)
    after = int(time.time())
    assert before <= stamped.timestamp <= after
    assert stamped.sender == PEER
    assert stamped.message == Subscribe(topic="a")


def test_timestamped_round_trip():
    stamped = TimestampedMessage(
        message=Gossip(topic="blocks", data=b"abc", ttl=2), timestamp=42, sender=PEER
    )
    assert TimestampedMessage.deserialize(stamped.serialize()) == stamped


def test_timestamped_missing_sender_raises():
    data = json.dumps({"message": "DiscoverPeers", "timestamp": 1}).encode()
    with pytest.raises(SerializationError):
        TimestampedMessage.deserialize(data)


class RecordingHandler(MessageHandler):
    def __init__(self):
        self.calls = []

    async def handle_ping(self, peer_id, nonce, timestamp):
        self.calls.append(("ping", peer_id, nonce, timestamp))

    async def handle_pong(self, peer_id, nonce, timestamp):
        self.calls.append(("pong", peer_id, nonce, timestamp))

    async def handle_discover_peers(self, peer_id):
        self.calls.append(("discover", peer_id))

    async def handle_peer_list(self, peer_id, peers):
        self.calls.append(("peer_list", peer_id, peers))

    async def handle_custom(self, peer_id, data):
        self.calls.append(("custom", peer_id, data))

    async def handle_direct_message(self, peer_id, target, data):
        self.calls.append(("direct", peer_id, target, data))

    async def handle_handshake(self, peer_id, version, sender_id, listen_port, capabilities):
        self.calls.append(("handshake", peer_id, version, sender_id, listen_port, capabilities))

    async def handle_gossip(self, peer_id, topic, data, ttl):
        self.calls.append(("gossip", peer_id, topic, data, ttl))

    async def handle_subscribe(self, peer_id, topic):
        self.calls.append(("subscribe", peer_id, topic))

    async def handle_unsubscribe(self, peer_id, topic):
        self.calls.append(("unsubscribe", peer_id, topic))


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "message, expected",
    [
        (Ping(nonce=1, timestamp=2), ("ping", PEER, 1, 2)),
        (Pong(nonce=3, timestamp=4), ("pong", PEER, 3, 4)),
        (DiscoverPeers(), ("discover", PEER)),
        (Custom(data=b"hi"), ("custom", PEER, b"hi")),
        (DirectMessage(target=OTHER, data=b"d"), ("direct", PEER, OTHER, b"d")),
        (
            Handshake(version=1, peer_id=OTHER, listen_port=9, capabilities=("basic",)),
            ("handshake", PEER, 1, OTHER, 9, ["basic"]),
        ),
        (Gossip(topic="t", data=b"g", ttl=5), ("gossip", PEER, "t", b"g", 5)),
        (Subscribe(topic="t"), ("subscribe", PEER, "t")),
        (Unsubscribe(topic="t"), ("unsubscribe", PEER, "t")),
    ],
)
async def test_handler_dispatch(message, expected):
    handler = RecordingHandler()
    await handler.handle_message(PEER, message)
    assert handler.calls == [expected]


@pytest.mark.asyncio
async def test_handler_peer_list_gets_list():
    handler = RecordingHandler()
    info = PeerInfo(id=OTHER, address="a", last_seen=1)
    await handler.handle_message(PEER, PeerList(peers=(info,)))
    assert handler.calls == [("peer_list", PEER, [info])]


def test_message_handler_is_abstract():
    with pytest.raises(TypeError):
        MessageHandler()


def test_verifiable_message_cannot_be_instantiated():
    with pytest.raises(TypeError):
        VerifiableMessage()