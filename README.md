# citrea_net

Peer-to-peer networking primitives and message types for a layer 2 network
anchored to Bitcoin. Pure Python, no third-party dependencies.

## Modules

- `citrea_net.types`: fixed-size values. `PeerId` (32 bytes, with
  `random()`, `from_public_key()` taking the SHA-256 of a key, `from_hex()`
  and `to_hex()`), `BitcoinTxid`, `StateRoot`, `MerkleRoot`, and
  `EcdsaSignature` (`r`, `s`, `v`).
- `citrea_net.errors`: exceptions rooted at `P2PError`, such as
  `PeerNotFoundError`, `AlreadyConnectedError`, `MaxConnectionsReachedError`,
  `VerificationError`, `SerializationError` and
  `InvalidProtocolVersionError`.
- `citrea_net.log_setup`: `init_logging(level)`, `init_default_logging()`
  (debug level) and `init_subscriber(handler)`, which attach one handler to
  the `citrea_net` logger and raise `RuntimeError` if one is already attached.
- `citrea_net.peers`: `PeerInfo`, `P2PConfig` (port 30303, 50 connections,
  30 s ping interval, 120 s timeout by default) and `PeerConnection`.
- `citrea_net.message`: the protocol messages `Ping`, `Pong`,
  `DiscoverPeers`, `PeerList`, `Custom`, `DirectMessage`, `Handshake`,
  `Gossip`, `Subscribe` and `Unsubscribe`, with externally tagged JSON
  encoding (`serialize()` / `Message.deserialize()`), `TimestampedMessage`,
  and the `MessageHandler`, `SignedMessage` and `VerifiableMessage` bases.
- `citrea_net.maintenance`: the periodic sweep that marks timed-out peers
  disconnected and gives idle peers a fresh ping nonce, and the TCP listener
  loop.
- `citrea_net.network`: `Network`, an asyncio peer table with `connect`,
  `disconnect`, `send_message`, `broadcast`, `get_connected_peers`,
  `get_known_peers`, `get_connection`, `start`, `stop`, and handlers for
  every protocol message (pong round-trip times, peer lists, direct-message
  forwarding, handshakes, gossip forwarding with a decreasing ttl).
- `citrea_net.blocks`: `L2BlockHeader`, `L2BlockMessage` (with `verify()`),
  block announcements, block and block-range requests and responses.
- `citrea_net.proofs`: `SequencerCommitmentMessage`, `BatchProofMessage`
  and `LightClientProofMessage`.
- `citrea_net.transactions`: `EVMTransactionType`, `GasPricing`,
  `EVMTransactionMessage` and its builder.
- `citrea_net.envelope`: `MessageEnvelope` carrying any of the application
  messages with protocol version, chain ID, sender and timestamp;
  `message_type()`, `verify_message()`, `create_message()` (chain 2424) and
  `create_message_for_chain()`.

## Installation

```
pip install .
```

For running the tests:

```
pip install ".[test]"
pytest
```

## Example

```python
import asyncio

from citrea_net.message import Custom
from citrea_net.network import Network
from citrea_net.peers import P2PConfig, PeerInfo
from citrea_net.types import PeerId


async def demo():
    network = Network(PeerId.random(), P2PConfig(port=30304))
    await network.connect(PeerInfo(PeerId.random(), "127.0.0.1:30303"))
    count = await network.broadcast(Custom(data=b"hello"))
    print(count, await network.get_connected_peers())


asyncio.run(demo())
```

Wrapping an application message in an envelope:

```python
from citrea_net.envelope import MessageEnvelope, create_message
from citrea_net.transactions import EVMTransactionMessage

tx = EVMTransactionMessage.from_payload(bytes([0x02, 0xAA, 0xBB]))
envelope = create_message(tx, None)
raw = envelope.serialize()
same = MessageEnvelope.deserialize(raw)
```

## Demo node

A small demonstration node is installed as a command:

```
citrea-simple-node --bootstrap
citrea-simple-node --port 30305
```

If the first argument is `--bootstrap`, the node uses port 30303. Otherwise
the port is taken from the second argument (30304 if it is missing or not a
valid port), and `127.0.0.1:30303` is put in its configuration as a bootstrap
node. The node creates a `Network`, prints its peer ID, waits, and exits after
about 30 seconds.

## What it does not do

- There is no transport for messages. `Network.connect` only records a peer,
  and `send_message` and `broadcast` encode a message and return the bytes
  (or the count of connected peers) without sending anything.
- The listener started by `Network.start` accepts TCP connections, logs them
  and closes them; it performs no handshake and reads no messages.
- The demo node does not start its network, connect to the bootstrap node or
  broadcast anything; it only prints what it would do.
- Signature and proof checks are basic format checks (recovery ID, empty
  proofs, genesis parent hash, zero timestamps), not cryptographic
  verification.