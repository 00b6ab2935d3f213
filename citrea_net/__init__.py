"""Peer-to-peer networking primitives, protocol messages and message envelopes for a layer 2 network."""

__version__ = "0.1.0"