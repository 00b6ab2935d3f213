"""A minimal demonstration node that creates a network and idles."""

from __future__ import annotations

import asyncio
import logging
import re
import sys
from collections.abc import Sequence

from citrea_net.log_setup import init_default_logging
from citrea_net.message import Custom
from citrea_net.network import Network
from citrea_net.peers import P2PConfig
from citrea_net.types import PeerId

logger = logging.getLogger(__name__)

BOOTSTRAP_PORT = 30303
DEFAULT_PORT = 30304
BOOTSTRAP_ADDRESS = "127.0.0.1:30303"
SETTLE_SECONDS = 2
RUN_SECONDS = 30

_PORT_PATTERN = re.compile(r"\+?[0-9]+")


def _parse_port(text: str) -> int | None:
    if not _PORT_PATTERN.fullmatch(text):
        return None
    value = int(text)
    return value if value <= 0xFFFF else None


def parse_args(argv: Sequence[str]) -> tuple[bool, int]:
    """Return (is_bootstrap, port) from the arguments after the program name."""
    args = list(argv)
    is_bootstrap = bool(args) and args[0] == "--bootstrap"
    if is_bootstrap:
        return True, BOOTSTRAP_PORT
    if len(args) > 1:
        port = _parse_port(args[1])
        return False, DEFAULT_PORT if port is None else port
    return False, DEFAULT_PORT


def build_config(port: int, is_bootstrap: bool) -> P2PConfig:
    """Default configuration on the given port; non-bootstrap nodes get the bootstrap address."""
    bootstrap_nodes = [] if is_bootstrap else [BOOTSTRAP_ADDRESS]
    return P2PConfig(port=port, bootstrap_nodes=bootstrap_nodes)


async def run_node(is_bootstrap: bool, port: int, run_seconds: float = RUN_SECONDS) -> Network:
    """Create a node, wait, announce a greeting if not bootstrap, then idle."""
    print(f"Starting P2P node on port {port}")
    local_id = PeerId.random()
    print(f"Local peer ID: {local_id}")

    network = Network(local_id, build_config(port, is_bootstrap))
    print("Network created successfully!")

    await asyncio.sleep(SETTLE_SECONDS)

    if not is_bootstrap:
        print("Connected to peers")
        greeting = Custom(data=b"Hello from simple_node!")
        logger.debug("Prepared greeting %r", greeting)
        print("Broadcasting message to all peers")

    print(f"Running for {run_seconds} seconds...")
    await asyncio.sleep(run_seconds)

    print("Stopping network")
    print("Node shutdown complete")
    return network


def main(argv: Sequence[str] | None = None) -> int:
    """Run the demonstration node from the command line."""
    init_default_logging()
    args = sys.argv[1:] if argv is None else argv
    is_bootstrap, port = parse_args(args)
    asyncio.run(run_node(is_bootstrap, port))
    return 0


if __name__ == "__main__":
    sys.exit(main())