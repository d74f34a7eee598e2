"""
fhevm_core.devnode
------------------
Check that a local development node answers JSON-RPC before running
anything against it.

    python -m fhevm_core.devnode [--url http://localhost:8545]
"""

from __future__ import annotations
import argparse
import asyncio
import os
import sys
from typing import Optional

from .bootstrap import MockEnvironment, probe_environment
from .rpc import RpcClient, RpcError
from .utils import parse_quantity



async def check_dev_node(url: str) -> int:
    """Return the node's chain id; raises RpcError when unreachable."""
    client = RpcClient(url)
    try:
        return parse_quantity(await client.request("eth_chainId", []))
    finally:
        client.close()


def main(argv: Optional[list] = None) -> int:
    parser = argparse.ArgumentParser(description="Check a local FHEVM development node.")
    parser.add_argument("--url", default=os.getenv("HARDHAT_URL", "http://localhost:8545"))
    parser.add_argument("--probe", action="store_true", help="also check for relayer metadata (mock mode)")
    args = parser.parse_args(argv)

    try:
        chain_id = asyncio.run(check_dev_node(args.url))
    except (RpcError, ValueError) as e:
        print(f"Development node is not reachable at {args.url}. Start it first. ({e})", file=sys.stderr)
        return 1

    print(f"Development node reachable at {args.url} chainId={chain_id}")
    if args.probe:
        env = asyncio.run(probe_environment(args.url))
        if isinstance(env, MockEnvironment):
            print("Relayer metadata available: mock runtime will be used")
        else:
            print(f"Mock runtime unavailable: {env.reason}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
