"""
Inventory and broadcast backends.

Available backends:
- SnapshotBackend: UTXOs from a JSON file, broadcasts recorded locally (dry run)
- NodeRpcBroadcaster: relays signed transactions through a node's JSON-RPC
"""

from ecashtx.backends.base import Broadcaster, UtxoProvider
from ecashtx.backends.node_rpc import NodeRpcBroadcaster
from ecashtx.backends.snapshot import SnapshotBackend

__all__ = [
    "Broadcaster",
    "NodeRpcBroadcaster",
    "SnapshotBackend",
    "UtxoProvider",
]
