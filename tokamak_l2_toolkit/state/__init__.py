"""Registered-key Merkle state, snapshots and their upstream sources."""

from tokamak_l2_toolkit.state.channel import (
    ChannelStateConfig,
    create_state_manager_opts_from_channel_config,
)
from tokamak_l2_toolkit.state.constructors import (
    create_state_manager_from_rpc,
    create_state_manager_from_snapshot,
    create_state_manager_from_source,
)
from tokamak_l2_toolkit.state.manager import L2StateManager
from tokamak_l2_toolkit.state.merkle import MerkleForest, MerkleProof, MerkleTree, verify_proof
from tokamak_l2_toolkit.state.snapshot import StateSnapshot, validate_state_snapshot
from tokamak_l2_toolkit.state.sources import RpcUpstreamSource, SnapshotUpstreamSource
from tokamak_l2_toolkit.state.storage import InMemoryStateStore
from tokamak_l2_toolkit.state.types import (
    ManagerState,
    PermutationForAddress,
    RegisteredKeysForAddress,
    StateManagerOptions,
    StorageKeyPair,
    StorageKeysForAddress,
)

__all__ = [
    "ChannelStateConfig",
    "InMemoryStateStore",
    "L2StateManager",
    "ManagerState",
    "MerkleForest",
    "MerkleProof",
    "MerkleTree",
    "PermutationForAddress",
    "RegisteredKeysForAddress",
    "RpcUpstreamSource",
    "SnapshotUpstreamSource",
    "StateManagerOptions",
    "StateSnapshot",
    "StorageKeyPair",
    "StorageKeysForAddress",
    "create_state_manager_from_rpc",
    "create_state_manager_from_snapshot",
    "create_state_manager_from_source",
    "create_state_manager_opts_from_channel_config",
    "validate_state_snapshot",
    "verify_proof",
]
