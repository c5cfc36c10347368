"""Factory helpers that build a ready L2 state manager."""

from typing import Optional

from tokamak_l2_toolkit.crypto.backend import CryptoBackend
from tokamak_l2_toolkit.shared.exceptions import CapacityExceeded
from tokamak_l2_toolkit.shared.retry import RPC_RETRY_CONFIG, RetryConfig
from tokamak_l2_toolkit.state.manager import L2StateManager
from tokamak_l2_toolkit.state.merkle import CAPACITY
from tokamak_l2_toolkit.state.snapshot import StateSnapshot
from tokamak_l2_toolkit.state.sources import RpcUpstreamSource
from tokamak_l2_toolkit.state.types import StateManagerOptions, UpstreamSource


def _check_capacity(opts: StateManagerOptions) -> None:
    for entry in opts.init_storage_keys:
        if len(entry.key_pairs) > CAPACITY:
            raise CapacityExceeded(
                f"Cannot register {len(entry.key_pairs)} keys for {entry.address}; "
                f"the limit is {CAPACITY}"
            )


async def create_state_manager_from_source(
    source: UpstreamSource,
    opts: StateManagerOptions,
    backend: Optional[CryptoBackend],
) -> L2StateManager:
    _check_capacity(opts)
    manager = L2StateManager(backend)
    await manager.init_from_rpc(source, opts)
    return manager


async def create_state_manager_from_rpc(
    rpc_url: str,
    opts: StateManagerOptions,
    backend: Optional[CryptoBackend],
    retry_config: RetryConfig = RPC_RETRY_CONFIG,
) -> L2StateManager:
    """Build a manager whose initial state is read from an L1 node."""
    source = RpcUpstreamSource.from_rpc_url(rpc_url, retry_config=retry_config)
    return await create_state_manager_from_source(source, opts, backend)


async def create_state_manager_from_snapshot(
    snapshot: StateSnapshot,
    backend: Optional[CryptoBackend],
    opts: Optional[StateManagerOptions] = None,
) -> L2StateManager:
    manager = L2StateManager(backend)
    await manager.init_from_snapshot(snapshot, opts)
    return manager
