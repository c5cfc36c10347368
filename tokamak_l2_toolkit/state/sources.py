"""
Upstream sources the state manager initializes from.

- RpcUpstreamSource: live L1 node through web3, retried on transient errors
- SnapshotUpstreamSource: a previously captured state snapshot
"""

from typing import Dict, List, Optional

from tokamak_l2_toolkit.shared.exceptions import UpstreamSourceException
from tokamak_l2_toolkit.shared.logging import get_logger, short_hex
from tokamak_l2_toolkit.shared.retry import RPC_RETRY_CONFIG, RetryConfig
from tokamak_l2_toolkit.shared.services.web3_service import Web3Service
from tokamak_l2_toolkit.state.snapshot import StateSnapshot
from tokamak_l2_toolkit.state.types import ContractCode, normalize_address
from tokamak_l2_toolkit.utils import bytes_to_int, hex_to_bytes, pad32

logger = get_logger(__name__)


class RpcUpstreamSource:
    """Reads code and storage from an L1 node at a fixed block."""

    def __init__(
        self,
        web3_service: Web3Service,
        retry_config: RetryConfig = RPC_RETRY_CONFIG,
    ):
        self.web3_service = web3_service
        self.retry_config = retry_config

    @classmethod
    def from_rpc_url(cls, rpc_url: str, **kwargs) -> "RpcUpstreamSource":
        return cls(Web3Service(rpc_url), **kwargs)

    async def get_code(self, address: str, block_number: Optional[int]) -> bytes:
        try:
            return await self.retry_config.run(
                self.web3_service.get_code,
                address,
                block_number,
                operation_name="get_code",
            )
        except Exception as e:
            raise UpstreamSourceException(
                f"Failed to fetch code of {address}: {e}"
            ) from e

    async def get_storage_at(
        self, address: str, key: bytes, block_number: Optional[int]
    ) -> bytes:
        try:
            return await self.retry_config.run(
                self.web3_service.get_storage_at,
                address,
                bytes_to_int(key),
                block_number,
                operation_name="get_storage_at",
            )
        except Exception as e:
            raise UpstreamSourceException(
                f"Failed to fetch storage {short_hex(key)} of {address}: {e}"
            ) from e


class SnapshotUpstreamSource:
    """Serves code and storage out of a captured snapshot.

    Keys missing from the snapshot read as empty storage, like an unset slot.
    """

    def __init__(
        self,
        snapshot: StateSnapshot,
        contract_codes: Optional[List[ContractCode]] = None,
    ):
        self.snapshot = snapshot
        self._storage: Dict[str, Dict[bytes, bytes]] = {}
        for address, entries in zip(snapshot.storage_addresses, snapshot.all_entries()):
            slots = self._storage.setdefault(normalize_address(address), {})
            for entry in entries:
                slots[pad32(hex_to_bytes(entry.key))] = hex_to_bytes(entry.value)
        self._codes = {
            normalize_address(c.address): bytes(c.code) for c in contract_codes or []
        }

    async def get_code(self, address: str, block_number: Optional[int]) -> bytes:
        return self._codes.get(normalize_address(address), b"")

    async def get_storage_at(
        self, address: str, key: bytes, block_number: Optional[int]
    ) -> bytes:
        slots = self._storage.get(normalize_address(address), {})
        return slots.get(pad32(key), b"")
