"""
Web3 service for reading L1 state.

Wraps an AsyncWeb3 connection per network and caches immutable reads
(code and storage at a fixed block) so repeated initializations against
the same block hit the node once.
"""

from typing import Dict, Optional, Tuple

from eth_utils import to_checksum_address
from web3 import AsyncWeb3

from tokamak_l2_toolkit.shared.constants import GlobalConstants
from tokamak_l2_toolkit.shared.exceptions import ConfigurationException
from tokamak_l2_toolkit.shared.logging import get_logger

logger = get_logger(__name__)


class Web3Service:
    """
    A service class for managing an async Web3 connection.

    Args:
        rpc_url: HTTP endpoint of the L1 node
        network: Label used for logging and instance caching
    """

    _instances: Dict[str, "Web3Service"] = {}

    def __init__(self, rpc_url: str, network: Optional[str] = None, w3=None):
        if not rpc_url and w3 is None:
            raise ConfigurationException("An RPC URL is required to reach L1")
        self.network = network or "custom"
        self.w3 = w3 or AsyncWeb3(AsyncWeb3.AsyncHTTPProvider(rpc_url))
        self._code_cache: Dict[Tuple[str, Optional[int]], bytes] = {}
        self._storage_cache: Dict[Tuple[str, int, int], bytes] = {}

    @classmethod
    def get_instance(cls, network: str) -> "Web3Service":
        """Get or create the service for a configured network."""
        if network not in cls._instances:
            rpc_url = GlobalConstants.get_rpc_url(network)
            if not rpc_url:
                raise ConfigurationException(
                    f"No RPC URL configured for {network}. "
                    "Set RPC_URL or the network-specific variable in your .env file."
                )
            cls._instances[network] = cls(rpc_url, network)
        return cls._instances[network]

    async def get_latest_block_number(self) -> int:
        return await self.w3.eth.block_number

    async def get_code(self, address: str, block_number: Optional[int] = None) -> bytes:
        address = to_checksum_address(address)
        key = (address, block_number)
        if block_number is None or key not in self._code_cache:
            code = await self.w3.eth.get_code(
                address, block_identifier="latest" if block_number is None else block_number
            )
            if block_number is None:
                return bytes(code)
            self._code_cache[key] = bytes(code)
        return self._code_cache[key]

    async def get_storage_at(
        self, address: str, slot: int, block_number: Optional[int] = None
    ) -> bytes:
        """Read one storage word; the node returns it as 32 bytes."""
        address = to_checksum_address(address)
        if block_number is None:
            value = await self.w3.eth.get_storage_at(address, slot, "latest")
            return bytes(value)

        key = (address, slot, block_number)
        if key not in self._storage_cache:
            value = await self.w3.eth.get_storage_at(address, slot, block_number)
            self._storage_cache[key] = bytes(value)
        return self._storage_cache[key]
