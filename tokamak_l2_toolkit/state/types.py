"""
Types for the L2 state manager.

Addresses are kept as checksum strings; storage keys as 32-byte values.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Protocol, Sequence, runtime_checkable

from eth_utils import to_checksum_address

from tokamak_l2_toolkit.utils import pad32


def normalize_address(address) -> str:
    """Checksum form of an address given as hex or 20 bytes."""
    return to_checksum_address(address)


@dataclass(frozen=True)
class StorageKeyPair:
    """One storage slot addressed under the L1 (keccak) and L2 (Poseidon) schemes."""

    L1: bytes
    L2: bytes

    def __post_init__(self):
        object.__setattr__(self, "L1", pad32(self.L1))
        object.__setattr__(self, "L2", pad32(self.L2))


@dataclass
class StorageKeysForAddress:
    address: str
    key_pairs: List[StorageKeyPair] = field(default_factory=list)

    def __post_init__(self):
        self.address = normalize_address(self.address)


@dataclass
class RegisteredKeysForAddress:
    """L2 keys of one address; list position is the Merkle leaf index."""

    address: str
    keys: List[bytes] = field(default_factory=list)


@dataclass
class PermutationForAddress:
    """``permutation[new_index] = old_index`` over the address's registered keys."""

    address: str
    permutation: List[int]

    def __post_init__(self):
        self.address = normalize_address(self.address)


@dataclass(frozen=True)
class ContractCode:
    address: str
    code: bytes


@dataclass
class StateManagerOptions:
    """
    Options for initializing an L2 state manager.

    Attributes:
        entry_contract_address: Contract the channel enters through
        block_number: L1 block to read from (required for RPC init)
        init_storage_keys: L1/L2 key pairs per storage address (RPC init)
        storage_addresses: Addresses to open accounts for; defaults to the
            addresses of ``init_storage_keys`` or the snapshot's
        call_code_addresses: Contracts whose code is fetched upstream
        contract_codes: Contract code supplied directly (snapshot init)
    """

    entry_contract_address: str
    block_number: Optional[int] = None
    init_storage_keys: List[StorageKeysForAddress] = field(default_factory=list)
    storage_addresses: Optional[List[str]] = None
    call_code_addresses: List[str] = field(default_factory=list)
    contract_codes: List[ContractCode] = field(default_factory=list)

    def __post_init__(self):
        self.entry_contract_address = normalize_address(self.entry_contract_address)
        if self.storage_addresses is not None:
            self.storage_addresses = [normalize_address(a) for a in self.storage_addresses]
        self.call_code_addresses = [normalize_address(a) for a in self.call_code_addresses]


class ManagerState(Enum):
    UNINITIALIZED = "uninitialized"
    INITIALIZING = "initializing"
    READY = "ready"
    FAILED = "failed"


@dataclass
class Account:
    nonce: int
    balance: int
    storage_root: bytes
    code_hash: bytes


@runtime_checkable
class StorageBacked(Protocol):
    """Account/storage store the state manager writes through."""

    async def put_account(self, address: str, account: Account) -> None: ...

    async def get_account(self, address: str) -> Optional[Account]: ...

    async def put_code(self, address: str, code: bytes) -> None: ...

    async def get_code(self, address: str) -> bytes: ...

    async def put_storage(self, address: str, key: bytes, value: bytes) -> None: ...

    async def get_storage(self, address: str, key: bytes) -> bytes: ...

    async def flush(self) -> None: ...


@runtime_checkable
class UpstreamSource(Protocol):
    """Where initial code and storage come from (live L1 RPC or a snapshot)."""

    async def get_code(self, address: str, block_number: Optional[int]) -> bytes: ...

    async def get_storage_at(
        self, address: str, key: bytes, block_number: Optional[int]
    ) -> bytes: ...


PermutationsInput = Optional[Sequence[PermutationForAddress]]
RootsByAddress = Dict[str, int]
