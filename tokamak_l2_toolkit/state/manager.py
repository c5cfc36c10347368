"""
L2 state manager.

Tracks a fixed, registered set of storage slots per address and commits
them into one Merkle tree per address. The registration order of a key is
its leaf index, so the same upstream data or snapshot always rebuilds the
same roots.

Lifecycle
---------
UNINITIALIZED -> INITIALIZING -> READY, or FAILED if initialization raised.
Initialization runs exactly once; a failed manager cannot be reused.
"""

import asyncio
import dataclasses
from typing import Dict, List, Optional, Sequence, Tuple, Union

import rlp

from tokamak_l2_toolkit.crypto.backend import CryptoBackend, require_crypto_backend
from tokamak_l2_toolkit.shared.exceptions import (
    AlreadyInitialized,
    CapacityExceeded,
    ConfigurationException,
    ContractAddressMismatch,
    DuplicateKey,
    IndexOutOfRange,
    NotInitialized,
    RootMismatch,
    SnapshotShapeMismatch,
    UnregisteredAddress,
)
from tokamak_l2_toolkit.shared.logging import get_logger
from tokamak_l2_toolkit.state.merkle import (
    CAPACITY,
    MerkleForest,
    MerkleProof,
    build_tree,
)
from tokamak_l2_toolkit.state.snapshot import StateSnapshot, StorageEntry
from tokamak_l2_toolkit.state.sources import SnapshotUpstreamSource
from tokamak_l2_toolkit.state.storage import InMemoryStateStore
from tokamak_l2_toolkit.state.types import (
    Account,
    ManagerState,
    PermutationForAddress,
    RegisteredKeysForAddress,
    StateManagerOptions,
    StorageBacked,
    StorageKeyPair,
    StorageKeysForAddress,
    UpstreamSource,
    normalize_address,
)
from tokamak_l2_toolkit.utils import (
    bytes_to_hex,
    bytes_to_int,
    hex_to_bytes,
    int_to_bytes32,
    pad32,
)

logger = get_logger(__name__)

StorageKeyInput = Union[bytes, int, str]


def _key_bytes(key: StorageKeyInput) -> bytes:
    if isinstance(key, int):
        return int_to_bytes32(key)
    if isinstance(key, str):
        return pad32(hex_to_bytes(key))
    return pad32(key)


def root_to_hex(root: int) -> str:
    return bytes_to_hex(int_to_bytes32(root))


def _check_key_pairs(entry: StorageKeysForAddress) -> None:
    if len(entry.key_pairs) > CAPACITY:
        raise CapacityExceeded(
            f"{entry.address} registers {len(entry.key_pairs)} keys; "
            f"a tree holds at most {CAPACITY}"
        )
    seen_l1, seen_l2 = set(), set()
    for pair in entry.key_pairs:
        if pair.L1 in seen_l1:
            raise DuplicateKey(
                f"Duplicated L1 key {bytes_to_hex(pair.L1)} for {entry.address}"
            )
        if pair.L2 in seen_l2:
            raise DuplicateKey(
                f"Duplicated L2 key {bytes_to_hex(pair.L2)} for {entry.address}"
            )
        seen_l1.add(pair.L1)
        seen_l2.add(pair.L2)


class L2StateManager:
    """
    Per-address Merkle state over registered storage keys.

    Args:
        backend: Crypto backend; its keccak256 hashes empty account fields
        store: Account/storage store, in-memory by default
    """

    def __init__(
        self,
        backend: Optional[CryptoBackend],
        store: Optional[StorageBacked] = None,
    ):
        self.backend = require_crypto_backend(backend, "L2StateManager")
        self.store = store if store is not None else InMemoryStateStore()
        self._state = ManagerState.UNINITIALIZED
        self._options: Optional[StateManagerOptions] = None
        self._registered: List[RegisteredKeysForAddress] = []
        self._initial_forest: Optional[MerkleForest] = None
        self._current_forest: Optional[MerkleForest] = None

    # -- lifecycle ----------------------------------------------------

    @property
    def state(self) -> ManagerState:
        return self._state

    @property
    def is_ready(self) -> bool:
        return self._state is ManagerState.READY

    def _require_ready(self) -> None:
        if self._state is not ManagerState.READY:
            raise NotInitialized(
                f"State manager is {self._state.value}; initialize it first"
            )

    def _begin_initialization(self) -> None:
        if self._state is not ManagerState.UNINITIALIZED:
            raise AlreadyInitialized(
                f"State manager is already {self._state.value}; it initializes once"
            )
        self._state = ManagerState.INITIALIZING

    @property
    def options(self) -> StateManagerOptions:
        self._require_ready()
        return self._options

    @property
    def registered_keys(self) -> List[RegisteredKeysForAddress]:
        """Registered keys per address in current leaf order (a copy)."""
        self._require_ready()
        return [RegisteredKeysForAddress(r.address, list(r.keys)) for r in self._registered]

    @property
    def initial_merkle_trees(self) -> MerkleForest:
        self._require_ready()
        return self._initial_forest

    @property
    def current_merkle_trees(self) -> MerkleForest:
        self._require_ready()
        return self._current_forest

    # -- initialization -----------------------------------------------

    async def init_from_rpc(
        self, source: UpstreamSource, opts: StateManagerOptions
    ) -> List[int]:
        """
        Initialize from a live upstream chain.

        Values are read at each pair's L1 key and stored under its L2 key.

        Returns:
            The initial root of every address, in registration order

        Raises:
            AlreadyInitialized: called on a manager that is not fresh
            ConfigurationException: no block number to read at
            DuplicateKey: an L1 or L2 key repeats within one address
        """
        self._begin_initialization()
        try:
            if opts.block_number is None:
                raise ConfigurationException(
                    "A block number is required to initialize from RPC"
                )
            await self._open_accounts(self._storage_addresses(opts))
            await self._load_code(source, opts.call_code_addresses, opts.block_number)
            await self._register_keys(source, opts.init_storage_keys, opts.block_number)
            forest = await self._build_forest()
        except Exception:
            self._state = ManagerState.FAILED
            raise

        self._finish_initialization(opts, forest)
        return forest.roots

    async def init_from_snapshot(
        self,
        snapshot: StateSnapshot,
        opts: Optional[StateManagerOptions] = None,
    ) -> List[int]:
        """
        Initialize from a captured snapshot and check it rebuilds its roots.

        Each registered key is its own L1 and L2 key; values come from the
        snapshot's storage entries and pre-allocated leaves. Declared roots
        given as empty hex are not checked.

        Raises:
            SnapshotShapeMismatch: per-address arrays or key sets disagree
            ContractAddressMismatch: ``opts`` names another entry contract
            RootMismatch: a rebuilt root differs from the declared one
        """
        self._begin_initialization()
        try:
            snapshot.ensure_shape()
            if opts is None:
                opts = StateManagerOptions(
                    entry_contract_address=snapshot.entry_contract_address
                )
            elif (
                opts.entry_contract_address.lower()
                != snapshot.entry_contract_address.lower()
            ):
                raise ContractAddressMismatch(
                    f"Snapshot entry contract {snapshot.entry_contract_address} "
                    f"differs from configured {opts.entry_contract_address}"
                )

            init_storage_keys = [
                StorageKeysForAddress(
                    address=address,
                    key_pairs=[
                        StorageKeyPair(L1=hex_to_bytes(k), L2=hex_to_bytes(k)) for k in keys
                    ],
                )
                for address, keys in zip(snapshot.storage_addresses, snapshot.registered_keys)
            ]
            opts = dataclasses.replace(
                opts,
                init_storage_keys=init_storage_keys,
                storage_addresses=[normalize_address(a) for a in snapshot.storage_addresses],
            )

            source = SnapshotUpstreamSource(snapshot, opts.contract_codes)
            await self._open_accounts(opts.storage_addresses)
            for contract in opts.contract_codes:
                await self.store.put_code(contract.address, contract.code)
            await self._register_keys(source, init_storage_keys, opts.block_number)
            forest = await self._build_forest()
            self._check_roots(forest, snapshot)
        except Exception:
            self._state = ManagerState.FAILED
            raise

        self._finish_initialization(opts, forest)
        return forest.roots

    def _storage_addresses(self, opts: StateManagerOptions) -> List[str]:
        addresses = list(opts.storage_addresses or [])
        for entry in opts.init_storage_keys:
            if entry.address not in addresses:
                addresses.append(entry.address)
        return addresses

    async def _open_accounts(self, addresses: Sequence[str]) -> None:
        empty_storage_root = self.backend.keccak256(rlp.encode(b""))
        empty_code_hash = self.backend.keccak256(b"")
        for address in addresses:
            await self.store.put_account(
                address,
                Account(
                    nonce=0,
                    balance=0,
                    storage_root=empty_storage_root,
                    code_hash=empty_code_hash,
                ),
            )

    async def _load_code(
        self,
        source: UpstreamSource,
        addresses: Sequence[str],
        block_number: Optional[int],
    ) -> None:
        codes = await asyncio.gather(
            *(source.get_code(address, block_number) for address in addresses)
        )
        for address, code in zip(addresses, codes):
            await self.store.put_code(address, code)
        if addresses:
            logger.debug(f"Loaded code for {len(addresses)} contracts")

    async def _register_keys(
        self,
        source: UpstreamSource,
        init_storage_keys: Sequence[StorageKeysForAddress],
        block_number: Optional[int],
    ) -> None:
        """Fetch every value concurrently, then write and register in order."""
        seen_addresses = set()
        for entry in init_storage_keys:
            if entry.address in seen_addresses:
                raise DuplicateKey(f"Storage keys for {entry.address} are given twice")
            seen_addresses.add(entry.address)
            _check_key_pairs(entry)

        values = await asyncio.gather(
            *(
                source.get_storage_at(entry.address, pair.L1, block_number)
                for entry in init_storage_keys
                for pair in entry.key_pairs
            )
        )

        fetched = iter(values)
        registered: List[RegisteredKeysForAddress] = []
        for entry in init_storage_keys:
            keys: List[bytes] = []
            for pair in entry.key_pairs:
                await self.store.put_storage(entry.address, pair.L2, next(fetched))
                keys.append(pair.L2)
            registered.append(RegisteredKeysForAddress(entry.address, keys))
            logger.debug(f"Registered {len(keys)} keys for {entry.address}")
        self._registered = registered

    async def _build_forest(self) -> MerkleForest:
        await self.store.flush()
        trees = []
        for registered in self._registered:
            values = [
                await self.store.get_storage(registered.address, key)
                for key in registered.keys
            ]
            trees.append(build_tree(registered.keys, values))
        return MerkleForest([r.address for r in self._registered], trees)

    def _check_roots(self, forest: MerkleForest, snapshot: StateSnapshot) -> None:
        if len(forest) != len(snapshot.state_roots):
            raise RootMismatch(
                f"Rebuilt {len(forest)} trees but the snapshot declares "
                f"{len(snapshot.state_roots)} roots"
            )
        for address, root, declared in zip(
            snapshot.storage_addresses, forest.roots, snapshot.state_roots
        ):
            declared_bytes = hex_to_bytes(declared)
            if not declared_bytes:
                logger.debug(f"Snapshot declares no root for {address}")
                continue
            if bytes_to_int(declared_bytes) != root:
                raise RootMismatch(
                    f"Rebuilt root {root_to_hex(root)} for {address} differs "
                    f"from snapshot root {declared}"
                )

    def _finish_initialization(
        self, opts: StateManagerOptions, forest: MerkleForest
    ) -> None:
        self._options = opts
        self._initial_forest = forest
        self._current_forest = forest
        self._state = ManagerState.READY
        logger.info(
            f"State manager ready: {len(forest)} storage addresses, "
            f"{sum(len(r.keys) for r in self._registered)} registered keys"
        )

    # -- queries --------------------------------------------------------

    def _address_index(self, address: str) -> int:
        for index, registered in enumerate(self._registered):
            if registered.address.lower() == address.lower():
                return index
        raise UnregisteredAddress(f"{address} has no registered storage keys")

    def leaf_index_of(self, address: str, key: StorageKeyInput) -> Tuple[int, int]:
        """
        ``(address_index, leaf_index)`` of a key, or ``(-1, -1)`` when the
        manager is not ready, the address or key is not registered, or the
        key does not fit a 32-byte word. Never raises.
        """
        if not self.is_ready:
            return -1, -1
        try:
            address_index = self._address_index(address)
            key = _key_bytes(key)
        except (UnregisteredAddress, ValueError, TypeError) as e:
            logger.debug(f"No leaf for {address}: {e}")
            return -1, -1
        keys = self._registered[address_index].keys
        if key not in keys:
            return -1, -1
        return address_index, keys.index(key)

    def get_merkle_proof(self, address_index: int, leaf_index: int) -> MerkleProof:
        """Proof against the initial trees."""
        self._require_ready()
        return self._initial_forest.proof(address_index, leaf_index)

    async def get_storage(self, address: str, key: StorageKeyInput) -> bytes:
        self._require_ready()
        return await self.store.get_storage(address, _key_bytes(key))

    async def put_storage(self, address: str, key: StorageKeyInput, value: bytes) -> None:
        """Write a registered key; rebuilt roots pick it up."""
        self._require_ready()
        key = _key_bytes(key)
        address_index, leaf_index = self.leaf_index_of(address, key)
        if leaf_index < 0:
            raise UnregisteredAddress(
                f"Key {bytes_to_hex(key)} is not registered for {address}"
            )
        await self.store.put_storage(
            self._registered[address_index].address, key, value
        )

    # -- permutation and roots ----------------------------------------

    def permute(self, permutations: Sequence[PermutationForAddress]) -> None:
        """
        Reorder registered keys: ``new[i] = old[permutation[i]]``.

        Every permutation is checked before any is applied. Addresses
        without a permutation keep their order.

        Raises:
            NotInitialized: manager is not ready
            UnregisteredAddress: a permutation names an unknown address
            IndexOutOfRange: a permutation is not a bijection over the keys
        """
        self._require_ready()
        planned: Dict[int, List[int]] = {}
        for entry in permutations:
            index = self._address_index(entry.address)
            if index in planned:
                raise ValueError(f"Two permutations given for {entry.address}")
            count = len(self._registered[index].keys)
            if sorted(entry.permutation) != list(range(count)):
                raise IndexOutOfRange(
                    f"Permutation for {entry.address} is not a bijection over "
                    f"[0, {count})"
                )
            planned[index] = list(entry.permutation)

        for index, permutation in planned.items():
            old = self._registered[index].keys
            self._registered[index].keys = [old[i] for i in permutation]

    async def updated_roots(
        self, permutations: Optional[Sequence[PermutationForAddress]] = None
    ) -> List[int]:
        """Optionally permute, flush pending writes and return rebuilt roots."""
        self._require_ready()
        if permutations:
            self.permute(permutations)
        self._current_forest = await self._build_forest()
        return self._current_forest.roots

    # -- snapshots ------------------------------------------------------

    async def capture_snapshot(self, prior: StateSnapshot) -> StateSnapshot:
        """
        Capture current state in the shape of a prior snapshot.

        Storage addresses and entry order follow ``prior``; registered keys
        follow the current leaf order. Values and roots are refreshed. The
        entry contract address and channel id are carried over from ``prior``
        as written.

        Raises:
            ContractAddressMismatch: prior snapshot is for another entry contract
            UnregisteredAddress: prior snapshot lists an unknown address
            SnapshotShapeMismatch: prior snapshot is malformed or its keys differ
                from the registered ones
        """
        self._require_ready()
        entry_contract = self._options.entry_contract_address
        if prior.entry_contract_address.lower() != entry_contract.lower():
            raise ContractAddressMismatch(
                f"Snapshot entry contract {prior.entry_contract_address} "
                f"differs from configured {entry_contract}"
            )
        prior.ensure_shape()

        indices = [self._address_index(address) for address in prior.storage_addresses]
        for address, index, keys in zip(
            prior.storage_addresses, indices, prior.registered_keys
        ):
            prior_keys = {_key_bytes(k) for k in keys}
            if prior_keys != set(self._registered[index].keys):
                raise SnapshotShapeMismatch(
                    f"Prior snapshot keys for {address} differ from the registered keys"
                )

        forest = await self._build_forest()
        self._current_forest = forest

        async def refresh(address: str, entries: Sequence[StorageEntry]) -> List[StorageEntry]:
            refreshed = []
            for entry in entries:
                value = await self.store.get_storage(address, _key_bytes(entry.key))
                refreshed.append(StorageEntry(key=entry.key, value=bytes_to_hex(value)))
            return refreshed

        storage_entries, pre_allocated, roots, registered_keys = [], [], [], []
        for address, index, entries, leaves in zip(
            prior.storage_addresses,
            indices,
            prior.storage_entries,
            prior.pre_allocated_leaves,
        ):
            storage_entries.append(await refresh(address, entries))
            pre_allocated.append(await refresh(address, leaves))
            roots.append(root_to_hex(forest.roots[index]))
            registered_keys.append(
                [bytes_to_hex(k) for k in self._registered[index].keys]
            )

        logger.info(f"Captured snapshot of {len(prior.storage_addresses)} storage addresses")
        return StateSnapshot(
            entry_contract_address=prior.entry_contract_address,
            storage_addresses=list(prior.storage_addresses),
            state_roots=roots,
            registered_keys=registered_keys,
            storage_entries=storage_entries,
            pre_allocated_leaves=pre_allocated,
            channel_id=prior.channel_id,
        )
