"""In-memory account, code and storage store with a pending-write journal."""

from typing import Dict, Optional, Tuple

from tokamak_l2_toolkit.shared.logging import get_logger
from tokamak_l2_toolkit.state.types import Account, normalize_address
from tokamak_l2_toolkit.utils import pad32, unpad_bytes

logger = get_logger(__name__)

StorageSlot = Tuple[str, bytes]


class InMemoryStateStore:
    """
    Account/storage store used by the L2 state manager.

    Storage writes land in a pending journal and become committed on
    ``flush()``; reads see pending writes first. Values are kept canonically
    unpadded, so a zero value is stored as empty bytes.
    """

    def __init__(self):
        self._accounts: Dict[str, Account] = {}
        self._code: Dict[str, bytes] = {}
        self._storage: Dict[StorageSlot, bytes] = {}
        self._pending: Dict[StorageSlot, bytes] = {}

    async def put_account(self, address: str, account: Account) -> None:
        self._accounts[normalize_address(address)] = account

    async def get_account(self, address: str) -> Optional[Account]:
        return self._accounts.get(normalize_address(address))

    async def put_code(self, address: str, code: bytes) -> None:
        self._code[normalize_address(address)] = bytes(code)

    async def get_code(self, address: str) -> bytes:
        return self._code.get(normalize_address(address), b"")

    async def put_storage(self, address: str, key: bytes, value: bytes) -> None:
        self._pending[(normalize_address(address), pad32(key))] = unpad_bytes(value)

    async def get_storage(self, address: str, key: bytes) -> bytes:
        slot = (normalize_address(address), pad32(key))
        if slot in self._pending:
            return self._pending[slot]
        return self._storage.get(slot, b"")

    async def flush(self) -> None:
        if self._pending:
            logger.debug(f"Committing {len(self._pending)} pending storage writes")
        self._storage.update(self._pending)
        self._pending.clear()

    @property
    def has_pending(self) -> bool:
        return bool(self._pending)
