"""
Pytest configuration and shared fixtures.

This module provides common fixtures and configuration for all tests.
"""

from typing import Dict, List, Optional, Tuple

import pytest

from tokamak_l2_toolkit.crypto.backend import CryptoBackend, default_crypto_backend
from tokamak_l2_toolkit.state.types import (
    StateManagerOptions,
    StorageKeyPair,
    StorageKeysForAddress,
    normalize_address,
)
from tokamak_l2_toolkit.utils import int_to_bytes32, pad32
from tokamak_l2_toolkit.utils.keys import L2KeyPair, derive_l2_keys_from_signature


class FakeUpstreamSource:
    """In-memory upstream that records every read."""

    def __init__(
        self,
        storage: Optional[Dict[Tuple[str, bytes], bytes]] = None,
        codes: Optional[Dict[str, bytes]] = None,
    ):
        self.storage = {
            (normalize_address(a), pad32(k)): v for (a, k), v in (storage or {}).items()
        }
        self.codes = {normalize_address(a): c for a, c in (codes or {}).items()}
        self.storage_reads: List[Tuple[str, bytes, Optional[int]]] = []
        self.code_reads: List[Tuple[str, Optional[int]]] = []

    async def get_code(self, address: str, block_number: Optional[int]) -> bytes:
        self.code_reads.append((address, block_number))
        return self.codes.get(normalize_address(address), b"")

    async def get_storage_at(
        self, address: str, key: bytes, block_number: Optional[int]
    ) -> bytes:
        self.storage_reads.append((address, key, block_number))
        return self.storage.get((normalize_address(address), pad32(key)), b"")


@pytest.fixture
def backend() -> CryptoBackend:
    """Poseidon/EdDSA crypto backend."""
    return default_crypto_backend()


@pytest.fixture
def sender_keys() -> L2KeyPair:
    """Deterministic sender key pair."""
    return derive_l2_keys_from_signature("0x" + "11" * 32)


@pytest.fixture
def other_keys() -> L2KeyPair:
    return derive_l2_keys_from_signature("0x" + "22" * 32)


@pytest.fixture
def entry_contract_address() -> str:
    return "0x7E1444BA99dcdFfE8fBdb42C02fb0DA4AAAcE4d5"


@pytest.fixture
def token_address() -> str:
    """Storage contract tracked by the sample state."""
    return "0xD533a949740bb3306d119CC777fa900bA034cd52"


@pytest.fixture
def second_token_address() -> str:
    return "0x52f541764E6e90eeBc5c21Ff570De0e2D63766B6"


@pytest.fixture
def sample_block_number() -> int:
    """Sample block number for tests."""
    return 21000000


def make_key_pairs(count: int, offset: int = 0) -> List[StorageKeyPair]:
    """Distinct L1/L2 key pairs: L1 = 0x1000 + i, L2 = 0x2000 + i."""
    return [
        StorageKeyPair(
            L1=int_to_bytes32(0x1000 + offset + i),
            L2=int_to_bytes32(0x2000 + offset + i),
        )
        for i in range(count)
    ]


@pytest.fixture
def state_options(
    entry_contract_address, token_address, second_token_address, sample_block_number
) -> StateManagerOptions:
    """Two storage addresses with three and two registered keys."""
    return StateManagerOptions(
        entry_contract_address=entry_contract_address,
        block_number=sample_block_number,
        init_storage_keys=[
            StorageKeysForAddress(token_address, make_key_pairs(3)),
            StorageKeysForAddress(second_token_address, make_key_pairs(2, offset=16)),
        ],
        call_code_addresses=[entry_contract_address],
    )


@pytest.fixture
def upstream(
    token_address, second_token_address, entry_contract_address
) -> FakeUpstreamSource:
    """Upstream values keyed by L1 key (value = 100 + index)."""
    storage = {}
    for i, pair in enumerate(make_key_pairs(3)):
        storage[(token_address, pair.L1)] = (100 + i).to_bytes(32, "big")
    for i, pair in enumerate(make_key_pairs(2, offset=16)):
        storage[(second_token_address, pair.L1)] = (200 + i).to_bytes(32, "big")
    return FakeUpstreamSource(
        storage=storage, codes={entry_contract_address: bytes.fromhex("6080604052")}
    )


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "integration: mark test as integration test"
    )
    config.addinivalue_line("markers", "slow: mark test as slow-running")


@pytest.fixture
def key_pairs():
    """Factory for distinct key pairs, see ``make_key_pairs``."""
    return make_key_pairs


@pytest.fixture
def fake_source():
    """Factory for empty or prefilled fake upstream sources."""
    return FakeUpstreamSource
