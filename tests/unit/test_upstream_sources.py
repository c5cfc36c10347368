"""
Unit tests for the web3 service and the upstream sources built on it.
"""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from tokamak_l2_toolkit.shared.constants import GlobalConstants
from tokamak_l2_toolkit.shared.exceptions import (
    ConfigurationException,
    UpstreamSourceException,
)
from tokamak_l2_toolkit.shared.retry import RetryConfig
from tokamak_l2_toolkit.shared.services.web3_service import Web3Service
from tokamak_l2_toolkit.state.snapshot import StateSnapshot, StorageEntry
from tokamak_l2_toolkit.state.sources import RpcUpstreamSource, SnapshotUpstreamSource
from tokamak_l2_toolkit.state.types import ContractCode
from tokamak_l2_toolkit.utils import int_to_bytes32

FAST_RETRY = RetryConfig(max_attempts=3, base_delay=0.0)


@pytest.fixture
def mock_w3():
    w3 = MagicMock()
    w3.eth.get_code = AsyncMock(return_value=bytes.fromhex("6080604052"))
    w3.eth.get_storage_at = AsyncMock(return_value=int_to_bytes32(42))
    return w3


@pytest.fixture
def web3_service(mock_w3):
    return Web3Service("", w3=mock_w3)


class TestWeb3Service:
    """Tests for Web3Service."""

    def test_requires_rpc_url(self):
        with pytest.raises(ConfigurationException):
            Web3Service("")

    def test_get_instance_without_config(self):
        with patch.object(GlobalConstants, "get_rpc_url", return_value=None), patch.dict(
            Web3Service._instances, clear=True
        ):
            with pytest.raises(ConfigurationException, match="sepolia"):
                Web3Service.get_instance("sepolia")

    def test_get_instance_is_cached(self):
        with patch.object(
            GlobalConstants, "get_rpc_url", return_value="http://localhost:8545"
        ), patch.dict(Web3Service._instances, clear=True):
            first = Web3Service.get_instance("mainnet")
            assert Web3Service.get_instance("mainnet") is first
            assert first.network == "mainnet"

    @pytest.mark.asyncio
    async def test_storage_reads_at_a_block_are_cached(
        self, web3_service, mock_w3, token_address, sample_block_number
    ):
        first = await web3_service.get_storage_at(token_address.lower(), 7, sample_block_number)
        second = await web3_service.get_storage_at(token_address, 7, sample_block_number)
        assert first == second == int_to_bytes32(42)
        mock_w3.eth.get_storage_at.assert_awaited_once_with(
            token_address, 7, sample_block_number
        )

    @pytest.mark.asyncio
    async def test_latest_reads_are_not_cached(self, web3_service, mock_w3, token_address):
        await web3_service.get_storage_at(token_address, 7)
        await web3_service.get_storage_at(token_address, 7)
        assert mock_w3.eth.get_storage_at.await_count == 2
        mock_w3.eth.get_storage_at.assert_awaited_with(token_address, 7, "latest")

    @pytest.mark.asyncio
    async def test_code_at_block_zero(self, web3_service, mock_w3, token_address):
        await web3_service.get_code(token_address, 0)
        await web3_service.get_code(token_address, 0)
        mock_w3.eth.get_code.assert_awaited_once_with(token_address, block_identifier=0)

    @pytest.mark.asyncio
    async def test_latest_block_number(self, web3_service, mock_w3):
        async def block_number():
            return 21000000

        mock_w3.eth.block_number = block_number()
        assert await web3_service.get_latest_block_number() == 21000000


class TestRpcUpstreamSource:
    """Tests for RpcUpstreamSource."""

    @pytest.mark.asyncio
    async def test_reads_slot_as_integer(
        self, web3_service, mock_w3, token_address, sample_block_number
    ):
        source = RpcUpstreamSource(web3_service, FAST_RETRY)
        value = await source.get_storage_at(token_address, int_to_bytes32(0x1000), sample_block_number)
        assert value == int_to_bytes32(42)
        mock_w3.eth.get_storage_at.assert_awaited_once_with(
            token_address, 0x1000, sample_block_number
        )

    @pytest.mark.asyncio
    async def test_retries_transient_errors(self, web3_service, mock_w3, token_address):
        mock_w3.eth.get_code = AsyncMock(
            side_effect=[ConnectionError("reset"), b"\x60\x80"]
        )
        source = RpcUpstreamSource(web3_service, FAST_RETRY)
        assert await source.get_code(token_address, 1) == b"\x60\x80"
        assert mock_w3.eth.get_code.await_count == 2

    @pytest.mark.asyncio
    async def test_wraps_final_failure(self, web3_service, mock_w3, token_address):
        mock_w3.eth.get_storage_at = AsyncMock(side_effect=TimeoutError("slow node"))
        source = RpcUpstreamSource(web3_service, FAST_RETRY)
        with pytest.raises(UpstreamSourceException, match="slow node") as exc_info:
            await source.get_storage_at(token_address, int_to_bytes32(1), 1)
        assert isinstance(exc_info.value.__cause__, TimeoutError)
        assert mock_w3.eth.get_storage_at.await_count == 3

    @pytest.mark.asyncio
    async def test_non_transient_errors_fail_fast(self, web3_service, mock_w3, token_address):
        mock_w3.eth.get_code = AsyncMock(side_effect=ValueError("bad address"))
        source = RpcUpstreamSource(web3_service, FAST_RETRY)
        with pytest.raises(UpstreamSourceException):
            await source.get_code(token_address, 1)
        assert mock_w3.eth.get_code.await_count == 1


class TestSnapshotUpstreamSource:
    """Tests for SnapshotUpstreamSource."""

    @pytest.fixture
    def snapshot(self, entry_contract_address, token_address):
        key = "0x" + "00" * 31 + "0a"
        return StateSnapshot(
            entry_contract_address=entry_contract_address,
            storage_addresses=[token_address],
            state_roots=["0x"],
            registered_keys=[[key, "0x0b"]],
            storage_entries=[[StorageEntry(key, "0x2a")]],
            pre_allocated_leaves=[[StorageEntry("0x0b", "0x01")]],
        )

    @pytest.mark.asyncio
    async def test_serves_entries_and_leaves(self, snapshot, token_address):
        source = SnapshotUpstreamSource(snapshot)
        assert await source.get_storage_at(token_address.lower(), int_to_bytes32(10), None) == b"\x2a"
        assert await source.get_storage_at(token_address, b"\x0b", None) == b"\x01"

    @pytest.mark.asyncio
    async def test_missing_reads_empty(self, snapshot, token_address, entry_contract_address):
        source = SnapshotUpstreamSource(snapshot)
        assert await source.get_storage_at(token_address, int_to_bytes32(99), None) == b""
        assert await source.get_code(entry_contract_address, None) == b""

    @pytest.mark.asyncio
    async def test_serves_contract_code(self, snapshot, entry_contract_address):
        source = SnapshotUpstreamSource(
            snapshot, [ContractCode(entry_contract_address, b"\x60\x80")]
        )
        assert await source.get_code(entry_contract_address.lower(), None) == b"\x60\x80"
