"""
Channel configuration and its conversion into state manager options.

A channel fixes its participants and, per storage contract, the user
storage slots and pre-allocated keys whose values the L2 state tracks.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List

from eth_abi import encode
from eth_utils import keccak, to_checksum_address

from tokamak_l2_toolkit.commands.validation import (
    assert_int_array,
    assert_string_array,
    parse_hex_string,
    parse_int_value,
    validate_eth_address,
    validate_network,
)
from tokamak_l2_toolkit.crypto.address import derive_address
from tokamak_l2_toolkit.state.snapshot import StateSnapshot, StorageEntry
from tokamak_l2_toolkit.state.types import (
    StateManagerOptions,
    StorageKeyPair,
    StorageKeysForAddress,
)
from tokamak_l2_toolkit.utils import bytes_to_hex, hex_to_bytes
from tokamak_l2_toolkit.utils.keys import (
    LAYER_L2,
    L2KeyPair,
    derive_l2_keys_from_seed,
    get_user_storage_key,
)


@dataclass(frozen=True)
class ChannelParticipantConfig:
    address_l1: str
    prv_seed_l2: str

    def l2_keys(self) -> L2KeyPair:
        return derive_l2_keys_from_seed(self.prv_seed_l2)


@dataclass
class ChannelStorageConfig:
    address: str
    user_storage_slots: List[int] = field(default_factory=list)
    pre_allocated_keys: List[str] = field(default_factory=list)


@dataclass
class ChannelStateConfig:
    network: str
    participants: List[ChannelParticipantConfig]
    storage_configs: List[ChannelStorageConfig]
    entry_contract_address: str
    call_code_addresses: List[str]
    block_number: int

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ChannelStateConfig":
        """Parse the camelCase JSON form; raises ValueError on any bad field."""
        if not isinstance(data, dict):
            raise ValueError("Channel config must be a JSON object")

        participants_raw = data.get("participants")
        if not isinstance(participants_raw, list):
            raise ValueError("participants must be an array")
        participants = []
        for i, entry in enumerate(participants_raw):
            if not isinstance(entry, dict):
                raise ValueError(f"participants[{i}] must be an object")
            seed = entry.get("prvSeedL2")
            if not isinstance(seed, str):
                raise ValueError(f"participants[{i}].prvSeedL2 must be a string")
            participants.append(
                ChannelParticipantConfig(
                    address_l1=validate_eth_address(
                        entry.get("addressL1"), f"participants[{i}].addressL1"
                    ),
                    prv_seed_l2=seed,
                )
            )

        storage_raw = data.get("storageConfigs")
        if not isinstance(storage_raw, list):
            raise ValueError("storageConfigs must be an array")
        storage_configs = []
        for i, entry in enumerate(storage_raw):
            if not isinstance(entry, dict):
                raise ValueError(f"storageConfigs[{i}] must be an object")
            pre_allocated = assert_string_array(
                entry.get("preAllocatedKeys", []), f"storageConfigs[{i}].preAllocatedKeys"
            )
            storage_configs.append(
                ChannelStorageConfig(
                    address=validate_eth_address(
                        entry.get("address"), f"storageConfigs[{i}].address"
                    ),
                    user_storage_slots=assert_int_array(
                        entry.get("userStorageSlots", []),
                        f"storageConfigs[{i}].userStorageSlots",
                    ),
                    pre_allocated_keys=[
                        parse_hex_string(k, f"storageConfigs[{i}].preAllocatedKeys")
                        for k in pre_allocated
                    ],
                )
            )

        return cls(
            network=validate_network(data.get("network", "mainnet")),
            participants=participants,
            storage_configs=storage_configs,
            entry_contract_address=validate_eth_address(
                data.get("entryContractAddress"), "entryContractAddress"
            ),
            call_code_addresses=[
                validate_eth_address(a, "callCodeAddresses")
                for a in assert_string_array(
                    data.get("callCodeAddresses", []), "callCodeAddresses"
                )
            ],
            block_number=parse_int_value(data.get("blockNumber"), "blockNumber"),
        )


def get_l1_mapping_slot(address: str, slot: int) -> bytes:
    """Storage key of ``mapping(address => ...)`` at ``slot`` on L1."""
    return keccak(encode(["address", "uint256"], [to_checksum_address(address), slot]))


def create_state_manager_opts_from_channel_config(
    config: ChannelStateConfig,
) -> StateManagerOptions:
    """
    Derive per-address key pairs for a channel.

    Pre-allocated keys use the same 32-byte key on both layers. Each user
    slot yields one pair per participant (slots outer, participants inner):
    the L1 mapping key of the participant's L1 address, and the Poseidon
    key of the address derived from the participant's L2 public key.
    """
    l2_addresses = [derive_address(p.l2_keys().public_key) for p in config.participants]

    init_storage_keys = []
    for storage in config.storage_configs:
        key_pairs = [
            StorageKeyPair(L1=hex_to_bytes(key), L2=hex_to_bytes(key))
            for key in storage.pre_allocated_keys
        ]
        for slot in storage.user_storage_slots:
            for participant, l2_address in zip(config.participants, l2_addresses):
                key_pairs.append(
                    StorageKeyPair(
                        L1=get_l1_mapping_slot(participant.address_l1, slot),
                        L2=get_user_storage_key([l2_address, slot], LAYER_L2),
                    )
                )
        init_storage_keys.append(
            StorageKeysForAddress(address=storage.address, key_pairs=key_pairs)
        )

    return StateManagerOptions(
        entry_contract_address=config.entry_contract_address,
        block_number=config.block_number,
        init_storage_keys=init_storage_keys,
        call_code_addresses=list(config.call_code_addresses),
    )


def initial_snapshot_template(
    config: ChannelStateConfig,
    opts: StateManagerOptions,
    channel_id: str = "0x",
) -> StateSnapshot:
    """
    Snapshot shape for a channel with empty values and roots.

    Pre-allocated keys become ``preAllocatedLeaves``; user slot keys become
    ``storageEntries``. Capturing against it fills in values and roots.
    """
    addresses, registered, entries, leaves = [], [], [], []
    for storage, keys in zip(config.storage_configs, opts.init_storage_keys):
        l2_keys = [bytes_to_hex(pair.L2) for pair in keys.key_pairs]
        split = len(storage.pre_allocated_keys)
        addresses.append(keys.address)
        registered.append(l2_keys)
        leaves.append([StorageEntry(key=k, value="0x") for k in l2_keys[:split]])
        entries.append([StorageEntry(key=k, value="0x") for k in l2_keys[split:]])

    return StateSnapshot(
        entry_contract_address=opts.entry_contract_address,
        storage_addresses=addresses,
        state_roots=["0x"] * len(addresses),
        registered_keys=registered,
        storage_entries=entries,
        pre_allocated_leaves=leaves,
        channel_id=channel_id,
    )
