"""
Portable state snapshots and their standalone validator.

A snapshot carries, per storage address and index-aligned with
``storageAddresses``: the registered L2 keys (in leaf order), the storage
entries of interest, the pre-allocated leaves, and the resulting Merkle root.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Set

from eth_utils import is_hex

from tokamak_l2_toolkit.shared.exceptions import SnapshotShapeMismatch
from tokamak_l2_toolkit.shared.results import ErrorSeverity, ProcessingError, Result
from tokamak_l2_toolkit.utils import bytes_to_int, hex_to_bytes


@dataclass(frozen=True)
class StorageEntry:
    key: str
    value: str

    def to_dict(self) -> Dict[str, str]:
        return {"key": self.key, "value": self.value}


@dataclass
class StateSnapshot:
    entry_contract_address: str
    storage_addresses: List[str]
    state_roots: List[str]
    registered_keys: List[List[str]]
    storage_entries: List[List[StorageEntry]]
    pre_allocated_leaves: List[List[StorageEntry]]
    channel_id: str = "0x"

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StateSnapshot":
        """Build from the camelCase JSON shape; run the validator first for untrusted input."""
        return cls(
            entry_contract_address=data["entryContractAddress"],
            storage_addresses=list(data["storageAddresses"]),
            state_roots=list(data["stateRoots"]),
            registered_keys=[list(keys) for keys in data["registeredKeys"]],
            storage_entries=[
                [StorageEntry(e["key"], e["value"]) for e in entries]
                for entries in data["storageEntries"]
            ],
            pre_allocated_leaves=[
                [StorageEntry(e["key"], e["value"]) for e in entries]
                for entries in data["preAllocatedLeaves"]
            ],
            channel_id=data.get("channelId", "0x"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "channelId": self.channel_id,
            "entryContractAddress": self.entry_contract_address,
            "storageAddresses": list(self.storage_addresses),
            "stateRoots": list(self.state_roots),
            "registeredKeys": [list(keys) for keys in self.registered_keys],
            "storageEntries": [
                [e.to_dict() for e in entries] for entries in self.storage_entries
            ],
            "preAllocatedLeaves": [
                [e.to_dict() for e in entries] for entries in self.pre_allocated_leaves
            ],
        }

    def all_entries(self) -> List[List[StorageEntry]]:
        """Storage entries followed by pre-allocated leaves, per address."""
        return [
            list(entries) + list(leaves)
            for entries, leaves in zip(self.storage_entries, self.pre_allocated_leaves)
        ]

    def ensure_shape(self) -> None:
        """Raise SnapshotShapeMismatch unless the per-address arrays line up.

        Checks array lengths and that each address's entry keys cover exactly
        its registered keys.
        """
        expected = len(self.storage_addresses)
        lengths = {
            "stateRoots": len(self.state_roots),
            "registeredKeys": len(self.registered_keys),
            "storageEntries": len(self.storage_entries),
            "preAllocatedLeaves": len(self.pre_allocated_leaves),
        }
        for name, length in lengths.items():
            if length != expected:
                raise SnapshotShapeMismatch(
                    f"Snapshot has {expected} storage addresses but {length} {name}"
                )
        for index, (keys, entries) in enumerate(
            zip(self.registered_keys, self.all_entries())
        ):
            missing, extra = _key_set_difference(keys, entries)
            if missing or extra:
                raise SnapshotShapeMismatch(
                    f"Snapshot entries for {self.storage_addresses[index]} do not "
                    f"match its registered keys ({len(missing)} missing, {len(extra)} extra)"
                )


def _key_set_difference(keys, entries):
    """Registered keys absent from the entries, and entry keys never registered.

    Keys are compared by numeric value, so padding and hex case do not matter.
    """
    registered = {bytes_to_int(hex_to_bytes(k)): k for k in keys}
    seen = {bytes_to_int(hex_to_bytes(e.key)): e.key for e in entries}
    missing = [registered[k] for k in registered if k not in seen]
    extra = [seen[k] for k in seen if k not in registered]
    return missing, extra


# ---------------------------
# Standalone validation
# ---------------------------

_PER_ADDRESS_ARRAYS = (
    "stateRoots",
    "registeredKeys",
    "storageEntries",
    "preAllocatedLeaves",
)
_EMPTY_HEX_ALLOWED = ("channelId", "stateRoots", "value")


@dataclass
class SnapshotSummary:
    entry_contract_address: str
    address_count: int
    key_counts: List[int] = field(default_factory=list)


def _is_hex_field(value: Any, allow_empty: bool) -> bool:
    if not isinstance(value, str) or not value.startswith("0x") or not is_hex(value):
        return False
    return allow_empty or len(value) > 2


def _error(source: str, message: str, **context) -> ProcessingError:
    return ProcessingError(
        source=source,
        message=message,
        severity=ErrorSeverity.ERROR,
        context=context,
    )


def _check_entries(
    entries: Any, field_name: str, index: int, errors: List[ProcessingError]
) -> bool:
    if not isinstance(entries, list):
        errors.append(
            _error("snapshot_type", f"{field_name}[{index}] must be an array", index=index)
        )
        return False
    ok = True
    for position, entry in enumerate(entries):
        if not isinstance(entry, dict) or set(entry) != {"key", "value"}:
            errors.append(
                _error(
                    "snapshot_type",
                    f"{field_name}[{index}][{position}] must be an object with key and value",
                    index=index,
                )
            )
            ok = False
            continue
        if not _is_hex_field(entry["key"], allow_empty=False):
            errors.append(
                _error(
                    "snapshot_type",
                    f"{field_name}[{index}][{position}].key must be a non-empty 0x hex string",
                    index=index,
                )
            )
            ok = False
        if not _is_hex_field(entry["value"], allow_empty=True):
            errors.append(
                _error(
                    "snapshot_type",
                    f"{field_name}[{index}][{position}].value must be a 0x hex string",
                    index=index,
                )
            )
            ok = False
    return ok


def validate_state_snapshot(data: Any) -> Result[SnapshotSummary]:
    """
    Validate an untrusted snapshot JSON object.

    Every problem found is reported as its own error: missing or mistyped
    fields, array length mismatches, duplicate storage addresses, and per
    address each missing entry key and each extra (unregistered) key.
    """
    if not isinstance(data, dict):
        return Result.fail_with_message(
            "snapshot_type", "Snapshot must be a JSON object", ErrorSeverity.CRITICAL
        )

    errors: List[ProcessingError] = []

    for name in ("entryContractAddress", "channelId"):
        if name not in data:
            errors.append(_error("snapshot_field", f"Missing required field {name}"))
        elif not _is_hex_field(data[name], allow_empty=name in _EMPTY_HEX_ALLOWED):
            errors.append(_error("snapshot_type", f"{name} must be a 0x hex string"))

    arrays: Dict[str, list] = {}
    for name in ("storageAddresses",) + _PER_ADDRESS_ARRAYS:
        if name not in data:
            errors.append(_error("snapshot_field", f"Missing required field {name}"))
        elif not isinstance(data[name], list):
            errors.append(_error("snapshot_type", f"{name} must be an array"))
        else:
            arrays[name] = data[name]

    if len(arrays) != len(_PER_ADDRESS_ARRAYS) + 1:
        return Result.fail_many(errors)

    expected = len(arrays["storageAddresses"])
    lengths_ok = True
    for name in _PER_ADDRESS_ARRAYS:
        if len(arrays[name]) != expected:
            lengths_ok = False
            errors.append(
                _error(
                    "snapshot_shape",
                    f"{name} has {len(arrays[name])} items, expected {expected} "
                    "(one per storage address)",
                )
            )

    seen_addresses: Set[str] = set()
    for index, address in enumerate(arrays["storageAddresses"]):
        if not _is_hex_field(address, allow_empty=False):
            errors.append(
                _error(
                    "snapshot_type",
                    f"storageAddresses[{index}] must be a non-empty 0x hex string",
                    index=index,
                )
            )
            continue
        if address.lower() in seen_addresses:
            errors.append(
                _error(
                    "snapshot_duplicate",
                    f"Duplicate storage address {address}",
                    index=index,
                    address=address,
                )
            )
        seen_addresses.add(address.lower())

    for index, root in enumerate(arrays["stateRoots"]):
        if not _is_hex_field(root, allow_empty=True):
            errors.append(
                _error("snapshot_type", f"stateRoots[{index}] must be a 0x hex string", index=index)
            )

    if not lengths_ok:
        return Result.fail_many(errors)

    key_counts: List[int] = []
    for index in range(expected):
        keys = arrays["registeredKeys"][index]
        entries = arrays["storageEntries"][index]
        leaves = arrays["preAllocatedLeaves"][index]

        keys_ok = isinstance(keys, list) and all(
            _is_hex_field(k, allow_empty=False) for k in keys
        )
        if not keys_ok:
            errors.append(
                _error(
                    "snapshot_type",
                    f"registeredKeys[{index}] must be an array of non-empty 0x hex strings",
                    index=index,
                )
            )
        entries_ok = _check_entries(entries, "storageEntries", index, errors)
        leaves_ok = _check_entries(leaves, "preAllocatedLeaves", index, errors)
        if not (keys_ok and entries_ok and leaves_ok):
            continue

        key_counts.append(len(keys))
        address = arrays["storageAddresses"][index]
        all_entries = [StorageEntry(e["key"], e["value"]) for e in entries + leaves]
        missing, extra = _key_set_difference(keys, all_entries)
        for key in missing:
            errors.append(
                _error(
                    "snapshot_keys",
                    f"missing entry key {key} for address {address}",
                    index=index,
                    key=key,
                )
            )
        for key in extra:
            errors.append(
                _error(
                    "snapshot_keys",
                    f"extra key {key} for address {address}",
                    index=index,
                    key=key,
                )
            )

    if errors:
        return Result.fail_many(errors)

    return Result.ok(
        SnapshotSummary(
            entry_contract_address=data["entryContractAddress"],
            address_count=expected,
            key_counts=key_counts,
        )
    )
