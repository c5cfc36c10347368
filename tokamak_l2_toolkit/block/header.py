"""Block header encoder"""

from typing import Any, Dict

import rlp
from hexbytes import HexBytes

from tokamak_l2_toolkit.crypto.backend import CryptoBackend
from tokamak_l2_toolkit.utils import int_to_unpadded_bytes

BLOCK_HEADER = (
    "parentHash",
    "stateRoot",
    "transactionsRoot",
    "number",
    "timestamp",
    "extraData",
)


def _header_value(value: Any) -> HexBytes:
    if isinstance(value, int):
        return HexBytes(int_to_unpadded_bytes(value))
    return HexBytes(value)


def encode_block_header(header: Dict[str, Any]) -> bytes:
    """Encode the known header fields in order -> RLP encoded"""
    return rlp.encode(
        [_header_value(header[k]) for k in BLOCK_HEADER if k in header]
    )


def hash_block_header(header: Dict[str, Any], backend: CryptoBackend) -> bytes:
    """Header hash under the backend's hash (Poseidon on L2)"""
    return backend.keccak256(encode_block_header(header))
