"""L2 key derivation and storage-key helpers"""

from dataclasses import dataclass
from typing import Sequence, Union

from eth_utils import is_hex, keccak, to_checksum_address

from tokamak_l2_toolkit.crypto.address import derive_address
from tokamak_l2_toolkit.crypto.curve import BASE, ORDER, JubJubPoint
from tokamak_l2_toolkit.crypto.poseidon import poseidon
from tokamak_l2_toolkit.shared.constants import TxConstants
from tokamak_l2_toolkit.utils import (
    bytes_to_hex,
    bytes_to_int,
    hex_to_bytes,
    int_to_bytes32,
    int_to_unpadded_bytes,
    pad32,
)

StorageKeyPart = Union[str, int, bytes]

LAYER_L1 = "L1"
LAYER_L2 = "L2"


@dataclass(frozen=True)
class L2KeyPair:
    private_key: bytes  # 32-byte big-endian scalar
    public_key: bytes  # 32-byte compressed JubJub point

    @property
    def private_scalar(self) -> int:
        return bytes_to_int(self.private_key)

    @property
    def public_point(self) -> JubJubPoint:
        return JubJubPoint.from_bytes(self.public_key)


def channel_key_message(channel_id: str) -> str:
    """Message a participant signs with their L1 wallet to seed L2 keys."""
    return f"{TxConstants.L2_PRV_KEY_MESSAGE}{channel_id}"


def _set_length_left(data: bytes, length: int = 32) -> bytes:
    """Left-pad with zeros, or keep the last ``length`` bytes of longer input."""
    return bytes(data[-length:]).rjust(length, b"\x00")


def _secret_key_from_seed(seed: bytes) -> bytes:
    """Use 32 bytes of seed material verbatim as a secret key."""
    if len(seed) != 32:
        raise ValueError(f"Secret key seed must be 32 bytes, got {len(seed)}")
    return bytes(seed)


def derive_l2_keys_from_signature(signature: str) -> L2KeyPair:
    """Derive a JubJub key pair from an L1 signature string.

    The 32-byte ``poseidon(utf8(signature))`` digest is the secret key
    seed; the private scalar is that seed mod ORDER.
    """
    seed = _secret_key_from_seed(poseidon(signature.encode("utf-8")))
    private_scalar = bytes_to_int(seed) % ORDER
    if private_scalar == 0:
        raise ValueError("Signature derives the zero private key")
    return L2KeyPair(
        private_key=int_to_bytes32(private_scalar),
        public_key=(BASE * private_scalar).to_bytes(),
    )


def derive_l2_address_from_keys(keys: L2KeyPair) -> str:
    return to_checksum_address(derive_address(keys.public_key))


def _storage_key_part(part: StorageKeyPart) -> bytes:
    if isinstance(part, bool):
        raise TypeError("Storage key parts cannot be booleans")
    if isinstance(part, int):
        return pad32(int_to_unpadded_bytes(part))
    if isinstance(part, (bytes, bytearray)):
        return pad32(part)
    if isinstance(part, str) and is_hex(part):
        return pad32(hex_to_bytes(part))
    raise TypeError(
        "Storage key parts must be hex strings, integers or bytes, "
        f"got {type(part).__name__}"
    )


def get_user_storage_key(parts: Sequence[StorageKeyPart], layer: str) -> bytes:
    """Hash 32-byte-padded parts with the layer's hash (keccak256 for L1, Poseidon for L2)."""
    packed = b"".join(_storage_key_part(p) for p in parts)
    if layer == LAYER_L1:
        return keccak(packed)
    if layer == LAYER_L2:
        return poseidon(packed)
    raise ValueError(f"Undefined layer {layer!r} for a user storage key")


def derive_l2_mpt_key_from_address(address: str, slot_index: int) -> str:
    return bytes_to_hex(get_user_storage_key([address, slot_index], LAYER_L2))


def derive_l2_keys_from_seed(seed: str) -> L2KeyPair:
    """
    Key pair for a channel participant's L2 seed.

    The UTF-8 seed is fitted to 32 bytes (left-padded, or only its last 32
    bytes kept), used as a secret key seed, and its hex form is then treated
    like an L1 signature.
    """
    secret = _secret_key_from_seed(_set_length_left(seed.encode("utf-8")))
    return derive_l2_keys_from_signature(bytes_to_hex(secret))
