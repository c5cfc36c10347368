"""Account addresses derived from JubJub public keys"""

from typing import Union

from eth_utils import to_checksum_address

from tokamak_l2_toolkit.crypto.curve import JubJubPoint
from tokamak_l2_toolkit.crypto.poseidon import poseidon
from tokamak_l2_toolkit.shared.exceptions import InvalidPointEncoding
from tokamak_l2_toolkit.utils import BytesLike

ADDRESS_LENGTH = 20


def _affine_bytes(point: Union[JubJubPoint, BytesLike]) -> bytes:
    if isinstance(point, JubJubPoint):
        return point.to_affine_bytes()
    data = bytes(point)
    if len(data) == 32:
        return JubJubPoint.from_bytes(data).to_affine_bytes()
    if len(data) == 64:
        return data
    raise InvalidPointEncoding(
        f"Expected a 32-byte compressed or 64-byte affine point, got {len(data)} bytes"
    )


def derive_address(point: Union[JubJubPoint, BytesLike]) -> bytes:
    """Low-order 20 bytes of ``poseidon(pad32(x) || pad32(y))``.

    Raises:
        InvalidPointEncoding: input is neither a point nor 32/64 bytes
    """
    return poseidon(_affine_bytes(point))[-ADDRESS_LENGTH:]


def derive_checksum_address(point: Union[JubJubPoint, BytesLike]) -> str:
    return to_checksum_address(derive_address(point))
