"""
Deterministic EdDSA over JubJub with Poseidon as the hash.

Signing derives its nonce from the private key and the message, so the same
key and message always produce the same ``(R, S)``.
"""

from typing import NamedTuple, Optional, Sequence

from tokamak_l2_toolkit.crypto.curve import BASE, ORDER, JubJubPoint
from tokamak_l2_toolkit.crypto.poseidon import poseidon
from tokamak_l2_toolkit.shared.constants import ProtocolConstants
from tokamak_l2_toolkit.shared.exceptions import (
    InvalidPointEncoding,
    SignatureInvalid,
)
from tokamak_l2_toolkit.utils import (
    BytesLike,
    batch_int_to_32_bytes_each,
    bytes_to_int,
    concat_bytes,
    int_to_bytes32,
    pad32,
)


class EddsaSignature(NamedTuple):
    R: JubJubPoint
    S: int


def public_key_of(private_key: int) -> JubJubPoint:
    if not 0 <= private_key < ORDER:
        raise SignatureInvalid("EdDSA private key must be in the JubJub scalar field")
    return BASE * private_key


def _challenge(
    R: JubJubPoint, public_key: JubJubPoint, message: Sequence[BytesLike]
) -> int:
    rx, ry = R.to_affine()
    px, py = public_key.to_affine()
    digest = poseidon(
        batch_int_to_32_bytes_each(rx, ry, px, py) + concat_bytes(message)
    )
    return bytes_to_int(digest) % ORDER


def eddsa_sign(private_key: int, message: Sequence[BytesLike]) -> EddsaSignature:
    """Sign a message given as a sequence of byte strings.

    Raises:
        SignatureInvalid: private key outside [0, ORDER)
    """
    public_key = public_key_of(private_key)
    px, py = public_key.to_affine()
    dst = ProtocolConstants.DST_NONCE

    nonce_seed = poseidon(dst + int_to_bytes32(private_key))
    r = (
        bytes_to_int(
            poseidon(
                dst
                + nonce_seed
                + batch_int_to_32_bytes_each(px, py)
                + concat_bytes(message)
            )
        )
        % ORDER
    )
    R = BASE * r
    e = _challenge(R, public_key, message)
    S = (r + e * private_key) % ORDER
    return EddsaSignature(R=R, S=S)


def eddsa_verify(
    message: Sequence[BytesLike], public_key: JubJubPoint, R: JubJubPoint, S: int
) -> bool:
    """Check ``BASE * S == public_key * e + R``; never raises for bad input."""
    if not 0 <= S < ORDER:
        return False
    if public_key.is_identity() or R.is_identity():
        return False
    if len(message) == 0:
        return False
    e = _challenge(R, public_key, message)
    return BASE * S == public_key * e + R


def get_eddsa_public_key(
    full_message: BytesLike,
    v: int,
    r: BytesLike,
    s: BytesLike,
    chain_id: Optional[int] = None,
) -> bytes:
    """Recover (i.e. verify and return) the public key carried by a message.

    ``full_message`` is the signed payload followed by the claimed 32-byte
    compressed public key. ``v`` only exists to match the ecrecover shape.

    Raises:
        ValueError: a chain id was supplied
        SignatureInvalid: the signature does not verify
    """
    if chain_id is not None:
        raise ValueError("EdDSA does not take a chain id to recover a public key")
    full_message = bytes(full_message)
    if len(full_message) < 32:
        raise SignatureInvalid("Message is too short to carry a public key")
    payload, public_key_bytes = full_message[:-32], full_message[-32:]

    try:
        public_key = JubJubPoint.from_bytes(public_key_bytes)
        randomizer = JubJubPoint.from_bytes(pad32(r))
    except (InvalidPointEncoding, ValueError) as e:
        raise SignatureInvalid(f"Signature verification failed: {e}") from e

    if not eddsa_verify([payload], public_key, randomizer, bytes_to_int(s)):
        raise SignatureInvalid("Signature verification failed")
    return public_key_bytes
