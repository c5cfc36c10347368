"""Poseidon hashing, JubJub EdDSA and address derivation."""

from tokamak_l2_toolkit.crypto.address import derive_address, derive_checksum_address
from tokamak_l2_toolkit.crypto.backend import CryptoBackend, default_crypto_backend
from tokamak_l2_toolkit.crypto.curve import BASE, ORDER, JubJubPoint
from tokamak_l2_toolkit.crypto.eddsa import (
    EddsaSignature,
    eddsa_sign,
    eddsa_verify,
    get_eddsa_public_key,
)
from tokamak_l2_toolkit.crypto.poseidon import (
    FIELD_MODULUS,
    poseidon,
    poseidon_n2x_compress,
    poseidon_raw,
)

__all__ = [
    "BASE",
    "ORDER",
    "FIELD_MODULUS",
    "JubJubPoint",
    "CryptoBackend",
    "EddsaSignature",
    "default_crypto_backend",
    "derive_address",
    "derive_checksum_address",
    "eddsa_sign",
    "eddsa_verify",
    "get_eddsa_public_key",
    "poseidon",
    "poseidon_n2x_compress",
    "poseidon_raw",
]
