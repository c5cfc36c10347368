"""
Crypto backend handed to transactions, blocks and state managers.

It replaces the host chain's keccak256 and ecrecover with Poseidon and
EdDSA public-key recovery. Objects that need it take it at construction
and fail immediately when it is missing.
"""

from dataclasses import dataclass
from typing import Callable, Optional

from tokamak_l2_toolkit.crypto.eddsa import get_eddsa_public_key
from tokamak_l2_toolkit.crypto.poseidon import poseidon
from tokamak_l2_toolkit.shared.exceptions import MissingCryptoBackend

HashFunction = Callable[[bytes], bytes]
RecoverFunction = Callable[..., bytes]


@dataclass(frozen=True)
class CryptoBackend:
    keccak256: HashFunction
    ecrecover: RecoverFunction


def default_crypto_backend() -> CryptoBackend:
    return CryptoBackend(keccak256=poseidon, ecrecover=get_eddsa_public_key)


def require_crypto_backend(
    backend: Optional[CryptoBackend], owner: str
) -> CryptoBackend:
    if backend is None:
        raise MissingCryptoBackend(f"{owner} requires a crypto backend")
    if backend.keccak256 is None or backend.ecrecover is None:
        raise MissingCryptoBackend(
            f"{owner} requires both keccak256 and ecrecover in its crypto backend"
        )
    return backend
