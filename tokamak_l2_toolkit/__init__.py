"""Tokamak L2 Toolkit - Poseidon/JubJub crypto, L2 transactions and Merkle state."""

__version__ = "0.1.0"

from .crypto import default_crypto_backend, poseidon
from .state import L2StateManager, StateSnapshot
from .tx import L2Transaction, create_l2_tx

__all__ = [
    "L2StateManager",
    "L2Transaction",
    "StateSnapshot",
    "create_l2_tx",
    "default_crypto_backend",
    "poseidon",
]
