from tokamak_l2_toolkit.tx.constructors import (
    create_l2_tx,
    create_l2_tx_from_bytes_array,
    create_l2_tx_from_rlp,
)
from tokamak_l2_toolkit.tx.transaction import L2Transaction
from tokamak_l2_toolkit.tx.types import L2TxData, Serializable, Signable

__all__ = [
    "L2Transaction",
    "L2TxData",
    "Serializable",
    "Signable",
    "create_l2_tx",
    "create_l2_tx_from_bytes_array",
    "create_l2_tx_from_rlp",
]
