"""
L2 block: a header plus a fixed-size batch of transactions.

Header contents are produced by an external builder; this module only
checks the batch size and parses the transactions with the shared backend.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from tokamak_l2_toolkit.block.header import encode_block_header, hash_block_header
from tokamak_l2_toolkit.crypto.backend import CryptoBackend, require_crypto_backend
from tokamak_l2_toolkit.crypto.poseidon import poseidon
from tokamak_l2_toolkit.shared.constants import TxConstants
from tokamak_l2_toolkit.shared.exceptions import InvalidTransaction
from tokamak_l2_toolkit.tx.constructors import create_l2_tx
from tokamak_l2_toolkit.tx.transaction import L2Transaction
from tokamak_l2_toolkit.tx.types import L2TxData


@dataclass
class L2BlockData:
    header: Dict[str, Any] = field(default_factory=dict)
    transactions: List[L2TxData] = field(default_factory=list)


class L2Block:
    def __init__(
        self,
        header: Dict[str, Any],
        transactions: List[L2Transaction],
        backend: Optional[CryptoBackend],
    ):
        self.backend = require_crypto_backend(backend, "L2Block")
        self.header = dict(header)
        self.transactions = list(transactions)

    def transactions_root(self) -> bytes:
        """Poseidon digest over the concatenated transaction hashes."""
        return poseidon(b"".join(tx.hash() for tx in self.transactions))

    def serialize_header(self) -> bytes:
        return encode_block_header(self.header)

    def hash(self) -> bytes:
        return hash_block_header(self.header, self.backend)


def create_l2_block(
    block_data: L2BlockData, backend: Optional[CryptoBackend]
) -> L2Block:
    """
    Build a block from header data and exactly TRANSACTIONS_PER_BLOCK transactions.

    Raises:
        MissingCryptoBackend: no backend supplied
        InvalidTransaction: wrong number of transactions
    """
    backend = require_crypto_backend(backend, "L2Block")
    expected = TxConstants.TRANSACTIONS_PER_BLOCK
    if len(block_data.transactions) != expected:
        raise InvalidTransaction(
            f"An L2 block must contain exactly {expected} transactions, "
            f"but got {len(block_data.transactions)}"
        )
    transactions = [create_l2_tx(tx, backend) for tx in block_data.transactions]
    return L2Block(block_data.header, transactions, backend)
