"""Constructors for L2 transactions, including wire decoding"""

from typing import Optional, Sequence

import rlp
from rlp.exceptions import DecodingError

from tokamak_l2_toolkit.crypto.backend import CryptoBackend
from tokamak_l2_toolkit.shared.constants import TxConstants
from tokamak_l2_toolkit.shared.exceptions import InvalidTransaction
from tokamak_l2_toolkit.tx.transaction import L2Transaction
from tokamak_l2_toolkit.tx.types import L2TxData
from tokamak_l2_toolkit.utils import bytes_to_int

_NUMERIC_FIELDS = ("nonce", "v", "r", "s")


def create_l2_tx(
    tx_data: L2TxData, backend: Optional[CryptoBackend]
) -> L2Transaction:
    """Build a transaction; fails with MissingCryptoBackend without a backend."""
    return L2Transaction(tx_data, backend)


def _optional_int(value: bytes) -> Optional[int]:
    return None if len(value) == 0 else bytes_to_int(value)


def create_l2_tx_from_bytes_array(
    values: Sequence[bytes], backend: Optional[CryptoBackend]
) -> L2Transaction:
    """
    Create a transaction from its decoded wire values.

    Format: ``[nonce, to, data, senderPubKey, v, r, s]``
    """
    if len(values) != TxConstants.RLP_FIELD_COUNT:
        raise InvalidTransaction(
            f"Invalid transaction. Expected {TxConstants.RLP_FIELD_COUNT} values, "
            f"got {len(values)}."
        )
    if not all(isinstance(v, (bytes, bytearray)) for v in values):
        raise InvalidTransaction("Invalid transaction. Values must be byte strings.")

    nonce, to, data, sender_pub_key, v, r, s = (bytes(value) for value in values)
    for name, value in zip(_NUMERIC_FIELDS, (nonce, v, r, s)):
        if len(value) > 0 and value[0] == 0:
            raise InvalidTransaction(f"{name} cannot have leading zeroes")

    return create_l2_tx(
        L2TxData(
            nonce=bytes_to_int(nonce),
            to=to,
            data=data,
            sender_pub_key=sender_pub_key,
            v=_optional_int(v),
            r=_optional_int(r),
            s=_optional_int(s),
        ),
        backend,
    )


def create_l2_tx_from_rlp(
    serialized: bytes, backend: Optional[CryptoBackend]
) -> L2Transaction:
    """
    Instantiate a transaction from RLP bytes.

    Decoding does not verify the signature; call ``verify_signature()``.
    """
    try:
        values = rlp.decode(serialized)
    except DecodingError as e:
        raise InvalidTransaction(f"Invalid serialized tx input: {e}") from e
    if not isinstance(values, list):
        raise InvalidTransaction("Invalid serialized tx input. Must be array")
    return create_l2_tx_from_bytes_array(values, backend)
