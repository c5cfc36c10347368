"""
Transaction data and the capability interfaces transactions implement.
"""

from dataclasses import dataclass
from typing import List, Optional, Protocol, Union, runtime_checkable

AddressLike = Union[str, bytes]
TxValuesArray = List[bytes]


@dataclass(frozen=True)
class L2TxData:
    """Fields of an L2 transaction.

    ``to`` is a 20-byte address (hex string or bytes). ``sender_pub_key`` is
    the sender's 32-byte compressed JubJub key, unverified until a signature
    over it checks out. ``r`` is the EdDSA randomizer point (its compressed
    bytes read as a big-endian integer) and ``s`` the EdDSA scalar.
    """

    nonce: int
    to: AddressLike
    data: bytes
    sender_pub_key: bytes
    v: Optional[int] = None
    r: Optional[int] = None
    s: Optional[int] = None


@runtime_checkable
class Signable(Protocol):
    def get_message_to_sign(self) -> List[bytes]: ...

    def sign(self, private_key: Union[bytes, int]) -> "Signable": ...

    def verify_signature(self) -> bool: ...


@runtime_checkable
class Serializable(Protocol):
    def raw(self) -> TxValuesArray: ...

    def serialize(self) -> bytes: ...
