"""
L2 transaction signed with EdDSA over JubJub.

The wire shape is ``RLP([nonce, to, data, senderPubKey, v, r, s])``. A
transaction is immutable: signing returns a new instance.
"""

from typing import List, Optional, Union

import rlp
from eth_utils import to_canonical_address, to_checksum_address

from tokamak_l2_toolkit.crypto.address import derive_address
from tokamak_l2_toolkit.crypto.backend import CryptoBackend, require_crypto_backend
from tokamak_l2_toolkit.crypto.curve import ORDER, JubJubPoint
from tokamak_l2_toolkit.crypto.eddsa import eddsa_sign, eddsa_verify, public_key_of
from tokamak_l2_toolkit.shared.constants import TxConstants
from tokamak_l2_toolkit.shared.exceptions import (
    InvalidTransaction,
    NotSigned,
    PublicKeyMismatch,
    RecoveredKeyMismatch,
    SignatureInvalid,
)
from tokamak_l2_toolkit.shared.logging import get_logger
from tokamak_l2_toolkit.tx.types import L2TxData, TxValuesArray
from tokamak_l2_toolkit.utils import (
    bytes_to_int,
    int_to_unpadded_bytes,
    pad32,
    unpad_bytes,
)

logger = get_logger(__name__)


class L2Transaction:
    """A legacy-shaped transaction whose signature scheme is EdDSA/Poseidon."""

    def __init__(self, tx_data: L2TxData, backend: Optional[CryptoBackend]):
        self.backend = require_crypto_backend(backend, "L2Transaction")

        if tx_data.nonce < 0:
            raise InvalidTransaction("Nonce must be non-negative")
        sender_pub_key = bytes(tx_data.sender_pub_key)
        if len(sender_pub_key) != 32:
            raise InvalidTransaction(
                f"Sender public key must be 32 bytes, got {len(sender_pub_key)}"
            )
        try:
            to = to_canonical_address(tx_data.to)
        except (TypeError, ValueError) as e:
            raise InvalidTransaction(f"Invalid recipient address: {e}") from e

        self.nonce = tx_data.nonce
        self.to = to
        self.data = bytes(tx_data.data)
        self.v = tx_data.v
        self.r = tx_data.r
        self.s = tx_data.s
        # Unverified until get_sender_public_key() checks a signature over it
        self.sender_pub_key_unsafe = sender_pub_key

        self.gas_limit = TxConstants.ANY_LARGE_GAS_LIMIT
        self.gas_price = TxConstants.ANY_LARGE_GAS_PRICE

    # -- calldata -----------------------------------------------------

    def get_function_selector(self) -> bytes:
        if len(self.data) < TxConstants.FUNCTION_SELECTOR_LENGTH:
            raise InvalidTransaction("Insufficient transaction data")
        return self.data[: TxConstants.FUNCTION_SELECTOR_LENGTH]

    def get_function_input(self, index: int) -> bytes:
        """32-byte call argument ``index``; empty when the calldata is shorter."""
        offset = TxConstants.FUNCTION_SELECTOR_LENGTH + 32 * index
        end = offset + 32
        if len(self.data) < end:
            return b""
        return self.data[offset:end]

    # -- signing ------------------------------------------------------

    def is_signed(self) -> bool:
        return self.v is not None and self.r is not None and self.s is not None

    def get_message_to_sign(self) -> List[bytes]:
        """Fixed-shape message: nonce, to, selector and 9 argument words, each padded to 32 bytes."""
        message = [
            int_to_unpadded_bytes(self.nonce),
            self.to,
            self.get_function_selector(),
        ]
        message.extend(
            self.get_function_input(i) for i in range(TxConstants.MESSAGE_INPUT_WORDS)
        )
        return [pad32(m) for m in message]

    def get_unsafe_eddsa_pub_key(self) -> JubJubPoint:
        return JubJubPoint.from_bytes(self.sender_pub_key_unsafe)

    def sign(self, private_key: Union[bytes, int]) -> "L2Transaction":
        """Sign and return a new transaction carrying ``(v, r, s)``.

        Raises:
            SignatureInvalid: key outside the scalar field, or the fresh
                signature does not verify
            PublicKeyMismatch: the key does not derive the stored public key
        """
        sk = private_key if isinstance(private_key, int) else bytes_to_int(private_key)
        if not 0 <= sk < ORDER:
            raise SignatureInvalid("EdDSA private key must be in the JubJub scalar field")

        message = self.get_message_to_sign()
        signature = eddsa_sign(sk, message)

        public_key = self.get_unsafe_eddsa_pub_key()
        if public_key != public_key_of(sk):
            raise PublicKeyMismatch(
                "The stored sender public key is not derived from the given private key"
            )
        if not eddsa_verify(message, public_key, signature.R, signature.S):
            raise SignatureInvalid("Signed the transaction but the signature does not verify")

        return self.add_signature(
            TxConstants.FIXED_V, bytes_to_int(signature.R.to_bytes()), signature.S
        )

    def add_signature(self, v: int, r: Union[bytes, int], s: Union[bytes, int]) -> "L2Transaction":
        r_int = r if isinstance(r, int) else bytes_to_int(r)
        s_int = s if isinstance(s, int) else bytes_to_int(s)
        return L2Transaction(
            L2TxData(
                nonce=self.nonce,
                to=self.to,
                data=self.data,
                sender_pub_key=self.sender_pub_key_unsafe,
                v=v,
                r=r_int,
                s=s_int,
            ),
            self.backend,
        )

    def get_sender_public_key(self) -> bytes:
        """Verify the signature and return the sender's compressed public key.

        Raises:
            NotSigned: no signature present
            SignatureInvalid: the signature does not verify
            RecoveredKeyMismatch: the recovered key differs from the stored one
        """
        if not self.is_signed():
            raise NotSigned("Public key can be recovered only from a signed transaction")
        full_message = b"".join(self.get_message_to_sign()) + pad32(
            self.sender_pub_key_unsafe
        )
        recovered = self.backend.ecrecover(
            full_message,
            self.v,
            int_to_unpadded_bytes(self.r),
            int_to_unpadded_bytes(self.s),
        )
        if bytes(recovered) != self.sender_pub_key_unsafe:
            raise RecoveredKeyMismatch(
                "Recovered sender public key is different from the stored one"
            )
        return bytes(recovered)

    def verify_signature(self) -> bool:
        try:
            public_key = self.get_sender_public_key()
        except Exception as e:
            logger.debug(f"Signature verification failed: {e}")
            return False
        return len(unpad_bytes(public_key)) != 0

    def get_sender_address(self) -> bytes:
        return derive_address(self.get_sender_public_key())

    def get_sender_checksum_address(self) -> str:
        return to_checksum_address(self.get_sender_address())

    # -- wire format --------------------------------------------------

    def raw(self) -> TxValuesArray:
        def optional_int(value: Optional[int]) -> bytes:
            return b"" if value is None else int_to_unpadded_bytes(value)

        return [
            int_to_unpadded_bytes(self.nonce),
            self.to,
            self.data,
            self.sender_pub_key_unsafe,
            optional_int(self.v),
            optional_int(self.r),
            optional_int(self.s),
        ]

    def serialize(self) -> bytes:
        return rlp.encode(self.raw())

    def hash(self) -> bytes:
        return self.backend.keccak256(self.serialize())

    def to_dict(self) -> dict:
        return {
            "nonce": self.nonce,
            "to": to_checksum_address(self.to),
            "data": "0x" + self.data.hex(),
            "senderPubKey": "0x" + self.sender_pub_key_unsafe.hex(),
            "v": self.v,
            "r": None if self.r is None else hex(self.r),
            "s": None if self.s is None else hex(self.s),
        }

    def __repr__(self) -> str:
        return (
            f"L2Transaction(nonce={self.nonce}, to={to_checksum_address(self.to)}, "
            f"signed={self.is_signed()})"
        )
