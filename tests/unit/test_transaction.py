"""
Unit tests for L2 transactions: signing, recovery and the RLP wire format.
"""

import pytest
import rlp

from tokamak_l2_toolkit.crypto.address import derive_address
from tokamak_l2_toolkit.crypto.backend import CryptoBackend
from tokamak_l2_toolkit.crypto.poseidon import poseidon
from tokamak_l2_toolkit.shared.constants import TxConstants
from tokamak_l2_toolkit.shared.exceptions import (
    InvalidTransaction,
    MissingCryptoBackend,
    NotSigned,
    PublicKeyMismatch,
    RecoveredKeyMismatch,
    SignatureInvalid,
)
from tokamak_l2_toolkit.tx import (
    L2Transaction,
    L2TxData,
    Serializable,
    Signable,
    create_l2_tx,
    create_l2_tx_from_bytes_array,
    create_l2_tx_from_rlp,
)

RECIPIENT = "0xD533a949740bb3306d119CC777fa900bA034cd52"
TRANSFER_DATA = (
    bytes.fromhex("a9059cbb")
    + bytes.fromhex("00" * 12 + "52f541764e6e90eebc5c21ff570de0e2d63766b6")
    + (10**18).to_bytes(32, "big")
)


@pytest.fixture
def unsigned_tx(backend, sender_keys) -> L2Transaction:
    return create_l2_tx(
        L2TxData(
            nonce=1,
            to=RECIPIENT,
            data=TRANSFER_DATA,
            sender_pub_key=sender_keys.public_key,
        ),
        backend,
    )


@pytest.fixture
def signed_tx(unsigned_tx, sender_keys) -> L2Transaction:
    return unsigned_tx.sign(sender_keys.private_key)


class TestConstruction:
    """Tests for building transactions."""

    def test_requires_backend(self, sender_keys):
        with pytest.raises(MissingCryptoBackend):
            create_l2_tx(
                L2TxData(nonce=0, to=RECIPIENT, data=b"", sender_pub_key=sender_keys.public_key),
                None,
            )

    def test_rejects_bad_recipient(self, backend, sender_keys):
        with pytest.raises(InvalidTransaction):
            create_l2_tx(
                L2TxData(nonce=0, to="0x1234", data=b"", sender_pub_key=sender_keys.public_key),
                backend,
            )

    def test_rejects_short_public_key(self, backend):
        with pytest.raises(InvalidTransaction):
            create_l2_tx(
                L2TxData(nonce=0, to=RECIPIENT, data=b"", sender_pub_key=b"\x01" * 31),
                backend,
            )

    def test_rejects_negative_nonce(self, backend, sender_keys):
        with pytest.raises(InvalidTransaction):
            create_l2_tx(
                L2TxData(nonce=-1, to=RECIPIENT, data=b"", sender_pub_key=sender_keys.public_key),
                backend,
            )

    def test_implements_capabilities(self, unsigned_tx):
        assert isinstance(unsigned_tx, Signable)
        assert isinstance(unsigned_tx, Serializable)


class TestCalldata:
    """Tests for selector and argument access."""

    def test_selector(self, unsigned_tx):
        assert unsigned_tx.get_function_selector() == bytes.fromhex("a9059cbb")

    def test_inputs(self, unsigned_tx):
        assert unsigned_tx.get_function_input(0) == TRANSFER_DATA[4:36]
        assert unsigned_tx.get_function_input(1) == TRANSFER_DATA[36:68]

    def test_input_out_of_range_is_empty(self, unsigned_tx):
        assert unsigned_tx.get_function_input(2) == b""

    def test_short_calldata_has_no_selector(self, backend, sender_keys):
        tx = create_l2_tx(
            L2TxData(nonce=0, to=RECIPIENT, data=b"\xa9\x05", sender_pub_key=sender_keys.public_key),
            backend,
        )
        with pytest.raises(InvalidTransaction):
            tx.get_function_selector()

    def test_message_shape(self, unsigned_tx):
        message = unsigned_tx.get_message_to_sign()
        assert len(message) == 3 + TxConstants.MESSAGE_INPUT_WORDS
        assert all(len(word) == 32 for word in message)
        assert message[0] == (1).to_bytes(32, "big")
        assert message[2][-4:] == bytes.fromhex("a9059cbb")


class TestSigning:
    """Tests for signing and sender recovery."""

    def test_sign_returns_new_signed_transaction(self, unsigned_tx, signed_tx):
        assert not unsigned_tx.is_signed()
        assert signed_tx.is_signed()
        assert signed_tx.v == TxConstants.FIXED_V

    def test_signature_verifies(self, signed_tx):
        assert signed_tx.verify_signature()

    def test_signing_is_deterministic(self, unsigned_tx, sender_keys, signed_tx):
        again = unsigned_tx.sign(sender_keys.private_key)
        assert (again.r, again.s) == (signed_tx.r, signed_tx.s)

    def test_accepts_integer_key(self, unsigned_tx, sender_keys, signed_tx):
        assert unsigned_tx.sign(sender_keys.private_scalar).serialize() == signed_tx.serialize()

    def test_sender_public_key_and_address(self, signed_tx, sender_keys):
        assert signed_tx.get_sender_public_key() == sender_keys.public_key
        assert signed_tx.get_sender_address() == derive_address(sender_keys.public_key)

    def test_wrong_private_key(self, unsigned_tx, other_keys):
        with pytest.raises(PublicKeyMismatch):
            unsigned_tx.sign(other_keys.private_key)

    def test_private_key_out_of_range(self, unsigned_tx):
        with pytest.raises(SignatureInvalid):
            unsigned_tx.sign(b"\xff" * 32)

    def test_unsigned_has_no_sender(self, unsigned_tx):
        with pytest.raises(NotSigned):
            unsigned_tx.get_sender_public_key()
        assert unsigned_tx.verify_signature() is False

    def test_tampered_scalar_fails_verification(self, signed_tx):
        tampered = signed_tx.add_signature(signed_tx.v, signed_tx.r, signed_tx.s + 1)
        assert tampered.verify_signature() is False
        with pytest.raises(SignatureInvalid):
            tampered.get_sender_public_key()

    def test_swapped_public_key_is_detected(self, backend, signed_tx, other_keys):
        """A signature over one key presented with another never recovers."""
        swapped = create_l2_tx(
            L2TxData(
                nonce=signed_tx.nonce,
                to=signed_tx.to,
                data=signed_tx.data,
                sender_pub_key=other_keys.public_key,
                v=signed_tx.v,
                r=signed_tx.r,
                s=signed_tx.s,
            ),
            backend,
        )
        assert swapped.verify_signature() is False

    def test_backend_disagreeing_with_stored_key(self, signed_tx, other_keys):
        lying = CryptoBackend(
            keccak256=poseidon, ecrecover=lambda *args, **kwargs: other_keys.public_key
        )
        tx = L2Transaction(
            L2TxData(
                nonce=signed_tx.nonce,
                to=signed_tx.to,
                data=signed_tx.data,
                sender_pub_key=signed_tx.sender_pub_key_unsafe,
                v=signed_tx.v,
                r=signed_tx.r,
                s=signed_tx.s,
            ),
            lying,
        )
        with pytest.raises(RecoveredKeyMismatch):
            tx.get_sender_public_key()

    def test_failing_backend_is_an_invalid_signature(self, signed_tx):
        def broken_recover(*args, **kwargs):
            raise RuntimeError("recovery backend unavailable")

        broken = CryptoBackend(keccak256=poseidon, ecrecover=broken_recover)
        tx = L2Transaction(
            L2TxData(
                nonce=signed_tx.nonce,
                to=signed_tx.to,
                data=signed_tx.data,
                sender_pub_key=signed_tx.sender_pub_key_unsafe,
                v=signed_tx.v,
                r=signed_tx.r,
                s=signed_tx.s,
            ),
            broken,
        )
        assert tx.verify_signature() is False
        with pytest.raises(RuntimeError):
            tx.get_sender_public_key()


class TestWireFormat:
    """Tests for RLP serialization and decoding."""

    def test_round_trip_is_byte_identical(self, backend, signed_tx):
        serialized = signed_tx.serialize()
        decoded = create_l2_tx_from_rlp(serialized, backend)
        assert decoded.serialize() == serialized
        assert decoded.verify_signature()
        assert signed_tx.verify_signature()

    def test_raw_has_seven_fields(self, signed_tx):
        raw = signed_tx.raw()
        assert len(raw) == TxConstants.RLP_FIELD_COUNT
        assert raw[4] == bytes([TxConstants.FIXED_V])

    def test_unsigned_round_trip(self, backend, unsigned_tx):
        decoded = create_l2_tx_from_rlp(unsigned_tx.serialize(), backend)
        assert not decoded.is_signed()
        assert decoded.serialize() == unsigned_tx.serialize()

    def test_hash_is_poseidon_of_serialization(self, signed_tx):
        assert signed_tx.hash() == poseidon(signed_tx.serialize())

    def test_rejects_wrong_field_count(self, backend, signed_tx):
        with pytest.raises(InvalidTransaction, match="Expected 7 values"):
            create_l2_tx_from_bytes_array(signed_tx.raw()[:6], backend)

    def test_rejects_leading_zeroes(self, backend, signed_tx):
        raw = signed_tx.raw()
        raw[0] = b"\x00\x01"
        with pytest.raises(InvalidTransaction, match="leading zeroes"):
            create_l2_tx_from_bytes_array(raw, backend)

    def test_rejects_non_list_payload(self, backend):
        with pytest.raises(InvalidTransaction):
            create_l2_tx_from_rlp(rlp.encode(b"single"), backend)

    def test_rejects_garbage(self, backend):
        with pytest.raises(InvalidTransaction):
            create_l2_tx_from_rlp(b"\xf8\xff\x00", backend)

    def test_rejects_nested_values(self, backend, signed_tx):
        raw = signed_tx.raw()
        raw[2] = [b"nested"]
        with pytest.raises(InvalidTransaction):
            create_l2_tx_from_rlp(rlp.encode(raw), backend)

    def test_to_dict(self, signed_tx):
        data = signed_tx.to_dict()
        assert data["nonce"] == 1
        assert data["to"] == RECIPIENT
        assert data["data"].startswith("0xa9059cbb")
