"""
Unit tests for address derivation and L2 key helpers.
"""

import pytest
from eth_utils import is_checksum_address, keccak

from tokamak_l2_toolkit.crypto.address import derive_address, derive_checksum_address
from tokamak_l2_toolkit.crypto.curve import BASE, ORDER
from tokamak_l2_toolkit.crypto.poseidon import poseidon
from tokamak_l2_toolkit.shared.exceptions import InvalidPointEncoding
from tokamak_l2_toolkit.state.channel import get_l1_mapping_slot
from tokamak_l2_toolkit.utils import bytes_to_int, pad32
from tokamak_l2_toolkit.utils.keys import (
    LAYER_L1,
    LAYER_L2,
    channel_key_message,
    derive_l2_address_from_keys,
    derive_l2_keys_from_seed,
    derive_l2_keys_from_signature,
    derive_l2_mpt_key_from_address,
    get_user_storage_key,
)

HOLDER = "0x52f541764E6e90eeBc5c21Ff570De0e2D63766B6"


class TestDeriveAddress:
    """Tests for addresses derived from public keys."""

    def test_is_low_20_bytes_of_poseidon(self):
        point = BASE * 5
        assert derive_address(point) == poseidon(point.to_affine_bytes())[-20:]

    def test_accepts_point_compressed_and_affine(self):
        point = BASE * 5
        expected = derive_address(point)
        assert derive_address(point.to_bytes()) == expected
        assert derive_address(point.to_affine_bytes()) == expected

    @pytest.mark.parametrize("length", [0, 20, 33, 65])
    def test_rejects_other_lengths(self, length):
        with pytest.raises(InvalidPointEncoding):
            derive_address(b"\x01" * length)

    def test_checksum_form(self):
        assert is_checksum_address(derive_checksum_address(BASE))


class TestL2Keys:
    """Tests for key derivation from an L1 signature."""

    def test_is_deterministic(self, sender_keys):
        assert derive_l2_keys_from_signature("0x" + "11" * 32) == sender_keys

    def test_public_key_matches_private_key(self, sender_keys):
        assert 0 < sender_keys.private_scalar < ORDER
        assert sender_keys.public_point == BASE * sender_keys.private_scalar

    def test_private_key_is_poseidon_of_signature(self):
        signature = "0x" + "ab" * 65
        keys = derive_l2_keys_from_signature(signature)
        assert keys.private_scalar == bytes_to_int(poseidon(signature.encode())) % ORDER

    def test_different_signatures_give_different_keys(self, sender_keys, other_keys):
        assert sender_keys.public_key != other_keys.public_key

    def test_seed_is_padded_before_hashing(self):
        seed_hex = "0x" + pad32(b"alice").hex()
        assert derive_l2_keys_from_seed("alice") == derive_l2_keys_from_signature(seed_hex)

    def test_long_seed_keeps_last_32_bytes(self):
        seed = "participant " * 4
        tail = seed.encode("utf-8")[-32:]
        assert derive_l2_keys_from_seed(seed) == derive_l2_keys_from_signature(
            "0x" + tail.hex()
        )

    def test_exact_32_byte_seed_is_used_as_is(self):
        seed = "s" * 32
        assert derive_l2_keys_from_seed(seed) == derive_l2_keys_from_signature(
            "0x" + seed.encode("utf-8").hex()
        )

    def test_l2_address(self, sender_keys):
        address = derive_l2_address_from_keys(sender_keys)
        assert is_checksum_address(address)
        assert bytes.fromhex(address[2:]) == derive_address(sender_keys.public_key)

    def test_channel_message(self):
        assert channel_key_message("7") == "Tokamak-Private-App-Channel-7"


class TestUserStorageKey:
    """Tests for mapping keys under both layers."""

    def test_l1_is_keccak_of_padded_parts(self):
        expected = keccak(pad32(bytes.fromhex(HOLDER[2:])) + pad32(b"\x03"))
        assert get_user_storage_key([HOLDER, 3], LAYER_L1) == expected

    def test_l1_matches_abi_encoded_mapping_slot(self):
        assert get_user_storage_key([HOLDER, 3], LAYER_L1) == get_l1_mapping_slot(HOLDER, 3)

    def test_l2_is_poseidon_of_padded_parts(self):
        expected = poseidon(pad32(bytes.fromhex(HOLDER[2:])) + pad32(b"\x03"))
        assert get_user_storage_key([HOLDER, 3], LAYER_L2) == expected

    def test_accepts_bytes_parts(self):
        assert get_user_storage_key(
            [bytes.fromhex(HOLDER[2:]), b"\x03"], LAYER_L2
        ) == get_user_storage_key([HOLDER, 3], LAYER_L2)

    def test_unknown_layer(self):
        with pytest.raises(ValueError, match="Undefined layer"):
            get_user_storage_key([HOLDER, 3], "L3")

    @pytest.mark.parametrize("part", [True, 1.5, "not hex"])
    def test_rejects_bad_parts(self, part):
        with pytest.raises(TypeError):
            get_user_storage_key([part], LAYER_L2)

    def test_mpt_key_is_hex_word(self):
        key = derive_l2_mpt_key_from_address(HOLDER, 0)
        assert key.startswith("0x") and len(key) == 66
