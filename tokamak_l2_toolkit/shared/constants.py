"""All constants for the project"""

import os
from typing import Optional

from dotenv import load_dotenv

load_dotenv()


def _domain_tag(label: str) -> bytes:
    """UTF-8 encode a domain tag and left-pad it to a 32-byte word."""
    raw = label.encode("utf-8")
    if len(raw) > 32:
        raise ValueError(f"Domain tag too long: {label}")
    return raw.rjust(32, b"\x00")


class ProtocolConstants:
    """Fixed protocol parameters shared by the hash, the trees and the circuits"""

    # Poseidon input arity, also the branching factor of every Merkle tree
    POSEIDON_INPUTS = 2
    MT_DEPTH = 4
    MAX_MT_LEAVES = POSEIDON_INPUTS**MT_DEPTH

    # Poseidon permutation shape over the BLS12-381 scalar field
    POSEIDON_WIDTH = POSEIDON_INPUTS + 1
    POSEIDON_FULL_ROUNDS = 8
    POSEIDON_PARTIAL_ROUNDS = 57
    POSEIDON_ALPHA = 5

    # Non-breaking hyphens (U+2011); the UTF-8 tag fills the word exactly
    DST_NONCE = _domain_tag("TokamakL2JS\u2011EDDSA\u2011NONCE\u2011v1")


class TxConstants:
    """Transaction framing constants"""

    # v carries no meaning for EdDSA, it only keeps the legacy wire shape
    FIXED_V = 27
    FUNCTION_SELECTOR_LENGTH = 4
    MESSAGE_INPUT_WORDS = 9
    RLP_FIELD_COUNT = 7
    TRANSACTIONS_PER_BLOCK = 4

    # Gas values handed to the execution layer, never charged
    ANY_LARGE_GAS_LIMIT = 9999999999999999
    ANY_LARGE_GAS_PRICE = 9999999

    L2_PRV_KEY_MESSAGE = "Tokamak-Private-App-Channel-"


class GlobalConstants:
    """Runtime settings read from the environment"""

    NETWORKS = ("mainnet", "sepolia")

    RPC_URLS = {
        "mainnet": os.getenv("MAINNET_RPC_URL") or None,
        "sepolia": os.getenv("SEPOLIA_RPC_URL") or None,
    }

    LOG_LEVEL_ENV = "TOKAMAK_LOG_LEVEL"

    @staticmethod
    def get_rpc_url(network: Optional[str] = None) -> Optional[str]:
        """Get the RPC URL for a network, falling back to RPC_URL"""
        if network is not None:
            url = GlobalConstants.RPC_URLS.get(network.lower())
            if url:
                return url
        return os.getenv("RPC_URL") or None
