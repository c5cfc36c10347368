from typing import Any, List

from eth_utils import is_address, is_hex, to_checksum_address

from tokamak_l2_toolkit.shared.constants import GlobalConstants


def validate_eth_address(address: str, param_name: str = "address") -> str:
    """Validate and return checksum ethereum address"""
    if not address or not isinstance(address, str):
        raise ValueError(
            f"Invalid {param_name}: address must be a non-empty string"
        )
    if not is_address(address):
        raise ValueError(
            f"Invalid {param_name}: {address} is not a valid Ethereum address"
        )
    return to_checksum_address(address)


def validate_network(network: str) -> str:
    """Validate and normalize network name"""
    if not isinstance(network, str):
        raise ValueError("Invalid network: must be a string")
    network = network.lower()
    if network not in GlobalConstants.NETWORKS:
        raise ValueError(
            f"Invalid network: {network}. Must be one of {GlobalConstants.NETWORKS}"
        )
    return network


def parse_hex_string(value: Any, label: str) -> str:
    """Require a 0x-prefixed hex string"""
    if not isinstance(value, str) or not value.startswith("0x") or not is_hex(value):
        raise ValueError(f"{label} must be a hex string with 0x prefix")
    return value


def parse_int_value(value: Any, label: str) -> int:
    """Parse an integer given as a number, a decimal string or a 0x hex string"""
    if isinstance(value, bool):
        raise ValueError(f"{label} must be an integer")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value, 16) if value.startswith("0x") else int(value)
        except ValueError:
            pass
    raise ValueError(f"{label} must be an integer")


def assert_string_array(value: Any, label: str) -> List[str]:
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise ValueError(f"{label} must be an array of strings")
    return value


def assert_int_array(value: Any, label: str) -> List[int]:
    if not isinstance(value, list) or not all(
        isinstance(v, int) and not isinstance(v, bool) for v in value
    ):
        raise ValueError(f"{label} must be an array of integers")
    return value
