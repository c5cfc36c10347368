"""Byte and hex helpers shared by the crypto, transaction and state layers."""

from typing import Iterable, Union

from eth_utils import big_endian_to_int, int_to_big_endian, to_bytes, to_hex

BytesLike = Union[bytes, bytearray, memoryview]


def pad32(data: BytesLike) -> bytes:
    """Left-pad bytes to a 32-byte word (big-endian value is unchanged)"""
    data = bytes(data)
    if len(data) > 32:
        raise ValueError(f"Cannot pad {len(data)} bytes into a 32-byte word")
    return data.rjust(32, b"\x00")


def int_to_bytes32(value: int) -> bytes:
    """Encode a non-negative integer as a 32-byte big-endian word"""
    if value < 0:
        raise ValueError("Negative integers cannot be encoded")
    return value.to_bytes(32, byteorder="big")


def int_to_unpadded_bytes(value: int) -> bytes:
    """Minimal big-endian encoding; zero encodes as empty bytes (RLP canonical)"""
    if value < 0:
        raise ValueError("Negative integers cannot be encoded")
    if value == 0:
        return b""
    return int_to_big_endian(value)


def bytes_to_int(data: BytesLike) -> int:
    return big_endian_to_int(bytes(data)) if len(data) else 0


def batch_int_to_32_bytes_each(*values: int) -> bytes:
    """Concatenate integers as consecutive 32-byte words"""
    return b"".join(int_to_bytes32(v) for v in values)


def concat_bytes(parts: Iterable[BytesLike]) -> bytes:
    return b"".join(bytes(p) for p in parts)


def unpad_bytes(data: BytesLike) -> bytes:
    """Strip leading zero bytes"""
    return bytes(data).lstrip(b"\x00")


def hex_to_bytes(value: str) -> bytes:
    """Decode a hex string; the 0x prefix is optional and ``"0x"`` is empty"""
    if not isinstance(value, str):
        raise TypeError(f"Expected a hex string, got {type(value).__name__}")
    return to_bytes(hexstr=value)


def bytes_to_hex(data: BytesLike) -> str:
    return to_hex(bytes(data))
