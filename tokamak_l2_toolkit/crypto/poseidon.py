"""
Poseidon hash over the BLS12-381 scalar field.

The permutation is fixed to arity 2 (state width 3, capacity 1) so that the
same hash is cheap inside the channel circuits. Arbitrary byte strings are
hashed by folding 32-byte words pairwise until one element remains.

Parameters
----------
- Field: BLS12-381 scalar field r (shared with the JubJub base field)
- t = 3, R_F = 8, R_P = 57, alpha = 5
- Round constants: Grain LFSR as in the Poseidon reference parameter script
- MDS: Cauchy matrix M[i][j] = 1 / (i + t + j)
"""

from collections import deque
from functools import lru_cache
from typing import Iterator, List, Sequence

from py_ecc.optimized_bls12_381 import curve_order

from tokamak_l2_toolkit.shared.constants import ProtocolConstants
from tokamak_l2_toolkit.shared.exceptions import ArityError
from tokamak_l2_toolkit.utils import BytesLike, bytes_to_int, int_to_bytes32

FIELD_MODULUS = int(curve_order)

POSEIDON_INPUTS = ProtocolConstants.POSEIDON_INPUTS
_T = ProtocolConstants.POSEIDON_WIDTH
_R_F = ProtocolConstants.POSEIDON_FULL_ROUNDS
_R_P = ProtocolConstants.POSEIDON_PARTIAL_ROUNDS
_ALPHA = ProtocolConstants.POSEIDON_ALPHA


# ---------------------------
# Parameter generation
# ---------------------------


def _grain_bits(n: int, t: int, r_f: int, r_p: int) -> Iterator[int]:
    """Self-shrinking Grain LFSR keyed by the permutation shape."""
    bits: List[int] = []
    for value, width in ((1, 2), (0, 4), (n, 12), (t, 12), (r_f, 10), (r_p, 10)):
        bits.extend((value >> (width - 1 - i)) & 1 for i in range(width))
    bits.extend([1] * 30)
    state = deque(bits, maxlen=80)

    def step() -> int:
        bit = state[62] ^ state[51] ^ state[38] ^ state[23] ^ state[13] ^ state[0]
        state.append(bit)
        return bit

    for _ in range(160):
        step()

    while True:
        bit = step()
        while bit == 0:
            step()
            bit = step()
        yield step()


@lru_cache(maxsize=None)
def round_constants() -> List[List[int]]:
    """Round constants, one row of ``t`` field elements per round."""
    n = FIELD_MODULUS.bit_length()
    bits = _grain_bits(n, _T, _R_F, _R_P)
    flat: List[int] = []
    while len(flat) < (_R_F + _R_P) * _T:
        candidate = 0
        for _ in range(n):
            candidate = (candidate << 1) | next(bits)
        if candidate < FIELD_MODULUS:
            flat.append(candidate)
    return [flat[i * _T : (i + 1) * _T] for i in range(_R_F + _R_P)]


@lru_cache(maxsize=None)
def mds_matrix() -> List[List[int]]:
    return [
        [pow(i + _T + j, FIELD_MODULUS - 2, FIELD_MODULUS) for j in range(_T)]
        for i in range(_T)
    ]


# ---------------------------
# Permutation
# ---------------------------


def _sbox(x: int) -> int:
    return pow(x, _ALPHA, FIELD_MODULUS)


def permute(state: Sequence[int]) -> List[int]:
    """Apply the Poseidon permutation to a width-``t`` state."""
    if len(state) != _T:
        raise ArityError(f"Poseidon state must have {_T} elements, got {len(state)}")
    rc = round_constants()
    mds = mds_matrix()
    half_full = _R_F // 2
    s = [v % FIELD_MODULUS for v in state]

    for rnd in range(_R_F + _R_P):
        s = [(v + c) % FIELD_MODULUS for v, c in zip(s, rc[rnd])]
        if rnd < half_full or rnd >= half_full + _R_P:
            s = [_sbox(v) for v in s]
        else:
            s[0] = _sbox(s[0])
        s = [sum(m * v for m, v in zip(row, s)) % FIELD_MODULUS for row in mds]
    return s


def poseidon_raw(inputs: Sequence[int]) -> int:
    """Hash exactly ``POSEIDON_INPUTS`` field elements into one."""
    if len(inputs) != POSEIDON_INPUTS:
        raise ArityError(
            f"Expected {POSEIDON_INPUTS} elements, but got {len(inputs)} elements"
        )
    if any(value < 0 for value in inputs):
        raise ValueError("Poseidon inputs must be non-negative")
    return permute([0, *inputs])[0]


def poseidon_n2x_compress(inputs: Sequence[int]) -> int:
    """Hash ``POSEIDON_INPUTS**2`` elements as a two-level tree of ``poseidon_raw``."""
    width = POSEIDON_INPUTS**2
    if len(inputs) != width:
        raise ArityError(f"Expected exactly {width} elements, but got {len(inputs)}")
    interim = [
        poseidon_raw(inputs[k * POSEIDON_INPUTS : (k + 1) * POSEIDON_INPUTS])
        for k in range(POSEIDON_INPUTS)
    ]
    return poseidon_raw(interim)


def fold(words: Sequence[int]) -> List[int]:
    """One folding round over a word sequence.

    The sequence is zero-padded to a multiple of the arity. When the padded
    length is also a multiple of arity², groups of arity² are compressed in
    one step (equivalent to two plain rounds over that group).
    """
    n_padded = -(-len(words) // POSEIDON_INPUTS) * POSEIDON_INPUTS
    if n_padded % (POSEIDON_INPUTS**2) == 0:
        group, compress = POSEIDON_INPUTS**2, poseidon_n2x_compress
    else:
        group, compress = POSEIDON_INPUTS, poseidon_raw

    out: List[int] = []
    for start in range(0, n_padded, group):
        chunk = list(words[start : start + group])
        chunk.extend([0] * (group - len(chunk)))
        out.append(compress(chunk))
    return out


def bytes_to_words(message: BytesLike) -> List[int]:
    """Split bytes into 32-byte big-endian words; a short final word keeps its value."""
    message = bytes(message)
    return [bytes_to_int(message[i : i + 32]) for i in range(0, len(message), 32)]


@lru_cache(maxsize=1)
def empty_digest() -> bytes:
    return int_to_bytes32(poseidon_raw([0] * POSEIDON_INPUTS))


def poseidon(message: BytesLike) -> bytes:
    """Hash an arbitrary byte string into a 32-byte digest.

    Words at or above the field modulus are reduced by the permutation.
    """
    if len(message) == 0:
        return empty_digest()
    acc = fold(bytes_to_words(message))
    while len(acc) > 1:
        acc = fold(acc)
    return int_to_bytes32(acc[0])
