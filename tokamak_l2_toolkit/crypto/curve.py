"""
JubJub twisted Edwards curve over the BLS12-381 scalar field.

    -x^2 + y^2 = 1 + d x^2 y^2,   d = -(10240 / 10241)

Points are kept in extended coordinates (X : Y : Z : T) with x = X/Z,
y = Y/Z and T = XY/Z. The addition law is complete for this curve, so one
formula covers doubling and the identity.

The 32-byte encoding is little-endian y with the parity of x in the top
bit of the last byte.
"""

from typing import Optional, Tuple

from py_ecc.optimized_bls12_381 import curve_order

from tokamak_l2_toolkit.shared.exceptions import InvalidPointEncoding
from tokamak_l2_toolkit.utils import BytesLike, int_to_bytes32

FIELD_MODULUS = int(curve_order)
EDWARDS_A = FIELD_MODULUS - 1
EDWARDS_D = (-10240 * pow(10241, FIELD_MODULUS - 2, FIELD_MODULUS)) % FIELD_MODULUS

# Order of the prime-order subgroup; the full group has cofactor 8
ORDER = 6554484396890773809930967563523245729705921265872317281365359162392183254199

_P = FIELD_MODULUS


def _inv(x: int) -> int:
    if x % _P == 0:
        raise ZeroDivisionError("Zero has no inverse")
    return pow(x, _P - 2, _P)


def _sqrt(n: int) -> Optional[int]:
    """Tonelli-Shanks square root modulo the field prime, or None."""
    n %= _P
    if n == 0:
        return 0
    if pow(n, (_P - 1) // 2, _P) != 1:
        return None

    q, s = _P - 1, 0
    while q % 2 == 0:
        q //= 2
        s += 1
    z = 2
    while pow(z, (_P - 1) // 2, _P) != _P - 1:
        z += 1

    m, c, t, r = s, pow(z, q, _P), pow(n, q, _P), pow(n, (q + 1) // 2, _P)
    while t != 1:
        i, t2 = 0, t
        while t2 != 1:
            t2 = t2 * t2 % _P
            i += 1
        b = pow(c, 1 << (m - i - 1), _P)
        m, c = i, b * b % _P
        t, r = t * c % _P, r * b % _P
    return r


def _recover_x(y: int, odd: bool) -> int:
    """Solve the curve equation for x given y and the parity of x."""
    y2 = y * y % _P
    num = (y2 - 1) % _P
    den = (EDWARDS_D * y2 - EDWARDS_A) % _P
    x = _sqrt(num * _inv(den) % _P)
    if x is None:
        raise InvalidPointEncoding(f"y = {hex(y)} is not the coordinate of a JubJub point")
    if x == 0 and odd:
        raise InvalidPointEncoding("Invalid sign bit for x = 0")
    if (x & 1) != odd:
        x = _P - x
    return x


class JubJubPoint:
    """A JubJub group element."""

    __slots__ = ("X", "Y", "Z", "T")

    def __init__(self, X: int, Y: int, Z: int, T: int):
        self.X = X % _P
        self.Y = Y % _P
        self.Z = Z % _P
        self.T = T % _P

    # -- constructors -------------------------------------------------

    @classmethod
    def identity(cls) -> "JubJubPoint":
        return cls(0, 1, 1, 0)

    @classmethod
    def from_affine(cls, x: int, y: int) -> "JubJubPoint":
        if not (0 <= x < _P and 0 <= y < _P):
            raise InvalidPointEncoding("Affine coordinates must be field elements")
        point = cls(x, y, 1, x * y)
        if not point.is_on_curve():
            raise InvalidPointEncoding(f"({hex(x)}, {hex(y)}) is not on JubJub")
        return point

    @classmethod
    def from_bytes(cls, data: BytesLike) -> "JubJubPoint":
        """Decode a 32-byte compressed point."""
        data = bytes(data)
        if len(data) != 32:
            raise InvalidPointEncoding(
                f"Compressed JubJub points are 32 bytes, got {len(data)}"
            )
        raw = int.from_bytes(data, "little")
        odd = bool(raw >> 255)
        y = raw & ((1 << 255) - 1)
        if y >= _P:
            raise InvalidPointEncoding("y coordinate is not a field element")
        return cls.from_affine(_recover_x(y, odd), y)

    # -- encodings ----------------------------------------------------

    def to_affine(self) -> Tuple[int, int]:
        z_inv = _inv(self.Z)
        return self.X * z_inv % _P, self.Y * z_inv % _P

    @property
    def x(self) -> int:
        return self.to_affine()[0]

    @property
    def y(self) -> int:
        return self.to_affine()[1]

    def to_bytes(self) -> bytes:
        x, y = self.to_affine()
        return (y | ((x & 1) << 255)).to_bytes(32, "little")

    def to_affine_bytes(self) -> bytes:
        """64-byte ``pad32(x) || pad32(y)``."""
        x, y = self.to_affine()
        return int_to_bytes32(x) + int_to_bytes32(y)

    # -- group law ----------------------------------------------------

    def is_on_curve(self) -> bool:
        x, y = self.to_affine()
        x2, y2 = x * x % _P, y * y % _P
        return (EDWARDS_A * x2 + y2) % _P == (1 + EDWARDS_D * x2 * y2) % _P

    def is_identity(self) -> bool:
        return self == JubJubPoint.identity()

    def is_torsion_free(self) -> bool:
        return (self * ORDER).is_identity()

    def __add__(self, other: "JubJubPoint") -> "JubJubPoint":
        if not isinstance(other, JubJubPoint):
            return NotImplemented
        a = self.X * other.X % _P
        b = self.Y * other.Y % _P
        c = self.T * EDWARDS_D % _P * other.T % _P
        d = self.Z * other.Z % _P
        e = ((self.X + self.Y) * (other.X + other.Y) - a - b) % _P
        f = (d - c) % _P
        g = (d + c) % _P
        h = (b - EDWARDS_A * a) % _P
        return JubJubPoint(e * f, g * h, f * g, e * h)

    def __neg__(self) -> "JubJubPoint":
        return JubJubPoint(-self.X, self.Y, self.Z, -self.T)

    def __sub__(self, other: "JubJubPoint") -> "JubJubPoint":
        return self + (-other)

    def __mul__(self, scalar: int) -> "JubJubPoint":
        if not isinstance(scalar, int):
            return NotImplemented
        if scalar < 0:
            return (-self) * (-scalar)
        result = JubJubPoint.identity()
        addend = self
        while scalar:
            if scalar & 1:
                result = result + addend
            addend = addend + addend
            scalar >>= 1
        return result

    __rmul__ = __mul__

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, JubJubPoint):
            return NotImplemented
        return (self.X * other.Z - other.X * self.Z) % _P == 0 and (
            self.Y * other.Z - other.Y * self.Z
        ) % _P == 0

    def __hash__(self) -> int:
        return hash(self.to_affine())

    def __repr__(self) -> str:
        x, y = self.to_affine()
        return f"JubJubPoint(x={hex(x)}, y={hex(y)})"


# Standard prime-order subgroup generator
BASE_X = 0x11DAFE5D23E1218086A365B99FBF3D3BE72F6AFD7D1F72623E6B071492D1122B
BASE_Y = 0x1D523CF1DDAB1A1793132E78C866C0C33E26BA5CC220FED7CC3F870E59D292AA

BASE = JubJubPoint.from_affine(BASE_X, BASE_Y)
IDENTITY = JubJubPoint.identity()
