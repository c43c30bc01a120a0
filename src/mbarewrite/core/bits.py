"""Bit-vector ring constants and arithmetic.

This module contains the width tables and the :class:`BitVectorRing` used by
every other component. Values are plain Python ints kept in ``[0, 2**w)``,
so all widths up to 128 bits are exact.
"""

from __future__ import annotations

import enum

from mbarewrite.errors import NotInvertible

# =============================================================================
# Width Constants
# =============================================================================


class Width(enum.IntEnum):
    """Supported integer widths in bits."""

    W8 = 8
    W16 = 16
    W32 = 32
    W64 = 64
    W128 = 128

    @classmethod
    def from_value(cls, value: int | str | Width) -> Width:
        """Resolve ``8``, ``"8"``, ``"u8"`` or ``"W8"`` to a :class:`Width`.

        >>> Width.from_value("u32")
        <Width.W32: 32>
        """
        if isinstance(value, Width):
            return value
        text = str(value).strip().lower().lstrip("uw")
        try:
            return cls(int(text))
        except ValueError:
            supported = ", ".join(str(int(w)) for w in cls)
            raise ValueError(
                f"Unsupported width {value!r}; expected one of {supported}"
            ) from None


# Modulus 2^w for each supported width
# Example: For 8-bit, modulus is 0x100 (256)
MODULUS_TABLE: dict[int, int] = {
    8: 0x100,                                    # 2^8
    16: 0x10000,                                 # 2^16
    32: 0x100000000,                             # 2^32
    64: 0x10000000000000000,                     # 2^64
    128: 0x100000000000000000000000000000000,    # 2^128
}

# All-ones mask, the value of the boolean constant "true" lifted to w bits
MASK_TABLE: dict[int, int] = {
    8: 0xFF,
    16: 0xFFFF,
    32: 0xFFFFFFFF,
    64: 0xFFFFFFFFFFFFFFFF,
    128: 0xFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFF,
}

# Most significant bit for each width, used to decide the printed sign
MSB_TABLE: dict[int, int] = {
    8: 0x80,
    16: 0x8000,
    32: 0x80000000,
    64: 0x8000000000000000,
    128: 0x80000000000000000000000000000000,
}


# =============================================================================
# Conversion Functions
# =============================================================================


def unsigned_to_signed(unsigned_value: int, nb_bits: int) -> int:
    """Convert an unsigned integer to its two's complement signed value.

    Args:
        unsigned_value: The unsigned integer value
        nb_bits: The width in bits (8, 16, 32, 64 or 128)

    Returns:
        The signed integer representation
    """
    value = unsigned_value & MASK_TABLE[nb_bits]
    if value & MSB_TABLE[nb_bits]:
        return value - MODULUS_TABLE[nb_bits]
    return value


def signed_to_unsigned(signed_value: int, nb_bits: int) -> int:
    """Convert a signed integer to its unsigned representation.

    Args:
        signed_value: The signed integer value
        nb_bits: The width in bits (8, 16, 32, 64 or 128)

    Returns:
        The unsigned integer representation
    """
    return signed_value & MASK_TABLE[nb_bits]


# =============================================================================
# Ring Arithmetic
# =============================================================================


class BitVectorRing:
    """The ring Z/2^w together with the bitwise operations on w-bit words.

    Every method accepts any Python int and returns the canonical
    representative in ``[0, modulus)``.

    >>> ring = BitVectorRing(8)
    >>> ring.mul(200, 3)
    88
    >>> ring.valuation(24), ring.odd_part(24)
    (3, 3)
    >>> ring.invert(3)
    171
    """

    __slots__ = ("width", "modulus", "mask")

    def __init__(self, width: int | Width):
        self.width = int(Width.from_value(width))
        self.modulus = MODULUS_TABLE[self.width]
        self.mask = MASK_TABLE[self.width]

    def __repr__(self) -> str:
        return f"BitVectorRing(width={self.width})"

    def __eq__(self, other: object) -> bool:
        return isinstance(other, BitVectorRing) and other.width == self.width

    def __hash__(self) -> int:
        return hash(("BitVectorRing", self.width))

    # Arithmetic -------------------------------------------------------------
    def reduce(self, x: int) -> int:
        return x & self.mask

    def add(self, a: int, b: int) -> int:
        return (a + b) & self.mask

    def sub(self, a: int, b: int) -> int:
        return (a - b) & self.mask

    def mul(self, a: int, b: int) -> int:
        return (a * b) & self.mask

    def neg(self, a: int) -> int:
        return -a & self.mask

    # Bitwise ----------------------------------------------------------------
    def bitand(self, a: int, b: int) -> int:
        return a & b & self.mask

    def bitor(self, a: int, b: int) -> int:
        return (a | b) & self.mask

    def bitxor(self, a: int, b: int) -> int:
        return (a ^ b) & self.mask

    def bitnot(self, a: int) -> int:
        return ~a & self.mask

    @property
    def ones(self) -> int:
        """The all-ones word, i.e. ``-1``."""
        return self.mask

    # 2-adic structure -------------------------------------------------------
    def is_unit(self, x: int) -> bool:
        """Units of Z/2^w are exactly the odd elements."""
        return bool(x & 1)

    def valuation(self, x: int) -> int:
        """Number of trailing zero bits of ``x``, with ``valuation(0) == width``."""
        x &= self.mask
        if x == 0:
            return self.width
        return (x & -x).bit_length() - 1

    def odd_part(self, x: int) -> int:
        """``x`` with its trailing zero bits removed (0 stays 0)."""
        x &= self.mask
        if x == 0:
            return 0
        return x >> self.valuation(x)

    def invert(self, x: int) -> int:
        """Multiplicative inverse of an odd element.

        Raises:
            NotInvertible: If ``x`` is even.
        """
        x &= self.mask
        if not x & 1:
            raise NotInvertible(f"{x} is not a unit modulo 2^{self.width}")
        return pow(x, -1, self.modulus)

    def divide(self, a: int, d: int) -> int:
        """Return some ``q`` with ``q * d == a`` whenever ``valuation(a) >= valuation(d)``.

        The quotient is computed as ``(a >> v) * invert(odd_part(d))`` where
        ``v = valuation(d)``, which is exact because ``odd_part(d)`` is a unit.

        Raises:
            NotInvertible: If ``d`` does not divide ``a``.
        """
        a &= self.mask
        d &= self.mask
        if a == 0:
            return 0
        v = self.valuation(d)
        if d == 0 or self.valuation(a) < v:
            raise NotInvertible(
                f"{d} does not divide {a} modulo 2^{self.width}"
            )
        return self.mul(a >> v, self.invert(d >> v))

    # Printing helpers -------------------------------------------------------
    def is_negative(self, x: int) -> bool:
        """Should ``x`` be printed as ``-(modulus - x)``."""
        return (x & self.mask) > MSB_TABLE[self.width]

    def to_signed(self, x: int) -> int:
        return unsigned_to_signed(x, self.width)

    def random(self, rng) -> int:
        """Draw a uniform element using ``rng`` (a :class:`random.Random`)."""
        return rng.getrandbits(self.width)


__all__ = [
    # Constants
    "Width",
    "MODULUS_TABLE",
    "MASK_TABLE",
    "MSB_TABLE",
    # Conversion functions
    "unsigned_to_signed",
    "signed_to_unsigned",
    # Ring
    "BitVectorRing",
]
