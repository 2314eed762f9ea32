"""Resource quantity parsing and canonical formatting.

Quantities follow the cluster's notation: a signed decimal number followed
by an optional suffix, either binary SI (``Ki``, ``Mi`` ...), decimal SI
(``m``, ``k``, ``M`` ...) or a decimal exponent (``1e3``). Two quantities are
equal when their numeric values are equal, whatever their spelling.
"""

import re
from decimal import ROUND_CEILING, Decimal, InvalidOperation
from functools import total_ordering
from typing import Union


BINARY_SUFFIXES = {
    "Ki": 1,
    "Mi": 2,
    "Gi": 3,
    "Ti": 4,
    "Pi": 5,
    "Ei": 6,
}

DECIMAL_SUFFIXES = {
    "n": -9,
    "u": -6,
    "m": -3,
    "": 0,
    "k": 3,
    "M": 6,
    "G": 9,
    "T": 12,
    "P": 15,
    "E": 18,
}

_DECIMAL_BY_EXPONENT = {exp: suffix for suffix, exp in DECIMAL_SUFFIXES.items()}

_QUANTITY_RE = re.compile(
    r"^(?P<number>[+-]?(?:\d+\.?\d*|\.\d+))"
    r"(?P<suffix>Ki|Mi|Gi|Ti|Pi|Ei|[numkMGTPE]|[eE][+-]?\d+)?$"
)

BINARY_SI = "BinarySI"
DECIMAL_SI = "DecimalSI"
DECIMAL_EXPONENT = "DecimalExponent"

# Values are rounded up to nano units, the finest precision the cluster keeps.
_NANO = Decimal("1e-9")


class QuantityError(ValueError):
    """Raised when a quantity string cannot be parsed."""


@total_ordering
class Quantity:
    """Parsed resource quantity.

    Example:
        >>> Quantity.parse("0.5").canonical()
        '500m'
        >>> Quantity.parse("1024Mi") == Quantity.parse("1Gi")
        True
    """

    __slots__ = ("value", "format")

    def __init__(self, value: Decimal, format: str = DECIMAL_SI):
        self.value = value
        self.format = format

    @classmethod
    def parse(cls, text: Union[str, int, float, "Quantity"]) -> "Quantity":
        """Parse a quantity from its string form."""
        if isinstance(text, Quantity):
            return text
        if isinstance(text, bool):
            raise QuantityError(f"Invalid quantity: {text!r}")
        if isinstance(text, (int, float)):
            text = str(text)
        match = _QUANTITY_RE.match(text.strip())
        if not match:
            raise QuantityError(f"Invalid quantity: {text!r}")

        try:
            number = Decimal(match.group("number"))
        except InvalidOperation as e:
            raise QuantityError(f"Invalid quantity: {text!r}") from e

        suffix = match.group("suffix") or ""
        if suffix in BINARY_SUFFIXES:
            value = number * (Decimal(1024) ** BINARY_SUFFIXES[suffix])
            fmt = BINARY_SI
        elif suffix[:1] in ("e", "E"):
            value = number.scaleb(int(suffix[1:]))
            fmt = DECIMAL_EXPONENT
        else:
            value = number.scaleb(DECIMAL_SUFFIXES[suffix])
            fmt = DECIMAL_SI

        value = value.quantize(_NANO, rounding=ROUND_CEILING) if value % _NANO else value
        return cls(value, fmt)

    def canonical(self) -> str:
        """Return the canonical string form of this quantity."""
        value = self.value
        if value == 0:
            return "0"

        if self.format == BINARY_SI and value == value.to_integral_value() and abs(value) >= 1024:
            exponent = 0
            integral = int(value)
            while exponent < 6 and integral % 1024 == 0:
                integral //= 1024
                exponent += 1
            if exponent:
                suffix = {v: k for k, v in BINARY_SUFFIXES.items()}[exponent]
                return f"{integral}{suffix}"

        mantissa, exponent = _split_decimal(value)
        if self.format == DECIMAL_EXPONENT:
            return f"{mantissa}e{exponent}" if exponent else str(mantissa)
        return f"{mantissa}{_DECIMAL_BY_EXPONENT[exponent]}"

    def __eq__(self, other):
        if isinstance(other, str):
            try:
                other = Quantity.parse(other)
            except QuantityError:
                return NotImplemented
        if not isinstance(other, Quantity):
            return NotImplemented
        return self.value == other.value

    def __lt__(self, other):
        if isinstance(other, str):
            other = Quantity.parse(other)
        if not isinstance(other, Quantity):
            return NotImplemented
        return self.value < other.value

    def __hash__(self):
        return hash(self.value.normalize())

    def __str__(self):
        return self.canonical()

    def __repr__(self):
        return f"Quantity({self.canonical()!r})"


def _split_decimal(value: Decimal):
    """Split into an integer mantissa and the largest usable power-of-1000 exponent."""
    exponent = -9
    scaled = value.scaleb(9)
    while exponent < 18:
        next_scaled = scaled.scaleb(-3)
        if next_scaled != next_scaled.to_integral_value():
            break
        scaled = next_scaled
        exponent += 3
    return int(scaled), exponent


def canonical_quantity(text: Union[str, int, float]) -> str:
    """Canonicalise a quantity string (``"0.5"`` -> ``"500m"``)."""
    return Quantity.parse(text).canonical()


def quantities_equal(a: Union[str, Quantity], b: Union[str, Quantity]) -> bool:
    """Compare two quantities numerically."""
    return Quantity.parse(a) == Quantity.parse(b)
