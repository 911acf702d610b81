"""Fixed-point money and calendar date helpers.

:class:`Money` stores an integer count of 1/10000ths of the base currency.
Parsing goes through :class:`~decimal.Decimal` so no binary float error leaks
into the stored units.  Ties round away from zero, so ``1.23455`` becomes
``12346`` units and ``-1.23455`` becomes ``-12346`` units.

This module has no internal imports apart from :mod:`personal_finance.errors`.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation, localcontext

from personal_finance.errors import InvalidDate, InvalidFormat

PRECISION = 4
FACTOR = 10**PRECISION

DATE_FORMAT = "%Y-%m-%d"
_DATE_RE = re.compile(r"\d{4}-\d{2}-\d{2}")
_NUMBER_RE = re.compile(r"[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?", re.ASCII)

# Working precision for the scale-and-round step.  Wide enough that any
# amount a provider can send survives parse -> format unchanged.
_WORKING_PRECISION = 100
_ONE = Decimal(1)


@dataclass(frozen=True, order=True)
class Money:
    """An immutable fixed-point amount.

    Attributes:
        units: Integer count of 1/10000ths of a currency unit.  ``Money(12345)``
            is ``1.2345``.
    """

    units: int = 0

    @classmethod
    def parse(cls, value: object) -> Money:
        """Parse a provider or JSON value into :class:`Money`.

        Accepts bare numbers (``int``, ``float``, ``Decimal``) and numeric
        strings in plain ASCII decimal or exponent notation; digit grouping
        underscores and non-ASCII digits are rejected.  A single layer of
        matching ``"`` or ``'`` quotes around a string is stripped first, so
        both ``12.5`` and ``"12.5"`` JSON forms are accepted.

        Raises:
            InvalidFormat: If the value is not numeric after unquoting.
        """
        if isinstance(value, Money):
            return value
        if isinstance(value, bool):
            raise InvalidFormat(f"invalid money value {value!r}")
        if isinstance(value, int):
            return cls(value * FACTOR)
        if isinstance(value, float):
            text = repr(value)
        elif isinstance(value, Decimal):
            return cls.from_decimal(value)
        elif isinstance(value, str):
            text = _unquote(value.strip())
        else:
            raise InvalidFormat(f"invalid money value {value!r}")

        text = text.strip()
        if not _NUMBER_RE.fullmatch(text):
            raise InvalidFormat(f"invalid money value {value!r}")
        try:
            amount = Decimal(text)
        except InvalidOperation:
            raise InvalidFormat(f"invalid money value {value!r}") from None
        return cls.from_decimal(amount)

    @classmethod
    def from_decimal(cls, amount: Decimal) -> Money:
        """Scale *amount* to units, rounding ties away from zero."""
        if not amount.is_finite():
            raise InvalidFormat(f"invalid money value {amount!r}")
        with localcontext() as ctx:
            ctx.prec = _WORKING_PRECISION
            scaled = (amount * FACTOR).quantize(_ONE, rounding=ROUND_HALF_UP)
        return cls(int(scaled))

    def to_decimal(self) -> Decimal:
        return Decimal(self.units).scaleb(-PRECISION)

    def add(self, other: Money) -> Money:
        return Money(self.units + other.units)

    def __add__(self, other: object) -> Money:
        if not isinstance(other, Money):
            return NotImplemented
        return Money(self.units + other.units)

    def __sub__(self, other: object) -> Money:
        if not isinstance(other, Money):
            return NotImplemented
        return Money(self.units - other.units)

    def __neg__(self) -> Money:
        return Money(-self.units)

    def __bool__(self) -> bool:
        return self.units != 0

    def __str__(self) -> str:
        return format_money(self)


ZERO = Money(0)


def parse_money(value: object) -> Money:
    """Module-level alias for :meth:`Money.parse`."""
    return Money.parse(value)


def format_money(money: Money) -> str:
    """Render *money* with exactly four fraction digits, e.g. ``-56.7890``.

    Integer arithmetic only; no thousands separators.
    """
    sign = "-" if money.units < 0 else ""
    whole, frac = divmod(abs(money.units), FACTOR)
    return f"{sign}{whole}.{frac:0{PRECISION}d}"


def parse_date(text: str) -> date | None:
    """Parse a ``YYYY-MM-DD`` string.

    An empty string is the "zero date" and yields ``None``.

    Raises:
        InvalidDate: If *text* is non-empty and not a valid calendar date.
    """
    if not text:
        return None
    if not isinstance(text, str) or not _DATE_RE.fullmatch(text):
        raise InvalidDate(f"invalid date {text!r}, expected YYYY-MM-DD")
    try:
        return datetime.strptime(text, DATE_FORMAT).date()
    except ValueError:
        raise InvalidDate(f"invalid date {text!r}, expected YYYY-MM-DD") from None


def format_date(value: date | None) -> str:
    """Inverse of :func:`parse_date`; ``None`` renders as an empty string."""
    if value is None:
        return ""
    return value.strftime(DATE_FORMAT)


def _unquote(text: str) -> str:
    if len(text) >= 2 and text[0] == text[-1] and text[0] in ("'", '"'):
        return text[1:-1]
    return text
