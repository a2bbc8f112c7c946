"""Currency conversion helpers for the Razorpay API and key obfuscation for logging.

Razorpay represents monetary amounts as integers in the smallest currency unit
(paise for INR). Most currencies use 100 subunits per unit; a subset of
"zero-decimal" currencies are sent as whole units.
"""

from decimal import ROUND_HALF_UP, Decimal

_OBFUSCATE_VISIBLE_CHARS = 4

ZERO_DECIMAL_CURRENCIES: frozenset[str] = frozenset(
    {
        "BIF",
        "CLP",
        "DJF",
        "GNF",
        "ISK",
        "JPY",
        "KMF",
        "KRW",
        "PYG",
        "RWF",
        "UGX",
        "VND",
        "VUV",
        "XAF",
        "XOF",
        "XPF",
    }
)


def to_minor_units(amount: Decimal, currency: str) -> int:
    """Convert a Decimal amount to the integer the Razorpay API expects.

    ``Decimal("250.00")`` in INR becomes ``25000`` paise. Fractions of a
    subunit are rounded half up.

    Args:
        amount: The monetary amount as a :class:`~decimal.Decimal`.
        currency: An ISO 4217 currency code (case-insensitive).

    Returns:
        The amount as an integer in the smallest currency unit.
    """
    if currency.upper() in ZERO_DECIMAL_CURRENCIES:
        return int(amount.to_integral_value(rounding=ROUND_HALF_UP))
    return int((amount * 100).to_integral_value(rounding=ROUND_HALF_UP))


def from_minor_units(amount: int, currency: str) -> Decimal:
    """Convert an integer amount from the Razorpay API back to a Decimal.

    Inverse of :func:`to_minor_units`.

    Args:
        amount: The integer amount in the smallest currency unit.
        currency: An ISO 4217 currency code (case-insensitive).

    Returns:
        The amount as a :class:`~decimal.Decimal` with two decimal places for
        normal currencies.
    """
    if currency.upper() in ZERO_DECIMAL_CURRENCIES:
        return Decimal(str(amount))
    return (Decimal(str(amount)) / 100).quantize(Decimal("0.01"))


def obfuscate_key(key: str) -> str:
    """Mask all but the last four characters of a key for log output."""
    if len(key) < _OBFUSCATE_VISIBLE_CHARS:
        return "****"
    return "****" + key[-_OBFUSCATE_VISIBLE_CHARS:]
