"""
Minor-unit conversion.
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Union

from ..exceptions import ValidationError

ZERO_DECIMAL_CURRENCIES = frozenset({"JPY", "KRW", "VND"})


def currency_decimal_places(currency: str) -> int:
    """Number of minor-unit decimal places used by ``currency``."""
    return 0 if currency.upper() in ZERO_DECIMAL_CURRENCIES else 2


def to_minor_units(amount: Union[int, float, str, Decimal], currency: str) -> int:
    """
    Convert an amount in major units to integer minor units.

    Args:
        amount: Amount in major units (e.g., 120.50)
        currency: ISO currency code

    Returns:
        Amount in minor units (e.g., 12050 for NGN, unchanged for JPY)

    Raises:
        ValidationError: If amount is not numeric

    Examples:
        >>> to_minor_units(120.00, "NGN")
        12000
        >>> to_minor_units(500, "JPY")
        500
    """
    if isinstance(amount, bool):
        raise ValidationError(f"Invalid amount: {amount!r}", fields=["amount"])
    try:
        # str() avoids binary float artefacts such as 0.29 * 100 = 28.999...
        value = Decimal(str(amount))
    except (InvalidOperation, ValueError) as e:
        raise ValidationError(f"Invalid amount: {amount!r}", fields=["amount"]) from e
    if not value.is_finite():
        raise ValidationError(f"Invalid amount: {amount!r}", fields=["amount"])

    places = currency_decimal_places(currency)
    return int((value * (Decimal(10) ** places)).quantize(Decimal(1), rounding=ROUND_HALF_UP))
