"""
Module: charge_kernel.db.types
Responsibility: Column-type conventions and utility functions for ledger
    amounts.  Centralizes precision, rounding, and currency validation so that
    every model, plugin and service uses identical definitions.
Architecture position: Kernel > DB.  May be imported by models/, domain/,
    plugins/, services/, and selectors/.  MUST NOT import from any of those.

Invariants enforced:
    - Ledger amounts carry exactly MONEY_DECIMAL_PLACES fraction digits.
      round_money() is the ONLY sanctioned rounding function for amounts.
    - No floats for monetary values.  Settings may carry JSON numbers; they
      are converted through str() into Decimal by to_decimal().
    - Account currencies are ISO 4217 codes.

Failure modes:
    - InvalidCurrencyError on invalid ISO 4217 code.
    - decimal.InvalidOperation from to_decimal() on non-numeric input.
"""

from decimal import ROUND_HALF_UP, Decimal
from typing import Any

from sqlalchemy import Numeric

from charge_kernel.exceptions import InvalidCurrencyError

MONEY_DECIMAL_PLACES = 2
DEFAULT_ROUNDING = ROUND_HALF_UP

# Column type for signed ledger amounts
MONEY_COLUMN = Numeric(38, MONEY_DECIMAL_PLACES)


def to_decimal(value: Any) -> Decimal:
    """
    Convert an int, str, float or Decimal into a Decimal without binary
    float artifacts.

    Floats arrive from JSON settings blobs; going through str() keeps
    ``0.1`` as ``Decimal("0.1")``.
    """
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        raise TypeError("Boolean is not a monetary value")
    return Decimal(str(value))


def round_money(
    value: Decimal,
    decimal_places: int = MONEY_DECIMAL_PLACES,
    rounding: str = DEFAULT_ROUNDING,
) -> Decimal:
    """
    Round a monetary value to the ledger precision.

    Postconditions: Returns value quantized to ``decimal_places`` using
        ROUND_HALF_UP by default.
    """
    quantum = Decimal(1).scaleb(-decimal_places)
    return to_decimal(value).quantize(quantum, rounding=rounding)


def format_money(value: Decimal) -> str:
    """Render an amount with exactly two fraction digits (e.g. ``-100.00``)."""
    return str(round_money(value))


def amounts_equal(left: Decimal | None, right: Decimal | None) -> bool:
    """Compare two amounts at ledger precision.  None only equals None."""
    if left is None or right is None:
        return left is None and right is None
    return round_money(left) == round_money(right)


ISO_4217_CURRENCIES: frozenset[str] = frozenset({
    "USD", "EUR", "GBP", "JPY", "CHF", "CAD", "AUD", "NZD",
    "AED", "ARS", "BRL", "CLP", "CNY", "COP", "CZK", "DKK", "HKD", "HUF",
    "IDR", "ILS", "INR", "KRW", "MXN", "MYR", "NOK", "PEN", "PHP", "PLN",
    "RON", "SAR", "SEK", "SGD", "THB", "TRY", "TWD", "UAH", "ZAR",
    # Non-monetary units used for point-style ledgers
    "XXX", "XTS",
})


def validate_currency(currency: str) -> str:
    """
    Validate that a currency code is a supported ISO 4217 code.

    Returns:
        The validated currency code (uppercase, trimmed).

    Raises:
        InvalidCurrencyError: If the currency code is not valid.
    """
    if not currency or not isinstance(currency, str):
        raise InvalidCurrencyError(str(currency))

    normalized = currency.upper().strip()
    if len(normalized) != 3 or normalized not in ISO_4217_CURRENCIES:
        raise InvalidCurrencyError(currency)

    return normalized


def format_plain(value: Decimal) -> str:
    """Render a quantity without exponent or trailing zeros (``10``, ``7.5``)."""
    text = format(to_decimal(value).normalize(), "f")
    return "0" if text in ("-0", "") else text
