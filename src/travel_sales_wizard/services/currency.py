from __future__ import annotations

from decimal import Decimal, InvalidOperation

from travel_sales_wizard.domain.enums import BASE_CURRENCY, Currency
from travel_sales_wizard.domain.models import MonetaryAmount
from travel_sales_wizard.utils.errors import InvalidExchangeRate, ValidationError


def to_decimal(value: object, *, field: str) -> Decimal:
    """
    What it does:
    - Parses user/wire input (Decimal, int, float, numeric string) into a Decimal.

    Why it matters:
    - Amounts typed in a form arrive as text; floats from JSON must not leak
      binary rounding into stored amounts.

    Behavior:
    - Floats are converted through their shortest repr (0.1 -> Decimal("0.1")).
    - Empty/invalid input raises ValidationError naming `field`.
    """
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, bool):
        raise ValidationError(f"Invalid number for {field}: {value!r}", fields=[field])
    elif isinstance(value, int):
        result = Decimal(value)
    elif isinstance(value, float):
        result = Decimal(repr(value))
    elif isinstance(value, str) and value.strip():
        try:
            result = Decimal(value.strip())
        except InvalidOperation as e:
            raise ValidationError(f"Invalid number for {field}: {value!r}", fields=[field]) from e
    else:
        raise ValidationError(f"A value is required for {field}", fields=[field])

    if not result.is_finite():
        raise ValidationError(f"Invalid number for {field}: {value!r}", fields=[field])
    return result


def normalize_currency(currency: Currency | str) -> Currency:
    if isinstance(currency, Currency):
        return currency

    allowed = {c.value for c in Currency}
    if currency not in allowed:
        raise ValidationError(
            f"Invalid currency '{currency}'. Allowed: {sorted(allowed)}", fields=["currency"]
        )
    return Currency(currency)


def normalize(
    amount: object,
    currency: Currency | str,
    rate: object = None,
) -> MonetaryAmount:
    """
    What it does:
    - Converts an entered amount into a MonetaryAmount whose base_amount is USD.

    Why it matters:
    - Every stored cost/price is aggregated in USD; the original entry is kept
      for display and audit.

    Behavior:
    - Base currency: base_amount == amount, any rate is ignored and cleared.
    - Other currency: rate must be > 0 (else InvalidExchangeRate);
      base_amount = amount / rate.
    - Pure and deterministic: the same inputs always yield the same base_amount.
    """
    original_amount = to_decimal(amount, field="amount")
    original_currency = normalize_currency(currency)

    if original_currency == BASE_CURRENCY:
        return MonetaryAmount(
            original_amount=original_amount,
            original_currency=original_currency,
            exchange_rate=None,
            base_amount=original_amount,
        )

    if rate is None or (isinstance(rate, str) and not rate.strip()):
        raise InvalidExchangeRate(original_currency.value, rate)
    try:
        exchange_rate = to_decimal(rate, field="exchange_rate")
    except ValidationError as e:
        raise InvalidExchangeRate(original_currency.value, rate) from e
    if exchange_rate <= 0:
        raise InvalidExchangeRate(original_currency.value, rate)

    return MonetaryAmount(
        original_amount=original_amount,
        original_currency=original_currency,
        exchange_rate=exchange_rate,
        base_amount=original_amount / exchange_rate,
    )


def renormalize(amount: MonetaryAmount) -> MonetaryAmount:
    """Re-runs normalization from the retained original values."""
    return normalize(amount.original_amount, amount.original_currency, amount.exchange_rate)
