"""
Market Pricing - Currency.

Fixed-rate conversion between GBP, USD and EUR. StockX quotes
in the requested currency; Alias always quotes in USD.
"""

from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Mapping, Optional

from core.clock import now_utc
from market_pricing.exceptions import PricingError
from market_pricing.types import FxRates


CENTS = Decimal("0.01")

SUPPORTED_CURRENCIES = ("GBP", "USD", "EUR")

CURRENCY_SYMBOLS = {
    "GBP": "£",
    "USD": "$",
    "EUR": "€",
}

DEFAULT_FX_RATES: dict[tuple[str, str], Decimal] = {
    ("GBP", "USD"): Decimal("1.27"),
    ("USD", "GBP"): Decimal("0.79"),
    ("GBP", "EUR"): Decimal("1.17"),
    ("EUR", "GBP"): Decimal("0.85"),
    ("USD", "EUR"): Decimal("0.92"),
    ("EUR", "USD"): Decimal("1.09"),
}

FxTable = Mapping[tuple[str, str], Decimal]


def round_money(value: Decimal) -> Decimal:
    """Round to cents, half up."""
    return value.quantize(CENTS, rounding=ROUND_HALF_UP)


def _check(currency: str) -> str:
    code = (currency or "").upper()
    if code not in SUPPORTED_CURRENCIES:
        raise PricingError(f"Unsupported currency: {currency}", {"currency": currency})
    return code


def get_rate(from_currency: str, to_currency: str, rates: Optional[FxTable] = None) -> Decimal:
    """Rate for one pair; 1 for the same currency."""
    source = _check(from_currency)
    target = _check(to_currency)
    if source == target:
        return Decimal("1")
    table = rates if rates is not None else DEFAULT_FX_RATES
    rate = table.get((source, target))
    if rate is None:
        raise PricingError(
            f"No FX rate for {source}->{target}",
            {"from": source, "to": target},
        )
    return rate


def convert(
    amount: Decimal,
    from_currency: str,
    to_currency: str,
    rates: Optional[FxTable] = None,
) -> Decimal:
    """
    Convert an amount between supported currencies.

    The same currency returns the amount unchanged. The result
    is not rounded; callers round at the output boundary.

    Raises:
        PricingError: Unsupported currency or missing pair
    """
    rate = get_rate(from_currency, to_currency, rates)
    if rate == 1:
        return amount
    return amount * rate


def fx_rates_for(
    user_currency: str,
    rates: Optional[FxTable] = None,
    timestamp: Optional[datetime] = None,
) -> FxRates:
    """Snapshot of rates into the user's currency."""
    target = _check(user_currency)
    return FxRates(
        user_currency=target,
        gbp_to_user=get_rate("GBP", target, rates),
        usd_to_user=get_rate("USD", target, rates),
        eur_to_user=get_rate("EUR", target, rates),
        timestamp=timestamp or now_utc(),
    )


def convert_to_user_currency(amount: Decimal, from_currency: str, fx: FxRates) -> Decimal:
    """Convert using a rates snapshot."""
    rate = fx.rate_from((from_currency or "").upper())
    if rate is None:
        raise PricingError(f"Unsupported currency: {from_currency}", {"currency": from_currency})
    if rate == 1:
        return amount
    return amount * rate


def parse_rate_table(raw: Mapping[str, float]) -> dict[tuple[str, str], Decimal]:
    """Parse {"GBP_USD": 1.27} style config into a rate table."""
    table: dict[tuple[str, str], Decimal] = {}
    for pair, rate in raw.items():
        source, _, target = pair.upper().partition("_")
        table[(_check(source), _check(target))] = Decimal(str(rate))
    return table


def format_currency(amount: Optional[Decimal], currency: str) -> str:
    """Format an amount with its symbol ("£1,234.50", "-$12.00")."""
    if amount is None:
        return "-"
    symbol = CURRENCY_SYMBOLS.get(currency.upper(), f"{currency.upper()} ")
    formatted = f"{abs(round_money(amount)):,.2f}"
    return f"-{symbol}{formatted}" if amount < 0 else f"{symbol}{formatted}"
