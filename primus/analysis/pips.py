"""Pip arithmetic and price formatting — pure functions, no I/O."""

from typing import Optional


# ── Instrument metadata ──────────────────────────────────────────────────

INSTRUMENT_PIP_VALUES: dict[str, float] = {
    "EUR/USD": 0.0001,
    "GBP/USD": 0.0001,
    "AUD/USD": 0.0001,
    "NZD/USD": 0.0001,
    "USD/CAD": 0.0001,
    "USD/CHF": 0.0001,
    "USD/JPY": 0.01,
    "XAU/USD": 0.1,
    "XAUUSD": 0.1,
    "GOLD": 0.1,
    "XAG/USD": 0.01,
    "XAGUSD": 0.01,
    "SILVER": 0.01,
    "BRENT": 0.01,
    "WTI": 0.01,
    "CL": 0.01,
    "NG": 0.001,
}

_FOREX_PIP = 0.0001
_JPY_PIP = 0.01
_PIP_DECIMALS = 6

_METALS = ("XAU", "GOLD", "XAG", "SILVER")
_ENERGY = ("BRENT", "WTI", "CL", "NG")


def pip_value(pair: str) -> float:
    """Return the pip unit for *pair*.

    Case-insensitive. Unlisted JPY crosses use 0.01, every other unlisted
    pair 0.0001.
    """
    upper = pair.upper()
    if upper in INSTRUMENT_PIP_VALUES:
        return INSTRUMENT_PIP_VALUES[upper]
    if "JPY" in upper:
        return _JPY_PIP
    return _FOREX_PIP


def instrument_class(pair: str) -> str:
    """Classify *pair* as ``"gold"`` (precious metals) or ``"forex"``."""
    upper = pair.upper()
    if any(m in upper for m in _METALS):
        return "gold"
    return "forex"


def calculate_pips(pair: str, price_a: float, price_b: float) -> float:
    """Absolute distance between two prices, in pips of *pair*.

    Rounded to 6 decimals: 1.0800 to 1.0920 is 120 pips, not 120.0000000000001.
    """
    return round(abs(price_a - price_b) / pip_value(pair), _PIP_DECIMALS)


def zone_width_pips(pair: str, price_low: float, price_high: float) -> float:
    """Width of a zone in pips (order-independent)."""
    return calculate_pips(pair, price_high, price_low)


def price_decimals(pair: str) -> int:
    """Display precision for *pair*: 3 for JPY, 2 for metals/energy, else 5."""
    upper = pair.upper()
    if "JPY" in upper:
        return 3
    if any(m in upper for m in _METALS) or upper in _ENERGY:
        return 2
    return 5


def format_price(pair: str, price: Optional[float]) -> str:
    """Format *price* with the precision appropriate to *pair*."""
    if price is None:
        return "N/A"
    return f"{price:.{price_decimals(pair)}f}"
