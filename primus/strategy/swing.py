"""Swing strategy — Daily structure, M30 entry.

Implements ``StrategyProtocol``.  The Daily prompt asks for the dominant
trend and the key support/resistance zone; the M30 prompt looks for an
entry pattern at that zone in the direction of the Daily trend.
"""

from primus.strategy.base import (
    ENTRY_JSON_FIELDS,
    PRIMARY_JSON_FIELDS,
    BaseStrategy,
)
from primus.strategy.models import (
    ENTRY,
    PRIMARY,
    PartialAnalysis,
    TimeframeRequest,
    ZoneLimits,
)


class SwingStrategy(BaseStrategy):
    """Multi-day swing setups on Daily + M30."""

    name = "swing"
    title = "Swing"
    confidence_weights = (0.4, 0.6)

    TIMEFRAMES = (
        TimeframeRequest(interval="1day", bars=120, role=PRIMARY, label="Daily"),
        TimeframeRequest(interval="30min", bars=120, role=ENTRY, label="M30"),
    )

    DEFAULT_ZONE_LIMITS = {
        (PRIMARY, "forex"): ZoneLimits(min_pips=20, max_pips=120),
        (PRIMARY, "gold"): ZoneLimits(min_pips=50, max_pips=300),
        (ENTRY, "forex"): ZoneLimits(min_pips=5, max_pips=40),
        (ENTRY, "gold"): ZoneLimits(min_pips=15, max_pips=120),
    }

    def build_primary_prompt(self, pair: str) -> str:
        return (
            "You are a professional swing trader analysing the Daily chart.\n\n"
            f"{self._instrument_block(pair, PRIMARY)}\n\n"
            "Tasks:\n"
            "1. Identify the dominant Daily trend from swing highs and lows.\n"
            "2. Name the most relevant price-action pattern on the last bars.\n"
            "3. Mark the single most important support or resistance zone "
            "price is reacting to or approaching. The zone is a band, give "
            "its lower and upper bound.\n"
            "4. Explain your reasoning and give a confidence between 0 and 1.\n\n"
            "Respond with ONLY this JSON:\n"
            f"{PRIMARY_JSON_FIELDS}"
        )

    def build_entry_prompt(self, pair: str, primary: PartialAnalysis) -> str:
        return (
            "You are a professional swing trader refining an entry on the "
            "M30 chart.\n\n"
            f"{self._instrument_block(pair, ENTRY)}\n\n"
            "Daily analysis (already completed):\n"
            f"{self._primary_summary(pair, primary)}\n\n"
            "Tasks:\n"
            "1. Check whether M30 price action confirms the Daily trend at or "
            "near the Daily zone.\n"
            "2. Identify the M30 entry pattern and a tight entry zone inside "
            "or next to the Daily zone.\n"
            "3. Give a signal. Only signal buy in a bullish Daily trend and "
            "sell in a bearish one; otherwise answer wait.\n"
            "4. For buy/sell, place the stop loss beyond the zone and two "
            "take-profit targets in the trade direction.\n"
            "5. Explain your reasoning and give a confidence between 0 and 1.\n\n"
            "Respond with ONLY this JSON:\n"
            f"{ENTRY_JSON_FIELDS}"
        )
