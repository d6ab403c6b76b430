"""Scalping strategy — M15 micro-trend, M5 entry.

Implements ``StrategyProtocol``.  Zones are tighter than swing zones and
the M15 prompt reports a ``micro_trend`` instead of a trend.
"""

from primus.strategy.base import ENTRY_JSON_FIELDS, BaseStrategy
from primus.strategy.models import (
    ENTRY,
    PRIMARY,
    PartialAnalysis,
    TimeframeRequest,
    ZoneLimits,
)

_MICRO_JSON_FIELDS = """{
  "micro_trend": "bullish | bearish | ranging",
  "pattern": "<momentum or structure pattern>",
  "zone": {"price_low": <number>, "price_high": <number>},
  "current_price": <number>,
  "reasoning": "<2-4 sentences>",
  "confidence": <number between 0 and 1>
}"""


class ScalpingStrategy(BaseStrategy):
    """Intraday scalps on M15 + M5."""

    name = "scalping"
    title = "Scalping"
    confidence_weights = (0.5, 0.5)

    TIMEFRAMES = (
        TimeframeRequest(interval="15min", bars=120, role=PRIMARY, label="M15"),
        TimeframeRequest(interval="5min", bars=120, role=ENTRY, label="M5"),
    )

    DEFAULT_ZONE_LIMITS = {
        (PRIMARY, "forex"): ZoneLimits(min_pips=5, max_pips=30),
        (PRIMARY, "gold"): ZoneLimits(min_pips=15, max_pips=100),
        (ENTRY, "forex"): ZoneLimits(min_pips=2, max_pips=15),
        (ENTRY, "gold"): ZoneLimits(min_pips=5, max_pips=50),
    }

    def build_primary_prompt(self, pair: str) -> str:
        return (
            "You are an intraday scalper reading the 15-minute chart.\n\n"
            f"{self._instrument_block(pair, PRIMARY)}\n\n"
            "Tasks:\n"
            "1. Determine the micro trend over the last session.\n"
            "2. Name the current momentum or structure pattern.\n"
            "3. Mark the nearest intraday support or resistance zone as a "
            "lower and upper bound.\n"
            "4. Explain briefly and give a confidence between 0 and 1.\n\n"
            "Respond with ONLY this JSON:\n"
            f"{_MICRO_JSON_FIELDS}"
        )

    def build_entry_prompt(self, pair: str, primary: PartialAnalysis) -> str:
        return (
            "You are an intraday scalper timing an entry on the 5-minute "
            "chart.\n\n"
            f"{self._instrument_block(pair, ENTRY)}\n\n"
            "15-minute analysis (already completed):\n"
            f"{self._primary_summary(pair, primary)}\n\n"
            "Tasks:\n"
            "1. Confirm or reject the 15-minute micro trend on M5.\n"
            "2. Identify a tight M5 entry zone close to the 15-minute zone.\n"
            "3. Give a signal aligned with the micro trend, or wait when the "
            "two timeframes disagree.\n"
            "4. For buy/sell, give a tight stop loss and two quick "
            "take-profit targets.\n"
            "5. Explain briefly and give a confidence between 0 and 1.\n\n"
            "Respond with ONLY this JSON:\n"
            f"{ENTRY_JSON_FIELDS}"
        )
