"""Strategy protocol and shared prompt helpers.

Defines the interface that all analysis strategies must implement.
"""

from __future__ import annotations

from typing import Optional, Protocol, runtime_checkable

from primus.analysis.pips import format_price, instrument_class, pip_value
from primus.strategy.models import (
    PartialAnalysis,
    TimeframeRequest,
    ZoneLimits,
)


@runtime_checkable
class StrategyProtocol(Protocol):
    """Interface that all analysis strategies must satisfy."""

    name: str
    title: str
    confidence_weights: tuple[float, float]

    def get_required_timeframes(self) -> tuple[TimeframeRequest, TimeframeRequest]:
        """Return the (primary, entry) timeframe requests."""
        ...

    def build_primary_prompt(self, pair: str) -> str:
        """System prompt for the higher timeframe."""
        ...

    def build_entry_prompt(self, pair: str, primary: PartialAnalysis) -> str:
        """System prompt for the lower timeframe, conditioned on *primary*."""
        ...

    def zone_limits(self, role: str, instrument: str) -> ZoneLimits:
        """Allowed zone width for *role* and instrument class."""
        ...


class BaseStrategy:
    """Shared plumbing for the concrete strategies.

    Subclasses declare ``name``, ``title``, ``TIMEFRAMES``,
    ``DEFAULT_ZONE_LIMITS`` and the prompt-specific class attributes.
    """

    name: str = ""
    title: str = ""
    confidence_weights: tuple[float, float] = (0.5, 0.5)
    TIMEFRAMES: tuple[TimeframeRequest, TimeframeRequest]
    DEFAULT_ZONE_LIMITS: dict[tuple[str, str], ZoneLimits] = {}

    def __init__(
        self,
        zone_limit_overrides: Optional[dict[tuple[str, str], ZoneLimits]] = None,
    ) -> None:
        self._zone_limits = {**self.DEFAULT_ZONE_LIMITS, **(zone_limit_overrides or {})}

    def get_required_timeframes(self) -> tuple[TimeframeRequest, TimeframeRequest]:
        return self.TIMEFRAMES

    def zone_limits(self, role: str, instrument: str) -> ZoneLimits:
        """Look up limits by role and instrument class (``forex``/``gold``).

        Raises ``KeyError`` for an unknown combination.
        """
        return self._zone_limits[(role, instrument)]

    # ── Prompt fragments ─────────────────────────────────────────────────

    def _instrument_block(self, pair: str, role: str) -> str:
        cls = instrument_class(pair)
        limits = self.zone_limits(role, cls)
        pip = pip_value(pair)
        return (
            f"Instrument: {pair} ({cls})\n"
            f"Pip size: {pip}\n"
            f"Zone width must be between {limits.min_pips:g} and "
            f"{limits.max_pips:g} pips."
        )

    @staticmethod
    def _primary_summary(pair: str, primary: PartialAnalysis) -> str:
        """Condensed primary result embedded in the entry prompt."""
        zone = primary.zone
        if zone is not None and zone.is_complete:
            zone_text = (
                f"{format_price(pair, zone.price_low)} - "
                f"{format_price(pair, zone.price_high)}"
            )
        else:
            zone_text = "not identified"
        return (
            f"Trend: {primary.trend or 'unknown'}\n"
            f"Pattern: {primary.pattern or 'none'}\n"
            f"Zone: {zone_text}\n"
            f"Confidence: {primary.confidence:.2f}"
        )


PRIMARY_JSON_FIELDS = """{
  "trend": "bullish | bearish | ranging",
  "pattern": "<dominant price-action pattern>",
  "zone": {"price_low": <number>, "price_high": <number>},
  "current_price": <number>,
  "reasoning": "<3-5 sentences>",
  "confidence": <number between 0 and 1>
}"""

ENTRY_JSON_FIELDS = """{
  "trend": "bullish | bearish | ranging",
  "signal": "buy | sell | wait",
  "pattern": "<entry pattern on this timeframe>",
  "zone": {"price_low": <number>, "price_high": <number>},
  "entry_price": <number>,
  "stop_loss": <number>,
  "take_profit_1": <number>,
  "take_profit_2": <number>,
  "current_price": <number>,
  "reasoning": "<3-5 sentences>",
  "confidence": <number between 0 and 1>
}"""
