"""Analysis data models — typed representations for pipeline values."""

import math
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional


PRIMARY = "primary"
ENTRY = "entry"
ROLES = (PRIMARY, ENTRY)

_BULLISH_WORDS = ("bullish", "bull", "uptrend")
_BEARISH_WORDS = ("bearish", "bear", "downtrend")
_BULLISH_HINTS = ("up", "upward", "long", "higher", "rising")
_BEARISH_HINTS = ("down", "downward", "short", "lower", "falling")


def _direction(tokens: list[str], bullish: tuple, bearish: tuple) -> Optional[str]:
    up = any(t in bullish for t in tokens)
    down = any(t in bearish for t in tokens)
    if up and down:
        return "neutral"
    if up:
        return "bullish"
    if down:
        return "bearish"
    return None


def normalize_trend(raw: Optional[str]) -> str:
    """Map free-form trend text to ``bullish``, ``bearish`` or ``neutral``.

    Explicit direction words win over loose hints, so "long-term bearish"
    is bearish.  Text naming both directions is neutral.
    """
    if not raw:
        return "neutral"
    tokens = re.findall(r"[a-z]+", str(raw).lower())
    return (
        _direction(tokens, _BULLISH_WORDS, _BEARISH_WORDS)
        or _direction(tokens, _BULLISH_HINTS, _BEARISH_HINTS)
        or "neutral"
    )


def normalize_signal(raw: Optional[str]) -> Optional[str]:
    """Map free-form signal text to ``buy``, ``sell``, ``wait`` or ``None``."""
    if not raw:
        return None
    text = str(raw).strip().lower()
    if text in ("buy", "long", "bullish"):
        return "buy"
    if text in ("sell", "short", "bearish"):
        return "sell"
    if text in ("wait", "hold", "neutral", "none", "no_trade", "no trade"):
        return "wait"
    return None


@dataclass(frozen=True)
class TimeframeRequest:
    """One timeframe slot declared by a strategy."""

    interval: str  # Twelve Data interval, e.g. "1day", "30min"
    bars: int
    role: str  # "primary" or "entry"
    label: str  # display label, e.g. "Daily", "M30"


@dataclass(frozen=True)
class ZoneLimits:
    """Allowed zone width in pips for one strategy/role/instrument class."""

    min_pips: float
    max_pips: float


@dataclass(frozen=True)
class Zone:
    """A support/resistance price band.  Bounds may be missing in AI output."""

    price_low: Optional[float]
    price_high: Optional[float]

    @property
    def is_complete(self) -> bool:
        return all(
            v is not None and math.isfinite(v) for v in (self.price_low, self.price_high)
        )

    def to_dict(self) -> dict:
        return {"price_low": self.price_low, "price_high": self.price_high}


@dataclass(frozen=True)
class PartialAnalysis:
    """Parsed output of one AI call for one timeframe."""

    role: str
    timeframe: str
    trend: Optional[str]
    pattern: str
    zone: Optional[Zone]
    reasoning: str
    confidence: float
    signal: Optional[str] = None
    entry_price: Optional[float] = None
    stop_loss: Optional[float] = None
    take_profit_1: Optional[float] = None
    take_profit_2: Optional[float] = None
    current_price: Optional[float] = None
    raw: dict = field(default_factory=dict, compare=False)

    @property
    def trend_direction(self) -> str:
        return normalize_trend(self.trend)

    def to_dict(self) -> dict:
        return {
            "role": self.role,
            "timeframe": self.timeframe,
            "trend": self.trend,
            "pattern": self.pattern,
            "zone": self.zone.to_dict() if self.zone else None,
            "reasoning": self.reasoning,
            "confidence": self.confidence,
            "signal": self.signal,
            "entry_price": self.entry_price,
            "stop_loss": self.stop_loss,
            "take_profit_1": self.take_profit_1,
            "take_profit_2": self.take_profit_2,
            "current_price": self.current_price,
        }


@dataclass
class ValidationReport:
    """Errors invalidate a setup; warnings only annotate it."""

    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors

    def to_dict(self) -> dict:
        return {"errors": list(self.errors), "warnings": list(self.warnings)}


@dataclass(frozen=True)
class ChartImage:
    """A rendered chart for one timeframe."""

    timeframe: str
    label: str
    role: str
    path: str
    png: bytes = field(repr=False, compare=False, default=b"")


@dataclass
class CombinedAnalysis:
    """Merge of the primary and entry analyses plus derived fields.

    Created fresh per request; charts and the fetched bars (``market_data``,
    keyed by interval) are attached after combination.
    """

    pair: str
    strategy: str
    signal: str
    confidence: float
    primary: PartialAnalysis
    entry: PartialAnalysis
    validation: dict[str, ValidationReport]
    timeframes: list[TimeframeRequest]
    trend: Optional[str] = None
    pattern: str = ""
    entry_price: Optional[float] = None
    stop_loss: Optional[float] = None
    take_profit_1: Optional[float] = None
    take_profit_2: Optional[float] = None
    current_price: Optional[float] = None
    charts: list[ChartImage] = field(default_factory=list)
    market_data: dict = field(default_factory=dict, repr=False, compare=False)
    created_at: str = field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat()
    )

    @property
    def valid(self) -> bool:
        return all(report.ok for report in self.validation.values())

    @property
    def primary_zone(self) -> Optional[Zone]:
        return self.primary.zone

    @property
    def entry_zone(self) -> Optional[Zone]:
        return self.entry.zone

    @property
    def reasoning(self) -> str:
        """Entry reasoning when present, else primary reasoning."""
        return self.entry.reasoning or self.primary.reasoning

    def to_dict(self) -> dict:
        """JSON-serialisable snapshot (chart bytes excluded)."""
        return {
            "pair": self.pair,
            "strategy": self.strategy,
            "signal": self.signal,
            "confidence": self.confidence,
            "valid": self.valid,
            "trend": self.trend,
            "pattern": self.pattern,
            "primary_zone": self.primary_zone.to_dict() if self.primary_zone else None,
            "entry_zone": self.entry_zone.to_dict() if self.entry_zone else None,
            "entry_price": self.entry_price,
            "stop_loss": self.stop_loss,
            "take_profit_1": self.take_profit_1,
            "take_profit_2": self.take_profit_2,
            "current_price": self.current_price,
            "reasoning": self.reasoning,
            "primary_analysis": self.primary.to_dict(),
            "entry_analysis": self.entry.to_dict(),
            "validation": {
                role: report.to_dict() for role, report in self.validation.items()
            },
            "timeframes": [tf.interval for tf in self.timeframes],
            "charts": [
                {"timeframe": c.timeframe, "label": c.label, "path": c.path}
                for c in self.charts
            ],
            "created_at": self.created_at,
        }
