"""Cross-timeframe combination — pure functions, no I/O.

Merges the primary and entry analyses into one signal and confidence,
then attaches the per-timeframe validation reports.
"""

import logging
from typing import Optional

from primus.analysis.pips import instrument_class
from primus.analysis.validation import (
    ValidationSettings,
    validate_partial,
    validate_trade_levels,
    validate_zone_proximity,
)
from primus.strategy.base import StrategyProtocol
from primus.strategy.models import (
    ENTRY,
    PRIMARY,
    CombinedAnalysis,
    PartialAnalysis,
    ValidationReport,
    normalize_trend,
)

logger = logging.getLogger("primus")

_TREND_TO_SIGNAL = {"bullish": "buy", "bearish": "sell", "neutral": "wait"}


def entry_signal(entry: PartialAnalysis) -> str:
    """Signal of the entry analysis, derived from its trend when omitted."""
    if entry.signal is not None:
        return entry.signal
    return _TREND_TO_SIGNAL[normalize_trend(entry.trend)]


def is_contradiction(primary_trend: str, signal: str) -> bool:
    """``True`` when *signal* opposes a directional *primary_trend*."""
    return (signal == "buy" and primary_trend == "bearish") or (
        signal == "sell" and primary_trend == "bullish"
    )


def _first(*values: Optional[float]) -> Optional[float]:
    return next((v for v in values if v is not None), None)


def combine_signal(
    primary: PartialAnalysis,
    entry: PartialAnalysis,
    weights: tuple[float, float],
    settings: ValidationSettings,
    entry_report: ValidationReport,
) -> tuple[str, float]:
    """Derive the final (signal, confidence) pair.

    A contradiction between the entry signal and the primary trend halves
    the confidence (``contradiction_penalty``), downgrades the signal to
    ``wait`` and records a warning on *entry_report*.
    """
    w_primary, w_entry = weights
    total = w_primary + w_entry
    confidence = (primary.confidence * w_primary + entry.confidence * w_entry) / total

    trend = primary.trend_direction
    signal = entry_signal(entry)

    if is_contradiction(trend, signal):
        entry_report.warnings.append(
            f"Entry signal {signal.upper()} contradicts the {trend} "
            f"{primary.timeframe} trend; signal downgraded to WAIT"
        )
        confidence *= settings.contradiction_penalty
        signal = "wait"
    elif signal in ("buy", "sell") and trend == "neutral":
        entry_report.warnings.append(
            f"{primary.timeframe} trend is neutral; {signal.upper()} has no "
            "higher-timeframe confirmation"
        )
        confidence *= settings.neutral_penalty
    elif signal in ("buy", "sell"):
        confidence += settings.agreement_bonus

    confidence = round(min(1.0, max(0.0, confidence)), 4)
    return signal, confidence


def combine_analyses(
    strategy: StrategyProtocol,
    pair: str,
    primary: PartialAnalysis,
    entry: PartialAnalysis,
    settings: Optional[ValidationSettings] = None,
) -> CombinedAnalysis:
    """Merge two partial analyses and validate them.

    Never raises on bad setups: failed checks land in the validation
    reports and ``valid`` becomes ``False``.
    """
    settings = settings or ValidationSettings()
    cls = instrument_class(pair)
    primary_limits = strategy.zone_limits(PRIMARY, cls)
    entry_limits = strategy.zone_limits(ENTRY, cls)

    primary_report = validate_partial(pair, primary, primary_limits, settings)
    entry_report = validate_partial(pair, entry, entry_limits, settings)

    signal, confidence = combine_signal(
        primary, entry, strategy.confidence_weights, settings, entry_report,
    )

    entry_price = _first(entry.entry_price, entry.current_price, primary.current_price)
    stop_loss = _first(entry.stop_loss, primary.stop_loss)
    take_profit_1 = _first(entry.take_profit_1, primary.take_profit_1)
    take_profit_2 = _first(entry.take_profit_2, primary.take_profit_2)

    validate_trade_levels(
        pair, signal, entry_price, stop_loss, take_profit_1, entry_report,
    )
    validate_zone_proximity(
        pair, primary.zone, entry.zone, primary_limits.max_pips, entry_report,
    )

    combined = CombinedAnalysis(
        pair=pair,
        strategy=strategy.name,
        signal=signal,
        confidence=confidence,
        primary=primary,
        entry=entry,
        validation={PRIMARY: primary_report, ENTRY: entry_report},
        timeframes=list(strategy.get_required_timeframes()),
        trend=primary.trend,
        pattern=entry.pattern or primary.pattern,
        entry_price=entry_price,
        stop_loss=stop_loss,
        take_profit_1=take_profit_1,
        take_profit_2=take_profit_2,
        current_price=_first(entry.current_price, primary.current_price),
    )

    if not combined.valid:
        logger.warning(
            "%s %s setup invalid: %d primary error(s), %d entry error(s)",
            pair, strategy.name,
            len(primary_report.errors), len(entry_report.errors),
        )
    return combined
