"""Structural checks on partial analyses — pure functions, no I/O.

Each failed check lands in a ``ValidationReport`` as an error (the setup is
invalid) or a warning (shown to the user, setup stays valid).
"""

from dataclasses import dataclass
from typing import Optional

from primus.analysis.pips import format_price, zone_width_pips, calculate_pips
from primus.config import Config
from primus.strategy.models import PartialAnalysis, ValidationReport, Zone, ZoneLimits


@dataclass(frozen=True)
class ValidationSettings:
    """Thresholds for severity classification and confidence adjustment."""

    warning_margin: float = 0.1  # fraction of a limit treated as "near"
    min_confidence: float = 0.5
    contradiction_penalty: float = 0.5
    neutral_penalty: float = 0.85
    agreement_bonus: float = 0.05

    @classmethod
    def from_config(cls, config: Config) -> "ValidationSettings":
        return cls(
            warning_margin=config.zone_warning_margin,
            min_confidence=config.min_confidence,
            contradiction_penalty=config.contradiction_penalty,
        )


def check_zone(
    pair: str,
    zone: Optional[Zone],
    limits: ZoneLimits,
    report: ValidationReport,
    warning_margin: float = 0.1,
) -> Optional[float]:
    """Run completeness, ordering and size checks on *zone*.

    Returns the zone width in pips, or ``None`` when the zone is unusable.
    """
    if zone is None or not zone.is_complete:
        report.errors.append("Zone is missing price_low/price_high")
        return None

    low, high = zone.price_low, zone.price_high
    if low > high:
        report.errors.append(
            f"Zone bounds inverted: price_low {format_price(pair, low)} > "
            f"price_high {format_price(pair, high)}"
        )
        return None

    width = zone_width_pips(pair, low, high)
    if width < limits.min_pips:
        report.errors.append(
            f"Zone too small: {width:.1f} pips (min: {limits.min_pips:g})"
        )
    elif width > limits.max_pips:
        report.errors.append(
            f"Zone too large: {width:.1f} pips (max: {limits.max_pips:g})"
        )
    elif width < limits.min_pips * (1 + warning_margin):
        report.warnings.append(
            f"Zone close to minimum size: {width:.1f} pips (min: {limits.min_pips:g})"
        )
    elif width > limits.max_pips * (1 - warning_margin):
        report.warnings.append(
            f"Zone close to maximum size: {width:.1f} pips (max: {limits.max_pips:g})"
        )
    return width


def validate_partial(
    pair: str,
    partial: PartialAnalysis,
    limits: ZoneLimits,
    settings: ValidationSettings,
) -> ValidationReport:
    """Zone checks plus a low-confidence warning for one timeframe."""
    report = ValidationReport()
    check_zone(pair, partial.zone, limits, report, settings.warning_margin)

    if partial.confidence < settings.min_confidence:
        report.warnings.append(
            f"Low model confidence on {partial.timeframe}: "
            f"{partial.confidence:.2f} (min: {settings.min_confidence:.2f})"
        )
    return report


def validate_trade_levels(
    pair: str,
    signal: str,
    entry_price: Optional[float],
    stop_loss: Optional[float],
    take_profit: Optional[float],
    report: ValidationReport,
) -> None:
    """Check SL/TP placement relative to the entry for buy/sell signals."""
    if signal not in ("buy", "sell"):
        return
    if stop_loss is None:
        report.warnings.append(f"No stop loss provided for {signal.upper()} signal")
        return
    if entry_price is None:
        return

    if signal == "buy":
        if stop_loss >= entry_price:
            report.errors.append(
                f"Stop loss {format_price(pair, stop_loss)} is not below "
                f"entry {format_price(pair, entry_price)} for BUY"
            )
        if take_profit is not None and take_profit <= entry_price:
            report.errors.append(
                f"Take profit {format_price(pair, take_profit)} is not above "
                f"entry {format_price(pair, entry_price)} for BUY"
            )
    else:
        if stop_loss <= entry_price:
            report.errors.append(
                f"Stop loss {format_price(pair, stop_loss)} is not above "
                f"entry {format_price(pair, entry_price)} for SELL"
            )
        if take_profit is not None and take_profit >= entry_price:
            report.errors.append(
                f"Take profit {format_price(pair, take_profit)} is not below "
                f"entry {format_price(pair, entry_price)} for SELL"
            )


def zone_gap_pips(pair: str, a: Zone, b: Zone) -> float:
    """Distance between two complete zones in pips (0 when they overlap)."""
    if a.price_high >= b.price_low and b.price_high >= a.price_low:
        return 0.0
    if a.price_high < b.price_low:
        return calculate_pips(pair, b.price_low, a.price_high)
    return calculate_pips(pair, a.price_low, b.price_high)


def validate_zone_proximity(
    pair: str,
    primary_zone: Optional[Zone],
    entry_zone: Optional[Zone],
    max_distance_pips: float,
    report: ValidationReport,
) -> None:
    """Warn when the entry zone sits far from the primary zone."""
    if primary_zone is None or entry_zone is None:
        return
    if not (primary_zone.is_complete and entry_zone.is_complete):
        return
    gap = zone_gap_pips(pair, primary_zone, entry_zone)
    if gap > max_distance_pips:
        report.warnings.append(
            f"Entry zone is {gap:.1f} pips away from the primary zone "
            f"(max: {max_distance_pips:g})"
        )
