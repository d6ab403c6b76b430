"""Tests for primus.analysis.combine — signal, confidence and validity."""

import pytest

from primus.analysis.combine import combine_analyses, entry_signal
from primus.analysis.validation import ValidationSettings
from primus.strategy.models import ENTRY, PRIMARY, PartialAnalysis, Zone
from primus.strategy.scalping import ScalpingStrategy
from primus.strategy.swing import SwingStrategy


def _primary(**overrides) -> PartialAnalysis:
    defaults = dict(
        role=PRIMARY,
        timeframe="1day",
        trend="bullish",
        pattern="higher lows",
        zone=Zone(1.0850, 1.0900),
        reasoning="Daily demand is holding.",
        confidence=0.8,
        current_price=1.0920,
    )
    defaults.update(overrides)
    return PartialAnalysis(**defaults)


def _entry(**overrides) -> PartialAnalysis:
    defaults = dict(
        role=ENTRY,
        timeframe="30min",
        trend="bullish",
        pattern="bullish engulfing",
        zone=Zone(1.0880, 1.0900),
        reasoning="M30 engulfing candle at the zone.",
        confidence=0.7,
        signal="buy",
        entry_price=1.0895,
        stop_loss=1.0870,
        take_profit_1=1.0950,
        take_profit_2=1.1000,
    )
    defaults.update(overrides)
    return PartialAnalysis(**defaults)


class TestAgreement:
    def test_aligned_buy_gets_bonus(self):
        result = combine_analyses(SwingStrategy(), "EUR/USD", _primary(), _entry())
        # 0.4 * 0.8 + 0.6 * 0.7 = 0.74, + 0.05
        assert result.signal == "buy"
        assert result.confidence == pytest.approx(0.79)
        assert result.valid is True

    def test_scalping_weights(self):
        primary = _primary(timeframe="15min", zone=Zone(1.0850, 1.0870))
        entry = _entry(timeframe="5min", zone=Zone(1.0860, 1.0865), stop_loss=1.0855)
        result = combine_analyses(ScalpingStrategy(), "EUR/USD", primary, entry)
        assert result.confidence == pytest.approx(0.8)

    def test_confidence_clamped(self):
        result = combine_analyses(
            SwingStrategy(), "EUR/USD", _primary(confidence=1.0), _entry(confidence=1.0),
        )
        assert result.confidence == 1.0


class TestContradiction:
    def test_sell_against_bullish_trend(self):
        entry = _entry(
            signal="sell", trend="bearish",
            entry_price=1.0895, stop_loss=1.0920, take_profit_1=1.0850, take_profit_2=None,
        )
        result = combine_analyses(SwingStrategy(), "EUR/USD", _primary(), entry)

        # 0.74 * 0.5, downgraded to wait
        assert result.confidence == pytest.approx(0.37)
        assert result.signal == "wait"
        assert any("contradicts" in w for w in result.validation[ENTRY].warnings)
        # A contradiction alone is a warning, never an error
        assert result.valid is True

    def test_penalty_is_configurable(self):
        entry = _entry(signal="sell", stop_loss=1.0920, take_profit_1=1.0850)
        settings = ValidationSettings(contradiction_penalty=0.25)
        result = combine_analyses(SwingStrategy(), "EUR/USD", _primary(), entry, settings)
        assert result.confidence == pytest.approx(0.185)

    def test_neutral_primary_penalised(self):
        result = combine_analyses(
            SwingStrategy(), "EUR/USD", _primary(trend="ranging"), _entry(),
        )
        assert result.signal == "buy"
        assert result.confidence == pytest.approx(0.74 * 0.85)
        assert any("neutral" in w for w in result.validation[ENTRY].warnings)


class TestValidity:
    def test_valid_iff_no_errors(self):
        result = combine_analyses(
            SwingStrategy(), "EUR/USD", _primary(confidence=0.2), _entry(confidence=0.2),
        )
        # Low confidence produces warnings only
        assert result.validation[PRIMARY].warnings
        assert result.valid is True

    def test_missing_primary_zone_invalidates(self):
        result = combine_analyses(
            SwingStrategy(), "EUR/USD", _primary(zone=Zone(None, 1.09)), _entry(),
        )
        assert result.valid is False
        assert result.validation[PRIMARY].errors

    def test_inverted_entry_zone_invalidates(self):
        result = combine_analyses(
            SwingStrategy(), "EUR/USD", _primary(), _entry(zone=Zone(1.0900, 1.0880)),
        )
        assert result.valid is False
        assert any("inverted" in e for e in result.validation[ENTRY].errors)

    def test_bad_stop_loss_invalidates(self):
        result = combine_analyses(
            SwingStrategy(), "EUR/USD", _primary(), _entry(stop_loss=1.0990),
        )
        assert result.valid is False


class TestLevels:
    def test_levels_from_entry(self):
        result = combine_analyses(SwingStrategy(), "EUR/USD", _primary(), _entry())
        assert result.entry_price == pytest.approx(1.0895)
        assert result.stop_loss == pytest.approx(1.0870)
        assert result.take_profit_2 == pytest.approx(1.1000)

    def test_fallback_to_primary(self):
        entry = _entry(entry_price=None, stop_loss=None, take_profit_1=None, take_profit_2=None)
        result = combine_analyses(
            SwingStrategy(), "EUR/USD", _primary(stop_loss=1.0840), entry,
        )
        assert result.entry_price == pytest.approx(1.0920)
        assert result.stop_loss == pytest.approx(1.0840)

    def test_signal_falls_back_to_entry_trend(self):
        assert entry_signal(_entry(signal=None, trend="bearish")) == "sell"
        assert entry_signal(_entry(signal=None, trend="sideways")) == "wait"

    def test_snapshot_shape(self):
        snapshot = combine_analyses(SwingStrategy(), "EUR/USD", _primary(), _entry()).to_dict()
        assert snapshot["timeframes"] == ["1day", "30min"]
        assert snapshot["primary_zone"] == {"price_low": 1.0850, "price_high": 1.0900}
        assert set(snapshot["validation"]) == {PRIMARY, ENTRY}
        assert snapshot["reasoning"] == "M30 engulfing candle at the zone."
