"""Tests for primus.analysis.pips — pip units and price formatting."""

import pytest

from primus.analysis.pips import (
    calculate_pips,
    format_price,
    instrument_class,
    pip_value,
    price_decimals,
    zone_width_pips,
)


class TestPipValue:
    def test_forex_major(self):
        assert pip_value("EUR/USD") == 0.0001

    def test_listed_jpy(self):
        assert pip_value("USD/JPY") == 0.01

    def test_unlisted_jpy_cross(self):
        assert pip_value("GBP/JPY") == 0.01

    def test_gold_and_silver(self):
        assert pip_value("XAU/USD") == 0.1
        assert pip_value("XAG/USD") == 0.01

    def test_unlisted_pair_defaults_to_forex(self):
        assert pip_value("EUR/NOK") == 0.0001

    def test_case_insensitive(self):
        assert pip_value("xau/usd") == 0.1
        assert pip_value("gbp/jpy") == 0.01


class TestZoneWidth:
    def test_gold_example(self):
        assert zone_width_pips("XAU/USD", 2000.00, 2010.50) == pytest.approx(105.0)

    def test_forex(self):
        assert zone_width_pips("EUR/USD", 1.0850, 1.0900) == pytest.approx(50.0)

    def test_jpy(self):
        assert zone_width_pips("USD/JPY", 150.00, 150.25) == pytest.approx(25.0)

    def test_float_noise_is_rounded(self):
        assert zone_width_pips("EUR/USD", 1.0800, 1.0920) == 120.0

    def test_order_independent(self):
        assert calculate_pips("EUR/USD", 1.09, 1.08) == pytest.approx(
            calculate_pips("EUR/USD", 1.08, 1.09)
        )


class TestInstrumentClass:
    @pytest.mark.parametrize("pair", ["XAU/USD", "XAUUSD", "GOLD", "XAG/USD"])
    def test_metals(self, pair):
        assert instrument_class(pair) == "gold"

    def test_forex(self):
        assert instrument_class("GBP/USD") == "forex"


class TestFormatPrice:
    def test_decimals(self):
        assert price_decimals("EUR/USD") == 5
        assert price_decimals("USD/JPY") == 3
        assert price_decimals("XAU/USD") == 2

    def test_format(self):
        assert format_price("EUR/USD", 1.08) == "1.08000"
        assert format_price("XAU/USD", 2005.456) == "2005.46"

    def test_none(self):
        assert format_price("EUR/USD", None) == "N/A"
