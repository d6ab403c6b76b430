"""Tests for primus.analysis.ai_analyzer — JSON parsing and the chat client."""

import json
from types import SimpleNamespace
from unittest.mock import AsyncMock

import httpx
import openai
import pytest

from primus.analysis.ai_analyzer import (
    AIAnalyzer,
    extract_json_object,
    parse_partial_analysis,
)
from primus.config import Config
from primus.errors import ParseError, ProviderError


def _make_config() -> Config:
    return Config(twelvedata_api_key="td", openai_api_key="sk-test", openai_model="gpt-test")


def _completion(content):
    return SimpleNamespace(
        choices=[SimpleNamespace(message=SimpleNamespace(content=content))]
    )


def _fake_client(create=None, models_list=None):
    return SimpleNamespace(
        chat=SimpleNamespace(completions=SimpleNamespace(create=create or AsyncMock())),
        models=SimpleNamespace(list=models_list or AsyncMock()),
    )


PRIMARY_REPLY = {
    "trend": "Bullish",
    "pattern": "higher lows",
    "zone": {"price_low": 1.0850, "price_high": 1.0900},
    "current_price": "1.0950",
    "reasoning": "Price is holding above the weekly demand zone.",
    "confidence": 72,
}


# ── Parsing ──────────────────────────────────────────────────────────────


class TestExtractJsonObject:
    def test_plain_json(self):
        assert extract_json_object('{"a": 1}') == {"a": 1}

    def test_fenced_json(self):
        text = 'Here you go:\n```json\n{"trend": "bearish"}\n```\nGood luck.'
        assert extract_json_object(text) == {"trend": "bearish"}

    def test_prose_around_object(self):
        assert extract_json_object('Result: {"a": {"b": 2}} done') == {"a": {"b": 2}}

    def test_no_object(self):
        with pytest.raises(ParseError):
            extract_json_object("I cannot analyse this chart.")

    def test_invalid_json(self):
        with pytest.raises(ParseError):
            extract_json_object("{trend: bullish,}")


class TestParsePartialAnalysis:
    def test_full_reply(self):
        partial = parse_partial_analysis(PRIMARY_REPLY, role="primary", timeframe="1day")
        assert partial.role == "primary"
        assert partial.timeframe == "1day"
        assert partial.trend_direction == "bullish"
        assert partial.zone.price_low == pytest.approx(1.0850)
        assert partial.zone.price_high == pytest.approx(1.0900)
        assert partial.current_price == pytest.approx(1.0950)
        # Percent confidence normalised
        assert partial.confidence == pytest.approx(0.72)

    def test_micro_trend_and_take_profit_alias(self):
        data = {
            "micro_trend": "bearish",
            "signal": "SELL",
            "zone": {"price_low": 1.0900, "price_high": 1.0910},
            "take_profit": 1.0850,
            "confidence": 0.6,
        }
        partial = parse_partial_analysis(data, role="entry", timeframe="5min")
        assert partial.trend == "bearish"
        assert partial.signal == "sell"
        assert partial.take_profit_1 == pytest.approx(1.0850)

    def test_missing_zone_is_not_a_parse_error(self):
        data = {"trend": "bullish", "confidence": 0.7}
        partial = parse_partial_analysis(data, role="primary", timeframe="1day")
        assert partial.zone is None

    def test_non_finite_zone_bound_is_dropped(self):
        data = json.loads(
            '{"trend": "bullish", "zone": {"price_low": NaN, "price_high": 1.09}, "confidence": 0.8}'
        )
        partial = parse_partial_analysis(data, role="primary", timeframe="1day")
        assert partial.zone.price_low is None
        assert not partial.zone.is_complete

    def test_nan_string_bound_is_dropped(self):
        data = {
            "trend": "bullish",
            "zone": {"price_low": "nan", "price_high": "inf"},
            "confidence": 0.8,
        }
        partial = parse_partial_analysis(data, role="primary", timeframe="1day")
        assert partial.zone.price_low is None
        assert partial.zone.price_high is None

    def test_missing_trend(self):
        with pytest.raises(ParseError, match="trend"):
            parse_partial_analysis({"confidence": 0.5}, role="primary", timeframe="1day")

    def test_non_numeric_confidence(self):
        with pytest.raises(ParseError, match="Confidence"):
            parse_partial_analysis(
                {"trend": "bullish", "confidence": "high"}, role="primary", timeframe="1day",
            )


# ── Client ───────────────────────────────────────────────────────────────


class TestAnalyze:
    @pytest.mark.asyncio
    async def test_sends_prompt_and_data(self):
        create = AsyncMock(return_value=_completion(json.dumps(PRIMARY_REPLY)))
        analyzer = AIAnalyzer(_make_config(), client=_fake_client(create=create))

        partial = await analyzer.analyze(
            "SYSTEM PROMPT", "MARKET DATA", role="primary", timeframe="1day",
        )

        assert partial.trend == "Bullish"
        kwargs = create.await_args.kwargs
        assert kwargs["model"] == "gpt-test"
        assert kwargs["messages"][0] == {"role": "system", "content": "SYSTEM PROMPT"}
        assert kwargs["messages"][1] == {"role": "user", "content": "MARKET DATA"}
        assert kwargs["response_format"] == {"type": "json_object"}

    @pytest.mark.asyncio
    async def test_empty_content_raises_parse_error(self):
        create = AsyncMock(return_value=_completion(""))
        analyzer = AIAnalyzer(_make_config(), client=_fake_client(create=create))
        with pytest.raises(ParseError):
            await analyzer.analyze("p", "d", role="primary", timeframe="1day")

    @pytest.mark.asyncio
    async def test_no_choices_raises_parse_error(self):
        create = AsyncMock(return_value=SimpleNamespace(choices=[]))
        analyzer = AIAnalyzer(_make_config(), client=_fake_client(create=create))
        with pytest.raises(ParseError):
            await analyzer.analyze("p", "d", role="primary", timeframe="1day")

    @pytest.mark.asyncio
    async def test_non_json_raises_parse_error(self):
        create = AsyncMock(return_value=_completion("The market looks bullish."))
        analyzer = AIAnalyzer(_make_config(), client=_fake_client(create=create))
        with pytest.raises(ParseError):
            await analyzer.analyze("p", "d", role="primary", timeframe="1day")

    @pytest.mark.asyncio
    async def test_sdk_error_raises_provider_error(self):
        request = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")
        create = AsyncMock(side_effect=openai.APIConnectionError(request=request))
        analyzer = AIAnalyzer(_make_config(), client=_fake_client(create=create))
        with pytest.raises(ProviderError, match="openai"):
            await analyzer.analyze("p", "d", role="primary", timeframe="1day")


class TestComplete:
    @pytest.mark.asyncio
    async def test_free_text(self):
        create = AsyncMock(return_value=_completion("  • one\n• two  "))
        analyzer = AIAnalyzer(_make_config(), client=_fake_client(create=create))
        text = await analyzer.complete("system", "user")
        assert text == "• one\n• two"
        assert "response_format" not in create.await_args.kwargs


class TestValidateApiKey:
    @pytest.mark.asyncio
    async def test_accepted(self):
        analyzer = AIAnalyzer(_make_config(), client=_fake_client())
        assert await analyzer.validate_api_key() is True

    @pytest.mark.asyncio
    async def test_rejected(self):
        response = httpx.Response(
            401, request=httpx.Request("GET", "https://api.openai.com/v1/models"),
        )
        models_list = AsyncMock(
            side_effect=openai.AuthenticationError("bad key", response=response, body=None)
        )
        analyzer = AIAnalyzer(_make_config(), client=_fake_client(models_list=models_list))
        assert await analyzer.validate_api_key() is False
