"""Chat-completion analyzer.

Sends one strategy prompt plus formatted market data to an
OpenAI-compatible endpoint and parses the JSON reply into a
``PartialAnalysis``.  No retry: the caller treats any failure as terminal.
"""

import json
import logging
import math
import time
from typing import Any, Optional

import openai
from openai import AsyncOpenAI

from primus.config import Config
from primus.errors import ParseError, ProviderError
from primus.strategy.models import PartialAnalysis, Zone, normalize_signal

logger = logging.getLogger("primus")

_PROVIDER = "openai"
_TREND_KEYS = ("trend", "micro_trend", "daily_trend")


# ── Parsing helpers ──────────────────────────────────────────────────────


def _to_float(value: Any) -> Optional[float]:
    """Coerce numbers and numeric strings (``"1.0850"``, ``"75%"``)."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        cleaned = value.strip().rstrip("%").replace(",", "")
        try:
            number = float(cleaned)
        except ValueError:
            return None
    else:
        return None
    # NaN and inf slip through json.loads and float()
    return number if math.isfinite(number) else None


def extract_json_object(text: str) -> dict:
    """Pull the outermost JSON object out of *text*.

    Handles markdown fences and prose around the object.

    Raises ``ParseError`` when no JSON object can be decoded.
    """
    cleaned = text.strip()
    if "```" in cleaned:
        for part in cleaned.split("```"):
            stripped = part.strip()
            if stripped.startswith("json"):
                stripped = stripped[4:].strip()
            if stripped.startswith("{"):
                cleaned = stripped
                break

    start = cleaned.find("{")
    end = cleaned.rfind("}")
    if start == -1 or end <= start:
        raise ParseError(f"No JSON object in response: {text[:200]!r}")

    try:
        data = json.loads(cleaned[start:end + 1])
    except json.JSONDecodeError as exc:
        raise ParseError(f"Invalid JSON in response: {exc}") from exc
    if not isinstance(data, dict):
        raise ParseError("Response JSON is not an object")
    return data


def _parse_zone(data: dict) -> Optional[Zone]:
    zone = data.get("zone")
    if isinstance(zone, dict):
        return Zone(
            price_low=_to_float(zone.get("price_low")),
            price_high=_to_float(zone.get("price_high")),
        )
    if "price_low" in data or "price_high" in data:
        return Zone(
            price_low=_to_float(data.get("price_low")),
            price_high=_to_float(data.get("price_high")),
        )
    return None


def _parse_confidence(raw: Any) -> float:
    value = _to_float(raw)
    if value is None:
        raise ParseError(f"Confidence is missing or not numeric: {raw!r}")
    if value > 1.0:
        # Model answered in percent
        value = value / 100.0
    if not 0.0 <= value <= 1.0:
        raise ParseError(f"Confidence out of range: {raw!r}")
    return value


def parse_partial_analysis(data: dict, role: str, timeframe: str) -> PartialAnalysis:
    """Map a decoded model reply to ``PartialAnalysis``.

    A missing zone is left for validation to report; a missing trend or
    confidence raises ``ParseError``.
    """
    trend = next((data[k] for k in _TREND_KEYS if data.get(k)), None)
    if trend is None:
        raise ParseError(f"{timeframe} analysis has no trend field")

    return PartialAnalysis(
        role=role,
        timeframe=timeframe,
        trend=str(trend),
        pattern=str(data.get("pattern") or ""),
        zone=_parse_zone(data),
        reasoning=str(data.get("reasoning") or ""),
        confidence=_parse_confidence(data.get("confidence")),
        signal=normalize_signal(data.get("signal")),
        entry_price=_to_float(data.get("entry_price")),
        stop_loss=_to_float(data.get("stop_loss")),
        take_profit_1=_to_float(data.get("take_profit_1") or data.get("take_profit")),
        take_profit_2=_to_float(data.get("take_profit_2")),
        current_price=_to_float(data.get("current_price")),
        raw=data,
    )


# ── Client ───────────────────────────────────────────────────────────────


class AIAnalyzer:
    """Async wrapper around the chat-completions endpoint.

    Args:
        config: Provides the API key, model and optional base URL.
        client: Pre-built ``AsyncOpenAI`` (tests inject a fake here).
    """

    def __init__(self, config: Config, client: Optional[AsyncOpenAI] = None) -> None:
        self._config = config
        self._client = client
        self.model = config.openai_model

    def _get_client(self) -> AsyncOpenAI:
        if self._client is None:
            self._client = AsyncOpenAI(
                api_key=self._config.openai_api_key,
                base_url=self._config.openai_base_url,
            )
        return self._client

    async def _chat(
        self,
        messages: list[dict],
        max_tokens: int,
        json_mode: bool,
    ) -> str:
        kwargs: dict = {
            "model": self.model,
            "messages": messages,
            "max_completion_tokens": max_tokens,
        }
        if json_mode:
            kwargs["response_format"] = {"type": "json_object"}

        t0 = time.monotonic()
        try:
            resp = await self._get_client().chat.completions.create(**kwargs)
        except openai.APIError as exc:
            status = getattr(exc, "status_code", None)
            logger.error("Chat completion failed: %s", exc)
            raise ProviderError(_PROVIDER, str(exc), status_code=status) from exc

        if not resp.choices:
            raise ParseError("No choices returned from chat completion")
        content = (resp.choices[0].message.content or "").strip()
        if not content:
            raise ParseError("Empty response from chat completion")

        logger.info(
            "Chat completion (%s) returned %d chars in %.1fs",
            self.model, len(content), time.monotonic() - t0,
        )
        return content

    async def analyze(
        self,
        prompt: str,
        formatted_data: str,
        *,
        role: str,
        timeframe: str,
        max_tokens: int = 1500,
    ) -> PartialAnalysis:
        """Run one timeframe analysis.

        Raises:
            ProviderError: the upstream call failed.
            ParseError: the reply could not be mapped to an analysis.
        """
        content = await self._chat(
            [
                {"role": "system", "content": prompt},
                {"role": "user", "content": formatted_data},
            ],
            max_tokens=max_tokens,
            json_mode=True,
        )
        data = extract_json_object(content)
        return parse_partial_analysis(data, role=role, timeframe=timeframe)

    async def complete(self, system: str, user: str, max_tokens: int = 1000) -> str:
        """Free-form completion used for summaries and explanations."""
        return await self._chat(
            [
                {"role": "system", "content": system},
                {"role": "user", "content": user},
            ],
            max_tokens=max_tokens,
            json_mode=False,
        )

    async def validate_api_key(self) -> bool:
        """Return ``False`` when the provider rejects the key."""
        try:
            await self._get_client().models.list()
        except openai.AuthenticationError as exc:
            logger.error("OpenAI rejected the API key: %s", exc)
            return False
        except openai.APIError as exc:
            raise ProviderError(_PROVIDER, str(exc)) from exc
        return True
