"""Primus — analysis orchestrator.

Runs one two-stage analysis per call:
keys → primary bars → primary AI → entry bars → entry AI → combine → charts.
Every step is awaited in order; any pipeline error aborts the run.
"""

import asyncio
import logging
from typing import Optional

from primus.analysis.ai_analyzer import AIAnalyzer
from primus.analysis.combine import combine_analyses
from primus.analysis.formatter import format_for_ai
from primus.analysis.validation import ValidationSettings
from primus.charts.generator import ChartGenerator
from primus.config import Config
from primus.errors import CredentialError
from primus.quotes.models import Bar
from primus.quotes.twelvedata_client import TwelveDataClient
from primus.strategy.base import StrategyProtocol
from primus.strategy.models import CombinedAnalysis, TimeframeRequest
from primus.strategy.registry import ZoneLimitOverrides, get_strategy

logger = logging.getLogger("primus")


class AnalysisOrchestrator:
    """Coordinates quotes, the AI analyzer and the chart generator.

    Args:
        config: Application configuration.
        quotes: A ``TwelveDataClient`` (or compatible duck-type / mock).
        analyzer: An ``AIAnalyzer`` (or compatible duck-type / mock).
        charts: A ``ChartGenerator`` (or compatible duck-type / mock).
        zone_limit_overrides: Per-strategy zone limits replacing the defaults.
        settings: Severity thresholds; derived from *config* when omitted.
    """

    def __init__(
        self,
        config: Config,
        quotes: TwelveDataClient,
        analyzer: AIAnalyzer,
        charts: ChartGenerator,
        zone_limit_overrides: Optional[ZoneLimitOverrides] = None,
        settings: Optional[ValidationSettings] = None,
    ) -> None:
        self._config = config
        self._quotes = quotes
        self._analyzer = analyzer
        self._charts = charts
        self._zone_limit_overrides = zone_limit_overrides or {}
        self._settings = settings or ValidationSettings.from_config(config)
        self._keys_verified = False

    # ── Credentials ──────────────────────────────────────────────────────

    async def validate_keys(self) -> None:
        """Fail fast on missing or rejected API keys.

        Missing keys are reported without touching the network.  Remote
        verification happens once per orchestrator.

        Raises:
            CredentialError: a key is missing or rejected.
        """
        missing = self._config.missing_credentials()
        if missing:
            raise CredentialError(f"Missing API key(s): {', '.join(missing)}")
        if self._keys_verified:
            return

        if not await self._quotes.validate_api_key():
            raise CredentialError("Twelve Data rejected TWELVEDATA_API_KEY")
        if not await self._analyzer.validate_api_key():
            raise CredentialError("OpenAI rejected OPENAI_API_KEY")

        self._keys_verified = True
        logger.info("API keys verified")

    # ── Pipeline ─────────────────────────────────────────────────────────

    async def _fetch(self, pair: str, tf: TimeframeRequest) -> tuple[list[Bar], str]:
        bars = await self._quotes.get_time_series(pair, tf.interval, tf.bars)
        formatted = format_for_ai(
            bars, pair, tf.interval, max_bars=self._config.prompt_bars,
        )
        return bars, formatted

    async def run_analysis(self, pair: str, strategy_name: str) -> CombinedAnalysis:
        """Run the full two-timeframe analysis for *pair*.

        Returns a fresh ``CombinedAnalysis`` with two charts attached
        (primary first, entry last), whether or not the setup is valid.

        Raises:
            CredentialError: missing or rejected keys.
            UnknownStrategyError: *strategy_name* is not registered.
            ProviderError: a quote or completion call failed.
            ParseError: a completion could not be parsed.
            ChartError: chart rendering failed.
        """
        await self.validate_keys()

        strategy: StrategyProtocol = get_strategy(
            strategy_name, self._zone_limit_overrides,
        )
        primary_tf, entry_tf = strategy.get_required_timeframes()
        logger.info(
            "Analysing %s with %s (%s → %s)",
            pair, strategy.name, primary_tf.interval, entry_tf.interval,
        )

        primary_bars, primary_data = await self._fetch(pair, primary_tf)
        logger.info("Fetched %d %s bars for %s", len(primary_bars), primary_tf.interval, pair)

        primary = await self._analyzer.analyze(
            strategy.build_primary_prompt(pair),
            primary_data,
            role=primary_tf.role,
            timeframe=primary_tf.interval,
        )
        logger.info(
            "%s analysis: trend=%s confidence=%.2f",
            primary_tf.label, primary.trend, primary.confidence,
        )

        entry_bars, entry_data = await self._fetch(pair, entry_tf)
        logger.info("Fetched %d %s bars for %s", len(entry_bars), entry_tf.interval, pair)

        entry = await self._analyzer.analyze(
            strategy.build_entry_prompt(pair, primary),
            entry_data,
            role=entry_tf.role,
            timeframe=entry_tf.interval,
        )
        logger.info(
            "%s analysis: trend=%s signal=%s confidence=%.2f",
            entry_tf.label, entry.trend, entry.signal, entry.confidence,
        )

        analysis = combine_analyses(strategy, pair, primary, entry, self._settings)
        analysis.market_data = {
            primary_tf.interval: primary_bars,
            entry_tf.interval: entry_bars,
        }
        logger.info(
            "Combined %s %s: signal=%s confidence=%.2f valid=%s",
            pair, strategy.name, analysis.signal, analysis.confidence, analysis.valid,
        )

        analysis.charts = await asyncio.to_thread(
            self._charts.generate, pair, strategy, analysis, analysis.market_data,
        )
        logger.info("Rendered %d chart(s) for %s", len(analysis.charts), pair)
        return analysis
