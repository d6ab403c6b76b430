"""User-facing text built from a ``CombinedAnalysis``.

Caption, validation explanation and the three-bullet short summary shown
next to the charts.
"""

import logging
import re

from primus.analysis.ai_analyzer import AIAnalyzer
from primus.analysis.pips import format_price
from primus.errors import AnalysisError
from primus.strategy.models import ENTRY, PRIMARY, CombinedAnalysis

logger = logging.getLogger("primus")

CAPTION_LIMIT = 1024
BULLET = "•"

_SUMMARY_SYSTEM = "You are a concise trading analysis assistant."
_SUMMARY_PROMPT = """Convert the following detailed analysis into exactly 3 concise bullet points. Each bullet point should be one short sentence (max 15 words). Focus on the most critical information only.

Analysis:
{analysis}

Respond with ONLY the 3 bullet points in this exact format:
• [point 1]
• [point 2]
• [point 3]"""

_STRATEGY_NOTES = {
    "swing": (
        "For optimal swing setups, M30 patterns close to Daily zones work best.",
        "Current setup may still be tradeable with proper risk management.",
    ),
    "scalping": (
        "For optimal scalping setups, 5-min patterns close to 15-min zones work best.",
        "Current setup may still be tradeable with tighter stops.",
    ),
}


def build_caption(analysis: CombinedAnalysis, limit: int = CAPTION_LIMIT) -> str:
    """Chart caption: status, signal, confidence, zone, levels, timeframe."""
    pair = analysis.pair
    lines = [
        "PRIMUS Analysis",
        f"{pair} | {analysis.strategy.upper()}",
        f"Status: {'VALID' if analysis.valid else 'INVALID'}",
        f"Signal: {analysis.signal.upper()}",
        f"Confidence: {analysis.confidence * 100:.1f}%",
    ]

    zone = analysis.primary_zone
    if zone is not None and zone.is_complete:
        label = {"buy": "Buy Zone", "sell": "Sell Zone"}.get(analysis.signal, "Zone")
        lines += [
            "",
            f"{label}:",
            f"{format_price(pair, zone.price_low)} - {format_price(pair, zone.price_high)}",
        ]

    levels = [
        ("SL", analysis.stop_loss),
        ("TP1", analysis.take_profit_1),
        ("TP2", analysis.take_profit_2),
    ]
    level_lines = [f"{name} : {format_price(pair, v)}" for name, v in levels if v is not None]
    if level_lines:
        lines.append("")
        lines += level_lines

    if analysis.timeframes:
        lines += ["", f"Timeframe: {analysis.timeframes[-1].interval}"]

    return "\n".join(lines)[:limit]


def build_invalid_explanation(analysis: CombinedAnalysis) -> str:
    """List validation errors/warnings per timeframe plus a strategy note."""
    lines = ["VALIDATION ISSUES:", ""]
    sections = (
        (PRIMARY, "Primary timeframe"),
        (ENTRY, "Entry timeframe"),
    )
    for role, title in sections:
        report = analysis.validation.get(role)
        if report is None:
            continue
        if report.errors:
            lines.append(f"{title} issues:")
            lines += [f"  - {e}" for e in report.errors]
        if report.warnings:
            lines.append(f"{title} notes:")
            lines += [f"  - {w}" for w in report.warnings]

    notes = _STRATEGY_NOTES.get(analysis.strategy, _STRATEGY_NOTES["scalping"])
    lines += ["", "NOTE:", *notes, ""]
    lines.append("You can retry for a different analysis or try another instrument.")
    return "\n".join(lines)


def extract_short_summary(reasoning: str, max_points: int = 3) -> str:
    """Sentence-based fallback summary: first sentences of 21-199 chars."""
    if not reasoning:
        return ""
    sentences = [s.strip() for s in re.split(r"[.!?]+", reasoning)]
    points = [s for s in sentences if 20 < len(s) < 200][:max_points]
    if not points:
        return ""
    return "\n".join(f"{BULLET} {p}" for p in points)


async def generate_short_summary(analyzer: AIAnalyzer, reasoning: str) -> str:
    """Three bullet points from the model, or the sentence fallback.

    Summary failures never fail the analysis: provider and parse errors
    are logged and the fallback is used.
    """
    if not reasoning:
        return ""
    try:
        text = await analyzer.complete(
            _SUMMARY_SYSTEM, _SUMMARY_PROMPT.format(analysis=reasoning), max_tokens=300,
        )
    except AnalysisError as exc:
        logger.error("Failed to generate short summary: %s", exc)
        return extract_short_summary(reasoning)

    bullets = [line.strip() for line in text.splitlines() if line.strip().startswith(BULLET)]
    if len(bullets) >= 3:
        return "\n".join(bullets[:3])
    return extract_short_summary(reasoning)
