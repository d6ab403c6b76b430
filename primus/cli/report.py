"""CLI report — prints an analysis result to the console."""

from primus.analysis.pips import format_price
from primus.strategy.models import CombinedAnalysis, Zone


def _zone_str(pair: str, zone: Zone | None) -> str:
    if zone is None or not zone.is_complete:
        return "N/A"
    return f"{format_price(pair, zone.price_low)} - {format_price(pair, zone.price_high)}"


def print_analysis(analysis: CombinedAnalysis, summary: str = "") -> str:
    """Format and print a combined analysis.

    Args:
        analysis: Result of ``AnalysisOrchestrator.run_analysis``.
        summary: Optional bullet summary appended at the end.

    Returns:
        The formatted string (also printed to stdout).
    """
    pair = analysis.pair
    status = "VALID" if analysis.valid else "INVALID"
    header = f" Primus {pair} {analysis.strategy} "

    lines = [
        f"{header:─^52}",
        f"  Status:          {status}",
        f"  Signal:          {analysis.signal.upper()}",
        f"  Confidence:      {analysis.confidence * 100:.1f}%",
        f"  Trend:           {analysis.trend or 'N/A'}",
        f"  Pattern:         {analysis.pattern or 'N/A'}",
        f"  Primary zone:    {_zone_str(pair, analysis.primary_zone)}",
        f"  Entry zone:      {_zone_str(pair, analysis.entry_zone)}",
        f"  Entry:           {format_price(pair, analysis.entry_price)}",
        f"  Stop loss:       {format_price(pair, analysis.stop_loss)}",
        f"  TP1 / TP2:       {format_price(pair, analysis.take_profit_1)} / "
        f"{format_price(pair, analysis.take_profit_2)}",
    ]
    for role, report in analysis.validation.items():
        for err in report.errors:
            lines.append(f"  [{role} error]   {err}")
        for warn in report.warnings:
            lines.append(f"  [{role} warning] {warn}")
    for chart in analysis.charts:
        lines.append(f"  Chart {chart.label:<10}{chart.path}")
    if summary:
        lines += ["", summary]
    lines.append("─" * 52)

    output = "\n".join(lines)
    print(output)
    return output
