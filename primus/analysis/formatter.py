"""Bar formatting for LLM prompts — pure functions, no I/O."""

from primus.analysis.pips import format_price, pip_value
from primus.quotes.models import Bar


def _format_volume(volume: float) -> str:
    if volume <= 0:
        return "-"
    if volume == int(volume):
        return str(int(volume))
    return f"{volume:.2f}"


def summarize_bars(bars: list[Bar], pair: str) -> dict:
    """Period statistics over *bars* (all of them, not just the table)."""
    first, last = bars[0], bars[-1]
    change_pct = (last.close - first.open) / first.open * 100 if first.open else 0.0
    avg_range = sum(b.high - b.low for b in bars) / len(bars)
    return {
        "high": max(b.high for b in bars),
        "low": min(b.low for b in bars),
        "first_open": first.open,
        "last_close": last.close,
        "change_pct": change_pct,
        "avg_range_pips": avg_range / pip_value(pair),
    }


def format_for_ai(
    bars: list[Bar],
    pair: str,
    interval: str,
    max_bars: int = 60,
) -> str:
    """Render *bars* as a compact text block for a chat prompt.

    The table holds the most recent *max_bars* bars, oldest first.

    Raises ``ValueError`` if *bars* is empty or *max_bars* is below 1.
    """
    if not bars:
        raise ValueError(f"No bars to format for {pair} {interval}")
    if max_bars < 1:
        raise ValueError(f"max_bars must be at least 1, got {max_bars}")

    stats = summarize_bars(bars, pair)
    recent = bars[-max_bars:] if len(bars) > max_bars else bars

    lines = [
        f"MARKET DATA: {pair} | Interval: {interval} | "
        f"Bars: {len(recent)} of {len(bars)}",
        f"Period high: {format_price(pair, stats['high'])}  "
        f"Period low: {format_price(pair, stats['low'])}",
        f"First open: {format_price(pair, stats['first_open'])}  "
        f"Last close: {format_price(pair, stats['last_close'])}  "
        f"Change: {stats['change_pct']:+.2f}%",
        f"Average bar range: {stats['avg_range_pips']:.1f} pips",
        "",
        "time | open | high | low | close | volume",
    ]
    for b in recent:
        lines.append(
            " | ".join(
                (
                    b.time,
                    format_price(pair, b.open),
                    format_price(pair, b.high),
                    format_price(pair, b.low),
                    format_price(pair, b.close),
                    _format_volume(b.volume),
                )
            )
        )
    return "\n".join(lines)
