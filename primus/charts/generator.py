"""Candlestick chart rendering for analysis results.

Charts are rendered server-side with matplotlib (Agg backend, no GUI).
One PNG per timeframe: candles, the timeframe's zone as a shaded band and
the trade levels as horizontal lines.
"""

import io
import logging
import pathlib
import re
from datetime import datetime, timezone
from typing import Optional

import matplotlib

matplotlib.use("Agg")  # headless rendering

import matplotlib.pyplot as plt  # noqa: E402
import numpy as np  # noqa: E402
from matplotlib.patches import Rectangle  # noqa: E402

from primus.analysis.pips import format_price
from primus.errors import ChartError
from primus.quotes.models import Bar
from primus.strategy.base import StrategyProtocol
from primus.strategy.models import (
    ENTRY,
    ChartImage,
    CombinedAnalysis,
    TimeframeRequest,
    Zone,
)

logger = logging.getLogger("primus")

_BG = "#131722"
_GRID = "#787B86"
_TEXT = "#D1D4DC"
_UP = "#26a69a"
_DOWN = "#ef5350"
_ZONE = "#2196F3"
_SL = "#FF5252"
_TP = "#00E5FF"


def _slug(text: str) -> str:
    return re.sub(r"[^A-Za-z0-9]+", "", text)


def _draw_candles(ax, bars: list[Bar]) -> None:
    opens = np.array([b.open for b in bars])
    highs = np.array([b.high for b in bars])
    lows = np.array([b.low for b in bars])
    closes = np.array([b.close for b in bars])
    x = np.arange(len(bars))
    up = closes >= opens
    colors = np.where(up, _UP, _DOWN)

    ax.vlines(x, lows, highs, colors=colors, linewidth=0.6)
    body_lo = np.minimum(opens, closes)
    body_h = np.abs(closes - opens)
    for i in range(len(bars)):
        if body_h[i] < (highs[i] - lows[i]) * 0.005:
            # Doji
            ax.hlines(closes[i], x[i] - 0.35, x[i] + 0.35, color=colors[i], linewidth=1)
        else:
            ax.add_patch(
                Rectangle(
                    (x[i] - 0.35, body_lo[i]), 0.7, body_h[i],
                    facecolor=colors[i], edgecolor=colors[i], linewidth=0.5,
                )
            )


def _draw_zone(ax, pair: str, zone: Optional[Zone], label: str, alpha: float) -> None:
    if zone is None or not zone.is_complete:
        return
    low, high = sorted((zone.price_low, zone.price_high))
    ax.axhspan(
        low, high, alpha=alpha, color=_ZONE,
        label=f"{label} {format_price(pair, low)} - {format_price(pair, high)}",
    )


def _draw_level(ax, pair: str, price: Optional[float], name: str, color: str, n: int) -> None:
    if price is None:
        return
    ax.axhline(y=price, color=color, linestyle="--", linewidth=1.2, alpha=0.9)
    ax.annotate(
        f"  {name} {format_price(pair, price)}",
        xy=(n - 1, price), color="#FFFFFF", fontsize=8, va="center",
        bbox=dict(boxstyle="round,pad=0.2", facecolor=_BG, edgecolor=color, alpha=0.8),
    )


class ChartGenerator:
    """Renders one PNG per analysed timeframe.

    Args:
        chart_dir: Output directory (created on first use).
        chart_bars: Number of most recent bars drawn per chart.
    """

    def __init__(self, chart_dir: str, chart_bars: int = 80) -> None:
        self._chart_dir = pathlib.Path(chart_dir)
        self._chart_bars = chart_bars

    def _render(
        self,
        pair: str,
        strategy: StrategyProtocol,
        tf: TimeframeRequest,
        analysis: CombinedAnalysis,
        bars: list[Bar],
    ) -> bytes:
        shown = bars[-self._chart_bars:]
        n = len(shown)
        partial = analysis.entry if tf.role == ENTRY else analysis.primary

        fig, ax = plt.subplots(figsize=(14, 7))
        try:
            fig.patch.set_facecolor(_BG)
            ax.set_facecolor(_BG)
            _draw_candles(ax, shown)

            if tf.role == ENTRY:
                _draw_zone(ax, pair, analysis.primary_zone, "Primary zone", 0.06)
                _draw_zone(ax, pair, partial.zone, "Entry zone", 0.2)
            else:
                _draw_zone(ax, pair, partial.zone, "Zone", 0.2)

            _draw_level(ax, pair, analysis.stop_loss, "SL", _SL, n)
            _draw_level(ax, pair, analysis.take_profit_1, "TP1", _TP, n)
            _draw_level(ax, pair, analysis.take_profit_2, "TP2", _TP, n)

            status = "VALID" if analysis.valid else "INVALID"
            ax.set_title(
                f"{pair}  •  {strategy.title}  •  {tf.label}  •  "
                f"{analysis.signal.upper()}  •  {status}",
                color=_TEXT, fontsize=13, fontweight="bold", pad=10,
            )

            step = max(1, n // 10)
            ticks = list(range(0, n, step))
            ax.set_xticks(ticks)
            ax.set_xticklabels(
                [shown[i].time[:16] for i in ticks],
                rotation=45, ha="right", fontsize=7, color=_GRID,
            )
            ax.tick_params(colors=_GRID, labelsize=8)
            ax.grid(True, alpha=0.08, color=_GRID)
            ax.yaxis.tick_right()
            for spine in ax.spines.values():
                spine.set_color("#363A45")
            if ax.get_legend_handles_labels()[0]:
                ax.legend(
                    loc="upper left", fontsize=8,
                    facecolor=_BG, edgecolor=_GRID, labelcolor=_TEXT,
                )

            fig.tight_layout()
            buf = io.BytesIO()
            fig.savefig(buf, format="png", dpi=110, facecolor=fig.get_facecolor())
            return buf.getvalue()
        finally:
            plt.close(fig)

    def generate(
        self,
        pair: str,
        strategy: StrategyProtocol,
        analysis: CombinedAnalysis,
        market_data: dict[str, list[Bar]],
    ) -> list[ChartImage]:
        """Render primary then entry chart and write them to disk.

        Raises ``ChartError`` if bars are missing or rendering fails.
        """
        stamp = datetime.now(timezone.utc).strftime("%Y%m%d%H%M%S%f")
        charts: list[ChartImage] = []
        for tf in strategy.get_required_timeframes():
            bars = market_data.get(tf.interval)
            if not bars:
                raise ChartError(f"No {tf.interval} bars to chart for {pair}")
            try:
                png = self._render(pair, strategy, tf, analysis, bars)
                self._chart_dir.mkdir(parents=True, exist_ok=True)
                path = self._chart_dir / (
                    f"{_slug(pair)}_{strategy.name}_{tf.interval}_{stamp}.png"
                )
                path.write_bytes(png)
            except Exception as exc:  # any matplotlib failure becomes a ChartError
                logger.error("Chart rendering failed for %s %s: %s", pair, tf.interval, exc)
                raise ChartError(f"Failed to render {tf.label} chart: {exc}") from exc

            charts.append(
                ChartImage(
                    timeframe=tf.interval, label=tf.label, role=tf.role,
                    path=str(path), png=png,
                )
            )
        return charts
