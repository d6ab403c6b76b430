"""Internal API routers — /api/analysis endpoints.

No business logic, no SQL. Delegates to the orchestrator, repos and the
explainer injected at startup.
"""

import base64
import logging
import sqlite3
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Query
from fastapi.responses import JSONResponse

from primus.analysis.presentation import build_caption, build_invalid_explanation, generate_short_summary
from primus.errors import AnalysisError, UnknownStrategyError
from primus.strategy.models import CombinedAnalysis

logger = logging.getLogger("primus")
router = APIRouter(prefix="/api/analysis")

DEFAULT_USER = "web"

# ── Shared state (set during app startup) ────────────────────────────────

_config = None         # Set via configure_routers()
_orchestrator = None   # Set via configure_routers()
_analyzer = None       # Set via configure_routers()
_analysis_repo = None  # Set via configure_routers()
_reference_repo = None # Set via configure_routers()
_explainer = None      # Set via configure_routers()
_responder = None      # Set via configure_routers()
_conversation_repo = None  # Set via configure_routers()

# Users with an analysis in flight (advisory, not a lock)
_processing: set[str] = set()


def configure_routers(
    config,
    orchestrator,
    analyzer=None,
    analysis_repo=None,
    reference_repo=None,
    explainer=None,
    responder=None,
    conversation_repo=None,
) -> None:
    """Inject dependencies from the application startup.

    Args:
        config: Application ``Config``.
        orchestrator: An ``AnalysisOrchestrator`` (or duck-type for tests).
        analyzer: ``AIAnalyzer`` used for the short summary; skipped if None.
        analysis_repo: An ``AnalysisRepo`` for history and stats.
        reference_repo: A ``ReferenceRepo`` for last-analysis snapshots.
        explainer: An ``AnalysisExplainer`` for the /explain endpoint.
        responder: A ``ChatResponder`` for the /chat endpoint.
        conversation_repo: A ``ConversationRepo`` for chat history.
    """
    global _config, _orchestrator, _analyzer, _analysis_repo  # noqa: PLW0603
    global _reference_repo, _explainer, _responder, _conversation_repo  # noqa: PLW0603
    _config = config
    _orchestrator = orchestrator
    _analyzer = analyzer
    _analysis_repo = analysis_repo
    _reference_repo = reference_repo
    _explainer = explainer
    _responder = responder
    _conversation_repo = conversation_repo
    _processing.clear()


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": message})


# ── Response shaping ─────────────────────────────────────────────────────


def _chart_payload(analysis: CombinedAnalysis) -> list[dict]:
    return [
        {
            "timeframe": chart.timeframe,
            "label": chart.label,
            "image": "data:image/png;base64," + base64.b64encode(chart.png).decode("ascii"),
        }
        for chart in analysis.charts
        if chart.png
    ]


def _ohlcv_payload(analysis: CombinedAnalysis) -> dict:
    return {
        interval: [bar.to_dict() for bar in bars]
        for interval, bars in analysis.market_data.items()
    }


def build_run_response(analysis: CombinedAnalysis, summary: str = "") -> dict:
    """JSON body for a successful ``/run`` call."""
    snapshot = analysis.to_dict()
    zone = analysis.entry_zone or analysis.primary_zone
    return {
        "pair": analysis.pair,
        "strategy": analysis.strategy,
        "signal": analysis.signal,
        "confidence": analysis.confidence,
        "valid": analysis.valid,
        "trend": analysis.trend,
        "pattern": analysis.pattern,
        "zone": zone.to_dict() if zone else None,
        "primaryZone": snapshot["primary_zone"],
        "entryZone": snapshot["entry_zone"],
        "entryPrice": analysis.entry_price,
        "stopLoss": analysis.stop_loss,
        "takeProfit1": analysis.take_profit_1,
        "takeProfit2": analysis.take_profit_2,
        "charts": _chart_payload(analysis),
        "ohlcvData": _ohlcv_payload(analysis),
        "timeframes": snapshot["timeframes"],
        "reasoning": analysis.reasoning,
        "summary": summary,
        "caption": build_caption(analysis),
        "explanation": None if analysis.valid else build_invalid_explanation(analysis),
        "validation": snapshot["validation"],
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


def _persist(user_id: str, market: str, analysis: CombinedAnalysis) -> Optional[str]:
    """Log history and the reference snapshot; failures are logged only."""
    if _analysis_repo is None:
        return None
    try:
        analysis_id = _analysis_repo.log_analysis(user_id, analysis, market_category=market)
        key = None
        if _reference_repo is not None:
            key = _reference_repo.save_reference(user_id, analysis_id, analysis.to_dict())
        logger.info("Analysis %s logged for user %s", analysis_id, user_id)
        return key
    except sqlite3.Error as exc:
        logger.error("Failed to log analysis for user %s: %s", user_id, exc)
        return None


# ── Endpoints ────────────────────────────────────────────────────────────


@router.get("/instruments")
async def get_instruments():
    """Return available markets, instruments and strategies."""
    return {
        "success": True,
        "markets": [
            {"key": "forex", "name": "Forex", "instruments": list(_config.forex_pairs)},
            {"key": "gold", "name": "Gold", "instruments": list(_config.gold_pairs)},
        ],
        "strategies": list(_config.active_strategies),
    }


@router.post("/run")
async def run_analysis(body: dict):
    """Run a two-timeframe analysis.

    Body: ``{pair, strategy, market?, user_id?}``.
    """
    pair = body.get("pair")
    strategy = body.get("strategy")
    user_id = str(body.get("user_id") or DEFAULT_USER)

    if not pair or not strategy:
        return _error(400, "Pair and strategy are required")
    if strategy not in _config.active_strategies:
        return _error(
            400, f"Invalid strategy. Available: {', '.join(_config.active_strategies)}",
        )
    if pair not in _config.all_pairs:
        return _error(400, f"Invalid pair. Available: {', '.join(_config.all_pairs)}")
    if user_id in _processing:
        return _error(409, "An analysis is already running for this user")

    market = body.get("market") or _config.market_for(pair)
    _processing.add(user_id)
    try:
        logger.info("Web analysis started: %s %s by user %s", pair, strategy, user_id)
        analysis = await _orchestrator.run_analysis(pair, strategy)
    except UnknownStrategyError as exc:
        return _error(400, str(exc))
    except AnalysisError as exc:
        logger.error("Analysis failed for %s %s: %s", pair, strategy, exc)
        return _error(500, str(exc))
    finally:
        _processing.discard(user_id)

    summary = ""
    if _analyzer is not None:
        summary = await generate_short_summary(_analyzer, analysis.reasoning)

    reference_key = _persist(user_id, market, analysis)
    result = build_run_response(analysis, summary)
    result["referenceKey"] = reference_key
    logger.info("Web analysis completed: %s %s", pair, strategy)
    return {"success": True, "analysis": result}


@router.get("/history")
async def get_history(
    user_id: str = Query(default=DEFAULT_USER),
    limit: int = Query(default=20, ge=1, le=100),
):
    """Return the user's recent analyses, newest first."""
    if _analysis_repo is None:
        return {"success": True, "history": []}
    return {"success": True, "history": _analysis_repo.get_history(user_id, limit=limit)}


@router.get("/stats")
async def get_stats(user_id: str = Query(default=DEFAULT_USER)):
    """Return aggregate statistics for the user."""
    if _analysis_repo is None:
        return _error(503, "History storage is not configured")
    stats = _analysis_repo.get_user_stats(user_id)
    return {
        "success": True,
        "stats": {
            "totalAnalyses": stats["total_analyses"] or 0,
            "validSetups": stats["valid_setups"] or 0,
            "buySignals": stats["buy_signals"] or 0,
            "sellSignals": stats["sell_signals"] or 0,
            "avgConfidence": stats["avg_confidence"] or 0,
            "firstAnalysis": stats["first_analysis"],
            "lastAnalysis": stats["last_analysis"],
        },
    }


@router.post("/explain")
async def explain_analysis(body: dict):
    """Explain a stored analysis.

    Body: ``{user_id, question?, reference_key?}``.  Without a key the
    user's newest analysis is explained.
    """
    user_id = body.get("user_id")
    if not user_id:
        return _error(400, "user_id is required")
    if _explainer is None:
        return _error(503, "Explanations are not configured")
    reply = await _explainer.explain(
        str(user_id), body.get("question"), body.get("reference_key"),
    )
    return {"success": True, "reply": reply}


@router.post("/chat")
async def chat(body: dict):
    """Free-form chat with analysis context.  Body: ``{user_id, message}``."""
    user_id = body.get("user_id")
    message = (body.get("message") or "").strip()
    if not user_id or not message:
        return _error(400, "user_id and message are required")
    if _responder is None:
        return _error(503, "Chat is not configured")
    reply = await _responder.respond(str(user_id), message)
    return {"success": True, "reply": reply}


@router.get("/conversation")
async def get_conversation(
    user_id: str = Query(default=DEFAULT_USER),
    limit: int = Query(default=10, ge=1, le=100),
):
    """Return the user's recent chat messages, oldest first."""
    if _conversation_repo is None:
        return {"success": True, "messages": [], "stats": None}
    return {
        "success": True,
        "messages": _conversation_repo.get_recent_history(user_id, limit=limit),
        "stats": _conversation_repo.get_stats(user_id),
    }
