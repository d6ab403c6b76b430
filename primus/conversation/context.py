"""Last-analysis and chat-history context for conversational replies.

Works on reference records as returned by ``ReferenceRepo``:
``{"reference_key", "full_analysis", "created_at", ...}`` where
``full_analysis`` is a ``CombinedAnalysis.to_dict()`` snapshot.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

RECENT_WINDOW = timedelta(minutes=30)
_REASONING_PREVIEW = 300


def _zone_of(snapshot: dict) -> Optional[dict]:
    for key in ("primary_zone", "entry_zone"):
        zone = snapshot.get(key)
        if zone and zone.get("price_low") is not None and zone.get("price_high") is not None:
            return zone
    return None


def _percent(confidence: Optional[float]) -> str:
    if confidence is None:
        return "N/A"
    return f"{confidence * 100:.1f}%"


def format_analysis_for_prompt(reference: Optional[dict]) -> str:
    """Concise text block describing the referenced analysis."""
    if not reference or not reference.get("full_analysis"):
        return "No recent analysis available."

    snap = reference["full_analysis"]
    lines = [
        f"Analysis Reference: {reference.get('reference_key', 'N/A')}",
        f"Pair: {snap.get('pair') or 'Unknown'}",
        f"Strategy: {snap.get('strategy') or 'Unknown'}",
        f"Signal: {snap.get('signal') or 'N/A'}",
        f"Valid: {'YES' if snap.get('valid') else 'NO'}",
        f"Confidence: {_percent(snap.get('confidence'))}",
    ]
    if snap.get("trend"):
        lines.append(f"Trend: {snap['trend']}")
    if snap.get("pattern"):
        lines.append(f"Pattern: {snap['pattern']}")
    zone = _zone_of(snap)
    if zone:
        lines.append(f"Zone: {zone['price_low']} - {zone['price_high']}")
    if snap.get("current_price") is not None:
        lines.append(f"Current Price: {snap['current_price']}")
    if snap.get("reasoning"):
        lines += ["", f"Reasoning (summary): {snap['reasoning'][:_REASONING_PREVIEW]}..."]
    return "\n".join(lines)


def format_history_for_prompt(history: list[dict]) -> str:
    """``User: ...`` / ``Bot: ...`` lines, oldest first."""
    if not history:
        return "No recent conversation."
    return "\n".join(
        f"{'User' if msg['message_type'] == 'user' else 'Bot'}: {msg['content']}"
        for msg in history
    )


def extract_key_details(reference: Optional[dict]) -> Optional[dict]:
    """Flat dict of the fields the explainer talks about."""
    if not reference or not reference.get("full_analysis"):
        return None

    snap = reference["full_analysis"]
    return {
        "reference_key": reference.get("reference_key"),
        "pair": snap.get("pair"),
        "strategy": snap.get("strategy"),
        "signal": snap.get("signal"),
        "valid": bool(snap.get("valid")),
        "confidence": snap.get("confidence"),
        "trend": snap.get("trend"),
        "pattern": snap.get("pattern"),
        "zone": _zone_of(snap),
        "current_price": snap.get("current_price"),
        "entry_price": snap.get("entry_price"),
        "stop_loss": snap.get("stop_loss"),
        "take_profit": snap.get("take_profit_1"),
        "reasoning": snap.get("reasoning"),
        "validation": snap.get("validation"),
    }


def is_analysis_recent(
    reference: Optional[dict],
    now: Optional[datetime] = None,
    window: timedelta = RECENT_WINDOW,
) -> bool:
    """``True`` when the reference was created within *window* of *now*."""
    if not reference or not reference.get("created_at"):
        return False
    created = datetime.fromisoformat(reference["created_at"])
    if created.tzinfo is None:
        created = created.replace(tzinfo=timezone.utc)
    now = now or datetime.now(timezone.utc)
    return now - created <= window
