"""Conversational replies: analysis explanations and general chat."""

import logging
from typing import Optional

from primus.analysis.ai_analyzer import AIAnalyzer
from primus.conversation.context import (
    extract_key_details,
    format_analysis_for_prompt,
    format_history_for_prompt,
    is_analysis_recent,
)
from primus.errors import AnalysisError
from primus.repos.conversation_repo import BOT_MESSAGE, USER_MESSAGE, ConversationRepo
from primus.repos.reference_repo import ReferenceRepo

logger = logging.getLogger("primus")

NO_ANALYSIS_REPLY = (
    "I don't have a recent analysis to explain. "
    "Run a new analysis first and ask again."
)
FAILURE_REPLY = (
    "I had trouble explaining that analysis. Please try asking more "
    "specifically, or start a new analysis!"
)
DEFAULT_QUESTION = "Please explain this analysis in detail."

_PERSONA = (
    "You are PRIMUS, a trading analysis assistant. You explain analyses "
    "clearly and never give financial advice."
)
_SYSTEM_HEADER = _PERSONA + "\n\nYou are explaining a trading analysis to the user.\n\n"


def build_explanation_prompt(details: dict, question: str, stale: bool = False) -> str:
    lines = [
        "ANALYSIS DETAILS:",
        f"Reference: {details['reference_key']}",
        f"Pair: {details['pair']}",
        f"Strategy: {details['strategy']}",
        f"Signal: {details['signal']}",
        f"Valid: {'YES' if details['valid'] else 'NO'}",
    ]
    confidence = details.get("confidence")
    lines.append(
        f"Confidence: {confidence * 100:.1f}%" if confidence is not None else "Confidence: N/A"
    )
    if details.get("trend"):
        lines.append(f"Trend: {details['trend']}")
    if details.get("pattern"):
        lines.append(f"Pattern: {details['pattern']}")
    if details.get("zone"):
        zone = details["zone"]
        lines.append(f"Zone: {zone['price_low']} - {zone['price_high']}")
    for label, key in (
        ("Entry", "entry_price"),
        ("Stop Loss", "stop_loss"),
        ("Take Profit", "take_profit"),
    ):
        if details.get(key) is not None:
            lines.append(f"{label}: {details[key]}")
    if stale:
        lines.append("NOTE: this analysis is older than 30 minutes; market conditions may have changed.")

    lines += [
        "",
        f'USER QUESTION: "{question}"',
        "",
        "Provide a clear, educational explanation. Include risk warnings "
        "for trade-related info.",
    ]
    return _SYSTEM_HEADER + "\n".join(lines)


class AnalysisExplainer:
    """Answers questions about the user's newest stored analysis.

    Args:
        analyzer: Provides ``complete()`` for the chat call.
        references: Source of the last analysis snapshot.
    """

    def __init__(self, analyzer: AIAnalyzer, references: ReferenceRepo) -> None:
        self._analyzer = analyzer
        self._references = references

    async def explain(
        self,
        user_id: str,
        question: Optional[str] = None,
        reference_key: Optional[str] = None,
    ) -> str:
        """Answer *question* about the user's newest analysis.

        With *reference_key*, explain that stored analysis instead; keys
        belonging to another user are treated as missing.
        """
        if reference_key:
            reference = self._references.get_by_key(reference_key)
            if reference is not None and reference["user_id"] != str(user_id):
                reference = None
        else:
            reference = self._references.get_last(user_id)
        details = extract_key_details(reference)
        if details is None:
            return NO_ANALYSIS_REPLY

        question = question or DEFAULT_QUESTION
        prompt = build_explanation_prompt(
            details, question, stale=not is_analysis_recent(reference),
        )
        try:
            return await self._analyzer.complete(prompt, question, max_tokens=1000)
        except AnalysisError as exc:
            logger.error("Analysis explanation failed for user %s: %s", user_id, exc)
            return FAILURE_REPLY


# ── General chat ─────────────────────────────────────────────────────────

CHAT_FALLBACK_REPLY = (
    "I had trouble understanding that. You can start a new trading "
    "analysis, check your statistics, or ask about your last analysis."
)
CHAT_HISTORY_LIMIT = 5


def build_chat_prompt(
    reference: Optional[dict],
    history: list[dict],
    message: str,
) -> str:
    """System prompt carrying the last analysis and the recent conversation."""
    parts = [_PERSONA, ""]

    if reference is not None:
        recent = is_analysis_recent(reference)
        parts.append(f"===== LAST ANALYSIS ({'RECENT' if recent else 'OLDER'}) =====")
        parts.append(format_analysis_for_prompt(reference))
        if recent:
            parts.append("Note: This analysis is very recent. User may be asking about it.")
    else:
        parts += ["===== LAST ANALYSIS =====", format_analysis_for_prompt(None)]
    parts.append("")

    if history:
        parts += ["===== RECENT CONVERSATION =====", format_history_for_prompt(history), ""]

    parts += [
        "===== YOUR TASK =====",
        f'The user just sent: "{message}"',
        "",
        "Respond naturally and helpfully based on the context above.",
        "Guidelines:",
        "- If the user asks about the last analysis, reference specific details from it",
        "- Keep responses concise (2-4 short paragraphs max)",
        "- If discussing trades, include a risk warning",
        "- If unsure, admit it and offer to help differently",
    ]
    return "\n".join(parts)


class ChatResponder:
    """Free-form chat with the last analysis and recent messages as context.

    Both sides of every exchange are stored, so the next reply sees them.

    Args:
        analyzer: Provides ``complete()`` for the chat call.
        references: Source of the last analysis snapshot.
        conversations: Message history store.
    """

    def __init__(
        self,
        analyzer: AIAnalyzer,
        references: ReferenceRepo,
        conversations: ConversationRepo,
    ) -> None:
        self._analyzer = analyzer
        self._references = references
        self._conversations = conversations

    async def respond(self, user_id: str, message: str) -> str:
        reference = self._references.get_last(user_id)
        history = self._conversations.get_recent_history(user_id, limit=CHAT_HISTORY_LIMIT)
        logger.info(
            "Chat context for user %s: analysis=%s, history=%d messages",
            user_id, "yes" if reference else "no", len(history),
        )
        self._conversations.save_message(user_id, USER_MESSAGE, message)

        prompt = build_chat_prompt(reference, history, message)
        try:
            reply = await self._analyzer.complete(prompt, message, max_tokens=1000)
        except AnalysisError as exc:
            logger.error("Chat reply failed for user %s: %s", user_id, exc)
            reply = CHAT_FALLBACK_REPLY

        metadata = {"reference_key": reference["reference_key"]} if reference else {}
        self._conversations.save_message(user_id, BOT_MESSAGE, reply, metadata)
        return reply
