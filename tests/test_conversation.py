"""Tests for primus.conversation — last-analysis context and the explainer."""

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from primus.conversation.context import (
    extract_key_details,
    format_analysis_for_prompt,
    format_history_for_prompt,
    is_analysis_recent,
)
from primus.conversation.responder import (
    CHAT_FALLBACK_REPLY,
    FAILURE_REPLY,
    NO_ANALYSIS_REPLY,
    AnalysisExplainer,
    ChatResponder,
    build_chat_prompt,
    build_explanation_prompt,
)
from primus.errors import ProviderError
from primus.repos.conversation_repo import ConversationRepo
from primus.repos.db import init_db

NOW = datetime(2025, 1, 10, 12, 0, tzinfo=timezone.utc)

SNAPSHOT = {
    "pair": "XAU/USD",
    "strategy": "swing",
    "signal": "buy",
    "confidence": 0.79,
    "valid": True,
    "trend": "bullish",
    "pattern": "higher lows",
    "primary_zone": {"price_low": 2000.0, "price_high": 2010.5},
    "entry_zone": {"price_low": 2004.0, "price_high": 2008.0},
    "entry_price": 2006.0,
    "stop_loss": 1998.0,
    "take_profit_1": 2030.0,
    "current_price": 2007.5,
    "reasoning": "Gold is holding the daily demand zone. " * 20,
    "validation": {"primary": {"errors": [], "warnings": []}},
}


def _reference(created_at: datetime = NOW, snapshot: dict | None = None) -> dict:
    return {
        "reference_key": "A1736510400000ABCDE",
        "full_analysis": SNAPSHOT if snapshot is None else snapshot,
        "created_at": created_at.isoformat(),
    }


class TestFormatForPrompt:
    def test_contents(self):
        text = format_analysis_for_prompt(_reference())
        assert "Analysis Reference: A1736510400000ABCDE" in text
        assert "Pair: XAU/USD" in text
        assert "Valid: YES" in text
        assert "Confidence: 79.0%" in text
        assert "Zone: 2000.0 - 2010.5" in text
        assert "Current Price: 2007.5" in text

    def test_reasoning_truncated(self):
        text = format_analysis_for_prompt(_reference())
        line = next(l for l in text.splitlines() if l.startswith("Reasoning"))
        assert len(line) == len("Reasoning (summary): ") + 300 + 3

    def test_no_reference(self):
        assert format_analysis_for_prompt(None) == "No recent analysis available."


class TestExtractKeyDetails:
    def test_details(self):
        details = extract_key_details(_reference())
        assert details["pair"] == "XAU/USD"
        assert details["zone"] == {"price_low": 2000.0, "price_high": 2010.5}
        assert details["take_profit"] == 2030.0
        assert details["valid"] is True

    def test_falls_back_to_entry_zone(self):
        snapshot = {**SNAPSHOT, "primary_zone": {"price_low": None, "price_high": 2010.5}}
        details = extract_key_details(_reference(snapshot=snapshot))
        assert details["zone"] == {"price_low": 2004.0, "price_high": 2008.0}

    def test_none(self):
        assert extract_key_details(None) is None
        assert extract_key_details(_reference(snapshot={})) is None


class TestFormatHistory:
    def test_lines(self):
        history = [
            {"message_type": "user", "content": "Is gold still a buy?"},
            {"message_type": "bot", "content": "The zone is holding."},
        ]
        assert format_history_for_prompt(history) == (
            "User: Is gold still a buy?\nBot: The zone is holding."
        )

    def test_empty(self):
        assert format_history_for_prompt([]) == "No recent conversation."


class TestIsRecent:
    def test_within_window(self):
        assert is_analysis_recent(_reference(NOW - timedelta(minutes=29)), now=NOW)

    def test_outside_window(self):
        assert not is_analysis_recent(_reference(NOW - timedelta(minutes=31)), now=NOW)

    def test_missing(self):
        assert not is_analysis_recent(None)
        assert not is_analysis_recent({"full_analysis": SNAPSHOT})


class TestExplainer:
    @pytest.mark.asyncio
    async def test_explains_last_analysis(self):
        analyzer = AsyncMock()
        analyzer.complete.return_value = "Gold is bouncing from demand."
        references = MagicMock()
        references.get_last.return_value = _reference(datetime.now(timezone.utc))

        reply = await AnalysisExplainer(analyzer, references).explain("42", "Why buy?")

        assert reply == "Gold is bouncing from demand."
        references.get_last.assert_called_once_with("42")
        system, user = analyzer.complete.await_args.args[:2]
        assert 'USER QUESTION: "Why buy?"' in system
        assert "Stop Loss: 1998.0" in system
        assert "older than 30 minutes" not in system
        assert user == "Why buy?"

    @pytest.mark.asyncio
    async def test_stale_analysis_is_flagged(self):
        analyzer = AsyncMock()
        analyzer.complete.return_value = "ok"
        references = MagicMock()
        references.get_last.return_value = _reference(NOW - timedelta(days=2))

        await AnalysisExplainer(analyzer, references).explain("42")
        system = analyzer.complete.await_args.args[0]
        assert "older than 30 minutes" in system
        assert "Please explain this analysis in detail." in system

    @pytest.mark.asyncio
    async def test_explains_analysis_by_key(self):
        analyzer = AsyncMock()
        analyzer.complete.return_value = "ok"
        references = MagicMock()
        references.get_by_key.return_value = {**_reference(), "user_id": "42"}

        await AnalysisExplainer(analyzer, references).explain(
            "42", "Why?", reference_key="A1736510400000ABCDE",
        )
        references.get_by_key.assert_called_once_with("A1736510400000ABCDE")
        references.get_last.assert_not_called()
        assert "Pair: XAU/USD" in analyzer.complete.await_args.args[0]

    @pytest.mark.asyncio
    async def test_key_of_another_user_is_not_explained(self):
        analyzer = AsyncMock()
        references = MagicMock()
        references.get_by_key.return_value = {**_reference(), "user_id": "7"}

        reply = await AnalysisExplainer(analyzer, references).explain(
            "42", reference_key="A1736510400000ABCDE",
        )
        assert reply == NO_ANALYSIS_REPLY
        analyzer.complete.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_no_analysis(self):
        analyzer = AsyncMock()
        references = MagicMock()
        references.get_last.return_value = None
        reply = await AnalysisExplainer(analyzer, references).explain("42")
        assert reply == NO_ANALYSIS_REPLY
        analyzer.complete.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_provider_failure_returns_apology(self):
        analyzer = AsyncMock()
        analyzer.complete.side_effect = ProviderError("openai", "timeout")
        references = MagicMock()
        references.get_last.return_value = _reference()
        reply = await AnalysisExplainer(analyzer, references).explain("42")
        assert reply == FAILURE_REPLY


def test_prompt_without_optional_fields():
    details = extract_key_details(
        _reference(snapshot={"pair": "EUR/USD", "strategy": "swing", "signal": "wait"})
    )
    prompt = build_explanation_prompt(details, "What now?")
    assert "Confidence: N/A" in prompt
    assert "Zone:" not in prompt


# ── General chat ─────────────────────────────────────────────────────────


@pytest.fixture()
def conversations(tmp_path):
    db_path = str(tmp_path / "primus.db")
    init_db(db_path)
    return ConversationRepo(db_path)


class TestChatPrompt:
    def test_includes_analysis_and_history(self):
        history = [{"message_type": "user", "content": "hello"}]
        prompt = build_chat_prompt(_reference(NOW - timedelta(days=1)), history, "And now?")
        assert "LAST ANALYSIS (OLDER)" in prompt
        assert "Pair: XAU/USD" in prompt
        assert "RECENT CONVERSATION" in prompt
        assert "User: hello" in prompt
        assert 'The user just sent: "And now?"' in prompt

    def test_without_context(self):
        prompt = build_chat_prompt(None, [], "hi")
        assert "No recent analysis available." in prompt
        assert "RECENT CONVERSATION" not in prompt


class TestChatResponder:
    @pytest.mark.asyncio
    async def test_reply_uses_context_and_is_stored(self, conversations):
        analyzer = AsyncMock()
        analyzer.complete.return_value = "Gold is still above the zone."
        references = MagicMock()
        references.get_last.return_value = _reference(datetime.now(timezone.utc))
        conversations.save_message("42", "user", "Earlier question")
        conversations.save_message("42", "bot", "Earlier answer")

        responder = ChatResponder(analyzer, references, conversations)
        reply = await responder.respond("42", "What about gold?")

        assert reply == "Gold is still above the zone."
        system, user = analyzer.complete.await_args.args[:2]
        assert "LAST ANALYSIS (RECENT)" in system
        assert "Bot: Earlier answer" in system
        assert "User: What about gold?" not in system
        assert user == "What about gold?"

        history = conversations.get_recent_history("42")
        assert [m["content"] for m in history][-2:] == [
            "What about gold?",
            "Gold is still above the zone.",
        ]
        assert history[-1]["metadata"] == {"reference_key": "A1736510400000ABCDE"}

    @pytest.mark.asyncio
    async def test_provider_failure_returns_fallback(self, conversations):
        analyzer = AsyncMock()
        analyzer.complete.side_effect = ProviderError("openai", "timeout")
        references = MagicMock()
        references.get_last.return_value = None

        reply = await ChatResponder(analyzer, references, conversations).respond("42", "hi")

        assert reply == CHAT_FALLBACK_REPLY
        assert conversations.get_stats("42")["bot_messages"] == 1
