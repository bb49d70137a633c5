import pytest

from api.models import Intent
from api.services.commands import HELP_TEXT
from api.services.intent import (
    DEFAULT_INTENT_ON_FAILURE,
    IntentClassifier,
    conversation_reply,
    match_small_talk,
    normalize_label,
)
from lib.error_handler import ModelError


@pytest.mark.parametrize("text, kind", [
    ("hi", "greeting"),
    ("Hello there!", "greeting"),
    ("good morning", "greeting"),
    ("thanks", "thanks"),
    ("Thank you so much!", "thanks"),
    ("bye", "goodbye"),
    ("What can you do?", "capabilities"),
    ("how does this work", "capabilities"),
])
def test_small_talk_patterns(text, kind):
    assert match_small_talk(text) == kind


@pytest.mark.parametrize("text", [
    "hi, spent 50 on coffee",
    "thanks for lunch 200",
    "how much did I spend today?",
])
def test_small_talk_needs_the_whole_message(text):
    assert match_small_talk(text) is None


@pytest.mark.parametrize("raw, intent", [
    ("expense", Intent.EXPENSE),
    ("Expense.", Intent.EXPENSE),
    (" QUERY\n", Intent.QUERY),
    ("Label: conversation", Intent.CONVERSATION),
    ("banana", None),
    ("", None),
])
def test_normalize_label(raw, intent):
    assert normalize_label(raw) == intent


def test_default_fallback_policy_is_expense():
    assert DEFAULT_INTENT_ON_FAILURE is Intent.EXPENSE


@pytest.mark.asyncio
async def test_small_talk_skips_the_model(mock_llm, make_context):
    context = make_context("hey")

    await IntentClassifier().classify(context)

    assert context.intent is Intent.CONVERSATION
    assert context.small_talk == "greeting"
    mock_llm.generate_response.assert_not_awaited()


@pytest.mark.asyncio
async def test_model_label_is_used_with_zero_temperature(mock_llm, make_context):
    mock_llm.generate_response.return_value = "Query"
    context = make_context("how much did I spend on food last month")

    await IntentClassifier().classify(context)

    assert context.intent is Intent.QUERY
    assert mock_llm.generate_response.await_args.kwargs['temperature'] == 0


@pytest.mark.asyncio
async def test_model_failure_falls_back_to_expense(mock_llm, make_context):
    mock_llm.generate_response.side_effect = ModelError("503 from upstream")
    context = make_context("chai 20")

    result = await IntentClassifier().classify(context)

    assert result.terminal is False
    assert context.intent is Intent.EXPENSE


@pytest.mark.asyncio
async def test_fallback_is_configurable(mock_llm, make_context):
    mock_llm.generate_response.return_value = "no idea"
    context = make_context("something odd")

    await IntentClassifier(fallback=Intent.QUERY).classify(context)

    assert context.intent is Intent.QUERY


def test_conversation_replies():
    assert conversation_reply("capabilities") == HELP_TEXT
    assert "welcome" in conversation_reply("thanks")
    assert "help" in conversation_reply(None)
